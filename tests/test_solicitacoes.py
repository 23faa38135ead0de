from datetime import date, datetime, time, timedelta

import pytest

from agendaulas.constants import (
    AprovacaoProfessor,
    EscolaMatricula,
    StatusAula,
    StatusSolicitacao,
    TipoAula,
    TipoSolicitacao,
)
from agendaulas.errors import (
    AuthorizationError,
    HolidayConflictError,
    NotificationError,
    ScheduleConflictError,
    StateConflictError,
    ValidationError,
)
from agendaulas.extensions import db
from agendaulas.models import Aula, SolicitacaoAula
from agendaulas.services import solicitacoes
from agendaulas.services.historico import render_historico
from agendaulas.services.notificacoes import EXTENSION_KEY, NotificationSink
from conftest import ADMIN_EMAIL, NOW


def at(dia, hh, mm=0):
    return datetime.combine(dia, time(hh, mm))


def d(day, month=3):
    return date(2026, month, day)


class FailingSink(NotificationSink):
    def send(self, kind, recipient, context):
        raise NotificationError("smtp fora do ar")


@pytest.fixture
def aula(factory, professor, matricula):
    return factory.aula(matricula, professor, at(d(9), 9))


@pytest.fixture
def youbecome(factory):
    return factory.matricula("Yara", escola=EscolaMatricula.YOUBECOME)


class TestCreateSolicitacao:
    def test_cancel_inside_default_notice(self, factory, professor, matricula, aluno):
        aula = factory.aula(matricula, professor, NOW + timedelta(hours=5))

        with pytest.raises(ValidationError) as exc:
            solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

        assert "6 horas de antecedência" in exc.value.message
        assert SolicitacaoAula.query.count() == 0

    def test_cancel_outside_default_notice(self, factory, professor, matricula, aluno):
        aula = factory.aula(matricula, professor, NOW + timedelta(hours=6))

        solicitacao = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

        assert solicitacao.status == StatusSolicitacao.PENDENTE.value
        assert solicitacao.requires_teacher_approval is False

    def test_youbecome_needs_longer_notice(self, factory, professor, youbecome):
        aula = factory.aula(youbecome, professor, NOW + timedelta(hours=10))

        with pytest.raises(ValidationError) as exc:
            solicitacoes.create_solicitacao(
                aula.id, TipoSolicitacao.CANCELAMENTO, actor=factory.actor_de(youbecome), now=NOW
            )

        assert "YOUBECOME" in exc.value.message
        assert "24 horas de antecedência" in exc.value.message

    def test_enrollment_override_wins(self, factory, professor):
        matricula = factory.matricula(
            "Yuri", escola=EscolaMatricula.YOUBECOME, cancelamento_antecedencia_horas=2
        )
        aula = factory.aula(matricula, professor, NOW + timedelta(hours=3))

        solicitacao = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.CANCELAMENTO, actor=factory.actor_de(matricula), now=NOW
        )

        assert solicitacao.id is not None

    def test_student_only_on_own_lessons(self, factory, aula):
        intruso = factory.matricula("Ivo")

        with pytest.raises(AuthorizationError):
            solicitacoes.create_solicitacao(
                aula.id, TipoSolicitacao.CANCELAMENTO, actor=factory.actor_de(intruso), now=NOW
            )

    def test_group_lessons_reject_students(self, factory, professor):
        grupo = factory.matricula("Gil", tipo=TipoAula.GRUPO, nome_grupo="Turma A")
        aula = factory.aula(grupo, professor, at(d(9), 9))

        with pytest.raises(AuthorizationError):
            solicitacoes.create_solicitacao(
                aula.id, TipoSolicitacao.CANCELAMENTO, actor=factory.actor_de(grupo), now=NOW
            )

    def test_admin_edits_directly(self, admin, aula):
        with pytest.raises(AuthorizationError):
            solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=admin, now=NOW)

    def test_teacher_on_own_lesson(self, aula, professor_actor):
        solicitacao = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.CANCELAMENTO, actor=professor_actor, now=NOW
        )

        assert solicitacao.created_by_papel == "PROFESSOR"

    def test_cancelled_lesson(self, factory, professor, matricula, aluno):
        aula = factory.aula(matricula, professor, at(d(9), 9), status=StatusAula.CANCELADA)

        with pytest.raises(StateConflictError):
            solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

    def test_original_lesson_on_holiday(self, factory, aula, aluno):
        factory.feriado(d(9))

        with pytest.raises(HolidayConflictError):
            solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

    def test_reschedule_to_holiday_creates_nothing(self, factory, aula, aluno):
        factory.feriado(d(16))

        with pytest.raises(HolidayConflictError):
            solicitacoes.create_solicitacao(
                aula.id, TipoSolicitacao.TROCA_AULA, actor=aluno, requested_start_at=at(d(16), 9), now=NOW
            )
        assert SolicitacaoAula.query.count() == 0

    def test_reschedule_before_original_date(self, aula, aluno):
        with pytest.raises(ScheduleConflictError) as exc:
            solicitacoes.create_solicitacao(
                aula.id, TipoSolicitacao.TROCA_AULA, actor=aluno, requested_start_at=at(d(6), 9), now=NOW
            )

        assert exc.value.status_code == 409
        assert SolicitacaoAula.query.count() == 0

    def test_reschedule_needs_target(self, aula, aluno):
        with pytest.raises(ValidationError):
            solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.TROCA_AULA, actor=aluno, now=NOW)

    def test_youbecome_swap_needs_teacher(self, factory, professor, youbecome, sink):
        aula = factory.aula(youbecome, professor, at(d(9), 9))

        solicitacao = solicitacoes.create_solicitacao(
            aula.id,
            TipoSolicitacao.TROCA_AULA,
            actor=factory.actor_de(youbecome),
            requested_start_at=at(d(9), 11),
            now=NOW,
        )

        assert solicitacao.requires_teacher_approval is True
        assert sink.kinds(professor.email) == ["request-teacher-approval-needed"]

    def test_youbecome_cancel_never_needs_teacher(self, factory, professor, youbecome, sink):
        aula = factory.aula(youbecome, professor, at(d(9), 9))

        solicitacao = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.CANCELAMENTO, actor=factory.actor_de(youbecome), now=NOW
        )

        assert solicitacao.requires_teacher_approval is False
        assert sink.sent == []


class TestTeacherDecision:
    def _pedido(self, aula, aluno):
        return solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.TROCA_AULA, actor=aluno, requested_start_at=at(d(9), 11), now=NOW
        )

    def test_approve_cancels_and_creates_one_reposicao(self, aula, aluno, professor_actor, matricula, sink):
        pedido = self._pedido(aula, aluno)
        decidido_em = NOW + timedelta(hours=1)

        resultado = solicitacoes.decide_as_teacher(pedido.id, True, actor=professor_actor, now=decidido_em)

        original = db.session.get(Aula, aula.id)
        assert original.status == StatusAula.CANCELADA.value
        assert render_historico(original) == ["Aula foi cancelada pelo aluno às 02/03/2026 09:00"]

        nova = resultado.nova_aula
        assert nova.status == StatusAula.REPOSICAO.value
        assert nova.start_at == at(d(9), 11)
        assert nova.professor_id == original.professor_id
        assert render_historico(nova) == [
            "Aula reagendada pelo aluno no dia 02/03/2026 08:00 e aprovado pelo professor no dia 02/03/2026 09:00"
        ]
        assert Aula.query.filter_by(status=StatusAula.REPOSICAO.value).count() == 1

        pedido = resultado.solicitacao
        assert pedido.status == StatusSolicitacao.CONCLUIDA.value
        assert pedido.teacher_approval == AprovacaoProfessor.APROVADA.value
        assert "request-approved" in sink.kinds(matricula.email)

    def test_reject_forwards_to_admin(self, aula, aluno, professor_actor, matricula, sink):
        pedido = self._pedido(aula, aluno)

        resultado = solicitacoes.decide_as_teacher(pedido.id, False, actor=professor_actor, now=NOW)

        assert resultado.solicitacao.status == StatusSolicitacao.PROFESSOR_REJEITOU.value
        assert db.session.get(Aula, aula.id).status == StatusAula.CONFIRMADA.value
        assert sink.kinds(matricula.email) == ["request-rejected"]
        assert sink.kinds(ADMIN_EMAIL) == ["request-rejected"]

    def test_teacher_cannot_decide_twice(self, aula, aluno, professor_actor):
        pedido = self._pedido(aula, aluno)
        solicitacoes.decide_as_teacher(pedido.id, False, actor=professor_actor, now=NOW)

        with pytest.raises(StateConflictError):
            solicitacoes.decide_as_teacher(pedido.id, True, actor=professor_actor, now=NOW)

    def test_other_teacher_cannot_decide(self, factory, aula, aluno):
        pedido = self._pedido(aula, aluno)
        outro = factory.actor_de(factory.professor("Carla"))

        with pytest.raises(AuthorizationError):
            solicitacoes.decide_as_teacher(pedido.id, True, actor=outro, now=NOW)

    def test_student_cannot_decide(self, aula, aluno):
        pedido = self._pedido(aula, aluno)

        with pytest.raises(AuthorizationError):
            solicitacoes.decide_solicitacao(pedido.id, True, actor=aluno, now=NOW)

    def test_own_request_goes_to_admin(self, aula, professor_actor, admin):
        pedido = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.CANCELAMENTO, actor=professor_actor, now=NOW
        )

        with pytest.raises(AuthorizationError):
            solicitacoes.decide_solicitacao(pedido.id, True, actor=professor_actor, now=NOW)
        assert db.session.get(Aula, aula.id).status == StatusAula.CONFIRMADA.value

        solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW)

        assert render_historico(db.session.get(Aula, aula.id)) == [
            "Aula foi cancelada pelo Gestão às 02/03/2026 08:00"
        ]


class TestAdminDecision:
    def test_admin_overrides_teacher_rejection(self, aula, aluno, professor_actor, admin):
        pedido = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.TROCA_AULA, actor=aluno, requested_start_at=at(d(9), 11), now=NOW
        )
        solicitacoes.decide_as_teacher(pedido.id, False, actor=professor_actor, now=NOW)

        resultado = solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW)

        original = db.session.get(Aula, aula.id)
        assert render_historico(original) == ["Aula foi cancelada pelo Gestão às 02/03/2026 08:00"]
        assert render_historico(resultado.nova_aula) == [
            "Aula reagendada pelo aluno no dia 02/03/2026 08:00 e aprovado pelo Gestão no dia 02/03/2026 08:00"
        ]
        assert resultado.solicitacao.status == StatusSolicitacao.CONCLUIDA.value

    def test_admin_picks_new_teacher_and_time(self, factory, aula, aluno, admin, professor, sink):
        carla = factory.professor("Carla")
        pedido = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.TROCA_PROFESSOR, actor=aluno, now=NOW)

        resultado = solicitacoes.decide_as_admin(
            pedido.id,
            True,
            actor=admin,
            new_professor_id=carla.id,
            new_start_at=at(d(10), 9),
            admin_notes="Professora Ana de férias",
            now=NOW,
        )

        nova = resultado.nova_aula
        assert (nova.professor_id, nova.start_at) == (carla.id, at(d(10), 9))
        assert nova.notes == "Professora Ana de férias"
        assert sink.kinds(carla.email) == ["reposicao-scheduled"]

    def test_teacher_swap_keeps_original_time(self, factory, aula, aluno, admin):
        carla = factory.professor("Carla")
        pedido = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.TROCA_PROFESSOR, actor=aluno, requested_professor_id=carla.id, now=NOW
        )

        nova = solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW).nova_aula

        assert (nova.professor_id, nova.start_at) == (carla.id, at(d(9), 9))

    def test_cancel_request_creates_no_replacement(self, aula, aluno, admin):
        pedido = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

        resultado = solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW)

        assert resultado.nova_aula is None
        assert Aula.query.count() == 1
        assert db.session.get(Aula, aula.id).status == StatusAula.CANCELADA.value

    def test_reject_keeps_original_lesson(self, aula, aluno, admin, matricula, sink):
        pedido = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

        resultado = solicitacoes.decide_as_admin(pedido.id, False, actor=admin, admin_notes="Sem reposição", now=NOW)

        assert resultado.solicitacao.status == StatusSolicitacao.ADMIN_REJEITOU.value
        assert db.session.get(Aula, aula.id).status == StatusAula.CONFIRMADA.value
        kind, recipient, contexto = sink.sent[-1]
        assert (kind, recipient) == ("request-rejected", matricula.email)
        assert contexto["aulaMantida"] is True
        assert contexto["motivo"] == "Sem reposição"

    def test_double_decision_fails_loudly(self, aula, aluno, admin):
        pedido = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)
        solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW)

        with pytest.raises(StateConflictError):
            solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW)
        assert Aula.query.count() == 1

    def test_conflicting_target_rolls_back(self, factory, aula, aluno, admin, professor):
        outra = factory.matricula("Carla")
        factory.aula(outra, professor, at(d(9), 11))
        pedido = solicitacoes.create_solicitacao(
            aula.id, TipoSolicitacao.TROCA_AULA, actor=aluno, requested_start_at=at(d(9), 11), now=NOW
        )

        with pytest.raises(ScheduleConflictError):
            solicitacoes.decide_as_admin(pedido.id, True, actor=admin, now=NOW)

        assert db.session.get(Aula, aula.id).status == StatusAula.CONFIRMADA.value
        assert db.session.get(SolicitacaoAula, pedido.id).status == StatusSolicitacao.PENDENTE.value

    def test_notification_failure_does_not_undo_decision(self, app, aula, aluno, admin):
        pedido = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)
        app.extensions[EXTENSION_KEY] = FailingSink()

        resultado = solicitacoes.decide_as_admin(pedido.id, False, actor=admin, now=NOW)

        assert resultado.solicitacao.status == StatusSolicitacao.ADMIN_REJEITOU.value

    def test_teacher_wrapper_refuses_admin(self, aula, aluno, admin):
        pedido = solicitacoes.create_solicitacao(aula.id, TipoSolicitacao.CANCELAMENTO, actor=aluno, now=NOW)

        with pytest.raises(AuthorizationError):
            solicitacoes.decide_as_teacher(pedido.id, True, actor=admin, now=NOW)
