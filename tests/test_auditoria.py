from datetime import date, datetime, time

from agendaulas.constants import StatusAula, StatusMatricula, StatusProfessor, TipoAula
from agendaulas.extensions import db
from agendaulas.models import RegistroAula
from agendaulas.services.auditoria import audit_semana, matriculas_com_semana_completa, semana_de
from conftest import NOW

MONDAY = NOW.date()


def at(dia, hh, mm=0):
    return datetime.combine(dia, time(hh, mm))


def d(day, month=3):
    return date(2026, month, day)


class TestSemana:
    def test_window_is_monday_to_saturday(self):
        inicio, fim = semana_de(d(5))

        assert inicio == at(MONDAY, 0)
        assert fim == at(d(8), 0)

    def test_lessons_outside_window_are_ignored(self, factory, professor, matricula):
        factory.aula(matricula, professor, at(d(1), 9))
        factory.aula(matricula, professor, at(d(8), 9))
        factory.aula(matricula, professor, at(d(7), 9))

        relatorio = audit_semana(MONDAY)

        assert relatorio.confirmed == 1


class TestBuckets:
    def test_counts_per_status(self, factory, professor, matricula):
        factory.aula(matricula, professor, at(d(2), 9))
        factory.aula(matricula, professor, at(d(3), 9), status=StatusAula.CANCELADA)
        factory.aula(matricula, professor, at(d(4), 9), status=StatusAula.REPOSICAO)

        relatorio = audit_semana(d(4))

        assert (relatorio.confirmed, relatorio.cancelled, relatorio.reposicao) == (1, 1, 1)
        assert relatorio.confirmed_list[0].student_name == "Bruno"
        assert relatorio.confirmed_list[0].teacher_name == "Ana"


class TestFrequencia:
    def test_missing_lesson_is_flagged_in_minutes(self, factory, professor):
        matricula = factory.matricula("Caio", frequencia=3, tempo=60)
        factory.aula(matricula, professor, at(d(2), 9))
        factory.aula(matricula, professor, at(d(4), 9))

        (item,) = audit_semana(MONDAY).wrong_frequency_list

        assert (item.expected, item.actual) == (3, 2)
        assert (item.expected_minutes, item.actual_minutes) == (180, 120)
        assert item.lesson_times_this_week == [at(d(2), 9).isoformat(), at(d(4), 9).isoformat()]

    def test_cancelled_lessons_do_not_count(self, factory, professor):
        matricula = factory.matricula("Caio", frequencia=1, tempo=None)
        factory.aula(matricula, professor, at(d(2), 9), status=StatusAula.CANCELADA)

        (item,) = audit_semana(MONDAY).wrong_frequency_list

        assert (item.expected, item.actual, item.expected_minutes) == (1, 0, None)

    def test_five_minute_tolerance(self, factory, professor):
        matricula = factory.matricula("Caio", frequencia=1, tempo=60)
        factory.aula(matricula, professor, at(d(2), 9), duration=65)

        assert audit_semana(MONDAY).wrong_frequency_list == []

    def test_count_mode_without_lesson_length(self, factory, professor):
        matricula = factory.matricula("Caio", frequencia=2, tempo=None)
        factory.aula(matricula, professor, at(d(2), 9), duration=45)
        factory.aula(matricula, professor, at(d(4), 9), duration=90)

        assert audit_semana(MONDAY).wrong_frequency_list == []

    def test_non_billable_enrollments_are_skipped(self, factory, professor):
        factory.matricula("Lia", status=StatusMatricula.PAUSADA, frequencia=2)
        factory.matricula("Leo", status=StatusMatricula.LEAD, frequencia=2)

        assert audit_semana(MONDAY).wrong_frequency_list == []

    def test_group_slot_counts_once(self, factory, professor):
        a = factory.matricula("Ana", tipo=TipoAula.GRUPO, nome_grupo="Turma A", frequencia=2, tempo=30)
        b = factory.matricula("Bia", tipo=TipoAula.GRUPO, nome_grupo="Turma A", frequencia=2, tempo=30)
        for dia in (d(2), d(4)):
            factory.aula(a, professor, at(dia, 9), duration=30)
            factory.aula(b, professor, at(dia, 9), duration=30)

        relatorio = audit_semana(MONDAY)

        assert relatorio.wrong_frequency_list == []
        assert relatorio.double_booking_list == []

    def test_group_reported_once_with_members(self, factory, professor):
        a = factory.matricula("Ana", tipo=TipoAula.GRUPO, nome_grupo="Turma A", frequencia=2, tempo=30)
        b = factory.matricula("Bia", tipo=TipoAula.GRUPO, nome_grupo="Turma A", frequencia=2, tempo=30)
        factory.aula(a, professor, at(d(2), 9), duration=30)
        factory.aula(b, professor, at(d(2), 9), duration=30)

        (item,) = audit_semana(MONDAY).wrong_frequency_list

        assert item.student_name == "Turma A (Ana, Bia)"
        assert (item.expected_minutes, item.actual_minutes, item.actual) == (60, 30, 1)

    def test_last_book_is_from_most_recent_lesson(self, factory, professor):
        matricula = factory.matricula("Caio", frequencia=3, tempo=60)
        antiga = factory.aula(matricula, professor, at(d(16, 2), 9))
        recente = factory.aula(matricula, professor, at(d(23, 2), 9))
        db.session.add(RegistroAula(aula_id=recente.id, livro="Book 2"))
        db.session.add(RegistroAula(aula_id=antiga.id, livro="Book 1"))
        db.session.commit()

        (item,) = audit_semana(MONDAY).wrong_frequency_list

        assert item.last_book == "Book 2"


class TestErrosProfessor:
    def test_overlapping_lessons(self, factory, professor):
        a = factory.matricula("Caio")
        b = factory.matricula("Duda")
        factory.aula(a, professor, at(d(2), 9))
        factory.aula(b, professor, at(d(2), 9, 30))

        (erro,) = audit_semana(MONDAY).double_booking_list

        assert erro.teacher_name == "Ana"
        assert [l["studentName"] for l in erro.lessons] == ["Caio", "Duda"]

    def test_transitive_overlaps_form_one_cluster(self, factory, professor):
        a = factory.matricula("Caio")
        b = factory.matricula("Duda")
        c = factory.matricula("Edu")
        factory.aula(a, professor, at(d(2), 9))
        factory.aula(c, professor, at(d(2), 10, 15), duration=45)
        factory.aula(b, professor, at(d(2), 9, 30))

        (erro,) = audit_semana(MONDAY).double_booking_list

        assert len(erro.lessons) == 3

    def test_back_to_back_is_fine(self, factory, professor):
        a = factory.matricula("Caio")
        b = factory.matricula("Duda")
        factory.aula(a, professor, at(d(2), 9))
        factory.aula(b, professor, at(d(2), 10))

        assert audit_semana(MONDAY).double_booking_list == []

    def test_cancelled_lesson_is_not_a_conflict(self, factory, professor):
        a = factory.matricula("Caio")
        b = factory.matricula("Duda")
        factory.aula(a, professor, at(d(2), 9), status=StatusAula.CANCELADA)
        factory.aula(b, professor, at(d(2), 9))

        assert audit_semana(MONDAY).double_booking_list == []

    def test_inactive_teacher(self, factory, matricula):
        inativo = factory.professor("Igor", status=StatusProfessor.INATIVO)
        factory.aula(matricula, inativo, at(d(2), 9))
        factory.aula(matricula, inativo, at(d(4), 9))

        relatorio = audit_semana(MONDAY)

        (erro,) = relatorio.inactive_teacher_list
        assert erro.teacher_name == "Igor"
        assert len(erro.lessons) == 2
        assert relatorio.teacher_errors_count == 1

    def test_report_serializes(self, factory, professor, matricula):
        factory.aula(matricula, professor, at(d(2), 9))

        data = audit_semana(MONDAY).to_dict()

        assert data["confirmed"] == 1
        assert data["weekStart"] == "2026-03-02T00:00:00"
        assert data["wrongFrequencyCount"] == 1


class TestSemanaCompleta:
    def test_enrollments_with_all_lessons_booked(self, factory, professor):
        completa = factory.matricula("Caio", frequencia=2)
        pausada = factory.matricula("Duda", frequencia=1, status=StatusMatricula.PAUSADA)
        incompleta = factory.matricula("Edu", frequencia=2)
        factory.aula(completa, professor, at(d(2), 9))
        factory.aula(completa, professor, at(d(4), 9), status=StatusAula.REPOSICAO)
        factory.aula(pausada, professor, at(d(3), 9))
        factory.aula(incompleta, professor, at(d(2), 11))
        factory.aula(incompleta, professor, at(d(4), 11), status=StatusAula.CANCELADA)

        assert matriculas_com_semana_completa(MONDAY) == [completa.id, pausada.id]
