from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..actor import Actor
from ..constants import (
    STATUS_SOLICITACAO_ABERTOS,
    AprovacaoProfessor,
    EscolaMatricula,
    Papel,
    StatusAula,
    StatusSolicitacao,
    TipoSolicitacao,
)
from ..errors import (
    AgendaError,
    AuthorizationError,
    HolidayConflictError,
    NotFound,
    ScheduleConflictError,
    StateConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import Aula, Matricula, SolicitacaoAula
from .aulas import cancel_aula, create_reposicao, get_aula
from .disponibilidade import get_professor
from .feriados import is_feriado
from .historico import FORMATO_DATA_HORA
from .notificacoes import TipoNotificacao, notify, notify_admin

logger = logging.getLogger(__name__)

TIPOS_COM_APROVACAO_PROFESSOR = {TipoSolicitacao.TROCA_PROFESSOR, TipoSolicitacao.TROCA_AULA}


@dataclass
class ResultadoDecisao:
    solicitacao: SolicitacaoAula
    nova_aula: Aula | None = None

    def to_dict(self) -> dict:
        return {
            "solicitacao": solicitacao_to_dict(self.solicitacao),
            "novaAulaId": self.nova_aula.id if self.nova_aula is not None else None,
        }


def get_solicitacao(solicitacao_id: int) -> SolicitacaoAula:
    solicitacao = db.session.get(SolicitacaoAula, solicitacao_id)
    if solicitacao is None:
        raise NotFound("Solicitação não encontrada")
    return solicitacao


def antecedencia_minima_horas(matricula: Matricula) -> int:
    if matricula.cancelamento_antecedencia_horas is not None:
        return int(matricula.cancelamento_antecedencia_horas)
    por_escola = current_app.config.get("CANCELAMENTO_ANTECEDENCIA_HORAS_POR_ESCOLA", {})
    padrao = current_app.config.get("CANCELAMENTO_ANTECEDENCIA_HORAS_PADRAO", 6)
    return int(por_escola.get(matricula.escola_matricula, padrao))


def requires_teacher_approval(matricula: Matricula, tipo: TipoSolicitacao) -> bool:
    escolas = current_app.config.get("ESCOLAS_APROVACAO_PROFESSOR", (EscolaMatricula.YOUBECOME.value,))
    return matricula.escola_matricula in escolas and tipo in TIPOS_COM_APROVACAO_PROFESSOR


def _check_antecedencia(aula: Aula, matricula: Matricula, now: datetime) -> None:
    horas = antecedencia_minima_horas(matricula)
    if aula.start_at - now >= timedelta(hours=horas):
        return
    if matricula.cancelamento_antecedencia_horas is None and matricula.escola_matricula == EscolaMatricula.YOUBECOME.value:
        raise ValidationError(f"Alunos YOUBECOME só podem cancelar aulas com pelo menos {horas} horas de antecedência.")
    raise ValidationError(f"É necessário cancelar com pelo menos {horas} horas de antecedência.")


def _check_autor(aula: Aula, actor: Actor) -> None:
    if actor.is_admin:
        raise AuthorizationError("A gestão altera as aulas diretamente, sem abrir solicitação.")
    if actor.is_aluno:
        if aula.matricula.usuario_id != actor.id:
            raise AuthorizationError("Você só pode solicitar mudanças nas suas próprias aulas.")
        if aula.matricula.is_grupo:
            raise AuthorizationError("Aulas em grupo não podem ser alteradas pelo aluno. Fale com a gestão.")
    elif actor.is_professor:
        if aula.professor is None or aula.professor.usuario_id != actor.id:
            raise AuthorizationError("Você só pode solicitar mudanças nas aulas em que é o professor.")
    else:
        raise AuthorizationError("Papel sem permissão para solicitar mudanças.")


def create_solicitacao(
    aula_id: int,
    tipo: TipoSolicitacao | str,
    *,
    actor: Actor,
    requested_start_at: datetime | None = None,
    requested_professor_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> SolicitacaoAula:
    now = now or datetime.now()
    try:
        tipo = TipoSolicitacao(tipo)
    except ValueError:
        raise ValidationError(f"Tipo de solicitação inválido: {tipo}") from None

    aula = get_aula(aula_id)
    matricula = aula.matricula
    _check_autor(aula, actor)

    if aula.status == StatusAula.CANCELADA.value:
        raise StateConflictError("Esta aula já está cancelada.")
    if is_feriado(aula.start_at):
        raise HolidayConflictError("Aulas marcadas em feriado não podem ser alteradas por solicitação. Fale com a gestão.")

    if tipo == TipoSolicitacao.CANCELAMENTO:
        _check_antecedencia(aula, matricula, now)
    if tipo == TipoSolicitacao.TROCA_AULA and requested_start_at is None:
        raise ValidationError("Informe a nova data e horário desejados.")
    if requested_start_at is not None:
        if requested_start_at.date() < aula.start_at.date():
            raise ScheduleConflictError("A nova data não pode ser anterior à data da aula original.")
        if is_feriado(requested_start_at):
            raise HolidayConflictError("A nova data escolhida é feriado.")
    if requested_professor_id is not None:
        get_professor(requested_professor_id)

    exige_professor = requires_teacher_approval(matricula, tipo)
    solicitacao = SolicitacaoAula(
        aula_id=aula.id,
        matricula_id=matricula.id,
        professor_id=aula.professor_id,
        tipo=tipo.value,
        status=StatusSolicitacao.PENDENTE.value,
        requires_teacher_approval=exige_professor,
        requested_start_at=requested_start_at,
        requested_professor_id=requested_professor_id,
        notes=(notes or "").strip() or None,
        created_by_id=actor.id,
        created_by_papel=actor.papel.value,
        created_at=now,
        updated_at=now,
    )
    db.session.add(solicitacao)
    db.session.commit()

    logger.info(f"Solicitação {solicitacao.id} ({tipo.value}) criada por {actor.nome} para aula {aula.id}")

    if exige_professor:
        notify(
            TipoNotificacao.REQUEST_TEACHER_APPROVAL_NEEDED,
            aula.professor.email,
            {
                "solicitacaoId": solicitacao.id,
                "tipo": tipo.value,
                "aluno": matricula.nome,
                "horario": aula.start_at.strftime(FORMATO_DATA_HORA),
                "novoHorario": requested_start_at.strftime(FORMATO_DATA_HORA) if requested_start_at else None,
            },
        )
    return solicitacao


def _guard_professor(solicitacao: SolicitacaoAula, actor: Actor) -> None:
    professor = solicitacao.aula.professor
    if professor is None or professor.usuario_id != actor.id:
        raise AuthorizationError("Apenas o professor da aula pode decidir esta solicitação.")
    if solicitacao.created_by_papel != Papel.ALUNO.value:
        raise AuthorizationError("Pedidos abertos pelo professor são decididos pela gestão.")
    if solicitacao.status != StatusSolicitacao.PENDENTE.value:
        raise StateConflictError("Esta solicitação já foi decidida.")


def _guard_admin(solicitacao: SolicitacaoAula) -> None:
    if solicitacao.status not in STATUS_SOLICITACAO_ABERTOS:
        raise StateConflictError("Esta solicitação já foi decidida.")


def _aprovar(
    solicitacao: SolicitacaoAula,
    actor: Actor,
    *,
    new_professor_id: int | None,
    new_start_at: datetime | None,
    admin_notes: str | None,
    now: datetime,
) -> ResultadoDecisao:
    aula = solicitacao.aula
    matricula = aula.matricula
    tipo = TipoSolicitacao(solicitacao.tipo)
    if aula.status == StatusAula.CANCELADA.value:
        raise StateConflictError("A aula original já foi cancelada.")

    novo_inicio = new_start_at or solicitacao.requested_start_at
    if novo_inicio is None and tipo == TipoSolicitacao.TROCA_PROFESSOR:
        novo_inicio = aula.start_at
    professor_original = aula.professor
    novo_professor = get_professor(new_professor_id or solicitacao.requested_professor_id or aula.professor_id)

    pedido_do_aluno = solicitacao.created_by_papel == Papel.ALUNO.value
    if actor.is_professor and pedido_do_aluno:
        # o professor só atende ao pedido; quem cancelou foi o aluno
        cancelado_por, aprovado_por = "aluno", "professor"
    else:
        cancelado_por, aprovado_por = actor.nome, actor.nome

    nova_aula = None
    try:
        cancel_aula(aula, ator_nome=cancelado_por, ator_papel=actor.papel.value, now=now)
        db.session.flush()
        if novo_inicio is not None:
            nova_aula = create_reposicao(
                matricula,
                novo_professor,
                novo_inicio,
                int(aula.duration_minutes),
                notes=admin_notes,
                ator_nome=aprovado_por,
                ator_papel=actor.papel.value,
                created_by=actor,
                now=now,
                solicitado_em=solicitacao.created_at if pedido_do_aluno else None,
                exclude_ids=[aula.id],
            )

        solicitacao.status = StatusSolicitacao.CONCLUIDA.value
        solicitacao.processed_by_id = actor.id
        solicitacao.updated_at = now
        if actor.is_professor:
            solicitacao.teacher_approval = AprovacaoProfessor.APROVADA.value
            solicitacao.teacher_decided_at = now
        if admin_notes:
            solicitacao.admin_notes = admin_notes.strip()
        db.session.commit()
    except AgendaError:
        db.session.rollback()
        raise

    logger.info(
        f"Solicitação {solicitacao.id} aprovada por {actor.nome}; aula {aula.id} cancelada"
        + (f", reposição {nova_aula.id} criada" if nova_aula is not None else "")
    )

    contexto = {
        "solicitacaoId": solicitacao.id,
        "tipo": solicitacao.tipo,
        "aluno": matricula.nome,
        "aulaCancelada": aula.start_at.strftime(FORMATO_DATA_HORA),
        "novoHorario": nova_aula.start_at.strftime(FORMATO_DATA_HORA) if nova_aula is not None else None,
        "professor": novo_professor.nome,
    }
    notify(TipoNotificacao.REQUEST_APPROVED, matricula.email, contexto)
    if nova_aula is not None and novo_professor.id != professor_original.id:
        notify(TipoNotificacao.REPOSICAO_SCHEDULED, novo_professor.email, contexto)
    return ResultadoDecisao(solicitacao=solicitacao, nova_aula=nova_aula)


def _rejeitar_como_professor(solicitacao: SolicitacaoAula, actor: Actor, now: datetime) -> ResultadoDecisao:
    solicitacao.status = StatusSolicitacao.PROFESSOR_REJEITOU.value
    solicitacao.teacher_approval = AprovacaoProfessor.REJEITADA.value
    solicitacao.teacher_decided_at = now
    solicitacao.updated_at = now
    db.session.commit()

    logger.info(f"Solicitação {solicitacao.id} recusada pelo professor {actor.nome}")

    matricula = solicitacao.matricula
    contexto = {
        "solicitacaoId": solicitacao.id,
        "tipo": solicitacao.tipo,
        "aluno": matricula.nome,
        "horario": solicitacao.aula.start_at.strftime(FORMATO_DATA_HORA),
        "encaminhadaParaGestao": True,
    }
    notify(TipoNotificacao.REQUEST_REJECTED, matricula.email, contexto)
    notify_admin(TipoNotificacao.REQUEST_REJECTED, contexto)
    return ResultadoDecisao(solicitacao=solicitacao)


def _rejeitar_como_admin(
    solicitacao: SolicitacaoAula, actor: Actor, admin_notes: str | None, now: datetime
) -> ResultadoDecisao:
    motivo = (admin_notes or "").strip() or None
    solicitacao.status = StatusSolicitacao.ADMIN_REJEITOU.value
    solicitacao.processed_by_id = actor.id
    solicitacao.updated_at = now
    if motivo:
        solicitacao.admin_notes = motivo
    db.session.commit()

    logger.info(f"Solicitação {solicitacao.id} recusada pela gestão ({actor.nome})")

    matricula = solicitacao.matricula
    notify(
        TipoNotificacao.REQUEST_REJECTED,
        matricula.email,
        {
            "solicitacaoId": solicitacao.id,
            "tipo": solicitacao.tipo,
            "aluno": matricula.nome,
            "horario": solicitacao.aula.start_at.strftime(FORMATO_DATA_HORA),
            "aulaMantida": True,
            "motivo": motivo,
        },
    )
    return ResultadoDecisao(solicitacao=solicitacao)


def decide_solicitacao(
    solicitacao_id: int,
    aprovado: bool,
    *,
    actor: Actor,
    new_professor_id: int | None = None,
    new_start_at: datetime | None = None,
    admin_notes: str | None = None,
    now: datetime | None = None,
) -> ResultadoDecisao:
    """Decisão de professor ou gestão sobre uma solicitação.

    O professor decide apenas pedidos PENDENTE das próprias aulas. A gestão
    decide PENDENTE ou PROFESSOR_REJEITOU, mesmo sem aprovação do professor,
    e pode trocar professor e horário da reposição. Decidir de novo uma
    solicitação encerrada levanta StateConflictError.
    """
    now = now or datetime.now()
    solicitacao = get_solicitacao(solicitacao_id)

    if actor.is_professor:
        if new_professor_id is not None or new_start_at is not None or admin_notes:
            raise AuthorizationError("Somente a gestão pode definir outro professor ou horário.")
        _guard_professor(solicitacao, actor)
    elif actor.is_admin:
        _guard_admin(solicitacao)
    else:
        raise AuthorizationError("Você não tem permissão para decidir solicitações.")

    if aprovado:
        return _aprovar(
            solicitacao,
            actor,
            new_professor_id=new_professor_id,
            new_start_at=new_start_at,
            admin_notes=admin_notes,
            now=now,
        )
    if actor.is_professor:
        return _rejeitar_como_professor(solicitacao, actor, now)
    return _rejeitar_como_admin(solicitacao, actor, admin_notes, now)


def decide_as_teacher(solicitacao_id: int, aprovado: bool, *, actor: Actor, now: datetime | None = None) -> ResultadoDecisao:
    if not actor.is_professor:
        raise AuthorizationError("Apenas professores podem usar esta ação.")
    return decide_solicitacao(solicitacao_id, aprovado, actor=actor, now=now)


def decide_as_admin(
    solicitacao_id: int,
    aprovado: bool,
    *,
    actor: Actor,
    new_professor_id: int | None = None,
    new_start_at: datetime | None = None,
    admin_notes: str | None = None,
    now: datetime | None = None,
) -> ResultadoDecisao:
    if not actor.is_admin:
        raise AuthorizationError("Apenas a gestão pode usar esta ação.")
    return decide_solicitacao(
        solicitacao_id,
        aprovado,
        actor=actor,
        new_professor_id=new_professor_id,
        new_start_at=new_start_at,
        admin_notes=admin_notes,
        now=now,
    )


def list_solicitacoes(
    *,
    actor: Actor,
    status: str | None = None,
) -> list[SolicitacaoAula]:
    query = SolicitacaoAula.query
    if actor.is_aluno:
        query = query.join(Matricula, SolicitacaoAula.matricula_id == Matricula.id).filter(
            Matricula.usuario_id == actor.id
        )
    elif actor.is_professor:
        query = query.filter(SolicitacaoAula.professor.has(usuario_id=actor.id))
    if status:
        query = query.filter(SolicitacaoAula.status == status)
    return query.order_by(SolicitacaoAula.created_at.desc(), SolicitacaoAula.id.desc()).all()


def solicitacao_to_dict(solicitacao: SolicitacaoAula) -> dict:
    return {
        "id": solicitacao.id,
        "aulaId": solicitacao.aula_id,
        "matriculaId": solicitacao.matricula_id,
        "professorId": solicitacao.professor_id,
        "tipo": solicitacao.tipo,
        "status": solicitacao.status,
        "requiresTeacherApproval": bool(solicitacao.requires_teacher_approval),
        "requestedStartAt": solicitacao.requested_start_at.isoformat() if solicitacao.requested_start_at else None,
        "requestedProfessorId": solicitacao.requested_professor_id,
        "notes": solicitacao.notes,
        "teacherApproval": solicitacao.teacher_approval,
        "adminNotes": solicitacao.admin_notes,
        "createdAt": solicitacao.created_at.isoformat() if solicitacao.created_at else None,
    }
