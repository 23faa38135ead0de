from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..actor import Actor
from ..constants import (
    DURACAO_PADRAO_MINUTOS,
    STATUS_SOLICITACAO_ABERTOS,
    AcaoHistorico,
    StatusAula,
    StatusMatricula,
    StatusSolicitacao,
)
from ..errors import (
    AgendaError,
    AuthorizationError,
    HolidayConflictError,
    IncompatibleLanguageError,
    NotFound,
    ScheduleConflictError,
    StateConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import Aula, Matricula, Professor
from .disponibilidade import cabe_na_disponibilidade, ensina_curso, find_conflicts, get_professor
from .feriados import feriados_entre, is_feriado
from .historico import FORMATO_DATA_HORA, evento_to_dict, notes_com_historico, registrar_evento
from .notificacoes import TipoNotificacao, notify, notify_admin

logger = logging.getLogger(__name__)

CAMPOS_EDITAVEIS = {"professor_id", "start_at", "duration_minutes", "status", "notes"}


@dataclass(frozen=True)
class Recorrencia:
    """Como repetir uma aula nova.

    ``semanas``: N ocorrências semanais no mesmo horário.
    ``frequencia_semanas``: N semanas com uma ou duas aulas por semana
    (a segunda em ``segundo_horario``, dentro da mesma semana).
    """

    semanas: int | None = None
    frequencia_semanas: int | None = None
    segundo_horario: datetime | None = None

    def ocorrencias(self, start_at: datetime) -> list[datetime]:
        if self.semanas is not None and self.frequencia_semanas is not None:
            raise ValidationError("Use repetição por semanas ou por frequência, não as duas.")

        if self.frequencia_semanas is not None:
            if self.frequencia_semanas < 1:
                raise ValidationError("Número de semanas deve ser pelo menos 1.")
            base = [start_at]
            if self.segundo_horario is not None:
                segundo = self.segundo_horario
                if segundo == start_at:
                    raise ValidationError("O segundo horário deve ser diferente do primeiro.")
                if _inicio_semana(segundo.date()) != _inicio_semana(start_at.date()):
                    raise ValidationError("O segundo horário deve estar na mesma semana do primeiro.")
                base.append(segundo)
            horarios = [h + timedelta(weeks=i) for i in range(self.frequencia_semanas) for h in base]
            return sorted(horarios)

        if self.segundo_horario is not None:
            raise ValidationError("Segundo horário só pode ser usado com repetição por frequência.")
        semanas = 1 if self.semanas is None else self.semanas
        if semanas < 1:
            raise ValidationError("Número de repetições deve ser pelo menos 1.")
        return [start_at + timedelta(weeks=i) for i in range(semanas)]


def _inicio_semana(dia: date) -> date:
    return dia - timedelta(days=dia.weekday())


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Apenas a gestão pode alterar aulas diretamente.")


def get_aula(aula_id: int) -> Aula:
    aula = db.session.get(Aula, aula_id)
    if aula is None:
        raise NotFound("Aula não encontrada")
    return aula


def get_matricula(matricula_id: int) -> Matricula:
    matricula = db.session.get(Matricula, matricula_id)
    if matricula is None:
        raise NotFound("Matrícula não encontrada")
    return matricula


def _parse_duration(value) -> int:
    try:
        duration = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Duração inválida.") from None
    if duration <= 0:
        raise ValidationError("Duração deve ser maior que zero.")
    return duration


def _parse_id(value, campo: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{campo} inválido.") from None


def _parse_status(value) -> StatusAula:
    try:
        return StatusAula(value)
    except ValueError:
        raise ValidationError(f"Status de aula inválido: {value}") from None


def _fmt(value: datetime) -> str:
    return value.strftime(FORMATO_DATA_HORA)


def check_assignment(
    matricula: Matricula,
    professor: Professor,
    start_at: datetime,
    duration_minutes: int,
    *,
    now: datetime,
    exclude_ids=(),
) -> None:
    """Regras para colocar um professor num horário da matrícula. Levanta na primeira violação."""
    dia = start_at.date()

    if matricula.status == StatusMatricula.INATIVA.value and dia >= now.date():
        raise ValidationError("Matrícula inativa: não é possível agendar aulas a partir de hoje.")

    if matricula.status == StatusMatricula.PAUSADA.value and matricula.paused_at is not None:
        if dia >= matricula.paused_at and (matricula.activation_date is None or dia < matricula.activation_date):
            raise ScheduleConflictError(
                "Matrícula pausada nesse período. Informe a data de ativação antes de atribuir um professor."
            )

    _check_professor(matricula, professor, start_at, duration_minutes, exclude_ids=exclude_ids)


def _check_professor(
    matricula: Matricula,
    professor: Professor,
    start_at: datetime,
    duration_minutes: int,
    *,
    exclude_ids=(),
) -> None:
    if not ensina_curso(professor, matricula.curso):
        raise IncompatibleLanguageError(
            f"O professor {professor.nome} não leciona o idioma do curso {matricula.curso}."
        )

    conflitos = find_conflicts(
        professor.id,
        start_at,
        duration_minutes,
        exclude_ids=exclude_ids,
        grupo_key=matricula.grupo_key,
    )
    if conflitos:
        primeiro = conflitos[0]
        raise ScheduleConflictError(
            f"Conflito de horário: {professor.nome} já tem aula com {primeiro.matricula.nome} em {_fmt(primeiro.start_at)}.",
            conflitos=[aula_to_dict(a) for a in conflitos],
        )


def cancel_aula(
    aula: Aula,
    *,
    ator_nome: str,
    ator_papel: str | None = None,
    now: datetime,
) -> Aula:
    """Cancela a aula dentro da transação corrente, sem commit."""
    if aula.status == StatusAula.CANCELADA.value:
        raise StateConflictError("Aula já está cancelada.")
    aula.status = StatusAula.CANCELADA.value
    registrar_evento(aula, AcaoHistorico.CANCELADA, ator_nome=ator_nome, ator_papel=ator_papel, ocorrido_em=now)
    return aula


def create_reposicao(
    matricula: Matricula,
    professor: Professor,
    start_at: datetime,
    duration_minutes: int,
    *,
    notes: str | None,
    ator_nome: str,
    ator_papel: str | None,
    created_by: Actor,
    now: datetime,
    solicitado_em: datetime | None = None,
    exclude_ids=(),
) -> Aula:
    """Cria a aula de reposição dentro da transação corrente, sem commit."""
    if is_feriado(start_at):
        raise HolidayConflictError("Não é possível marcar aula em feriado.")
    if start_at < now:
        raise ValidationError("Não é possível marcar a reposição numa data que já passou.")
    check_assignment(matricula, professor, start_at, duration_minutes, now=now, exclude_ids=exclude_ids)

    aula = Aula(
        matricula_id=matricula.id,
        professor_id=professor.id,
        status=StatusAula.REPOSICAO.value,
        start_at=start_at,
        duration_minutes=duration_minutes,
        notes=(notes or "").strip() or None,
        created_by_id=created_by.id,
        created_by_nome=created_by.nome,
    )
    db.session.add(aula)
    registrar_evento(
        aula,
        AcaoHistorico.REAGENDADA,
        ator_nome=ator_nome,
        ator_papel=ator_papel,
        ocorrido_em=now,
        solicitado_em=solicitado_em,
    )
    db.session.flush()
    return aula


def create_aulas(
    matricula_id: int,
    professor_id: int,
    start_at: datetime,
    duration_minutes: int = DURACAO_PADRAO_MINUTOS,
    notes: str | None = None,
    *,
    actor: Actor,
    recorrencia: Recorrencia | None = None,
    status: StatusAula | str = StatusAula.CONFIRMADA,
    aula_cancelada_id: int | None = None,
    now: datetime | None = None,
) -> list[Aula]:
    _require_admin(actor)
    now = now or datetime.now()
    status = _parse_status(status)
    if status == StatusAula.CANCELADA:
        raise ValidationError("Aulas novas só podem ser criadas como confirmadas ou reposição.")
    duration = _parse_duration(duration_minutes)
    matricula = get_matricula(matricula_id)
    professor = get_professor(professor_id)

    cancelada = None
    if aula_cancelada_id is not None:
        if status != StatusAula.REPOSICAO:
            raise ValidationError("Só uma reposição pode substituir uma aula cancelada.")
        cancelada = get_aula(aula_cancelada_id)
        if cancelada.matricula_id != matricula.id:
            raise ValidationError("A aula substituída deve ser da mesma matrícula.")

    horarios = (recorrencia or Recorrencia()).ocorrencias(start_at)
    feriados = feriados_entre(horarios[0].date(), horarios[-1].date())
    validos = [h for h in horarios if h.date().isoformat() not in feriados]
    if not validos:
        raise HolidayConflictError("Todas as datas escolhidas caem em feriados. Nenhuma aula foi criada.")
    if len(validos) < len(horarios):
        logger.info(f"{len(horarios) - len(validos)} ocorrência(s) em feriado ignorada(s) para matrícula {matricula.id}")

    primeira_vez = (
        db.session.query(Aula.id).filter_by(matricula_id=matricula.id, professor_id=professor.id).first() is None
    )

    ignorar = [cancelada.id] if cancelada is not None else []
    criadas: list[Aula] = []
    try:
        for horario in validos:
            check_assignment(matricula, professor, horario, duration, now=now, exclude_ids=ignorar)
            aula = Aula(
                matricula_id=matricula.id,
                professor_id=professor.id,
                status=status.value,
                start_at=horario,
                duration_minutes=duration,
                notes=(notes or "").strip() or None,
                created_by_id=actor.id,
                created_by_nome=actor.nome,
            )
            db.session.add(aula)
            db.session.flush()
            criadas.append(aula)

        substituiu = False
        if cancelada is not None and cancelada.is_ativa:
            cancel_aula(cancelada, ator_nome=actor.nome, ator_papel=actor.papel.value, now=now)
            substituiu = True
        db.session.commit()
    except AgendaError:
        db.session.rollback()
        raise

    logger.info(
        f"{len(criadas)} aula(s) {status.value} criada(s) por {actor.nome} "
        f"para matrícula {matricula.id} com professor {professor.id}"
    )

    contexto = {
        "aluno": matricula.nome,
        "professor": professor.nome,
        "horarios": [_fmt(a.start_at) for a in criadas],
        "duracaoMinutos": duration,
    }
    if primeira_vez:
        notify(TipoNotificacao.NOVO_ALUNO, professor.email, contexto)
    if status == StatusAula.CONFIRMADA:
        kind = TipoNotificacao.LESSON_CONFIRMED
    elif cancelada is not None and substituiu:
        kind = TipoNotificacao.CANCELLATION_WITH_MAKEUP
        contexto = {**contexto, "aulaCancelada": _fmt(cancelada.start_at)}
        notify_admin(kind, contexto)
    else:
        kind = TipoNotificacao.REPOSICAO_SCHEDULED
    notify(kind, matricula.email, contexto)
    notify(kind, professor.email, contexto)
    return criadas


def _fechar_solicitacoes_abertas(aula: Aula, actor: Actor) -> list:
    fechadas = []
    for solicitacao in aula.solicitacoes:
        if solicitacao.status not in STATUS_SOLICITACAO_ABERTOS:
            continue
        nota = f"Processada via edição direta da aula por {actor.nome}."
        solicitacao.admin_notes = f"{solicitacao.admin_notes}\n{nota}" if solicitacao.admin_notes else nota
        solicitacao.status = StatusSolicitacao.CONCLUIDA.value
        solicitacao.processed_by_id = actor.id
        fechadas.append(solicitacao)
    return fechadas


def update_aula(aula_id: int, *, actor: Actor, now: datetime | None = None, **changes) -> Aula:
    """Edição direta da gestão.

    Campos aceitos: professor_id, start_at, duration_minutes, status, notes.
    Trocar professor, horário ou duração passa pelas mesmas regras da criação.
    Pedidos em aberto para a aula são encerrados como concluídos.
    """
    _require_admin(actor)
    desconhecidos = set(changes) - CAMPOS_EDITAVEIS
    if desconhecidos:
        raise ValidationError(f"Campos não editáveis: {', '.join(sorted(desconhecidos))}")
    now = now or datetime.now()
    aula = get_aula(aula_id)

    status_atual = StatusAula(aula.status)
    novo_status = _parse_status(changes["status"]) if "status" in changes else status_atual
    novo_inicio = changes.get("start_at", aula.start_at)
    novo_professor_id = _parse_id(changes.get("professor_id") or aula.professor_id, "Professor")
    nova_duracao = _parse_duration(changes.get("duration_minutes", aula.duration_minutes))

    if status_atual == StatusAula.CANCELADA:
        agenda_mudou = (
            novo_status != status_atual
            or novo_inicio != aula.start_at
            or novo_professor_id != aula.professor_id
            or nova_duracao != aula.duration_minutes
        )
        if agenda_mudou:
            raise StateConflictError("Aula cancelada não pode ser alterada. Crie uma reposição.")

    if novo_inicio != aula.start_at:
        if aula.start_at < now:
            raise ValidationError("Não é possível alterar o horário de uma aula que já aconteceu.")
        if novo_inicio < now:
            raise ValidationError("Não é possível mover a aula para uma data no passado.")

    professor = aula.professor
    if novo_professor_id != aula.professor_id:
        professor = get_professor(novo_professor_id)

    agenda_alterada = (
        novo_inicio != aula.start_at or professor.id != aula.professor_id or nova_duracao != aula.duration_minutes
    )
    if agenda_alterada and novo_status != StatusAula.CANCELADA:
        if novo_inicio != aula.start_at and is_feriado(novo_inicio):
            raise HolidayConflictError("Não é possível marcar aula em feriado.")
        check_assignment(aula.matricula, professor, novo_inicio, nova_duracao, now=now, exclude_ids=[aula.id])

    try:
        aula.professor_id = professor.id
        aula.start_at = novo_inicio
        aula.duration_minutes = nova_duracao
        if "notes" in changes:
            aula.notes = (changes["notes"] or "").strip() or None

        if novo_status != status_atual:
            if novo_status == StatusAula.CANCELADA:
                cancel_aula(aula, ator_nome=actor.nome, ator_papel=actor.papel.value, now=now)
            else:
                aula.status = novo_status.value
                if novo_status == StatusAula.REPOSICAO:
                    registrar_evento(
                        aula,
                        AcaoHistorico.REAGENDADA,
                        ator_nome=actor.nome,
                        ator_papel=actor.papel.value,
                        ocorrido_em=now,
                    )

        fechadas = _fechar_solicitacoes_abertas(aula, actor)
        db.session.commit()
    except AgendaError:
        db.session.rollback()
        raise

    logger.info(f"Aula {aula.id} editada por {actor.nome}: {sorted(changes)}")

    matricula = aula.matricula
    contexto = {"aluno": matricula.nome, "professor": aula.professor.nome, "horario": _fmt(aula.start_at)}
    for solicitacao in fechadas:
        notify(
            TipoNotificacao.REQUEST_APPROVED,
            matricula.email,
            {**contexto, "solicitacaoId": solicitacao.id, "tipo": solicitacao.tipo, "via": "edicao_direta"},
        )
    if novo_status != status_atual and novo_status == StatusAula.CANCELADA:
        notify(TipoNotificacao.LESSON_CANCELLED, matricula.email, contexto)
        notify(TipoNotificacao.LESSON_CANCELLED, aula.professor.email, contexto)
    return aula


def delete_aula(aula_id: int, *, actor: Actor, cascade_future: bool = False) -> int:
    """Remove a aula; com cascade_future remove também as próximas da mesma série.

    A série é reconhecida por matrícula, professor, dia da semana e hora.
    Aulas anteriores à escolhida nunca são removidas. Nenhum aviso é enviado.
    """
    _require_admin(actor)
    aula = get_aula(aula_id)

    alvo = [aula]
    if cascade_future:
        seguintes = Aula.query.filter(
            Aula.matricula_id == aula.matricula_id,
            Aula.professor_id == aula.professor_id,
            Aula.start_at >= aula.start_at,
            Aula.id != aula.id,
        ).all()
        alvo.extend(
            a
            for a in seguintes
            if a.start_at.weekday() == aula.start_at.weekday() and a.start_at.time() == aula.start_at.time()
        )

    for item in alvo:
        db.session.delete(item)
    db.session.commit()

    logger.info(f"{len(alvo)} aula(s) removida(s) por {actor.nome} a partir da aula {aula_id}")
    return len(alvo)


def transfer_aulas(
    origem_id: int,
    destino_id: int,
    *,
    actor: Actor,
    a_partir_de: date | None = None,
    now: datetime | None = None,
) -> list[Aula]:
    """Passa todas as aulas do professor de origem, a partir de um dia, para o destino.

    Aulas canceladas vão junto sem checagem. As demais precisam caber nas
    janelas do destino (quando ele tem janelas), no idioma e sem conflito.
    Nada muda se alguma aula for recusada.
    """
    _require_admin(actor)
    now = now or datetime.now()
    if _parse_id(origem_id, "Professor origem") == _parse_id(destino_id, "Professor destino"):
        raise ValidationError("Não é possível transferir para o mesmo professor.")
    origem = get_professor(origem_id)
    destino = get_professor(destino_id)
    inicio = datetime.combine(a_partir_de or now.date(), datetime.min.time())

    transferidas = (
        Aula.query.filter(Aula.professor_id == origem.id, Aula.start_at >= inicio)
        .order_by(Aula.start_at.asc(), Aula.id.asc())
        .all()
    )

    for aula in transferidas:
        if not aula.is_ativa:
            continue
        if not cabe_na_disponibilidade(destino, aula):
            raise ScheduleConflictError(
                f"{destino.nome} não tem disponibilidade para a aula de {aula.matricula.nome} em {_fmt(aula.start_at)}."
            )
        _check_professor(aula.matricula, destino, aula.start_at, int(aula.duration_minutes))

    try:
        for aula in transferidas:
            aula.professor_id = destino.id
            registrar_evento(
                aula,
                AcaoHistorico.TRANSFERIDA,
                ator_nome=actor.nome,
                ator_papel=actor.papel.value,
                ocorrido_em=now,
                professor_origem=origem.nome,
                professor_destino=destino.nome,
            )
        db.session.commit()
    except AgendaError:
        db.session.rollback()
        raise

    logger.info(f"{len(transferidas)} aula(s) transferida(s) de {origem.nome} para {destino.nome} por {actor.nome}")
    return transferidas


def list_aulas(
    start: datetime,
    end: datetime,
    *,
    professor_id: int | None = None,
    matricula_id: int | None = None,
) -> list[Aula]:
    query = Aula.query.filter(Aula.start_at >= start, Aula.start_at < end)
    if professor_id is not None:
        query = query.filter(Aula.professor_id == professor_id)
    if matricula_id is not None:
        query = query.filter(Aula.matricula_id == matricula_id)
    return query.order_by(Aula.start_at.asc(), Aula.id.asc()).all()


def aula_to_dict(aula: Aula) -> dict:
    return {
        "id": aula.id,
        "matriculaId": aula.matricula_id,
        "studentName": aula.matricula.nome if aula.matricula else None,
        "professorId": aula.professor_id,
        "teacherName": aula.professor.nome if aula.professor else None,
        "status": aula.status,
        "startAt": aula.start_at.isoformat(),
        "durationMinutes": aula.duration_minutes,
        "notes": notes_com_historico(aula) or None,
        "historico": [evento_to_dict(e) for e in aula.eventos],
    }
