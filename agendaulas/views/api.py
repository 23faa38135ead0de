from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ..actor import Actor
from ..constants import HORIZONTE_DATAS_LIVRES_MESES, StatusAula
from ..errors import AgendaError, AuthorizationError, ScheduleConflictError, ValidationError
from ..services import auditoria, aulas, disponibilidade, feriados, solicitacoes

api_bp = Blueprint("api", __name__)


@api_bp.errorhandler(AgendaError)
def handle_agenda_error(error: AgendaError):
    body = {"ok": False, "message": error.message}
    if isinstance(error, ScheduleConflictError) and error.conflitos:
        body["conflitos"] = error.conflitos
    return jsonify(body), error.status_code


def _actor() -> Actor:
    return Actor.from_usuario(current_user)


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _parse_datetime(raw, field: str) -> datetime:
    try:
        return datetime.fromisoformat(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field}: data/hora inválida") from None


def _optional_datetime(raw, field: str) -> datetime | None:
    if raw in (None, ""):
        return None
    return _parse_datetime(raw, field)


def _parse_date(raw, field: str, default: date | None = None) -> date:
    if raw in (None, "") and default is not None:
        return default
    try:
        return date.fromisoformat(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field}: use o formato YYYY-MM-DD") from None


def _int_arg(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} deve ser um número inteiro") from None


def _int_field(body: dict, name: str, default: int | None = None) -> int | None:
    raw = body.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} deve ser um número inteiro") from None


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Acesso restrito à gestão.")


def _ok(data, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


# Disponibilidade


@api_bp.get("/professores/<int:professor_id>/horarios-livres")
@login_required
def horarios_livres(professor_id: int):
    actor = _actor()
    dia = _parse_date(request.args.get("date"), "date")
    duracao = _int_arg("duration", 60)
    # aluno não escolhe horário no passado
    min_date = date.today() if actor.is_aluno else None
    slots = disponibilidade.free_slots(
        professor_id,
        dia,
        duracao,
        min_date=min_date,
        exclude_aula_id=_int_arg("excludeAulaId"),
    )
    return _ok({"slots": [s.to_dict() for s in slots]})


@api_bp.get("/professores/<int:professor_id>/datas-livres")
@login_required
def datas_livres(professor_id: int):
    inicio = _parse_date(request.args.get("start"), "start", default=date.today())
    datas = disponibilidade.free_dates(
        professor_id,
        inicio,
        _int_arg("duration", 60),
        horizon_months=_int_arg("months", HORIZONTE_DATAS_LIVRES_MESES),
    )
    return _ok({"dates": sorted(d.isoformat() for d in datas)})


@api_bp.put("/professores/<int:professor_id>/disponibilidade")
@login_required
def substituir_disponibilidade(professor_id: int):
    slots = _payload().get("slots")
    if not isinstance(slots, list):
        raise ValidationError("Envie a lista 'slots'.")
    salvos = disponibilidade.replace_disponibilidade(professor_id, slots, actor=_actor())
    return _ok(
        {
            "slots": [
                {"diaSemana": s.dia_semana, "inicioMinutos": s.inicio_minutos, "fimMinutos": s.fim_minutos}
                for s in salvos
            ]
        }
    )


@api_bp.get("/professores/livres")
@login_required
def professores_livres():
    _require_admin(_actor())
    raw_dias = (request.args.get("dias") or "").split(",")
    try:
        dias = [int(d) for d in raw_dias if d.strip()]
    except ValueError:
        raise ValidationError("dias deve ser uma lista de números 0-6") from None
    livres = disponibilidade.free_teachers(
        dias,
        _int_arg("inicio", 0),
        _int_arg("fim", 0),
        curso=request.args.get("curso") or None,
    )
    return _ok({"professores": [{"id": p.id, "nome": p.nome} for p in livres]})


# Aulas


@api_bp.get("/aulas")
@login_required
def listar_aulas():
    actor = _actor()
    hoje = date.today()
    inicio = _parse_date(request.args.get("start"), "start", default=hoje - timedelta(days=hoje.weekday()))
    fim = _parse_date(request.args.get("end"), "end", default=inicio + timedelta(days=7))
    professor_id = _int_arg("professorId")
    matricula_id = _int_arg("matriculaId")

    if actor.is_professor:
        professor = disponibilidade.get_professor(professor_id) if professor_id else None
        if professor is None or professor.usuario_id != actor.id:
            raise AuthorizationError("Professores só podem listar as próprias aulas.")
    elif actor.is_aluno:
        matricula = aulas.get_matricula(matricula_id) if matricula_id else None
        if matricula is None or matricula.usuario_id != actor.id:
            raise AuthorizationError("Alunos só podem listar as próprias aulas.")

    encontradas = aulas.list_aulas(
        datetime.combine(inicio, datetime.min.time()),
        datetime.combine(fim, datetime.min.time()),
        professor_id=professor_id,
        matricula_id=matricula_id,
    )
    return _ok({"aulas": [aulas.aula_to_dict(a) for a in encontradas]})


@api_bp.post("/aulas")
@login_required
def criar_aulas():
    body = _payload()
    if not body.get("matriculaId") or not body.get("professorId") or not body.get("startAt"):
        raise ValidationError("matriculaId, professorId e startAt são obrigatórios")

    recorrencia = None
    if any(body.get(k) is not None for k in ("semanas", "frequenciaSemanas", "segundoHorario")):
        recorrencia = aulas.Recorrencia(
            semanas=_int_field(body, "semanas"),
            frequencia_semanas=_int_field(body, "frequenciaSemanas"),
            segundo_horario=_optional_datetime(body.get("segundoHorario"), "segundoHorario"),
        )

    criadas = aulas.create_aulas(
        _int_field(body, "matriculaId"),
        _int_field(body, "professorId"),
        _parse_datetime(body["startAt"], "startAt"),
        _int_field(body, "durationMinutes", 60),
        body.get("notes"),
        actor=_actor(),
        recorrencia=recorrencia,
        status=body.get("status") or StatusAula.CONFIRMADA.value,
        aula_cancelada_id=_int_field(body, "aulaCanceladaId"),
    )
    return _ok({"aulas": [aulas.aula_to_dict(a) for a in criadas]}, 201)


@api_bp.patch("/aulas/<int:aula_id>")
@login_required
def editar_aula(aula_id: int):
    body = _payload()
    changes: dict = {}
    if "professorId" in body:
        changes["professor_id"] = _int_field(body, "professorId")
    if "startAt" in body:
        changes["start_at"] = _parse_datetime(body["startAt"], "startAt")
    if "durationMinutes" in body:
        changes["duration_minutes"] = _int_field(body, "durationMinutes")
    if "status" in body:
        changes["status"] = body["status"]
    if "notes" in body:
        changes["notes"] = body["notes"]

    aula = aulas.update_aula(aula_id, actor=_actor(), **changes)
    return _ok({"aula": aulas.aula_to_dict(aula)})


@api_bp.post("/professores/<int:professor_id>/transferir-aulas")
@login_required
def transferir_aulas(professor_id: int):
    body = _payload()
    destino_id = _int_field(body, "destinoId")
    if destino_id is None:
        raise ValidationError("destinoId é obrigatório")
    transferidas = aulas.transfer_aulas(
        professor_id,
        destino_id,
        actor=_actor(),
        a_partir_de=_parse_date(body.get("aPartirDe"), "aPartirDe", default=date.today()),
    )
    return _ok({"transferred": len(transferidas), "aulas": [aulas.aula_to_dict(a) for a in transferidas]})


@api_bp.delete("/aulas/<int:aula_id>")
@login_required
def remover_aula(aula_id: int):
    cascade = (request.args.get("cascade") or "").strip().lower() in {"1", "true", "sim"}
    removidas = aulas.delete_aula(aula_id, actor=_actor(), cascade_future=cascade)
    return _ok({"deleted": removidas})


# Solicitações


@api_bp.get("/solicitacoes")
@login_required
def listar_solicitacoes():
    encontradas = solicitacoes.list_solicitacoes(actor=_actor(), status=request.args.get("status") or None)
    return _ok({"solicitacoes": [solicitacoes.solicitacao_to_dict(s) for s in encontradas]})


@api_bp.post("/solicitacoes")
@login_required
def criar_solicitacao():
    body = _payload()
    if not body.get("aulaId") or not body.get("tipo"):
        raise ValidationError("aulaId e tipo são obrigatórios")
    solicitacao = solicitacoes.create_solicitacao(
        _int_field(body, "aulaId"),
        body["tipo"],
        actor=_actor(),
        requested_start_at=_optional_datetime(body.get("requestedStartAt"), "requestedStartAt"),
        requested_professor_id=_int_field(body, "requestedProfessorId"),
        notes=body.get("notes"),
    )
    return _ok({"solicitacao": solicitacoes.solicitacao_to_dict(solicitacao)}, 201)


@api_bp.post("/solicitacoes/<int:solicitacao_id>/decisao")
@login_required
def decidir_solicitacao(solicitacao_id: int):
    body = _payload()
    acao = (body.get("acao") or "").strip().upper()
    if acao not in {"APROVAR", "REJEITAR"}:
        raise ValidationError("acao deve ser APROVAR ou REJEITAR")
    resultado = solicitacoes.decide_solicitacao(
        solicitacao_id,
        acao == "APROVAR",
        actor=_actor(),
        new_professor_id=_int_field(body, "newProfessorId"),
        new_start_at=_optional_datetime(body.get("newStartAt"), "newStartAt"),
        admin_notes=body.get("adminNotes"),
    )
    return _ok(resultado.to_dict())


# Auditoria


@api_bp.get("/auditoria/semana")
@login_required
def auditoria_semana():
    _require_admin(_actor())
    dia = _parse_date(request.args.get("weekStart"), "weekStart", default=date.today())
    return _ok(auditoria.audit_semana(dia).to_dict())


@api_bp.get("/auditoria/semana-completa")
@login_required
def auditoria_semana_completa():
    _require_admin(_actor())
    dia = _parse_date(request.args.get("weekStart"), "weekStart")
    return _ok({"matriculaIds": auditoria.matriculas_com_semana_completa(dia)})


# Feriados


@api_bp.get("/feriados")
@login_required
def listar_feriados():
    hoje = date.today()
    inicio = _parse_date(request.args.get("start"), "start", default=date(hoje.year, 1, 1))
    fim = _parse_date(request.args.get("end"), "end", default=date(hoje.year, 12, 31))
    return _ok({"feriados": feriados.list_feriados(inicio, fim)})


@api_bp.post("/feriados")
@login_required
def criar_feriado():
    dia = feriados.parse_date_key(_payload().get("date") or "")
    return _ok({"date": feriados.add_feriado(dia, actor=_actor())}, 201)


@api_bp.delete("/feriados/<date_key>")
@login_required
def remover_feriado(date_key: str):
    dia = feriados.parse_date_key(date_key)
    return _ok({"removed": feriados.remove_feriado(dia, actor=_actor())})
