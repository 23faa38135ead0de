from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from ..actor import Actor
from ..constants import (
    DIAS_SEMANA,
    HORIZONTE_DATAS_LIVRES_MESES,
    IDIOMAS_POR_CURSO,
    PASSO_GRADE_MINUTOS,
    STATUS_AULA_ATIVOS,
    StatusProfessor,
)
from ..errors import AuthorizationError, NotFound, ScheduleConflictError, ValidationError
from ..extensions import db
from ..models import Aula, DisponibilidadeProfessor, Professor
from .feriados import feriados_entre, is_feriado

logger = logging.getLogger(__name__)

MINUTOS_DIA = 24 * 60


@dataclass(frozen=True)
class Horario:
    start: datetime
    end: datetime

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "startTime": self.start.strftime("%H:%M"),
            "endTime": self.end.strftime("%H:%M"),
        }


def dia_semana(value: date | datetime) -> int:
    """0=Domingo ... 6=Sábado, a mesma numeração da disponibilidade."""
    return (value.weekday() + 1) % 7


def minuto_do_dia(value: datetime) -> int:
    return value.hour * 60 + value.minute


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # intervalos semiabertos: fim de A == início de B não é sobreposição
    return a_start < b_end and b_start < a_end


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def ensina_curso(professor: Professor, curso: str | None) -> bool:
    if not curso:
        return True
    exigidos = IDIOMAS_POR_CURSO.get(curso)
    if exigidos is None:
        return True
    idiomas = {str(i).strip().upper() for i in (professor.idiomas or [])}
    return bool(idiomas & exigidos)


def get_professor(professor_id: int) -> Professor:
    professor = db.session.get(Professor, professor_id)
    if professor is None:
        raise NotFound("Professor não encontrado")
    return professor


def _validate_duration(duration_minutes: int) -> int:
    try:
        duration = int(duration_minutes)
    except (TypeError, ValueError):
        raise ValidationError("Duração inválida.") from None
    if duration <= 0 or duration > MINUTOS_DIA:
        raise ValidationError("Duração deve estar entre 1 e 1440 minutos.")
    return duration


def _aulas_ativas(professor_id: int, start: datetime, end: datetime, exclude_ids: Iterable[int] = ()) -> list[Aula]:
    # aulas que começam até um dia antes podem invadir a janela
    query = Aula.query.filter(
        Aula.professor_id == professor_id,
        Aula.status.in_(STATUS_AULA_ATIVOS),
        Aula.start_at < end,
        Aula.start_at >= start - timedelta(days=1),
    )
    excluded = [int(i) for i in exclude_ids]
    if excluded:
        query = query.filter(Aula.id.notin_(excluded))
    return [a for a in query.order_by(Aula.start_at.asc()).all() if a.end_at > start]


def _slots_do_dia(professor: Professor, weekday: int) -> list[DisponibilidadeProfessor]:
    return [s for s in professor.disponibilidades if int(s.dia_semana) == weekday]


def _livres_no_dia(
    slots: list[DisponibilidadeProfessor],
    dia: date,
    duration: int,
    ocupadas: list[Aula],
    *,
    first_only: bool = False,
) -> list[Horario]:
    day_start = datetime.combine(dia, time.min)
    livres: list[Horario] = []
    for slot in slots:
        current = int(slot.inicio_minutos)
        while current + duration <= int(slot.fim_minutos):
            candidate_start = day_start + timedelta(minutes=current)
            candidate_end = candidate_start + timedelta(minutes=duration)
            if not any(overlaps(candidate_start, candidate_end, a.start_at, a.end_at) for a in ocupadas):
                livres.append(Horario(start=candidate_start, end=candidate_end))
                if first_only:
                    return livres
            current += PASSO_GRADE_MINUTOS
    livres.sort(key=lambda h: h.start)
    return livres


def free_slots(
    professor_id: int,
    dia: date,
    duration_minutes: int,
    *,
    min_date: date | None = None,
    exclude_aula_id: int | None = None,
) -> list[Horario]:
    """Horários livres do professor num dia, em passos de 30 minutos.

    Sem janelas de disponibilidade cadastradas o professor não tem horário
    livre para o aluno escolher.
    """
    duration = _validate_duration(duration_minutes)
    professor = get_professor(professor_id)

    if min_date is not None and dia < min_date:
        return []
    if is_feriado(dia):
        return []

    slots = _slots_do_dia(professor, dia_semana(dia))
    if not slots:
        return []

    day_start = datetime.combine(dia, time.min)
    ocupadas = _aulas_ativas(
        professor.id,
        day_start,
        day_start + timedelta(days=1),
        exclude_ids=[exclude_aula_id] if exclude_aula_id else (),
    )
    return _livres_no_dia(slots, dia, duration, ocupadas)


def free_dates(
    professor_id: int,
    start_date: date,
    duration_minutes: int,
    horizon_months: int = HORIZONTE_DATAS_LIVRES_MESES,
) -> set[date]:
    duration = _validate_duration(duration_minutes)
    if horizon_months <= 0:
        raise ValidationError("Horizonte deve ser de pelo menos 1 mês.")
    professor = get_professor(professor_id)

    slots_by_day: dict[int, list[DisponibilidadeProfessor]] = {}
    for slot in professor.disponibilidades:
        slots_by_day.setdefault(int(slot.dia_semana), []).append(slot)
    if not slots_by_day:
        return set()

    end_date = add_months(start_date, horizon_months)
    feriados = feriados_entre(start_date, end_date)
    ocupadas = _aulas_ativas(
        professor.id,
        datetime.combine(start_date, time.min),
        datetime.combine(end_date + timedelta(days=1), time.min),
    )
    ocupadas_por_dia: dict[date, list[Aula]] = {}
    for aula in ocupadas:
        ocupadas_por_dia.setdefault(aula.start_at.date(), []).append(aula)
        if aula.end_at.date() != aula.start_at.date():
            ocupadas_por_dia.setdefault(aula.end_at.date(), []).append(aula)

    available: set[date] = set()
    current = start_date
    while current <= end_date:
        slots = slots_by_day.get(dia_semana(current))
        if slots and current.isoformat() not in feriados:
            if _livres_no_dia(slots, current, duration, ocupadas_por_dia.get(current, []), first_only=True):
                available.add(current)
        current += timedelta(days=1)
    return available


def _parse_slot(raw) -> tuple[int, int, int]:
    if isinstance(raw, dict):
        values = (
            raw.get("dia_semana", raw.get("diaSemana")),
            raw.get("inicio_minutos", raw.get("inicioMinutos")),
            raw.get("fim_minutos", raw.get("fimMinutos")),
        )
    else:
        values = tuple(raw)
    try:
        dia, inicio, fim = (int(v) for v in values)
    except (TypeError, ValueError):
        raise ValidationError("Horário inválido: informe dia_semana, inicio_minutos e fim_minutos.") from None
    if dia not in range(0, 7):
        raise ValidationError("dia_semana deve estar entre 0 (domingo) e 6 (sábado).")
    if inicio < 0 or fim > MINUTOS_DIA or inicio >= fim:
        raise ValidationError("Horário inválido: início deve ser menor que o fim, dentro do dia.")
    return dia, inicio, fim


def _fits(slots: list[tuple[int, int, int]], aula: Aula) -> bool:
    weekday = dia_semana(aula.start_at)
    start_min = minuto_do_dia(aula.start_at)
    end_min = start_min + int(aula.duration_minutes or 0)
    return any(d == weekday and inicio <= start_min and end_min <= fim for d, inicio, fim in slots)


def cabe_na_disponibilidade(professor: Professor, aula: Aula) -> bool:
    """Professor sem janelas cadastradas aceita qualquer horário."""
    slots = [(int(s.dia_semana), int(s.inicio_minutos), int(s.fim_minutos)) for s in professor.disponibilidades]
    return not slots or _fits(slots, aula)


def replace_disponibilidade(
    professor_id: int,
    slots: Iterable,
    *,
    actor: Actor,
    now: datetime | None = None,
) -> list[DisponibilidadeProfessor]:
    """Substitui todas as janelas do professor.

    Com lista vazia nenhuma aula é conferida. Caso contrário, qualquer aula
    futura que ficaria fora das novas janelas impede a troca e nada é salvo.
    """
    professor = get_professor(professor_id)
    if not actor.is_admin and not (actor.is_professor and professor.usuario_id == actor.id):
        raise AuthorizationError("Você não tem permissão para alterar a disponibilidade deste professor")

    parsed = sorted({_parse_slot(s) for s in slots})
    now = now or datetime.now()

    if parsed:
        futuras = (
            Aula.query.filter(
                Aula.professor_id == professor.id,
                Aula.status.in_(STATUS_AULA_ATIVOS),
                Aula.start_at >= now,
            )
            .order_by(Aula.start_at.asc())
            .all()
        )
        conflitos = [
            {
                "aulaId": int(a.id),
                "studentName": a.matricula.nome,
                "startAt": a.start_at.isoformat(),
                "diaSemana": DIAS_SEMANA[dia_semana(a.start_at)],
            }
            for a in futuras
            if not _fits(parsed, a)
        ]
        if conflitos:
            resumo = " | ".join(
                f"{c['studentName']} ({c['diaSemana']} {datetime.fromisoformat(c['startAt']).strftime('%d/%m/%Y %H:%M')})"
                for c in conflitos[:6]
            )
            raise ScheduleConflictError(
                f"Não é possível salvar: {len(conflitos)} aula(s) futura(s) ficariam fora da disponibilidade. {resumo}",
                conflitos=conflitos,
            )

    # delete-orphan remove as janelas antigas
    professor.disponibilidades = [
        DisponibilidadeProfessor(dia_semana=dia, inicio_minutos=inicio, fim_minutos=fim) for dia, inicio, fim in parsed
    ]
    db.session.commit()

    logger.info(f"Disponibilidade do professor {professor.id} substituída por {actor.nome}: {len(parsed)} janela(s)")
    return list(professor.disponibilidades)


def find_conflicts(
    professor_id: int,
    start_at: datetime,
    duration_minutes: int,
    *,
    exclude_ids: Iterable[int] = (),
    grupo_key: str | None = None,
) -> list[Aula]:
    """Aulas do professor que se sobrepõem ao intervalo proposto.

    Integrantes do mesmo grupo no mesmo horário dividem o slot e não contam
    como conflito.
    """
    end_at = start_at + timedelta(minutes=int(duration_minutes))
    conflitos: list[Aula] = []
    for aula in _aulas_ativas(professor_id, start_at, end_at, exclude_ids=exclude_ids):
        if not overlaps(start_at, end_at, aula.start_at, aula.end_at):
            continue
        if grupo_key and aula.start_at == start_at and aula.matricula.grupo_key == grupo_key:
            continue
        conflitos.append(aula)
    return conflitos


def _next_date_for(weekday: int, today: date) -> date:
    days_ahead = (weekday - dia_semana(today)) % 7
    if days_ahead == 0:
        days_ahead = 7
    return today + timedelta(days=days_ahead)


def free_teachers(
    dias_semana: Iterable[int],
    inicio_minutos: int,
    fim_minutos: int,
    *,
    curso: str | None = None,
    today: date | None = None,
) -> list[Professor]:
    """Professores ativos com a faixa disponível em todos os dias pedidos e sem aula nela."""
    dias = sorted({int(d) for d in dias_semana if 0 <= int(d) <= 6})
    if not dias:
        raise ValidationError("Selecione ao menos um dia da semana válido (0-6)")
    if inicio_minutos < 0 or fim_minutos > MINUTOS_DIA or inicio_minutos >= fim_minutos:
        raise ValidationError("Faixa de horário inválida.")
    today = today or date.today()

    professores = (
        Professor.query.filter_by(status=StatusProfessor.ATIVO.value).order_by(Professor.nome.asc()).all()
    )
    livres: list[Professor] = []
    for professor in professores:
        if not ensina_curso(professor, curso):
            continue
        cobre_todos = all(
            any(
                int(s.dia_semana) == d and s.inicio_minutos <= inicio_minutos and fim_minutos <= s.fim_minutos
                for s in professor.disponibilidades
            )
            for d in dias
        )
        if not cobre_todos:
            continue
        ocupado = False
        for d in dias:
            start_at = datetime.combine(_next_date_for(d, today), time.min) + timedelta(minutes=inicio_minutos)
            if find_conflicts(professor.id, start_at, fim_minutos - inicio_minutos):
                ocupado = True
                break
        if not ocupado:
            livres.append(professor)
    return livres


