from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from ..actor import Actor
from ..errors import AuthorizationError, ValidationError
from ..extensions import db
from ..models import Feriado

logger = logging.getLogger(__name__)


def date_key(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_date_key(raw: str) -> date:
    try:
        return date.fromisoformat((raw or "").strip())
    except ValueError:
        raise ValidationError("Data inválida. Use o formato YYYY-MM-DD.") from None


def is_feriado(value: date | datetime) -> bool:
    return db.session.query(Feriado.id).filter_by(date_key=date_key(value)).first() is not None


def feriados_entre(start: date, end: date) -> set[str]:
    rows = (
        db.session.query(Feriado.date_key)
        .filter(Feriado.date_key >= date_key(start), Feriado.date_key <= date_key(end))
        .all()
    )
    return {str(r[0]) for r in rows}


def list_feriados(start: date, end: date) -> list[str]:
    return sorted(feriados_entre(start, end))


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Apenas a gestão pode alterar feriados.")


def add_feriado(dia: date, *, actor: Actor) -> str:
    """Marca o dia como feriado. Repetir a chamada para o mesmo dia não é erro."""
    _require_admin(actor)
    key = date_key(dia)
    if is_feriado(dia):
        return key

    db.session.add(Feriado(date_key=key))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return key

    logger.info(f"Feriado {key} definido por {actor.nome}")
    return key


def remove_feriado(dia: date, *, actor: Actor) -> bool:
    _require_admin(actor)
    key = date_key(dia)
    deleted = Feriado.query.filter_by(date_key=key).delete()
    db.session.commit()
    if deleted:
        logger.info(f"Feriado {key} removido por {actor.nome}")
    return bool(deleted)
