from __future__ import annotations

import logging
from enum import Enum

from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "notificacoes"


class TipoNotificacao(str, Enum):
    LESSON_CONFIRMED = "lesson-confirmed"
    LESSON_CANCELLED = "lesson-cancelled"
    REPOSICAO_SCHEDULED = "reposicao-scheduled"
    CANCELLATION_WITH_MAKEUP = "cancellation-with-makeup"
    REQUEST_TEACHER_APPROVAL_NEEDED = "request-teacher-approval-needed"
    REQUEST_APPROVED = "request-approved"
    REQUEST_REJECTED = "request-rejected"
    NOVO_ALUNO = "novo-aluno"


class StatusEntrega(str, Enum):
    ENVIADA = "ENVIADA"
    FALHOU = "FALHOU"
    IGNORADA = "IGNORADA"


class NotificationSink:
    """Destino das notificações (e-mail, fila, etc.). Deve levantar em caso de falha."""

    def send(self, kind: str, recipient: str, context: dict) -> None:
        raise NotImplementedError


class LoggingSink(NotificationSink):
    def send(self, kind: str, recipient: str, context: dict) -> None:
        logger.info(f"Notificação {kind} para {recipient}: {context}")


def get_sink() -> NotificationSink:
    sink = current_app.extensions.get(EXTENSION_KEY)
    if sink is None:
        sink = LoggingSink()
        current_app.extensions[EXTENSION_KEY] = sink
    return sink


def notify(kind: TipoNotificacao | str, recipient: str | None, context: dict | None = None) -> StatusEntrega:
    """Envia uma notificação depois que a transição já foi gravada.

    Falhas do destino só são registradas no log; a operação que originou o
    aviso nunca é desfeita por causa delas.
    """
    kind = TipoNotificacao(kind).value
    recipient = (recipient or "").strip()
    if not recipient:
        logger.debug(f"Notificação {kind} ignorada: destinatário sem e-mail")
        return StatusEntrega.IGNORADA

    try:
        get_sink().send(kind, recipient, dict(context or {}))
    except Exception as e:
        logger.warning(f"Falha ao enviar notificação {kind} para {recipient}: {e}")
        return StatusEntrega.FALHOU
    return StatusEntrega.ENVIADA


def notify_admin(kind: TipoNotificacao | str, context: dict | None = None) -> StatusEntrega:
    return notify(kind, current_app.config.get("NOTIFICACOES_ADMIN_EMAIL"), context)
