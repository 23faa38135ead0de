from __future__ import annotations


class AgendaError(Exception):
    """Recusa com motivo legível, exibida tal qual para a equipe ou o aluno."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AgendaError):
    status_code = 400


class NotFound(AgendaError):
    status_code = 404


class AuthorizationError(AgendaError):
    status_code = 403


class ScheduleConflictError(AgendaError):
    status_code = 409

    def __init__(self, message: str, conflitos: list[dict] | None = None) -> None:
        super().__init__(message)
        self.conflitos = conflitos or []


class HolidayConflictError(ScheduleConflictError):
    pass


class IncompatibleLanguageError(ScheduleConflictError):
    pass


class StateConflictError(AgendaError):
    status_code = 409


class NotificationError(AgendaError):
    """Falha de entrega; nunca desfaz a transição que já foi gravada."""

    status_code = 502
