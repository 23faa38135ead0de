from __future__ import annotations

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    secret_key: str
    database_url: str
    log_level: str
    antecedencia_padrao_horas: int
    antecedencia_youbecome_horas: int
    admin_email: str | None

    @staticmethod
    def from_env() -> "Settings":
        secret_key = os.environ.get("SECRET_KEY", "dev-secret-key")
        database_url = os.environ.get("DATABASE_URL", "sqlite:///instance/agendaulas.sqlite3")
        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
        return Settings(
            secret_key=secret_key,
            database_url=database_url,
            log_level=log_level,
            antecedencia_padrao_horas=_int_env("CANCELAMENTO_ANTECEDENCIA_HORAS", 6),
            antecedencia_youbecome_horas=_int_env("CANCELAMENTO_ANTECEDENCIA_HORAS_YOUBECOME", 24),
            admin_email=os.environ.get("NOTIFICACOES_ADMIN_EMAIL") or None,
        )
