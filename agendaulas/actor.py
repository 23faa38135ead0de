from __future__ import annotations

from dataclasses import dataclass

from .constants import Papel


@dataclass(frozen=True)
class Actor:
    """Quem está executando a operação, já autenticado pela camada de sessão."""

    id: int
    nome: str
    papel: Papel

    @property
    def is_admin(self) -> bool:
        return self.papel == Papel.ADMIN

    @property
    def is_professor(self) -> bool:
        return self.papel == Papel.PROFESSOR

    @property
    def is_aluno(self) -> bool:
        return self.papel == Papel.ALUNO

    @staticmethod
    def from_usuario(usuario) -> "Actor":
        return Actor(id=int(usuario.id), nome=usuario.nome, papel=Papel(usuario.papel))
