from __future__ import annotations

from datetime import datetime

from ..constants import AcaoHistorico
from ..extensions import db
from ..models import Aula, AulaEvento

FORMATO_DATA_HORA = "%d/%m/%Y %H:%M"


def registrar_evento(
    aula: Aula,
    acao: AcaoHistorico,
    *,
    ator_nome: str,
    ator_papel: str | None = None,
    ocorrido_em: datetime,
    solicitado_em: datetime | None = None,
    professor_origem: str | None = None,
    professor_destino: str | None = None,
) -> AulaEvento:
    """Acrescenta um evento ao histórico da aula; só entra na sessão, quem chama faz o commit."""
    evento = AulaEvento(
        acao=AcaoHistorico(acao).value,
        ator_nome=(ator_nome or "").strip() or "sistema",
        ator_papel=ator_papel,
        ocorrido_em=ocorrido_em,
        solicitado_em=solicitado_em,
        professor_origem_nome=professor_origem,
        professor_destino_nome=professor_destino,
    )
    aula.eventos.append(evento)
    db.session.add(evento)
    return evento


def render_evento(evento: AulaEvento) -> str:
    quando = evento.ocorrido_em.strftime(FORMATO_DATA_HORA)
    if evento.acao == AcaoHistorico.CANCELADA.value:
        return f"Aula foi cancelada pelo {evento.ator_nome} às {quando}"
    if evento.acao == AcaoHistorico.TRANSFERIDA.value:
        return (
            f"Aula transferida do professor {evento.professor_origem_nome} "
            f"para o professor {evento.professor_destino_nome} pelo {evento.ator_nome} às {quando}"
        )
    if evento.solicitado_em is not None:
        pedido = evento.solicitado_em.strftime(FORMATO_DATA_HORA)
        return f"Aula reagendada pelo aluno no dia {pedido} e aprovado pelo {evento.ator_nome} no dia {quando}"
    return f"Aula foi reagendada pelo {evento.ator_nome} às {quando}"


def render_historico(aula: Aula) -> list[str]:
    return [render_evento(e) for e in aula.eventos]


def notes_com_historico(aula: Aula) -> str:
    # observações da equipe primeiro, depois uma linha por evento
    partes = [aula.notes.strip()] if (aula.notes or "").strip() else []
    partes.extend(render_historico(aula))
    return "\n".join(partes)


def evento_to_dict(evento: AulaEvento) -> dict:
    return {
        "acao": evento.acao,
        "ator": evento.ator_nome,
        "papel": evento.ator_papel,
        "ocorridoEm": evento.ocorrido_em.isoformat(),
        "solicitadoEm": evento.solicitado_em.isoformat() if evento.solicitado_em else None,
        "texto": render_evento(evento),
    }
