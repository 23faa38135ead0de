from __future__ import annotations

from enum import Enum


class Papel(str, Enum):
    ALUNO = "ALUNO"
    PROFESSOR = "PROFESSOR"
    ADMIN = "ADMIN"


class StatusAula(str, Enum):
    CONFIRMADA = "CONFIRMADA"
    CANCELADA = "CANCELADA"
    REPOSICAO = "REPOSICAO"


STATUS_AULA_ATIVOS = frozenset({StatusAula.CONFIRMADA.value, StatusAula.REPOSICAO.value})


class AcaoHistorico(str, Enum):
    CANCELADA = "CANCELADA"
    REAGENDADA = "REAGENDADA"
    TRANSFERIDA = "TRANSFERIDA"


class TipoSolicitacao(str, Enum):
    CANCELAMENTO = "CANCELAMENTO"
    TROCA_PROFESSOR = "TROCA_PROFESSOR"
    TROCA_AULA = "TROCA_AULA"


class StatusSolicitacao(str, Enum):
    PENDENTE = "PENDENTE"
    PROFESSOR_APROVOU = "PROFESSOR_APROVOU"  # legado: a aprovação sempre termina em CONCLUIDA
    PROFESSOR_REJEITOU = "PROFESSOR_REJEITOU"
    ADMIN_REJEITOU = "ADMIN_REJEITOU"
    CONCLUIDA = "CONCLUIDA"


# Solicitações que a gestão ainda pode decidir (ou que uma edição direta encerra)
STATUS_SOLICITACAO_ABERTOS = frozenset(
    {StatusSolicitacao.PENDENTE.value, StatusSolicitacao.PROFESSOR_REJEITOU.value}
)


class AprovacaoProfessor(str, Enum):
    APROVADA = "APROVADA"
    REJEITADA = "REJEITADA"


class StatusMatricula(str, Enum):
    LEAD = "LEAD"
    REGISTRADA = "REGISTRADA"
    CONTRATO_ACEITO = "CONTRATO_ACEITO"
    PAGAMENTO_PENDENTE = "PAGAMENTO_PENDENTE"
    ATIVA = "ATIVA"
    INATIVA = "INATIVA"
    PAUSADA = "PAUSADA"
    BLOQUEADA = "BLOQUEADA"
    CONCLUIDA = "CONCLUIDA"


# Matrículas que ainda geram cobrança: entram na conferência de frequência
STATUS_MATRICULA_FATURAVEIS = frozenset(
    {
        StatusMatricula.ATIVA.value,
        StatusMatricula.REGISTRADA.value,
        StatusMatricula.CONTRATO_ACEITO.value,
        StatusMatricula.PAGAMENTO_PENDENTE.value,
    }
)


class EscolaMatricula(str, Enum):
    SEIDMANN = "SEIDMANN"
    YOUBECOME = "YOUBECOME"
    HIGHWAY = "HIGHWAY"
    OUTRO = "OUTRO"


class TipoAula(str, Enum):
    PARTICULAR = "PARTICULAR"
    GRUPO = "GRUPO"


class Curso(str, Enum):
    INGLES = "INGLES"
    ESPANHOL = "ESPANHOL"
    INGLES_E_ESPANHOL = "INGLES_E_ESPANHOL"


# Idiomas que o professor precisa ensinar (basta um deles) para cada curso
IDIOMAS_POR_CURSO: dict[str, frozenset[str]] = {
    Curso.INGLES.value: frozenset({"INGLES"}),
    Curso.ESPANHOL.value: frozenset({"ESPANHOL"}),
    Curso.INGLES_E_ESPANHOL.value: frozenset({"INGLES", "ESPANHOL"}),
}


class StatusProfessor(str, Enum):
    ATIVO = "ATIVO"
    INATIVO = "INATIVO"


DIAS_SEMANA = ["Domingo", "Segunda-feira", "Terça-feira", "Quarta-feira", "Quinta-feira", "Sexta-feira", "Sábado"]

PASSO_GRADE_MINUTOS = 30
DURACAO_PADRAO_MINUTOS = 60
TOLERANCIA_FREQUENCIA_MINUTOS = 5
HORIZONTE_DATAS_LIVRES_MESES = 3
