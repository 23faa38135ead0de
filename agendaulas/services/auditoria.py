from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta

from ..constants import (
    STATUS_MATRICULA_FATURAVEIS,
    TOLERANCIA_FREQUENCIA_MINUTOS,
    StatusAula,
    StatusMatricula,
)
from ..extensions import db
from ..models import Aula, Matricula, RegistroAula
from .disponibilidade import overlaps


@dataclass
class ItemAula:
    aula_id: int
    student_name: str
    teacher_name: str
    start_at: str


@dataclass
class FrequenciaIncorreta:
    matricula_id: int
    student_name: str
    expected: int
    actual: int
    expected_minutes: int | None = None
    actual_minutes: int | None = None
    lesson_times_this_week: list[str] = field(default_factory=list)
    last_book: str | None = None


@dataclass
class ErroProfessor:
    professor_id: int
    teacher_name: str
    lessons: list[dict] = field(default_factory=list)


@dataclass
class RelatorioSemana:
    week_start: datetime
    week_end: datetime
    confirmed_list: list[ItemAula] = field(default_factory=list)
    cancelled_list: list[ItemAula] = field(default_factory=list)
    reposicao_list: list[ItemAula] = field(default_factory=list)
    wrong_frequency_list: list[FrequenciaIncorreta] = field(default_factory=list)
    double_booking_list: list[ErroProfessor] = field(default_factory=list)
    inactive_teacher_list: list[ErroProfessor] = field(default_factory=list)

    @property
    def confirmed(self) -> int:
        return len(self.confirmed_list)

    @property
    def cancelled(self) -> int:
        return len(self.cancelled_list)

    @property
    def reposicao(self) -> int:
        return len(self.reposicao_list)

    @property
    def teacher_errors_count(self) -> int:
        return len(self.double_booking_list) + len(self.inactive_teacher_list)

    def to_dict(self) -> dict:
        return {
            "weekStart": self.week_start.isoformat(),
            "weekEnd": self.week_end.isoformat(),
            "confirmed": self.confirmed,
            "cancelled": self.cancelled,
            "reposicao": self.reposicao,
            "wrongFrequencyCount": len(self.wrong_frequency_list),
            "teacherErrorsCount": self.teacher_errors_count,
            "confirmedList": [asdict(i) for i in self.confirmed_list],
            "cancelledList": [asdict(i) for i in self.cancelled_list],
            "reposicaoList": [asdict(i) for i in self.reposicao_list],
            "wrongFrequencyList": [asdict(i) for i in self.wrong_frequency_list],
            "doubleBookingList": [asdict(i) for i in self.double_booking_list],
            "inactiveTeacherList": [asdict(i) for i in self.inactive_teacher_list],
        }


def semana_de(dia: date) -> tuple[datetime, datetime]:
    """Segunda 00:00 (inclusive) até domingo 00:00 (exclusive): segunda a sábado."""
    monday = dia - timedelta(days=dia.weekday())
    inicio = datetime.combine(monday, time.min)
    return inicio, inicio + timedelta(days=6)


def _aulas_da_semana(inicio: datetime, fim: datetime) -> list[Aula]:
    return (
        Aula.query.filter(Aula.start_at >= inicio, Aula.start_at < fim)
        .order_by(Aula.start_at.asc(), Aula.id.asc())
        .all()
    )


def _item(aula: Aula) -> ItemAula:
    return ItemAula(
        aula_id=aula.id,
        student_name=aula.matricula.nome,
        teacher_name=aula.professor.nome,
        start_at=aula.start_at.isoformat(),
    )


def _slots_distintos(aulas: list[Aula]) -> dict[tuple[int, datetime], Aula]:
    # aulas em grupo no mesmo professor e horário são um único slot
    slots: dict[tuple[int, datetime], Aula] = {}
    for aula in aulas:
        slots.setdefault((aula.professor_id, aula.start_at), aula)
    return slots


def _ultimo_livro(matricula_ids: list[int]) -> str | None:
    registro = (
        db.session.query(RegistroAula)
        .join(Aula, RegistroAula.aula_id == Aula.id)
        .filter(Aula.matricula_id.in_(matricula_ids))
        .order_by(Aula.start_at.desc(), RegistroAula.id.desc())
        .first()
    )
    return registro.livro if registro is not None else None


def _confere_frequencia(
    representante: Matricula,
    nome: str,
    membros: list[Matricula],
    aulas_ativas: list[Aula],
) -> FrequenciaIncorreta | None:
    frequencia = int(representante.frequencia_semanal or 0)
    ids = {m.id for m in membros}
    proprias = [a for a in aulas_ativas if a.matricula_id in ids]
    slots = _slots_distintos(proprias)
    actual = len(slots)
    actual_minutes = sum(int(a.duration_minutes) for a in slots.values())
    tempo_aula = representante.tempo_aula_minutos

    if tempo_aula is not None and tempo_aula > 0:
        expected_minutes = frequencia * int(tempo_aula)
        if abs(actual_minutes - expected_minutes) <= TOLERANCIA_FREQUENCIA_MINUTOS:
            return None
        item = FrequenciaIncorreta(
            matricula_id=representante.id,
            student_name=nome,
            expected=frequencia,
            actual=actual,
            expected_minutes=expected_minutes,
            actual_minutes=actual_minutes,
        )
    elif actual != frequencia:
        item = FrequenciaIncorreta(matricula_id=representante.id, student_name=nome, expected=frequencia, actual=actual)
    else:
        return None

    item.lesson_times_this_week = sorted({start.isoformat() for _, start in slots})
    item.last_book = _ultimo_livro(sorted(ids))
    return item


def _frequencias_incorretas(aulas_ativas: list[Aula]) -> list[FrequenciaIncorreta]:
    matriculas = (
        Matricula.query.filter(
            Matricula.status.in_(sorted(STATUS_MATRICULA_FATURAVEIS)),
            Matricula.frequencia_semanal.isnot(None),
        )
        .order_by(Matricula.id.asc())
        .all()
    )

    grupos: dict[str, list[Matricula]] = {}
    for matricula in matriculas:
        if matricula.grupo_key:
            grupos.setdefault(matricula.grupo_key, []).append(matricula)

    incorretas: list[FrequenciaIncorreta] = []
    grupos_vistos: set[str] = set()
    for matricula in matriculas:
        if int(matricula.frequencia_semanal or 0) <= 0:
            continue
        chave = matricula.grupo_key
        if chave:
            if chave in grupos_vistos:
                continue
            grupos_vistos.add(chave)
            membros = grupos[chave]
            nome = f"{chave} ({', '.join(m.nome for m in membros)})"
        else:
            membros = [matricula]
            nome = matricula.nome
        item = _confere_frequencia(matricula, nome, membros, aulas_ativas)
        if item is not None:
            incorretas.append(item)
    return incorretas


def _clusters(aulas: list[Aula]) -> list[list[Aula]]:
    """Agrupa aulas cujos intervalos se sobrepõem, mesmo que só de forma transitiva."""
    clusters: list[list[Aula]] = []
    for aula in sorted(aulas, key=lambda a: (a.start_at, a.id)):
        tocados = [c for c in clusters if any(overlaps(aula.start_at, aula.end_at, x.start_at, x.end_at) for x in c)]
        if not tocados:
            clusters.append([aula])
            continue
        fundido = [x for c in tocados for x in c] + [aula]
        clusters = [c for c in clusters if not any(c is t for t in tocados)]
        clusters.append(sorted(fundido, key=lambda a: (a.start_at, a.id)))
    return clusters


def _rotulo_slot(aula: Aula, aulas_ativas: list[Aula]) -> str:
    chave = aula.matricula.grupo_key
    if not chave:
        return aula.matricula.nome
    nomes = sorted(
        {
            a.matricula.nome
            for a in aulas_ativas
            if a.professor_id == aula.professor_id and a.start_at == aula.start_at and a.matricula.grupo_key == chave
        }
    )
    return f"{chave} ({', '.join(nomes)})"


def _dupla_marcacao(aulas_ativas: list[Aula]) -> list[ErroProfessor]:
    por_professor: dict[int, list[Aula]] = {}
    vistos: set[tuple] = set()
    for aula in aulas_ativas:
        chave_grupo = aula.matricula.grupo_key
        if chave_grupo:
            slot = (aula.professor_id, aula.start_at, chave_grupo)
            if slot in vistos:
                continue
            vistos.add(slot)
        por_professor.setdefault(aula.professor_id, []).append(aula)

    erros: list[ErroProfessor] = []
    for professor_id, aulas in por_professor.items():
        for cluster in _clusters(aulas):
            if len(cluster) < 2:
                continue
            erros.append(
                ErroProfessor(
                    professor_id=professor_id,
                    teacher_name=cluster[0].professor.nome,
                    lessons=[
                        {"studentName": _rotulo_slot(a, aulas_ativas), "startAt": a.start_at.isoformat()}
                        for a in cluster
                    ],
                )
            )
    return erros


def _professores_inativos(aulas_ativas: list[Aula]) -> list[ErroProfessor]:
    por_professor: dict[int, ErroProfessor] = {}
    for aula in aulas_ativas:
        if aula.professor.is_ativo:
            continue
        erro = por_professor.setdefault(
            aula.professor_id, ErroProfessor(professor_id=aula.professor_id, teacher_name=aula.professor.nome)
        )
        erro.lessons.append({"studentName": aula.matricula.nome, "startAt": aula.start_at.isoformat()})
    return list(por_professor.values())


def audit_semana(dia: date) -> RelatorioSemana:
    """Relatório da semana (segunda a sábado) que contém ``dia``. Só leitura."""
    inicio, fim = semana_de(dia)
    aulas = _aulas_da_semana(inicio, fim)

    relatorio = RelatorioSemana(week_start=inicio, week_end=fim - timedelta(microseconds=1))
    for aula in aulas:
        if aula.status == StatusAula.CONFIRMADA.value:
            relatorio.confirmed_list.append(_item(aula))
        elif aula.status == StatusAula.CANCELADA.value:
            relatorio.cancelled_list.append(_item(aula))
        elif aula.status == StatusAula.REPOSICAO.value:
            relatorio.reposicao_list.append(_item(aula))

    ativas = [a for a in aulas if a.is_ativa]
    relatorio.wrong_frequency_list = _frequencias_incorretas(ativas)
    relatorio.double_booking_list = _dupla_marcacao(ativas)
    relatorio.inactive_teacher_list = _professores_inativos(ativas)
    return relatorio


def matriculas_com_semana_completa(dia: date) -> list[int]:
    """Matrículas ATIVA/PAUSADA que já têm todas as aulas da semana marcadas."""
    inicio, fim = semana_de(dia)
    contagem: dict[int, int] = {}
    for (matricula_id,) in db.session.query(Aula.matricula_id).filter(
        Aula.start_at >= inicio,
        Aula.start_at < fim,
        Aula.status != StatusAula.CANCELADA.value,
    ):
        contagem[matricula_id] = contagem.get(matricula_id, 0) + 1

    matriculas = Matricula.query.filter(
        Matricula.status.in_([StatusMatricula.ATIVA.value, StatusMatricula.PAUSADA.value]),
        Matricula.frequencia_semanal.isnot(None),
    ).order_by(Matricula.id.asc())
    return [m.id for m in matriculas if contagem.get(m.id, 0) >= int(m.frequencia_semanal)]
