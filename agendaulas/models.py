from __future__ import annotations

from datetime import datetime, timedelta

from flask_login import UserMixin

from .constants import (
    DURACAO_PADRAO_MINUTOS,
    STATUS_AULA_ATIVOS,
    Papel,
    StatusAula,
    StatusMatricula,
    StatusProfessor,
    StatusSolicitacao,
    TipoAula,
)
from .extensions import db


class Usuario(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    senha_hash = db.Column(db.String(255), nullable=False)
    papel = db.Column(db.String(16), nullable=False, default=Papel.ALUNO.value)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)


class Professor(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    usuario_id = db.Column(db.Integer, db.ForeignKey("usuario.id"), nullable=True, index=True)
    nome = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=StatusProfessor.ATIVO.value)
    idiomas = db.Column(db.JSON, nullable=False, default=list)  # ex: ["INGLES", "ESPANHOL"]
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)

    disponibilidades = db.relationship(
        "DisponibilidadeProfessor",
        backref="professor",
        cascade="all, delete-orphan",
        order_by=lambda: (DisponibilidadeProfessor.dia_semana, DisponibilidadeProfessor.inicio_minutos),
    )

    @property
    def is_ativo(self) -> bool:
        return self.status == StatusProfessor.ATIVO.value


class DisponibilidadeProfessor(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    professor_id = db.Column(db.Integer, db.ForeignKey("professor.id"), nullable=False, index=True)
    dia_semana = db.Column(db.Integer, nullable=False)  # 0=Dom, 1=Seg, ..., 6=Sáb
    inicio_minutos = db.Column(db.Integer, nullable=False)  # minutos desde 00:00
    fim_minutos = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.CheckConstraint("inicio_minutos < fim_minutos", name="ck_disponibilidade_inicio_fim"),
    )


class Matricula(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    usuario_id = db.Column(db.Integer, db.ForeignKey("usuario.id"), nullable=True, index=True)
    nome = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    curso = db.Column(db.String(32), nullable=True)  # INGLES | ESPANHOL | INGLES_E_ESPANHOL
    escola_matricula = db.Column(db.String(32), nullable=True)  # SEIDMANN | YOUBECOME | HIGHWAY | OUTRO
    tipo_aula = db.Column(db.String(16), nullable=False, default=TipoAula.PARTICULAR.value)
    nome_grupo = db.Column(db.String(120), nullable=True)
    frequencia_semanal = db.Column(db.Integer, nullable=True)
    tempo_aula_minutos = db.Column(db.Integer, nullable=True)
    cancelamento_antecedencia_horas = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(32), nullable=False, default=StatusMatricula.ATIVA.value)
    paused_at = db.Column(db.Date, nullable=True)
    activation_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)

    @property
    def grupo_key(self) -> str | None:
        if self.tipo_aula != TipoAula.GRUPO.value:
            return None
        nome = (self.nome_grupo or "").strip()
        return nome or None

    @property
    def is_grupo(self) -> bool:
        return self.tipo_aula == TipoAula.GRUPO.value


class Aula(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    matricula_id = db.Column(db.Integer, db.ForeignKey("matricula.id"), nullable=False, index=True)
    professor_id = db.Column(db.Integer, db.ForeignKey("professor.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=StatusAula.CONFIRMADA.value)
    start_at = db.Column(db.DateTime, nullable=False, index=True)
    duration_minutes = db.Column(db.Integer, nullable=False, default=DURACAO_PADRAO_MINUTOS)
    notes = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("usuario.id"), nullable=True)
    created_by_nome = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)

    matricula = db.relationship("Matricula", backref=db.backref("aulas", lazy="dynamic"))
    professor = db.relationship("Professor", backref=db.backref("aulas", lazy="dynamic"))
    eventos = db.relationship(
        "AulaEvento",
        backref="aula",
        cascade="all, delete-orphan",
        order_by=lambda: (AulaEvento.ocorrido_em, AulaEvento.id),
    )
    solicitacoes = db.relationship(
        "SolicitacaoAula",
        backref="aula",
        cascade="all, delete-orphan",
        foreign_keys="SolicitacaoAula.aula_id",
    )
    registros = db.relationship("RegistroAula", backref="aula", cascade="all, delete-orphan")

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=int(self.duration_minutes or DURACAO_PADRAO_MINUTOS))

    @property
    def is_ativa(self) -> bool:
        return self.status in STATUS_AULA_ATIVOS


class AulaEvento(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    aula_id = db.Column(db.Integer, db.ForeignKey("aula.id"), nullable=False, index=True)
    acao = db.Column(db.String(16), nullable=False)  # CANCELADA | REAGENDADA | TRANSFERIDA
    ator_nome = db.Column(db.String(120), nullable=False)
    ator_papel = db.Column(db.String(16), nullable=True)
    ocorrido_em = db.Column(db.DateTime, nullable=False)
    solicitado_em = db.Column(db.DateTime, nullable=True)  # quando a mudança nasceu de um pedido do aluno
    professor_origem_nome = db.Column(db.String(120), nullable=True)
    professor_destino_nome = db.Column(db.String(120), nullable=True)


class Feriado(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    date_key = db.Column(db.String(10), unique=True, nullable=False, index=True)  # YYYY-MM-DD
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)


class SolicitacaoAula(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    aula_id = db.Column(db.Integer, db.ForeignKey("aula.id"), nullable=False, index=True)
    matricula_id = db.Column(db.Integer, db.ForeignKey("matricula.id"), nullable=False, index=True)
    professor_id = db.Column(db.Integer, db.ForeignKey("professor.id"), nullable=False, index=True)
    tipo = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default=StatusSolicitacao.PENDENTE.value)
    requires_teacher_approval = db.Column(db.Boolean, nullable=False, default=False)
    requested_start_at = db.Column(db.DateTime, nullable=True)
    requested_professor_id = db.Column(db.Integer, db.ForeignKey("professor.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("usuario.id"), nullable=True)
    created_by_papel = db.Column(db.String(16), nullable=True)
    teacher_approval = db.Column(db.String(16), nullable=True)  # APROVADA | REJEITADA
    teacher_decided_at = db.Column(db.DateTime, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    processed_by_id = db.Column(db.Integer, db.ForeignKey("usuario.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    matricula = db.relationship("Matricula")
    professor = db.relationship("Professor", foreign_keys=[professor_id])
    requested_professor = db.relationship("Professor", foreign_keys=[requested_professor_id])


class RegistroAula(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    aula_id = db.Column(db.Integer, db.ForeignKey("aula.id"), nullable=False, index=True)
    livro = db.Column(db.String(255), nullable=True)
    observacoes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
