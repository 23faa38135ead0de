"""create agenda tables

Revision ID: 4e7c2a9d1b30
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "4e7c2a9d1b30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "usuario",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("nome", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("senha_hash", sa.String(length=255), nullable=False),
        sa.Column("papel", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("usuario", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_usuario_email"), ["email"], unique=True)

    op.create_table(
        "professor",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("usuario_id", sa.Integer(), nullable=True),
        sa.Column("nome", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("idiomas", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuario.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("professor", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_professor_usuario_id"), ["usuario_id"], unique=False)

    op.create_table(
        "disponibilidade_professor",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("professor_id", sa.Integer(), nullable=False),
        sa.Column("dia_semana", sa.Integer(), nullable=False),
        sa.Column("inicio_minutos", sa.Integer(), nullable=False),
        sa.Column("fim_minutos", sa.Integer(), nullable=False),
        sa.CheckConstraint("inicio_minutos < fim_minutos", name="ck_disponibilidade_inicio_fim"),
        sa.ForeignKeyConstraint(["professor_id"], ["professor.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("disponibilidade_professor", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_disponibilidade_professor_professor_id"), ["professor_id"], unique=False
        )

    op.create_table(
        "matricula",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("usuario_id", sa.Integer(), nullable=True),
        sa.Column("nome", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("curso", sa.String(length=32), nullable=True),
        sa.Column("escola_matricula", sa.String(length=32), nullable=True),
        sa.Column("tipo_aula", sa.String(length=16), nullable=False),
        sa.Column("nome_grupo", sa.String(length=120), nullable=True),
        sa.Column("frequencia_semanal", sa.Integer(), nullable=True),
        sa.Column("tempo_aula_minutos", sa.Integer(), nullable=True),
        sa.Column("cancelamento_antecedencia_horas", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("paused_at", sa.Date(), nullable=True),
        sa.Column("activation_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuario.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("matricula", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_matricula_usuario_id"), ["usuario_id"], unique=False)

    op.create_table(
        "aula",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("matricula_id", sa.Integer(), nullable=False),
        sa.Column("professor_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_by_nome", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["created_by_id"], ["usuario.id"]),
        sa.ForeignKeyConstraint(["matricula_id"], ["matricula.id"]),
        sa.ForeignKeyConstraint(["professor_id"], ["professor.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("aula", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_aula_matricula_id"), ["matricula_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_aula_professor_id"), ["professor_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_aula_start_at"), ["start_at"], unique=False)

    op.create_table(
        "aula_evento",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("aula_id", sa.Integer(), nullable=False),
        sa.Column("acao", sa.String(length=16), nullable=False),
        sa.Column("ator_nome", sa.String(length=120), nullable=False),
        sa.Column("ator_papel", sa.String(length=16), nullable=True),
        sa.Column("ocorrido_em", sa.DateTime(), nullable=False),
        sa.Column("solicitado_em", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["aula_id"], ["aula.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("aula_evento", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_aula_evento_aula_id"), ["aula_id"], unique=False)

    op.create_table(
        "feriado",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date_key", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("feriado", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_feriado_date_key"), ["date_key"], unique=True)

    op.create_table(
        "solicitacao_aula",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("aula_id", sa.Integer(), nullable=False),
        sa.Column("matricula_id", sa.Integer(), nullable=False),
        sa.Column("professor_id", sa.Integer(), nullable=False),
        sa.Column("tipo", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("requires_teacher_approval", sa.Boolean(), nullable=False),
        sa.Column("requested_start_at", sa.DateTime(), nullable=True),
        sa.Column("requested_professor_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_by_papel", sa.String(length=16), nullable=True),
        sa.Column("teacher_approval", sa.String(length=16), nullable=True),
        sa.Column("teacher_decided_at", sa.DateTime(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("processed_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["aula_id"], ["aula.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["usuario.id"]),
        sa.ForeignKeyConstraint(["matricula_id"], ["matricula.id"]),
        sa.ForeignKeyConstraint(["processed_by_id"], ["usuario.id"]),
        sa.ForeignKeyConstraint(["professor_id"], ["professor.id"]),
        sa.ForeignKeyConstraint(["requested_professor_id"], ["professor.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("solicitacao_aula", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_solicitacao_aula_aula_id"), ["aula_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_solicitacao_aula_matricula_id"), ["matricula_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_solicitacao_aula_professor_id"), ["professor_id"], unique=False)

    op.create_table(
        "registro_aula",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("aula_id", sa.Integer(), nullable=False),
        sa.Column("livro", sa.String(length=255), nullable=True),
        sa.Column("observacoes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["aula_id"], ["aula.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("registro_aula", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_registro_aula_aula_id"), ["aula_id"], unique=False)


def downgrade():
    for table, indexes in (
        ("registro_aula", ["ix_registro_aula_aula_id"]),
        (
            "solicitacao_aula",
            ["ix_solicitacao_aula_professor_id", "ix_solicitacao_aula_matricula_id", "ix_solicitacao_aula_aula_id"],
        ),
        ("feriado", ["ix_feriado_date_key"]),
        ("aula_evento", ["ix_aula_evento_aula_id"]),
        ("aula", ["ix_aula_start_at", "ix_aula_professor_id", "ix_aula_matricula_id"]),
        ("matricula", ["ix_matricula_usuario_id"]),
        ("disponibilidade_professor", ["ix_disponibilidade_professor_professor_id"]),
        ("professor", ["ix_professor_usuario_id"]),
        ("usuario", ["ix_usuario_email"]),
    ):
        with op.batch_alter_table(table, schema=None) as batch_op:
            for index in indexes:
                batch_op.drop_index(batch_op.f(index))
        op.drop_table(table)
