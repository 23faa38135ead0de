"""add transferencia to aula_evento

Revision ID: 8d2f6b1c3e57
Revises: 4e7c2a9d1b30
Create Date: 2026-10-18 15:30:00.000000

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8d2f6b1c3e57"
down_revision = "4e7c2a9d1b30"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("aula_evento", schema=None) as batch_op:
        batch_op.add_column(sa.Column("professor_origem_nome", sa.String(length=120), nullable=True))
        batch_op.add_column(sa.Column("professor_destino_nome", sa.String(length=120), nullable=True))


def downgrade():
    with op.batch_alter_table("aula_evento", schema=None) as batch_op:
        batch_op.drop_column("professor_destino_nome")
        batch_op.drop_column("professor_origem_nome")
