"""Historial de reasignaciones y auditoría de revelación de identidad

Revision ID: c47d2b9e1a06
Revises: a1c3e5f70b21
Create Date: 2026-10-19 16:40:05.902114

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'c47d2b9e1a06'
down_revision = 'a1c3e5f70b21'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('reasignaciones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_denuncia', sa.Integer(), nullable=False),
        sa.Column('id_usuario_anterior', sa.Integer(), nullable=True),
        sa.Column('id_usuario_nuevo', sa.Integer(), nullable=True),
        sa.Column('id_reasignado_por', sa.Integer(), nullable=True),
        sa.Column('fecha', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_denuncia'], ['denuncias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['id_usuario_anterior'], ['user.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['id_usuario_nuevo'], ['user.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['id_reasignado_por'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('reasignaciones', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_reasignaciones_id_denuncia'), ['id_denuncia'], unique=False)

    op.create_table('revelaciones_identidad',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_denuncia', sa.Integer(), nullable=False),
        sa.Column('id_usuario', sa.Integer(), nullable=True),
        sa.Column('metodo', sa.Enum('clave_denunciante', 'forzado', name='metodo_revelacion_enum'), nullable=False),
        sa.Column('motivo', sa.Text(), nullable=True),
        sa.Column('ip_origen', sa.String(length=45), nullable=True),
        sa.Column('fecha', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_denuncia'], ['denuncias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['id_usuario'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('revelaciones_identidad', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_revelaciones_identidad_id_denuncia'), ['id_denuncia'], unique=False)


def downgrade():
    with op.batch_alter_table('revelaciones_identidad', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_revelaciones_identidad_id_denuncia'))
    op.drop_table('revelaciones_identidad')
    with op.batch_alter_table('reasignaciones', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_reasignaciones_id_denuncia'))
    op.drop_table('reasignaciones')
