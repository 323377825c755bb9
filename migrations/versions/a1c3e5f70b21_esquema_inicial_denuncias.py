"""Esquema inicial del sistema de denuncias

Revision ID: a1c3e5f70b21
Revises:
Create Date: 2026-10-19 10:12:44.318205

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1c3e5f70b21'
down_revision = None
branch_labels = None
depends_on = None

ESTADOS = ('Nuevo', 'En Revisión', 'En Investigación', 'Pendiente de Información', 'Resuelto', 'Cerrado', 'Rechazado')
PRIORIDADES = ('baja', 'media', 'alta', 'critica')
ORIGENES = ('denunciante', 'gestion')


def upgrade():
    op.create_table('user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('apellido', sa.String(length=100), nullable=True),
        sa.Column('telefono', sa.String(length=30), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('fecha_creacion', sa.DateTime(), nullable=True),
        sa.Column('ultimo_acceso', sa.DateTime(), nullable=True),
        sa.Column('reset_token', sa.String(length=255), nullable=True),
        sa.Column('reset_token_expiration', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('reset_token')
    )
    op.create_table('role',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table('permission',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('endpoint', sa.String(length=255), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('endpoint')
    )
    op.create_table('user_roles',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['role_id'], ['role.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'role_id')
    )
    op.create_table('role_permissions',
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.Column('permission_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['permission_id'], ['permission.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['role.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('role_id', 'permission_id')
    )
    op.create_table('empresas',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(length=255), nullable=False),
        sa.Column('rut', sa.String(length=20), nullable=False),
        sa.Column('direccion', sa.String(length=255), nullable=True),
        sa.Column('telefono', sa.String(length=30), nullable=True),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('fecha_creacion', sa.DateTime(), nullable=True),
        sa.Column('fecha_actualizacion', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rut')
    )
    op.create_table('tipos_denuncia',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('codigo', sa.String(length=20), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('codigo')
    )
    op.create_table('denuncias',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('numero', sa.String(length=20), nullable=False),
        sa.Column('clave_hash', sa.String(length=255), nullable=False),
        sa.Column('id_empresa', sa.Integer(), nullable=False),
        sa.Column('id_tipo', sa.Integer(), nullable=False),
        sa.Column('estado', sa.Enum(*ESTADOS, name='estado_denuncia_enum'), nullable=False),
        sa.Column('prioridad', sa.Enum(*PRIORIDADES, name='prioridad_denuncia_enum'), nullable=False),
        sa.Column('asunto', sa.String(length=255), nullable=True),
        sa.Column('descripcion', sa.Text(), nullable=False),
        sa.Column('canal_origen', sa.String(length=50), nullable=False),
        sa.Column('pais', sa.String(length=100), nullable=True),
        sa.Column('ciudad', sa.String(length=100), nullable=True),
        sa.Column('relacion', sa.String(length=100), nullable=True, comment='Relación del denunciante con la empresa.'),
        sa.Column('periodo', sa.String(length=100), nullable=True, comment='Cuándo ocurrieron los hechos.'),
        sa.Column('involucrados', sa.JSON(), nullable=True),
        sa.Column('anonimo', sa.Boolean(), nullable=False),
        sa.Column('nombre_denunciante', sa.String(length=255), nullable=True),
        sa.Column('rut_denunciante', sa.String(length=20), nullable=True),
        sa.Column('email_denunciante', sa.String(length=120), nullable=True),
        sa.Column('telefono_denunciante', sa.String(length=30), nullable=True),
        sa.Column('id_supervisor', sa.Integer(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(), nullable=False),
        sa.Column('fecha_actualizacion', sa.DateTime(), nullable=False),
        sa.Column('nota_satisfaccion', sa.Integer(), nullable=True),
        sa.Column('comentario_satisfaccion', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['id_empresa'], ['empresas.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['id_supervisor'], ['user.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['id_tipo'], ['tipos_denuncia.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('denuncias', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_denuncias_numero'), ['numero'], unique=True)
        batch_op.create_index(batch_op.f('ix_denuncias_estado'), ['estado'], unique=False)

    op.create_table('comentarios',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_denuncia', sa.Integer(), nullable=False),
        sa.Column('id_usuario', sa.Integer(), nullable=True),
        sa.Column('origen', sa.Enum(*ORIGENES, name='origen_comentario_enum'), nullable=False),
        sa.Column('contenido', sa.Text(), nullable=False),
        sa.Column('es_interno', sa.Boolean(), nullable=False),
        sa.Column('fecha_creacion', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_denuncia'], ['denuncias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['id_usuario'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('adjuntos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_denuncia', sa.Integer(), nullable=False),
        sa.Column('nombre_archivo', sa.String(length=255), nullable=False),
        sa.Column('ruta_archivo', sa.String(length=512), nullable=False),
        sa.Column('tipo_mime', sa.String(length=100), nullable=True),
        sa.Column('tamano', sa.Integer(), nullable=False),
        sa.Column('origen', sa.Enum(*ORIGENES, name='origen_adjunto_enum'), nullable=False),
        sa.Column('id_usuario', sa.Integer(), nullable=True),
        sa.Column('fecha_subida', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['id_denuncia'], ['denuncias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['id_usuario'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('historial_estados',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_denuncia', sa.Integer(), nullable=False),
        sa.Column('estado_anterior', sa.String(length=50), nullable=True),
        sa.Column('estado_nuevo', sa.String(length=50), nullable=False),
        sa.Column('motivo', sa.Text(), nullable=True),
        sa.Column('id_usuario', sa.Integer(), nullable=True),
        sa.Column('fecha_cambio', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_denuncia'], ['denuncias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['id_usuario'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('resoluciones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('id_denuncia', sa.Integer(), nullable=False),
        sa.Column('contenido', sa.Text(), nullable=False),
        sa.Column('id_usuario', sa.Integer(), nullable=True),
        sa.Column('fecha_resolucion', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['id_denuncia'], ['denuncias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['id_usuario'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('id_denuncia')
    )
    op.create_table('activity_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('resource_id', sa.String(length=50), nullable=True),
        sa.Column('resultado', sa.Enum('SUCCESS', 'FAILED', 'INFO', name='resultado_log_enum'), nullable=False),
        sa.Column('ip_origen', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('activity_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_activity_log_timestamp'), ['timestamp'], unique=False)

    op.create_table('rate_limits',
        sa.Column('key', sa.String(length=120), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )


def downgrade():
    op.drop_table('rate_limits')
    with op.batch_alter_table('activity_log', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_activity_log_timestamp'))
    op.drop_table('activity_log')
    op.drop_table('resoluciones')
    op.drop_table('historial_estados')
    op.drop_table('adjuntos')
    op.drop_table('comentarios')
    with op.batch_alter_table('denuncias', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_denuncias_estado'))
        batch_op.drop_index(batch_op.f('ix_denuncias_numero'))
    op.drop_table('denuncias')
    op.drop_table('tipos_denuncia')
    op.drop_table('empresas')
    op.drop_table('role_permissions')
    op.drop_table('user_roles')
    op.drop_table('permission')
    op.drop_table('role')
    op.drop_table('user')
