"""initial alertia schema

Revision ID: a1e7c0de2026
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1e7c0de2026'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(80), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='area'),
        sa.Column('area', sa.String(120), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'token_blocklist',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('jti', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_token_blocklist_jti', 'token_blocklist', ['jti'], unique=True)

    op.create_table(
        'obligaciones',
        sa.Column('id', sa.String(120), primary_key=True),
        sa.Column('id_oficial', sa.String(120), nullable=True),
        sa.Column('regulador', sa.String(255), nullable=True),
        sa.Column('area', sa.String(255), nullable=True),
        sa.Column('nombre', sa.Text(), nullable=True),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('periodicidad', sa.String(120), nullable=True),
        sa.Column('responsable', sa.String(255), nullable=True),
        sa.Column('responsable_email', sa.String(255), nullable=True),
        sa.Column('responsable_cn', sa.String(255), nullable=True),
        sa.Column('responsable_juridico', sa.String(255), nullable=True),
        sa.Column('fecha_limite', sa.Date(), nullable=True),
        sa.Column('estatus', sa.String(60), nullable=True),
        sa.Column('sub_estatus', sa.String(120), nullable=True),
        sa.Column('dias_para_vencer_excel', sa.Integer(), nullable=True),
        sa.Column('motivo_pausa', sa.Text(), nullable=True),
        sa.Column('fecha_pausa', sa.DateTime(), nullable=True),
        sa.Column('fecha_atendida', sa.DateTime(), nullable=True),
        sa.Column('reglas_alertamiento', sa.JSON(), nullable=False),
        sa.Column('alertas', sa.JSON(), nullable=False),
        sa.Column('archivos', sa.JSON(), nullable=False),
        sa.Column('historial', sa.JSON(), nullable=False),
        sa.Column('recordatorios_programados', sa.JSON(), nullable=False),
        sa.Column('datos_extra', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_obligaciones_id_oficial', 'obligaciones', ['id_oficial'])
    op.create_index('ix_obligaciones_area', 'obligaciones', ['area'])
    op.create_index('ix_obligaciones_fecha_limite', 'obligaciones', ['fecha_limite'])
    op.create_index('ix_obligaciones_estatus', 'obligaciones', ['estatus'])

    op.create_table(
        'alertas',
        sa.Column('id', sa.String(120), primary_key=True),
        sa.Column('obligacion_id', sa.String(120), nullable=False),
        sa.Column('tipo', sa.String(40), nullable=False),
        sa.Column('fecha', sa.Date(), nullable=True),
        sa.Column('fecha_calculo', sa.DateTime(), nullable=True),
        sa.Column('estado', sa.String(20), nullable=False, server_default='pendiente'),
        sa.Column('fecha_envio', sa.DateTime(), nullable=True),
        sa.Column('destinatario', sa.String(255), nullable=True),
        sa.Column('dias_restantes', sa.Integer(), nullable=True),
    )
    op.create_index('ix_alertas_obligacion_id', 'alertas', ['obligacion_id'])
    op.create_index('ix_alertas_fecha', 'alertas', ['fecha'])
    op.create_index('ix_alertas_obl_fecha', 'alertas', ['obligacion_id', 'fecha'])

    op.create_table(
        'envios',
        sa.Column('id', sa.String(120), primary_key=True),
        sa.Column('fecha', sa.DateTime(), nullable=True),
        sa.Column('tipo', sa.String(20), nullable=False, server_default='manual'),
        sa.Column('usuario', sa.String(255), nullable=True),
        sa.Column('usuario_email', sa.String(255), nullable=True),
        sa.Column('correos_enviados', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fallidos', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('alertas', sa.JSON(), nullable=False),
        sa.Column('errores', sa.JSON(), nullable=False),
        sa.Column('estado', sa.String(20), nullable=False, server_default='completado'),
        sa.Column('remitente', sa.String(255), nullable=True),
        sa.Column('nombre_remitente', sa.String(255), nullable=True),
        sa.Column('cc_global', sa.JSON(), nullable=False),
    )
    op.create_index('ix_envios_fecha', 'envios', ['fecha'])

    op.create_table(
        'auditoria',
        sa.Column('id', sa.String(120), primary_key=True),
        sa.Column('fecha', sa.DateTime(), nullable=True),
        sa.Column('usuario', sa.String(255), nullable=True),
        sa.Column('usuario_email', sa.String(255), nullable=True),
        sa.Column('accion', sa.String(255), nullable=False),
        sa.Column('contexto', sa.JSON(), nullable=False),
        sa.Column('ip', sa.String(64), nullable=True),
    )
    op.create_index('ix_auditoria_fecha', 'auditoria', ['fecha'])
    op.create_index('ix_auditoria_usuario', 'auditoria', ['usuario'])

    op.create_table(
        'configuracion',
        sa.Column('id', sa.String(40), primary_key=True),
        sa.Column('datos', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    for table in ('configuracion', 'auditoria', 'envios', 'alertas', 'obligaciones', 'token_blocklist', 'users'):
        op.drop_table(table)
