"""create_locker_tables

Revision ID: 3b9c1f2e7a41
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b9c1f2e7a41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('device_id', sa.String(length=32), nullable=False, comment='设备编号 L0001'),
        sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否在线'),
        sa.Column('last_login_time', sa.DateTime(timezone=True), nullable=True, comment='最近登录时间'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_devices_device_id', 'devices', ['device_id'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False, comment='手机号'),
        sa.Column('deposit', sa.BigInteger(), nullable=False, server_default='0', comment='押金余额（分）'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.CheckConstraint('deposit >= 0', name='ck_users_deposit_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_phone', 'users', ['phone'], unique=True)

    op.create_table(
        'lockers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('device_id', sa.String(length=32), nullable=False, comment='设备编号'),
        sa.Column('cabinet_no', sa.Integer(), nullable=False, comment='锁板号'),
        sa.Column('door_no', sa.Integer(), nullable=False, comment='锁号'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='free', comment='free / occupied'),
        sa.Column('current_order_id', sa.Integer(), nullable=True, comment='当前占用订单ID'),
        sa.Column('last_open_at', sa.DateTime(timezone=True), nullable=True, comment='最近开门时间'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0', comment='乐观锁版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['device_id'], ['devices.device_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('device_id', 'cabinet_no', 'door_no', name='uq_lockers_slot'),
        comment='柜门表，记录格口占用状态',
    )
    op.create_index('ix_lockers_status_device', 'lockers', ['status', 'device_id'], unique=False)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('phone', sa.String(length=20), nullable=False, comment='手机号'),
        sa.Column('retrieval_code', sa.String(length=8), nullable=False, comment='取件码'),
        sa.Column('locker_id', sa.Integer(), nullable=False, comment='柜门ID'),
        sa.Column('device_id', sa.String(length=32), nullable=False, comment='设备编号'),
        sa.Column('cabinet_no', sa.Integer(), nullable=False, comment='锁板号'),
        sa.Column('door_no', sa.Integer(), nullable=False, comment='锁号'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='订单状态'),
        sa.Column('deposit', sa.BigInteger(), nullable=False, server_default='0', comment='押金（分）'),
        sa.Column('rent', sa.BigInteger(), nullable=False, server_default='0', comment='租金（分）'),
        sa.Column('pay_amount', sa.BigInteger(), nullable=False, server_default='0', comment='实付金额（分）'),
        sa.Column('refund_amount', sa.BigInteger(), nullable=False, server_default='0', comment='退款金额（分）'),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False, comment='开始时间'),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True, comment='结束时间'),
        sa.Column('pay_time', sa.DateTime(timezone=True), nullable=True, comment='支付时间'),
        sa.Column('refund_time', sa.DateTime(timezone=True), nullable=True, comment='退款时间'),
        sa.Column('stored_at', sa.DateTime(timezone=True), nullable=True, comment='存包开门时间'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0', comment='乐观锁版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['locker_id'], ['lockers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        comment='寄存订单表',
    )
    op.create_index('ix_orders_phone_code', 'orders', ['phone', 'retrieval_code'], unique=False)
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_phone_code', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_lockers_status_device', table_name='lockers')
    op.drop_table('lockers')
    op.drop_index('ix_users_phone', table_name='users')
    op.drop_table('users')
    op.drop_index('ix_devices_device_id', table_name='devices')
    op.drop_table('devices')
