"""create goods ledger tables

Revision ID: 5b1e7c2a9d40
Revises:
Create Date: 2026-10-19 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e7c2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Directory projections
    op.create_table(
        'parties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('party_type', sa.String(length=30), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'shipments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('shipment_code', sa.String(length=40), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_shipments_owner_user_id', 'shipments', ['owner_user_id'])
    op.create_index('ix_shipments_shipment_code', 'shipments', ['shipment_code'], unique=True)

    op.create_table(
        'shipment_customers',
        sa.Column('shipment_id', sa.Integer(), nullable=False),
        sa.Column('customer_party_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('shipment_id', 'customer_party_id'),
        sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_party_id'], ['parties.id'], ondelete='RESTRICT')
    )
    op.create_index('ix_shipment_customers_customer_party_id', 'shipment_customers', ['customer_party_id'])

    op.create_table(
        'shipment_links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('shipment_id', sa.Integer(), nullable=False),
        sa.Column('connected_shipment_id', sa.Integer(), nullable=False),
        sa.Column('shipment_label', sa.String(length=120), nullable=True),
        sa.Column('connected_label', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shipment_id', 'connected_shipment_id', name='uq_shipment_link_pair'),
        sa.CheckConstraint('shipment_id <> connected_shipment_id', name='ck_shipment_link_not_self'),
        sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['connected_shipment_id'], ['shipments.id'], ondelete='CASCADE')
    )
    op.create_index('ix_shipment_links_owner_user_id', 'shipment_links', ['owner_user_id'])
    op.create_index('ix_shipment_links_shipment_id', 'shipment_links', ['shipment_id'])
    op.create_index('ix_shipment_links_connected_shipment_id', 'shipment_links', ['connected_shipment_id'])

    op.create_table(
        'shipment_access',
        sa.Column('shipment_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('shipment_id', 'user_id'),
        sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id'], ondelete='CASCADE')
    )
    op.create_index('ix_shipment_access_user_id', 'shipment_access', ['user_id'])

    # 2. Goods catalog & pledges
    op.create_table(
        'goods',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('origin', sa.String(length=120), nullable=False),
        sa.Column('unit_type', sa.String(length=40), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_user_id', 'name', 'origin', name='uq_goods_owner_name_origin')
    )
    op.create_index('ix_goods_owner_user_id', 'goods', ['owner_user_id'])

    op.create_table(
        'shipment_goods',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('shipment_id', sa.Integer(), nullable=False),
        sa.Column('good_id', sa.Integer(), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('customer_party_id', sa.Integer(), nullable=True),
        sa.Column('applies_to_all_customers', sa.Boolean(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 0', name='ck_shipment_goods_quantity_non_negative'),
        sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['good_id'], ['goods.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['customer_party_id'], ['parties.id'], ondelete='RESTRICT'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shipment_goods_shipment_id', 'shipment_goods', ['shipment_id'])
    op.create_index('ix_shipment_goods_good_id', 'shipment_goods', ['good_id'])
    op.create_index('ix_shipment_goods_owner_user_id', 'shipment_goods', ['owner_user_id'])
    op.create_index('ix_shipment_goods_customer_party_id', 'shipment_goods', ['customer_party_id'])

    op.create_table(
        'shipment_goods_allocations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('shipment_good_id', sa.Integer(), nullable=False),
        sa.Column('step_id', sa.Integer(), nullable=False),
        sa.Column('taken_quantity', sa.Integer(), nullable=False),
        sa.Column('inventory_quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shipment_good_id', 'step_id', name='uq_shipment_goods_allocation_step'),
        sa.CheckConstraint('taken_quantity >= 0', name='ck_allocation_taken_non_negative'),
        sa.CheckConstraint('inventory_quantity >= 0', name='ck_allocation_remaining_non_negative')
    )
    op.create_index('ix_shipment_goods_allocations_shipment_good_id', 'shipment_goods_allocations', ['shipment_good_id'])
    op.create_index('ix_shipment_goods_allocations_step_id', 'shipment_goods_allocations', ['step_id'])

    # 3. Ledger
    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('good_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=3), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('shipment_id', sa.Integer(), nullable=True),
        sa.Column('shipment_good_id', sa.Integer(), nullable=True),
        sa.Column('step_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_transactions_quantity_non_negative'),
        sa.CheckConstraint("direction IN ('IN', 'OUT')", name='ck_inventory_transactions_direction'),
        sa.ForeignKeyConstraint(['good_id'], ['goods.id'], ondelete='RESTRICT')
    )
    # History screens filter by owner/good and the missing-IN check probes by pledge
    op.create_index('ix_inventory_transactions_owner_user_id', 'inventory_transactions', ['owner_user_id'])
    op.create_index('ix_inventory_transactions_shipment_id', 'inventory_transactions', ['shipment_id'])
    op.create_index('ix_inventory_transactions_owner_good', 'inventory_transactions', ['owner_user_id', 'good_id'])
    op.create_index('ix_inventory_transactions_pledge_direction', 'inventory_transactions', ['shipment_good_id', 'direction'])

    op.create_table(
        'inventory_balances',
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('good_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('owner_user_id', 'good_id'),
        sa.ForeignKeyConstraint(['good_id'], ['goods.id'], ondelete='RESTRICT')
    )


def downgrade() -> None:
    op.drop_table('inventory_balances')
    op.drop_index('ix_inventory_transactions_pledge_direction', table_name='inventory_transactions')
    op.drop_index('ix_inventory_transactions_owner_good', table_name='inventory_transactions')
    op.drop_index('ix_inventory_transactions_shipment_id', table_name='inventory_transactions')
    op.drop_index('ix_inventory_transactions_owner_user_id', table_name='inventory_transactions')
    op.drop_table('inventory_transactions')
    op.drop_table('shipment_goods_allocations')
    op.drop_table('shipment_goods')
    op.drop_table('goods')
    op.drop_table('shipment_access')
    op.drop_table('shipment_links')
    op.drop_table('shipment_customers')
    op.drop_table('shipments')
    op.drop_table('parties')
