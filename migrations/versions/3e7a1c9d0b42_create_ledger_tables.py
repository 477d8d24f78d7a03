"""create ledger tables

Revision ID: 3e7a1c9d0b42
Revises:
Create Date: 2026-10-18 09:12:44.102311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e7a1c9d0b42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('client_ip', sa.String(length=64), nullable=True),
        sa.Column('actor_identity', sa.String(length=320), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('entity_type', sa.String(length=128), nullable=True),
        sa.Column('entity_id', sa.String(length=128), nullable=True),
        sa.Column('reason', sa.String(length=512), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_audit_events_action', 'audit_events', ['action'], unique=False)
    op.create_index('idx_audit_events_entity', 'audit_events', ['entity_type', 'entity_id'], unique=False)

    # ledger state + global authorization
    op.create_table(
        'ledger_state',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('administrator', sa.String(length=320), nullable=False),
        sa.Column('product_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table(
        'authorized_identities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=320), nullable=False),
        sa.Column('authorized_at', sa.DateTime(), nullable=False),
        sa.Column('authorized_by', sa.String(length=320), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identity')
    )

    # products
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('manufacturer', sa.String(length=320), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('current_location', sa.String(length=512), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_products_manufacturer', 'products', ['manufacturer'], unique=False)
    op.create_index('idx_products_status', 'products', ['status'], unique=False)

    op.create_table(
        'product_locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('location', sa.String(length=512), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('recorded_by', sa.String(length=320), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'sequence', name='uq_product_location_sequence')
    )
    op.create_index('idx_product_locations_product', 'product_locations', ['product_id'], unique=False)

    op.create_table(
        'product_handlers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=320), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'identity', name='uq_product_handler')
    )
    op.create_index('idx_product_handlers_product', 'product_handlers', ['product_id'], unique=False)

    op.create_table(
        'product_access',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=320), nullable=False),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
        sa.Column('granted_by', sa.String(length=320), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'identity', name='uq_product_access')
    )
    op.create_index('idx_product_access_identity', 'product_access', ['identity'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_product_access_identity', table_name='product_access')
    op.drop_table('product_access')
    op.drop_index('idx_product_handlers_product', table_name='product_handlers')
    op.drop_table('product_handlers')
    op.drop_index('idx_product_locations_product', table_name='product_locations')
    op.drop_table('product_locations')
    op.drop_index('idx_products_status', table_name='products')
    op.drop_index('idx_products_manufacturer', table_name='products')
    op.drop_table('products')
    op.drop_table('authorized_identities')
    op.drop_table('ledger_state')
    op.drop_index('idx_audit_events_entity', table_name='audit_events')
    op.drop_index('idx_audit_events_action', table_name='audit_events')
    op.drop_table('audit_events')
    op.drop_table('users')
