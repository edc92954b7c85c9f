"""Initial dashboard schema

Revision ID: 5d2c7e91a4b3
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5d2c7e91a4b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create site_settings table
    op.create_table('site_settings',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('rubric_url', sa.Text(), nullable=True),
    sa.Column('rubric_email', sa.Text(), nullable=True),
    sa.Column('rubric_session_id', sa.Text(), nullable=True),
    sa.Column('rubric_membership_name', sa.Text(), nullable=True),
    sa.Column('squarespace_api_key', sa.Text(), nullable=True),
    sa.Column('squarespace_api_url', sa.Text(), nullable=True),
    sa.Column('squarespace_api_version', sa.Text(), nullable=True),
    sa.Column('shirt_keyword', sa.Text(), nullable=True),
    sa.Column('last_squarespace_order_date', sa.DateTime(timezone=True), nullable=True),
    sa.Column('last_order_sync_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('last_member_sync_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    # Create orders table
    op.create_table('orders',
    sa.Column('id', sa.String(length=64), nullable=False),
    sa.Column('order_number', sa.String(length=64), nullable=True),
    sa.Column('customer_email', sa.String(length=255), nullable=False),
    sa.Column('customer_name', sa.String(length=255), nullable=False),
    sa.Column('fulfillment_status', sa.Enum('PENDING', 'PACKED', 'FULFILLED', name='fulfillmentstatus', native_enum=False, length=20), nullable=False),
    sa.Column('shipping_status', sa.Enum('PENDING', 'SHIPPED', name='shippingstatus', native_enum=False, length=20), nullable=False),
    sa.Column('shipping_tracking_number', sa.String(length=255), nullable=True),
    sa.Column('shipping_carrier', sa.String(length=50), nullable=True),
    sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_on', sa.DateTime(timezone=True), nullable=False),
    sa.Column('synced_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_status_created', 'orders', ['fulfillment_status', 'created_on'], unique=False)
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=False)
    op.create_index('ix_orders_customer_email', 'orders', ['customer_email'], unique=False)
    op.create_index('ix_orders_customer_name', 'orders', ['customer_name'], unique=False)
    op.create_index('ix_orders_synced_at', 'orders', ['synced_at'], unique=False)

    # Create order_line_items table
    op.create_table('order_line_items',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('order_id', sa.String(length=64), nullable=False),
    sa.Column('product_name', sa.String(length=500), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('size', sa.String(length=50), nullable=True),
    sa.Column('image_url', sa.Text(), nullable=True),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_line_items_order_id', 'order_line_items', ['order_id'], unique=False)
    op.create_index('ix_order_line_items_product_name', 'order_line_items', ['product_name'], unique=False)

    # Create members table
    op.create_table('members',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('fullname', sa.String(length=150), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('phonenumber', sa.String(length=64), nullable=True),
    sa.Column('membership_id', sa.String(length=50), nullable=True),
    sa.Column('membership_type', sa.String(length=50), nullable=True),
    sa.Column('price_paid', sa.Numeric(precision=8, scale=2), nullable=True),
    sa.Column('payment_method', sa.String(length=50), nullable=True),
    sa.Column('is_valid', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_index('uq_members_email_lower', 'members', [sa.text('lower(email)')], unique=True)

    # Create membership_payments table
    op.create_table('membership_payments',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('member_id', sa.Integer(), nullable=False),
    sa.Column('amount', sa.Numeric(precision=8, scale=2), nullable=True),
    sa.Column('method', sa.String(length=50), nullable=True),
    sa.Column('status', sa.String(length=50), nullable=False),
    sa.Column('transaction_id', sa.String(length=100), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['member_id'], ['members.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_membership_payments_member_id'), 'membership_payments', ['member_id'], unique=False)

    # Create membership_responses table
    op.create_table('membership_responses',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('member_id', sa.Integer(), nullable=False),
    sa.Column('responses', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['member_id'], ['members.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_membership_responses_member_id'), 'membership_responses', ['member_id'], unique=False)

    # Create activity_log table
    op.create_table('activity_log',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('user_id', sa.String(length=64), nullable=True),
    sa.Column('user_name', sa.String(length=255), nullable=True),
    sa.Column('action', sa.String(length=50), nullable=False),
    sa.Column('entity_type', sa.String(length=50), nullable=True),
    sa.Column('entity_id', sa.String(length=64), nullable=True),
    sa.Column('details', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_activity_log_action'), 'activity_log', ['action'], unique=False)
    op.create_index(op.f('ix_activity_log_created_at'), 'activity_log', ['created_at'], unique=False)
    op.create_index('ix_activity_log_entity', 'activity_log', ['entity_type', 'entity_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_activity_log_entity', table_name='activity_log')
    op.drop_index(op.f('ix_activity_log_created_at'), table_name='activity_log')
    op.drop_index(op.f('ix_activity_log_action'), table_name='activity_log')
    op.drop_table('activity_log')
    op.drop_index(op.f('ix_membership_responses_member_id'), table_name='membership_responses')
    op.drop_table('membership_responses')
    op.drop_index(op.f('ix_membership_payments_member_id'), table_name='membership_payments')
    op.drop_table('membership_payments')
    op.drop_index('uq_members_email_lower', table_name='members')
    op.drop_table('members')
    op.drop_index('ix_order_line_items_product_name', table_name='order_line_items')
    op.drop_index('ix_order_line_items_order_id', table_name='order_line_items')
    op.drop_table('order_line_items')
    op.drop_index('ix_orders_synced_at', table_name='orders')
    op.drop_index('ix_orders_customer_name', table_name='orders')
    op.drop_index('ix_orders_customer_email', table_name='orders')
    op.drop_index('ix_orders_order_number', table_name='orders')
    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_table('orders')
    op.drop_table('site_settings')
