"""p2p_schema

Revision ID: 4f1c2a9e7b30
Revises:
Create Date: 2026-10-19 09:12:44.518203+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4f1c2a9e7b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. vendors (no FKs; referenced by purchase_orders.vendor_id)
    op.create_table('vendors',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('contact_person', sa.String(length=200), nullable=True),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('phone', sa.String(length=30), nullable=True),
    sa.Column('address', sa.Text(), nullable=True),
    sa.Column('tax_id', sa.String(length=50), nullable=True),
    sa.Column('payment_terms', sa.String(length=100), nullable=True),
    sa.Column('category', sa.JSON(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_vendors_status', 'vendors', ['status'], unique=False)
    op.create_index('idx_vendors_email', 'vendors', ['email'], unique=False)

    # 2. cost_center_approvers
    op.create_table('cost_center_approvers',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=100), nullable=False),
    sa.Column('user_name', sa.String(length=200), nullable=False),
    sa.Column('user_email', sa.String(length=255), nullable=False),
    sa.Column('cost_center', sa.String(length=50), nullable=False),
    sa.Column('approval_limit', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'cost_center', name='uq_cost_center_approver')
    )
    op.create_index('idx_cca_cost_center', 'cost_center_approvers', ['cost_center'], unique=False)

    # 3. purchase_requisitions (line items + approvers as JSON)
    op.create_table('purchase_requisitions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('pr_number', sa.String(length=50), nullable=False),
    sa.Column('requester_id', sa.String(length=100), nullable=False),
    sa.Column('requester_name', sa.String(length=200), nullable=False),
    sa.Column('requester_email', sa.String(length=255), nullable=False),
    sa.Column('department', sa.String(length=200), nullable=False),
    sa.Column('cost_center', sa.String(length=50), nullable=False),
    sa.Column('budget_code', sa.String(length=50), nullable=False),
    sa.Column('justification', sa.Text(), nullable=False),
    sa.Column('date_needed', sa.Date(), nullable=False),
    sa.Column('line_items', sa.JSON(), nullable=True),
    sa.Column('approvers', sa.JSON(), nullable=True),
    sa.Column('status', sa.String(length=50), nullable=True),
    sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('date_created', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint('version > 0', name='chk_pr_version_positive'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('pr_number')
    )
    op.create_index('idx_pr_status', 'purchase_requisitions', ['status'], unique=False)
    op.create_index('idx_pr_cost_center', 'purchase_requisitions', ['cost_center'], unique=False)
    op.create_index('idx_pr_requester', 'purchase_requisitions', ['requester_id'], unique=False)

    # 4. purchase_orders
    op.create_table('purchase_orders',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('pr_id', sa.String(length=36), nullable=True),
    sa.Column('po_number', sa.String(length=50), nullable=False),
    sa.Column('vendor_id', sa.String(length=36), nullable=False),
    sa.Column('cost_center', sa.String(length=50), nullable=True),
    sa.Column('line_items', sa.JSON(), nullable=True),
    sa.Column('approvers', sa.JSON(), nullable=True),
    sa.Column('shipping_address', sa.Text(), nullable=True),
    sa.Column('billing_address', sa.Text(), nullable=True),
    sa.Column('currency', sa.String(length=3), nullable=True),
    sa.Column('required_date', sa.Date(), nullable=True),
    sa.Column('status', sa.String(length=50), nullable=True),
    sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('date_created', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint('version > 0', name='chk_po_version_positive'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('po_number')
    )
    op.create_index('idx_po_vendor', 'purchase_orders', ['vendor_id'], unique=False)
    op.create_index('idx_po_status', 'purchase_orders', ['status'], unique=False)
    op.create_index('idx_po_pr', 'purchase_orders', ['pr_id'], unique=False)

    # 5. goods_receipts
    op.create_table('goods_receipts',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('receipt_number', sa.String(length=50), nullable=False),
    sa.Column('po_id', sa.String(length=36), nullable=False),
    sa.Column('po_number', sa.String(length=50), nullable=False),
    sa.Column('receiver_id', sa.String(length=100), nullable=False),
    sa.Column('receiver_name', sa.String(length=200), nullable=False),
    sa.Column('date_received', sa.DateTime(timezone=True), nullable=False),
    sa.Column('line_items', sa.JSON(), nullable=True),
    sa.Column('delivery_note', sa.Text(), nullable=True),
    sa.Column('carrier', sa.String(length=200), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.CheckConstraint("status IN ('COMPLETED','PARTIAL')", name='chk_goods_receipt_status'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('receipt_number')
    )
    op.create_index('idx_goods_receipts_po', 'goods_receipts', ['po_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_goods_receipts_po', table_name='goods_receipts')
    op.drop_table('goods_receipts')
    op.drop_index('idx_po_pr', table_name='purchase_orders')
    op.drop_index('idx_po_status', table_name='purchase_orders')
    op.drop_index('idx_po_vendor', table_name='purchase_orders')
    op.drop_table('purchase_orders')
    op.drop_index('idx_pr_requester', table_name='purchase_requisitions')
    op.drop_index('idx_pr_cost_center', table_name='purchase_requisitions')
    op.drop_index('idx_pr_status', table_name='purchase_requisitions')
    op.drop_table('purchase_requisitions')
    op.drop_index('idx_cca_cost_center', table_name='cost_center_approvers')
    op.drop_table('cost_center_approvers')
    op.drop_index('idx_vendors_email', table_name='vendors')
    op.drop_index('idx_vendors_status', table_name='vendors')
    op.drop_table('vendors')
