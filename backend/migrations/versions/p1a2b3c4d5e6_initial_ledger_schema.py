"""initial order, invoice and ledger schema

Revision ID: p1a2b3c4d5e6
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema from scratch:
- categories, products, customers: catalog and customer reference data
- orders, order_items: reservation-first orders with a pricing snapshot
- transactions: cash and credit customer transactions
- invoices, invoice_items, invoice_payments: derived invoices and payment log
- ledger_entries: append-only double-entry postings
- document_sequences: atomic numbering for ORD/INV/LED/PST references

All money columns are integer cents.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'p1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_bps', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint('discount_bps >= 0 AND discount_bps <= 10000', name='ck_categories_discount_range'),
        sa.PrimaryKeyConstraint('id', name='pk_categories'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_is_active', 'customers', ['is_active'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reserved_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_nonneg'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_nonneg'),
        sa.CheckConstraint('reserved_stock >= 0', name='ck_products_reserved_nonneg'),
        sa.CheckConstraint('reserved_stock <= stock_quantity', name='ck_products_reserved_le_stock'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name='fk_products_category_id_categories'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('product_code', name='uq_products_product_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_category_active', 'products', ['category_id', 'is_active'])

    # ============================================================================
    # orders
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('original_total_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('discount_applied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_type', sa.String(length=16), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_orders_customer_id_customers'),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_order_items_order_id_orders'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_order_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    # ============================================================================
    # transactions
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount_cents > 0', name='ck_transactions_amount_positive'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_transactions_customer_id_customers'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_transactions_order_id_orders'),
        sa.PrimaryKeyConstraint('id', name='pk_transactions'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_customer_id', 'transactions', ['customer_id'])
    op.create_index('ix_transactions_order_id', 'transactions', ['order_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_type_status', 'transactions', ['type', 'status'])

    # ============================================================================
    # invoices
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('settles_invoice_id', sa.Integer(), nullable=True),
        sa.Column('original_amount_cents', sa.Integer(), nullable=False),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remaining_amount_cents', sa.Integer(), nullable=False),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Outstanding'),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='Sales'),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('paid_amount_cents >= 0', name='ck_invoices_paid_nonneg'),
        sa.CheckConstraint('paid_amount_cents <= original_amount_cents', name='ck_invoices_no_overpay'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], name='fk_invoices_transaction_id_transactions'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_invoices_customer_id_customers'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_invoices_order_id_orders'),
        sa.ForeignKeyConstraint(['settles_invoice_id'], ['invoices.id'], name='fk_invoices_settles_invoice_id_invoices'),
        sa.PrimaryKeyConstraint('id', name='pk_invoices'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_transaction_id', 'invoices', ['transaction_id'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_order_id', 'invoices', ['order_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_type', 'invoices', ['type'])
    op.create_index('ix_invoices_is_active', 'invoices', ['is_active'])
    op.create_index('ix_invoices_customer_status', 'invoices', ['customer_id', 'status'])
    # One primary invoice per transaction; receipts share the transaction_id
    op.create_index(
        'uq_invoices_primary_transaction',
        'invoices',
        ['transaction_id'],
        unique=True,
        sqlite_where=sa.text("type != 'Receipt'"),
        postgresql_where=sa.text("type != 'Receipt'"),
    )

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], name='fk_invoice_items_invoice_id_invoices'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_invoice_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_invoice_items'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table(
        'invoice_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('remaining_after_cents', sa.Integer(), nullable=False),
        sa.Column('status_after', sa.String(length=16), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount_cents > 0', name='ck_invoice_payments_amount_positive'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], name='fk_invoice_payments_invoice_id_invoices'),
        sa.PrimaryKeyConstraint('id', name='pk_invoice_payments'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_payments_invoice_id', 'invoice_payments', ['invoice_id'])

    # ============================================================================
    # ledger_entries: append-only double-entry postings
    # ============================================================================
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('entry_type', sa.String(length=32), nullable=False),
        sa.Column('debit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('account_type', sa.String(length=16), nullable=False),
        sa.Column('account_name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=False),
        sa.Column('posting_group', sa.String(length=64), nullable=False),
        sa.Column('corrects_group', sa.String(length=64), nullable=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('debit_cents >= 0', name='ck_ledger_debit_nonneg'),
        sa.CheckConstraint('credit_cents >= 0', name='ck_ledger_credit_nonneg'),
        sa.CheckConstraint(
            '(debit_cents > 0 AND credit_cents = 0) OR (debit_cents = 0 AND credit_cents > 0)',
            name='ck_ledger_one_sided',
        ),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], name='fk_ledger_entries_transaction_id_transactions'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_ledger_entries_order_id_orders'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_ledger_entries_customer_id_customers'),
        sa.PrimaryKeyConstraint('id', name='pk_ledger_entries'),
        sa.UniqueConstraint('reference_number', name='uq_ledger_entries_reference_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_entries_transaction_id', 'ledger_entries', ['transaction_id'])
    op.create_index('ix_ledger_entries_order_id', 'ledger_entries', ['order_id'])
    op.create_index('ix_ledger_entries_customer_id', 'ledger_entries', ['customer_id'])
    op.create_index('ix_ledger_entries_entry_type', 'ledger_entries', ['entry_type'])
    op.create_index('ix_ledger_entries_posting_group', 'ledger_entries', ['posting_group'])
    op.create_index('ix_ledger_entries_corrects_group', 'ledger_entries', ['corrects_group'])
    op.create_index('ix_ledger_entries_transaction_date', 'ledger_entries', ['transaction_date'])
    op.create_index('ix_ledger_status_date', 'ledger_entries', ['status', 'transaction_date'])
    op.create_index('ix_ledger_account_status', 'ledger_entries', ['account_name', 'status'])

    # ============================================================================
    # document_sequences
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_document_sequences'),
        sa.UniqueConstraint('document_type', name='uq_document_sequences_document_type'),
        sqlite_autoincrement=True
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('document_sequences')
    op.drop_table('ledger_entries')
    op.drop_table('invoice_payments')
    op.drop_table('invoice_items')
    op.drop_index('uq_invoices_primary_transaction', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('transactions')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('categories')
