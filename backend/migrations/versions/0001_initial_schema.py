"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete GeStock schema and seeds the three stocks:
- stocks: fixed registry (al-ouloum, renaissance, gros)
- users: bcrypt credentials, role, home stock
- products / barcodes: catalog; stock_id NULL means a global product
- clients / fournisseurs: per-stock parties (soft delete)
- sales / sale_items: POS and invoice sales
- return_transactions / return_items: returns and exchanges against a sale
- stock_movements / stock_movement_items: inter-stock transfers
- achats: supplier purchases
- invoices / invoice_files: invoice headers and stored PDFs
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    # ============================================================================
    # stocks: fixed registry, ids are assigned explicitly
    # ============================================================================
    stocks = op.create_table(
        'stocks',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('slug', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_stocks'),
        sa.UniqueConstraint('slug', name='uq_stocks_slug'),
    )

    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=True),  # NULL only for super_admin
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_users_stock_id_stocks'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])

    # ============================================================================
    # products / barcodes
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('stock_id', sa.Integer(), nullable=True),  # NULL = global product
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_products_stock_id_stocks'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_stock_active', 'products', ['stock_id', 'is_active'])
    op.create_index('ix_products_reference', 'products', ['reference'])

    op.create_table(
        'barcodes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_barcodes_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_barcodes'),
        sa.UniqueConstraint('code', name='uq_barcodes_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_barcodes_product_id', 'barcodes', ['product_id'])

    # ============================================================================
    # clients / fournisseurs
    # ============================================================================
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('payment_terms', sa.String(length=64), nullable=False, server_default='30 jours'),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_clients_stock_id_stocks'),
        sa.PrimaryKeyConstraint('id', name='pk_clients'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_clients_stock_active', 'clients', ['stock_id', 'is_active'])

    op.create_table(
        'fournisseurs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('payment_terms', sa.String(length=64), nullable=False, server_default='30 jours'),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_fournisseurs_stock_id_stocks'),
        sa.PrimaryKeyConstraint('id', name='pk_fournisseurs'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_fournisseurs_stock_active', 'fournisseurs', ['stock_id', 'is_active'])

    # ============================================================================
    # sales / sale_items
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=True),
        sa.Column('change_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('global_discount_type', sa.String(length=16), nullable=False, server_default='percentage'),
        sa.Column('global_discount_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('barcode', sa.String(length=32), nullable=True),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='pos'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_sales_user_id_users'),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_sales_stock_id_stocks'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], name='fk_sales_client_id_clients'),
        sa.PrimaryKeyConstraint('id', name='pk_sales'),
        sa.UniqueConstraint('barcode', name='uq_sales_barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_user_id', 'sales', ['user_id'])
    op.create_index('ix_sales_client_id', 'sales', ['client_id'])
    op.create_index('ix_sales_payment_status', 'sales', ['payment_status'])
    op.create_index('ix_sales_stock_created', 'sales', ['stock_id', 'created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_sale_items_sale_id_sales'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_sale_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_items'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product', 'sale_items', ['product_id'])

    # ============================================================================
    # return_transactions / return_items
    # ============================================================================
    op.create_table(
        'return_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_sale_id', sa.Integer(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('return_type', sa.String(length=16), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('total_refund_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('total_exchange_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('balance_adjustment', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['original_sale_id'], ['sales.id'], name='fk_return_transactions_original_sale_id_sales'),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_return_transactions_stock_id_stocks'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], name='fk_return_transactions_client_id_clients'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_return_transactions_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_return_transactions'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_return_transactions_original_sale_id', 'return_transactions', ['original_sale_id'])
    op.create_index('ix_return_transactions_status', 'return_transactions', ['status'])
    op.create_index('ix_return_transactions_stock_status', 'return_transactions', ['stock_id', 'status'])

    op.create_table(
        'return_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_transaction_id', sa.Integer(), nullable=False),
        sa.Column('original_sale_item_id', sa.Integer(), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['return_transaction_id'], ['return_transactions.id'], name='fk_return_items_return_transaction_id_return_transactions'),
        sa.ForeignKeyConstraint(['original_sale_item_id'], ['sale_items.id'], name='fk_return_items_original_sale_item_id_sale_items'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_return_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_return_items'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_return_items_return_transaction_id', 'return_items', ['return_transaction_id'])
    op.create_index('ix_return_items_product', 'return_items', ['product_id'])

    # ============================================================================
    # stock_movements / stock_movement_items
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('from_stock_id', sa.Integer(), nullable=False),
        sa.Column('to_stock_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('movement_number', sa.String(length=64), nullable=False),
        sa.Column('recipient_name', sa.String(length=255), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('claim_message', sa.Text(), nullable=True),
        sa.Column('confirmed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('claim_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['from_stock_id'], ['stocks.id'], name='fk_stock_movements_from_stock_id_stocks'),
        sa.ForeignKeyConstraint(['to_stock_id'], ['stocks.id'], name='fk_stock_movements_to_stock_id_stocks'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_stock_movements_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_stock_movements'),
        sa.UniqueConstraint('movement_number', name='uq_stock_movements_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_from_status', 'stock_movements', ['from_stock_id', 'status'])
    op.create_index('ix_stock_movements_to_status', 'stock_movements', ['to_stock_id', 'status'])

    op.create_table(
        'stock_movement_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('movement_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('destination_product_id', sa.Integer(), nullable=True),  # set on confirmation
        sa.ForeignKeyConstraint(['movement_id'], ['stock_movements.id'], name='fk_stock_movement_items_movement_id_stock_movements'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_stock_movement_items_product_id_products'),
        sa.ForeignKeyConstraint(['destination_product_id'], ['products.id'], name='fk_stock_movement_items_destination_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_stock_movement_items'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movement_items_movement_id', 'stock_movement_items', ['movement_id'])
    op.create_index('ix_stock_movement_items_product', 'stock_movement_items', ['product_id'])

    # ============================================================================
    # achats
    # ============================================================================
    op.create_table(
        'achats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fournisseur_id', sa.Integer(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['fournisseur_id'], ['fournisseurs.id'], name='fk_achats_fournisseur_id_fournisseurs'),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_achats_stock_id_stocks'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_achats_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_achats'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_achats_fournisseur_id', 'achats', ['fournisseur_id'])
    op.create_index('ix_achats_stock_created', 'achats', ['stock_id', 'created_at'])

    # ============================================================================
    # invoices / invoice_files
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('invoice_type', sa.String(length=16), nullable=False, server_default='sale'),
        sa.Column('reference_id', sa.Integer(), nullable=False),  # sales.id or achats.id
        sa.Column('stock_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id'], name='fk_invoices_stock_id_stocks'),
        sa.ForeignKeyConstraint(['customer_id'], ['clients.id'], name='fk_invoices_customer_id_clients'),
        sa.ForeignKeyConstraint(['supplier_id'], ['fournisseurs.id'], name='fk_invoices_supplier_id_fournisseurs'),
        sa.PrimaryKeyConstraint('id', name='pk_invoices'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_stock_type', 'invoices', ['stock_id', 'invoice_type'])

    op.create_table(
        'invoice_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('content_type', sa.String(length=128), nullable=False, server_default='application/pdf'),
        sa.Column('data', sa.LargeBinary(length=16 * 1024 * 1024), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_invoice_files_sale_id_sales'),
        sa.PrimaryKeyConstraint('id', name='pk_invoice_files'),
        sa.UniqueConstraint('sale_id', name='uq_invoice_files_sale'),
        sqlite_autoincrement=True
    )

    # Seed the stock registry; ids match the application's fixed mapping
    op.bulk_insert(stocks, [
        {'id': 1, 'slug': 'al-ouloum', 'name': 'Librairie Al Ouloum'},
        {'id': 2, 'slug': 'renaissance', 'name': 'Librairie La Renaissance'},
        {'id': 3, 'slug': 'gros', 'name': 'Gros (Dépôt général)'},
    ])


def downgrade():
    for table in (
        'invoice_files',
        'invoices',
        'achats',
        'stock_movement_items',
        'stock_movements',
        'return_items',
        'return_transactions',
        'sale_items',
        'sales',
        'fournisseurs',
        'clients',
        'barcodes',
        'products',
        'users',
        'stocks',
    ):
        op.drop_table(table)
