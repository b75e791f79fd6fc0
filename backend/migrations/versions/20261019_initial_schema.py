"""Initial schema: users, sessions, security events, products, sequence counters, handovers

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

Constraint names follow the metadata naming convention in extensions.py.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. USERS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_failsafe', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'manager', 'employee')", name=op.f('ck_users_role_valid')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    # ==========================================================================
    # 2. SESSION TOKENS
    # ==========================================================================
    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_session_tokens_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_session_tokens')),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_session_tokens_user_id'), 'session_tokens', ['user_id'], unique=False)
    op.create_index(op.f('ix_session_tokens_token_hash'), 'session_tokens', ['token_hash'], unique=True)
    op.create_index(op.f('ix_session_tokens_expires_at'), 'session_tokens', ['expires_at'], unique=False)
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 3. SECURITY EVENTS
    # ==========================================================================
    op.create_table('security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_security_events_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_security_events')),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_security_events_user_id'), 'security_events', ['user_id'], unique=False)
    op.create_index(op.f('ix_security_events_event_type'), 'security_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_security_events_occurred_at'), 'security_events', ['occurred_at'], unique=False)
    op.create_index('ix_security_events_type_action_time', 'security_events',
                    ['event_type', 'action', 'occurred_at'], unique=False)

    # ==========================================================================
    # 4. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False),
        sa.Column('max_stock', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('location', sa.String(length=100), nullable=True),
        sa.Column('last_restocked', sa.DateTime(timezone=True), nullable=False),
        sa.Column('tags', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('stock_quantity >= 0', name=op.f('ck_products_stock_quantity_non_negative')),
        sa.CheckConstraint('min_stock >= 0', name=op.f('ck_products_min_stock_non_negative')),
        sa.CheckConstraint('max_stock >= 0', name=op.f('ck_products_max_stock_non_negative')),
        sa.CheckConstraint('cost_price_cents >= 0', name=op.f('ck_products_cost_price_non_negative')),
        sa.CheckConstraint('selling_price_cents >= 0', name=op.f('ck_products_selling_price_non_negative')),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'],
                                name=op.f('fk_products_created_by_user_id_users')),
        sa.ForeignKeyConstraint(['updated_by_user_id'], ['users.id'],
                                name=op.f('fk_products_updated_by_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_products')),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_products_product_number'), 'products', ['product_number'], unique=True)
    op.create_index(op.f('ix_products_name'), 'products', ['name'], unique=False)
    op.create_index(op.f('ix_products_status'), 'products', ['status'], unique=False)
    op.create_index(op.f('ix_products_created_at'), 'products', ['created_at'], unique=False)
    op.create_index('ix_products_name_status', 'products', ['name', 'status'], unique=False)
    op.create_index('ix_products_stock_status', 'products', ['stock_quantity', 'status'], unique=False)

    # ==========================================================================
    # 5. SEQUENCE COUNTERS
    # ==========================================================================
    op.create_table('sequence_counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sequence_counters')),
        sa.UniqueConstraint('name', name=op.f('uq_sequence_counters_name')),
        sqlite_autoincrement=True,
    )

    # ==========================================================================
    # 6. HANDOVERS
    # ==========================================================================
    op.create_table('handovers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('handed_over_by_user_id', sa.Integer(), nullable=True),
        sa.Column('returned_by_user_id', sa.Integer(), nullable=True),
        sa.Column('rejected_by_user_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('returned_quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('hand_over_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expected_return_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_return_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('purpose', sa.String(length=200), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('return_notes', sa.String(length=500), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        sa.Column('approval_notes', sa.String(length=500), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_handovers_quantity_positive')),
        sa.CheckConstraint('returned_quantity >= 0 AND returned_quantity <= quantity',
                           name=op.f('ck_handovers_returned_quantity_bounds')),
        sa.CheckConstraint("status IN ('pending', 'handed_over', 'returned', 'rejected')",
                           name=op.f('ck_handovers_status_valid')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name=op.f('fk_handovers_product_id_products')),
        sa.ForeignKeyConstraint(['employee_id'], ['users.id'], name=op.f('fk_handovers_employee_id_users')),
        sa.ForeignKeyConstraint(['handed_over_by_user_id'], ['users.id'],
                                name=op.f('fk_handovers_handed_over_by_user_id_users')),
        sa.ForeignKeyConstraint(['returned_by_user_id'], ['users.id'],
                                name=op.f('fk_handovers_returned_by_user_id_users')),
        sa.ForeignKeyConstraint(['rejected_by_user_id'], ['users.id'],
                                name=op.f('fk_handovers_rejected_by_user_id_users')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_handovers')),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_handovers_product_id'), 'handovers', ['product_id'], unique=False)
    op.create_index(op.f('ix_handovers_employee_id'), 'handovers', ['employee_id'], unique=False)
    op.create_index(op.f('ix_handovers_status'), 'handovers', ['status'], unique=False)
    op.create_index(op.f('ix_handovers_hand_over_date'), 'handovers', ['hand_over_date'], unique=False)
    op.create_index(op.f('ix_handovers_created_at'), 'handovers', ['created_at'], unique=False)
    op.create_index('ix_handovers_product_employee_status', 'handovers',
                    ['product_id', 'employee_id', 'status'], unique=False)
    op.create_index('ix_handovers_status_expected_return', 'handovers',
                    ['status', 'expected_return_date'], unique=False)


def downgrade():
    op.drop_table('handovers')
    op.drop_table('sequence_counters')
    op.drop_table('products')
    op.drop_table('security_events')
    op.drop_table('session_tokens')
    op.drop_table('users')
