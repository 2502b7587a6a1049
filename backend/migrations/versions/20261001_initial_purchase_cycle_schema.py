"""Initial purchase cycle schema

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01

This migration adds:
1. Profiles and session tokens (bcrypt auth, hashed bearer tokens)
2. Live workspace: purchase sheets, book requests, price comparisons,
   finalized purchases
3. Append-only history tables keyed by cycle_id
4. Activity log and singleton system settings
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. PROFILES AND SESSIONS
    # ==========================================================================
    op.create_table('profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('profiles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_profiles_email'), ['email'], unique=True)
        batch_op.create_index('ix_profiles_role', ['role'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_profile_id'), ['profile_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_is_revoked'), ['is_revoked'], unique=False)
        batch_op.create_index('ix_session_tokens_profile_active', ['profile_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. LIVE WORKSPACE
    # ==========================================================================
    op.create_table('purchase_sheets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sheet_name', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['assigned_to'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_sheets', schema=None) as batch_op:
        batch_op.create_index('ix_purchase_sheets_status', ['status'], unique=False)
        batch_op.create_index('ix_purchase_sheets_assigned_to', ['assigned_to'], unique=False)

    op.create_table('book_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sheet_id', sa.Integer(), nullable=True),
        sa.Column('teacher_id', sa.Integer(), nullable=True),
        sa.Column('teacher_name', sa.String(length=1024), nullable=False),
        sa.Column('book_name', sa.String(length=255), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=False),
        sa.Column('edition', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity > 0', name='ck_book_requests_quantity_positive'),
        sa.ForeignKeyConstraint(['sheet_id'], ['purchase_sheets.id'], ),
        sa.ForeignKeyConstraint(['teacher_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('book_requests', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_book_requests_sheet_id'), ['sheet_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_book_requests_teacher_id'), ['teacher_id'], unique=False)
        batch_op.create_index('ix_book_requests_teacher_status', ['teacher_id', 'status'], unique=False)

    op.create_table('price_comparisons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('book_request_id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_selected', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('price_cents >= 0', name='ck_price_comparisons_price_nonneg'),
        sa.ForeignKeyConstraint(['book_request_id'], ['book_requests.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('price_comparisons', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_price_comparisons_book_request_id'), ['book_request_id'], unique=False)

    op.create_table('finalized_purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('book_request_id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=255), nullable=False),
        sa.Column('price_per_unit_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('finalized_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('price_per_unit_cents > 0', name='ck_finalized_purchases_price_positive'),
        sa.ForeignKeyConstraint(['book_request_id'], ['book_requests.id'], ),
        sa.ForeignKeyConstraint(['finalized_by'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('finalized_purchases', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_finalized_purchases_book_request_id'), ['book_request_id'], unique=False)

    # ==========================================================================
    # 3. HISTORY (append-only, no foreign keys to live rows)
    # ==========================================================================
    op.create_table('purchase_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cycle_id', sa.String(length=36), nullable=False),
        sa.Column('original_sheet_id', sa.Integer(), nullable=True),
        sa.Column('sheet_name', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('cycle_closed_by', sa.Integer(), nullable=True),
        sa.Column('cycle_closed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_history_cycle', 'purchase_history', ['cycle_id'], unique=False)

    op.create_table('book_requests_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cycle_id', sa.String(length=36), nullable=False),
        sa.Column('original_request_id', sa.Integer(), nullable=True),
        sa.Column('original_sheet_id', sa.Integer(), nullable=True),
        sa.Column('teacher_id', sa.Integer(), nullable=True),
        sa.Column('teacher_name', sa.String(length=1024), nullable=False),
        sa.Column('book_name', sa.String(length=255), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=False),
        sa.Column('edition', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_book_requests_history_cycle', 'book_requests_history', ['cycle_id'], unique=False)

    op.create_table('finalized_purchases_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cycle_id', sa.String(length=36), nullable=False),
        sa.Column('original_purchase_id', sa.Integer(), nullable=True),
        sa.Column('original_book_request_id', sa.Integer(), nullable=True),
        sa.Column('shop_name', sa.String(length=255), nullable=False),
        sa.Column('price_per_unit_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('finalized_by', sa.Integer(), nullable=True),
        sa.Column('book_name', sa.String(length=255), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=False),
        sa.Column('edition', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('teacher_name', sa.String(length=1024), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_finalized_purchases_history_cycle', 'finalized_purchases_history', ['cycle_id'], unique=False)

    # ==========================================================================
    # 4. ACTIVITY LOG AND SETTINGS
    # ==========================================================================
    op.create_table('activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('activity_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_activity_logs_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_activity_logs_action'), ['action'], unique=False)
        batch_op.create_index('ix_activity_logs_created', ['created_at'], unique=False)

    op.create_table('system_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('teacher_registration_enabled', sa.Boolean(), nullable=False),
        sa.Column('admin_registration_enabled', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('system_settings')
    op.drop_table('activity_logs')
    op.drop_index('ix_finalized_purchases_history_cycle', table_name='finalized_purchases_history')
    op.drop_table('finalized_purchases_history')
    op.drop_index('ix_book_requests_history_cycle', table_name='book_requests_history')
    op.drop_table('book_requests_history')
    op.drop_index('ix_purchase_history_cycle', table_name='purchase_history')
    op.drop_table('purchase_history')
    op.drop_table('finalized_purchases')
    op.drop_table('price_comparisons')
    op.drop_table('book_requests')
    op.drop_table('purchase_sheets')
    op.drop_table('session_tokens')
    op.drop_table('profiles')
