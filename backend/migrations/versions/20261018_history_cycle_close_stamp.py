"""Stamp cycle close time and actor on every history kind

Revision ID: 20261018_close_stamp
Revises: 20261001_initial
Create Date: 2026-10-18

Request and purchase history rows now carry cycle_closed_at and
cycle_closed_by, so a cycle that archived no sheets still knows when and by
whom it was closed.

Existing rows are backfilled from the sheet history of the same cycle; rows
of cycles without sheet history fall back to their own created_at.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_close_stamp'
down_revision = '20261001_initial'
branch_labels = None
depends_on = None


_TABLES = ('book_requests_history', 'finalized_purchases_history')


def upgrade():
    for table in _TABLES:
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.add_column(sa.Column('cycle_closed_by', sa.Integer(), nullable=True))
            batch_op.add_column(sa.Column('cycle_closed_at', sa.DateTime(timezone=True), nullable=True))

        op.execute(f"""
            UPDATE {table}
            SET cycle_closed_at = (
                    SELECT MAX(ph.cycle_closed_at) FROM purchase_history ph
                    WHERE ph.cycle_id = {table}.cycle_id
                ),
                cycle_closed_by = (
                    SELECT MAX(ph.cycle_closed_by) FROM purchase_history ph
                    WHERE ph.cycle_id = {table}.cycle_id
                )
        """)
        op.execute(f"UPDATE {table} SET cycle_closed_at = created_at WHERE cycle_closed_at IS NULL")

        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.alter_column('cycle_closed_at', existing_type=sa.DateTime(timezone=True), nullable=False)
            batch_op.create_index(f'ix_{table}_closed_at', ['cycle_closed_at'], unique=False)


def downgrade():
    for table in reversed(_TABLES):
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.drop_index(f'ix_{table}_closed_at')
            batch_op.drop_column('cycle_closed_at')
            batch_op.drop_column('cycle_closed_by')
