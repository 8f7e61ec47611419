"""Initial schema: units, assignments, sales, sequences, pending updates

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. units (tracked items with lifecycle status)
2. unit_assignments (one row per unit, team and/or field user)
3. document_sequences (sale code counter)
4. sales (one per sold unit; unit_id and sale_code unique)
5. pending_updates (approval queue)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. UNITS
    # ==========================================================================
    op.create_table('units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_number', sa.String(length=64), nullable=True),
        sa.Column('smartcard', sa.String(length=64), nullable=False),
        sa.Column('serial_number', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('region_id', sa.String(length=64), nullable=True),
        sa.Column('assigned_team_id', sa.String(length=64), nullable=True),
        sa.Column('assigned_user_id', sa.String(length=64), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('units', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_units_batch_number'), ['batch_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_units_smartcard'), ['smartcard'], unique=False)
        batch_op.create_index(batch_op.f('ix_units_serial_number'), ['serial_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_units_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_units_region_id'), ['region_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_units_assigned_user_id'), ['assigned_user_id'], unique=False)
        batch_op.create_index('ix_units_status_kind', ['status', 'kind'], unique=False)
        batch_op.create_index('ix_units_team_status', ['assigned_team_id', 'status'], unique=False)

    # ==========================================================================
    # 2. UNIT ASSIGNMENTS
    # ==========================================================================
    op.create_table('unit_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.String(length=64), nullable=True),
        sa.Column('team_name', sa.String(length=255), nullable=True),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unit_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('unit_assignments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_unit_assignments_team_id'), ['team_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_unit_assignments_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 3. DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 4. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_code', sa.String(length=32), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('sold_by_user_id', sa.String(length=64), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('has_package', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('package_type', sa.String(length=64), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unit_id', name='uq_sales_unit'),
        sa.UniqueConstraint('sale_code', name='uq_sales_sale_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_sold_by_user_id'), ['sold_by_user_id'], unique=False)
        batch_op.create_index('ix_sales_paid_sold_at', ['is_paid', 'sold_at'], unique=False)

    # ==========================================================================
    # 5. PENDING UPDATES
    # ==========================================================================
    op.create_table('pending_updates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('smartcard', sa.String(length=64), nullable=True),
        sa.Column('serial_number', sa.String(length=64), nullable=True),
        sa.Column('kind', sa.String(length=16), nullable=True),
        sa.Column('status_at_request', sa.String(length=16), nullable=False),
        sa.Column('intent', sa.JSON(), nullable=False),
        sa.Column('requested_by', sa.String(length=64), nullable=False),
        sa.Column('requested_by_name', sa.String(length=255), nullable=True),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('decision', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('decided_by', sa.String(length=64), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decision_note', sa.String(length=255), nullable=True),
        sa.Column('last_error', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pending_updates', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pending_updates_unit_id'), ['unit_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pending_updates_requested_by'), ['requested_by'], unique=False)
        batch_op.create_index('ix_pending_updates_decision_requested', ['decision', 'requested_at'], unique=False)


def downgrade():
    with op.batch_alter_table('pending_updates', schema=None) as batch_op:
        batch_op.drop_index('ix_pending_updates_decision_requested')
        batch_op.drop_index(batch_op.f('ix_pending_updates_requested_by'))
        batch_op.drop_index(batch_op.f('ix_pending_updates_unit_id'))
    op.drop_table('pending_updates')

    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.drop_index('ix_sales_paid_sold_at')
        batch_op.drop_index(batch_op.f('ix_sales_sold_by_user_id'))
    op.drop_table('sales')

    op.drop_table('document_sequences')

    with op.batch_alter_table('unit_assignments', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_unit_assignments_user_id'))
        batch_op.drop_index(batch_op.f('ix_unit_assignments_team_id'))
    op.drop_table('unit_assignments')

    with op.batch_alter_table('units', schema=None) as batch_op:
        batch_op.drop_index('ix_units_team_status')
        batch_op.drop_index('ix_units_status_kind')
        batch_op.drop_index(batch_op.f('ix_units_assigned_user_id'))
        batch_op.drop_index(batch_op.f('ix_units_region_id'))
        batch_op.drop_index(batch_op.f('ix_units_status'))
        batch_op.drop_index(batch_op.f('ix_units_serial_number'))
        batch_op.drop_index(batch_op.f('ix_units_smartcard'))
        batch_op.drop_index(batch_op.f('ix_units_batch_number'))
    op.drop_table('units')
