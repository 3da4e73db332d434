"""create users and sales tables

Revision ID: 5e8a1c3d9b20
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5e8a1c3d9b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.String(length=120), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username')
    )

    op.create_table(
        'sales',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('customer_phone', sa.String(length=20), nullable=True),
        sa.Column('item_name', sa.String(length=120), nullable=False),
        sa.Column('huid', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('item_base_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('gst_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('total_price_before_discount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('final_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('weight', sa.Numeric(precision=10, scale=3), nullable=True),
        sa.Column('gold_rate', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('making_charges', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sales_owner_id'), 'sales', ['owner_id'], unique=False)
    op.create_index(op.f('ix_sales_timestamp'), 'sales', ['timestamp'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_sales_timestamp'), table_name='sales')
    op.drop_index(op.f('ix_sales_owner_id'), table_name='sales')
    op.drop_table('sales')

    op.drop_table('users')
