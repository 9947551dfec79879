"""Initial migration with identity, organization, ledger and history tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SYSTEM_ROLES = ('Owner', 'Admin', 'Developer')


def upgrade() -> None:
    # Organizations table
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )

    # Users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=True),
        sa.Column('star_citizen_handle', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_owner', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_org_id', 'users', ['org_id'])

    # Roles and claims
    roles_table = op.create_table(
        'roles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table(
        'user_roles',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('role_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'role_id')
    )

    op.create_table(
        'user_claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('claim_type', sa.String(100), nullable=False),
        sa.Column('claim_value', sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'claim_type', 'claim_value', name='uq_user_claims_user_type_value')
    )
    op.create_index('ix_user_claims_user_id', 'user_claims', ['user_id'])

    # Resource catalog
    op.create_table(
        'resources',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(4), nullable=False),
        sa.Column('type', sa.String(50), nullable=False, server_default=''),
        sa.Column('price_buy', sa.Float(), nullable=False, server_default='0'),
        sa.Column('price_sell', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_resources_code', 'resources', ['code'], unique=True)

    op.create_table(
        'user_resources',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('user_id', 'resource_id')
    )

    # Daily history, one row per subject per day
    op.create_table(
        'user_balance_histories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('timestamp', sa.Date(), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'timestamp', name='uq_user_balance_histories_user_day')
    )
    op.create_index('ix_user_balance_histories_user_id', 'user_balance_histories', ['user_id'])

    op.create_table(
        'resource_quantity_histories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.Date(), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'user_id', 'resource_id', 'timestamp',
            name='uq_resource_quantity_histories_user_resource_day'
        )
    )
    op.create_index('ix_resource_quantity_histories_user_id', 'resource_quantity_histories', ['user_id'])
    op.create_index('ix_resource_quantity_histories_resource_id', 'resource_quantity_histories', ['resource_id'])

    # Seed system roles
    op.bulk_insert(roles_table, [{'id': uuid.uuid4(), 'name': name} for name in SYSTEM_ROLES])


def downgrade() -> None:
    op.drop_index('ix_resource_quantity_histories_resource_id', table_name='resource_quantity_histories')
    op.drop_index('ix_resource_quantity_histories_user_id', table_name='resource_quantity_histories')
    op.drop_table('resource_quantity_histories')
    op.drop_index('ix_user_balance_histories_user_id', table_name='user_balance_histories')
    op.drop_table('user_balance_histories')
    op.drop_table('user_resources')
    op.drop_index('ix_resources_code', table_name='resources')
    op.drop_table('resources')
    op.drop_index('ix_user_claims_user_id', table_name='user_claims')
    op.drop_table('user_claims')
    op.drop_table('user_roles')
    op.drop_table('roles')
    op.drop_index('ix_users_org_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('organizations')
