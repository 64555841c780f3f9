"""initial_schema

Revision ID: 3f1c2a7e9b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a7e9b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('vat_number', sa.TEXT(), nullable=True),
        sa.Column('sap_id', sa.TEXT(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('subject_id', sa.TEXT(), nullable=False, unique=True),
        sa.Column('email', sa.TEXT(), nullable=False, unique=True),
        sa.Column('first_name', sa.TEXT(), nullable=True),
        sa.Column('last_name', sa.TEXT(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        'user_organizations',
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column(
            'organization_id',
            sa.TEXT(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'),
            primary_key=True,
        ),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('idx_user_organizations_org', 'user_organizations', ['organization_id'])

    op.create_table(
        'credentials',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('client_id', sa.TEXT(), nullable=False),
        # AEAD ciphertext blob, never plaintext
        sa.Column('client_secret', sa.TEXT(), nullable=False),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('organization_id', sa.TEXT(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('created_by_user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('client_id', name='uq_credentials_client_id'),
    )
    op.create_index(
        'idx_credentials_org_creator', 'credentials', ['organization_id', 'created_by_user_id']
    )


def downgrade() -> None:
    op.drop_index('idx_credentials_org_creator', table_name='credentials')
    op.drop_table('credentials')
    op.drop_index('idx_user_organizations_org', table_name='user_organizations')
    op.drop_table('user_organizations')
    op.drop_table('users')
    op.drop_table('organizations')
