"""Initial token catalog schema

Revision ID: 0001_initial_catalog
Revises:
Create Date: 2026-10-19

This migration adds:
1. chains registry keyed by chain_id
2. tokens keyed by (chain, contract_address) with derived family_id
3. families aggregate keyed by family_id
4. ingest_runs ledger
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_catalog'
down_revision = None
branch_labels = None
depends_on = None

VARIANT_KINDS = ('CANONICAL', 'WRAPPED', 'BRIDGED', 'DERIVATIVE', 'SYNTHETIC')


def upgrade() -> None:
    op.create_table(
        'chains',
        sa.Column('chain_id', sa.String(50), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('native_currency', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'tokens',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('symbol', sa.String(50), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('chain', sa.String(50), nullable=False),
        sa.Column('contract_address', sa.String(128), nullable=False),
        sa.Column('decimals', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.String(64), nullable=False, comment='SHA-256 of the uppercased base asset'),
        sa.Column('base_asset', sa.String(50), nullable=False),
        sa.Column('variant_kind', sa.Enum(*VARIANT_KINDS, name='variant_kind', native_enum=False, length=20), nullable=False),
        sa.Column('image_url', sa.String(500), nullable=False),
        sa.Column('is_canonical', sa.Boolean(), nullable=False),
        sa.Column('bridge_protocol', sa.String(100), nullable=True),
        sa.Column('wrapping_protocol', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('chain', 'contract_address', name='uq_tokens_chain_contract_address'),
    )
    op.create_index('ix_tokens_symbol', 'tokens', ['symbol'])
    op.create_index('ix_tokens_chain', 'tokens', ['chain'])
    op.create_index('ix_tokens_family_id', 'tokens', ['family_id'])
    op.create_index('ix_tokens_base_asset', 'tokens', ['base_asset'])
    op.create_index('ix_tokens_variant_kind', 'tokens', ['variant_kind'])
    op.create_index('ix_tokens_family_id_variant_kind', 'tokens', ['family_id', 'variant_kind'])

    op.create_table(
        'families',
        sa.Column('family_id', sa.String(64), primary_key=True),
        sa.Column('base_asset', sa.String(50), nullable=False),
        sa.Column('canonical_token_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('image_url', sa.String(500), nullable=False),
        sa.Column('total_variants', sa.Integer(), nullable=False),
        sa.Column('chains', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_families_base_asset', 'families', ['base_asset'], unique=True)

    op.create_table(
        'ingest_runs',
        sa.Column('run_id', sa.Uuid(), primary_key=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('tokens_received', sa.Integer(), nullable=False),
        sa.Column('inserted_count', sa.Integer(), nullable=False),
        sa.Column('updated_count', sa.Integer(), nullable=False),
        sa.Column('families_resolved', sa.Integer(), nullable=False),
        sa.Column('failure_count', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('ingest_runs')

    op.drop_index('ix_families_base_asset', 'families')
    op.drop_table('families')

    op.drop_index('ix_tokens_family_id_variant_kind', 'tokens')
    op.drop_index('ix_tokens_variant_kind', 'tokens')
    op.drop_index('ix_tokens_base_asset', 'tokens')
    op.drop_index('ix_tokens_family_id', 'tokens')
    op.drop_index('ix_tokens_chain', 'tokens')
    op.drop_index('ix_tokens_symbol', 'tokens')
    op.drop_table('tokens')

    op.drop_table('chains')
