"""favorites_free_listings_vendor_profiles

Revision ID: 8d2e4b6a1c57
Revises: 3f1c9a7e2b10
Create Date: 2026-10-19 14:05:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '8d2e4b6a1c57'
down_revision: Union[str, Sequence[str], None] = '3f1c9a7e2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name, *members):
    return postgresql.ENUM(*members, name=name, create_type=False)


ENUMS = [
    _enum('businesstype', 'REAL_ESTATE_AGENT', 'PROPERTY_DEVELOPER', 'CONSTRUCTION_COMPANY', 'INTERIOR_DESIGNER',
          'LEGAL_SERVICES', 'HOME_LOAN_PROVIDER', 'PACKERS_MOVERS', 'PROPERTY_MANAGEMENT', 'OTHER'),
    _enum('approvalstatus', 'PENDING', 'APPROVED', 'REJECTED'),
]
E = {enum.name: enum for enum in ENUMS}


def upgrade() -> None:
    """
    Free listing expiry columns on properties, saved listings, and vendor
    onboarding profiles.
    """
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.add_column('properties', sa.Column('is_free_listing', sa.Boolean(), nullable=False, server_default=sa.false()))
    op.add_column('properties', sa.Column('free_listing_expires_at', sa.DateTime(timezone=True), nullable=True))
    op.add_column('properties', sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()))
    op.add_column('properties', sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True))
    op.add_column('properties', sa.Column('archived_reason', sa.String(), nullable=True))
    op.create_index('ix_properties_archived', 'properties', ['archived'])

    op.create_table(
        'favorites',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('property_id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'property_id', name='uq_favorite_user_property'),
    )
    op.create_index('ix_favorites_id', 'favorites', ['id'])
    op.create_index('ix_favorites_user_id', 'favorites', ['user_id'])
    op.create_index('ix_favorites_property_id', 'favorites', ['property_id'])

    op.create_table(
        'vendor_profiles',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('company_name', sa.String(), nullable=False),
        sa.Column('business_type', E['businesstype'], nullable=False),
        sa.Column('business_description', sa.Text(), nullable=True),
        sa.Column('license_number', sa.String(), nullable=True),
        sa.Column('gst_number', sa.String(), nullable=True),
        sa.Column('pan_number', sa.String(), nullable=True),
        sa.Column('registration_number', sa.String(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('experience_years', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('specializations', sa.JSON(), nullable=False),
        sa.Column('service_areas', sa.JSON(), nullable=False),
        sa.Column('languages', sa.JSON(), nullable=False),
        sa.Column('office_address', sa.JSON(), nullable=True),
        sa.Column('office_phone', sa.String(), nullable=True),
        sa.Column('whatsapp_number', sa.String(), nullable=True),
        sa.Column('social_media', sa.JSON(), nullable=False),
        sa.Column('approval_status', E['approvalstatus'], nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.UUID(), nullable=True),
        sa.Column('approval_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_documents', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_vendor_profiles_id', 'vendor_profiles', ['id'])
    op.create_index('ix_vendor_profiles_user_id', 'vendor_profiles', ['user_id'], unique=True)
    op.create_index('ix_vendor_profiles_approval_status', 'vendor_profiles', ['approval_status'])


def downgrade() -> None:
    op.drop_table('vendor_profiles')
    op.drop_table('favorites')

    op.drop_index('ix_properties_archived', table_name='properties')
    for column in ('archived_reason', 'archived_at', 'archived', 'free_listing_expires_at', 'is_free_listing'):
        op.drop_column('properties', column)

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
