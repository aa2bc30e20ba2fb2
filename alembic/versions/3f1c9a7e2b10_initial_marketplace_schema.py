"""initial_marketplace_schema

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name, *members):
    # Types are created once up front; several tables share currency and paymentstatus
    return postgresql.ENUM(*members, name=name, create_type=False)


ENUMS = [
    _enum('userrole', 'CUSTOMER', 'VENDOR', 'AGENT', 'ADMIN', 'SUBADMIN', 'SUPERADMIN'),
    _enum('userstatus', 'PENDING', 'ACTIVE', 'SUSPENDED', 'INACTIVE'),
    _enum('twofactormethod', 'TOTP', 'SMS', 'EMAIL'),
    _enum('propertytype', 'APARTMENT', 'HOUSE', 'VILLA', 'PLOT', 'LAND', 'COMMERCIAL', 'OFFICE', 'PG'),
    _enum('propertystatus', 'AVAILABLE', 'SOLD', 'RENTED', 'PENDING'),
    _enum('listingtype', 'SALE', 'RENT', 'LEASE'),
    _enum('areaunit', 'SQFT', 'SQM', 'ACRE'),
    _enum('currency', 'INR', 'USD', 'EUR', 'GBP'),
    _enum('billingperiod', 'MONTHLY', 'YEARLY', 'LIFETIME', 'ONE_TIME', 'CUSTOM'),
    _enum('subscriptionstatus', 'ACTIVE', 'EXPIRED', 'CANCELLED', 'PENDING'),
    _enum('paymentmethod', 'CREDIT_CARD', 'DEBIT_CARD', 'UPI', 'NET_BANKING', 'WALLET', 'RAZORPAY'),
    _enum('paymenttype', 'SUBSCRIPTION_PURCHASE', 'ADDON_PURCHASE', 'RENEWAL', 'UPGRADE'),
    _enum('ticketpriority', 'LOW', 'MEDIUM', 'HIGH', 'URGENT'),
    _enum('ticketstatus', 'OPEN', 'IN_PROGRESS', 'RESOLVED', 'CLOSED'),
    _enum('ticketcategory', 'GENERAL', 'TECHNICAL', 'BILLING', 'ACCOUNT', 'PROPERTY', 'OTHER'),
    _enum('notificationtype', 'PROMOTIONAL', 'INFORMATIONAL', 'ALERT', 'SYSTEM', 'REMINDER'),
    _enum('targetaudience', 'ALL_USERS', 'CUSTOMERS', 'VENDORS', 'ACTIVE_USERS', 'PREMIUM_USERS',
          'CITY_SPECIFIC', 'CUSTOM'),
    _enum('notificationstatus', 'DRAFT', 'SCHEDULED', 'SENDING', 'SENT', 'FAILED', 'CANCELLED'),
    _enum('notificationpriority', 'LOW', 'MEDIUM', 'HIGH'),
    _enum('servicecategory', 'LEGAL', 'HOME_LOANS', 'INTERIOR_DESIGN', 'PACKERS_MOVERS',
          'PROPERTY_MANAGEMENT', 'CONSTRUCTION', 'CLEANING', 'OTHER'),
    _enum('pricingtype', 'FIXED', 'HOURLY', 'PER_SQFT', 'CUSTOM'),
    _enum('bookingstatus', 'PENDING', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'REFUNDED'),
    _enum('paymentstatus', 'PENDING', 'PAID', 'FAILED', 'REFUNDED'),
    _enum('reviewtype', 'PROPERTY', 'SERVICE', 'GENERAL'),
    _enum('reviewstatus', 'PENDING', 'APPROVED', 'REJECTED'),
    _enum('promotiontype', 'FEATURED', 'PREMIUM', 'SPOTLIGHT', 'TOP_LISTING', 'BANNER'),
    _enum('promotionstatus', 'PENDING', 'APPROVED', 'REJECTED', 'ACTIVE', 'EXPIRED', 'CANCELLED'),
]
E = {enum.name: enum for enum in ENUMS}


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """
    Create the marketplace schema: accounts and security, listings,
    plans and subscriptions, support, notifications, vendor services,
    reviews and promotions.
    """
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    # Accounts and security
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('role', E['userrole'], nullable=False),
        sa.Column('status', E['userstatus'], nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('reset_token', sa.String(), nullable=True),
        sa.Column('reset_token_expires_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_city', 'users', ['city'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_status', 'users', ['status'])
    op.create_index('ix_users_reset_token', 'users', ['reset_token'])

    op.create_table(
        'login_attempts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=False),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_attempt', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', 'ip_address', name='uq_login_attempts_email_ip'),
    )
    op.create_index('ix_login_attempts_email', 'login_attempts', ['email'])
    op.create_index('ix_login_attempts_ip_address', 'login_attempts', ['ip_address'])
    op.create_index('ix_login_attempts_is_locked', 'login_attempts', ['is_locked'])

    op.create_table(
        'email_verifications',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_used', sa.Boolean(), server_default='false', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_email_verifications_user_id', 'email_verifications', ['user_id'])
    op.create_index('ix_email_verifications_user_code', 'email_verifications', ['user_id', 'code'])

    op.create_table(
        'two_factor_auth',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('secret', sa.String(), nullable=False),
        sa.Column('backup_codes', sa.JSON(), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('enabled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_used', sa.DateTime(timezone=True), nullable=True),
        sa.Column('method', E['twofactormethod'], nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_two_factor_auth_user_id', 'two_factor_auth', ['user_id'], unique=True)

    op.create_table(
        'platform_settings',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('general', sa.JSON(), nullable=False),
        sa.Column('notifications', sa.JSON(), nullable=False),
        sa.Column('security', sa.JSON(), nullable=False),
        sa.Column('payment', sa.JSON(), nullable=False),
        sa.Column('system', sa.JSON(), nullable=False),
        sa.Column('integrations', sa.JSON(), nullable=False),
        sa.Column('location', sa.JSON(), nullable=False),
        sa.Column('last_updated_by', sa.UUID(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    # Listings
    op.create_table(
        'properties',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('property_type', E['propertytype'], nullable=False),
        sa.Column('status', E['propertystatus'], nullable=False),
        sa.Column('listing_type', E['listingtype'], nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('built_up_area', sa.Float(), nullable=True),
        sa.Column('carpet_area', sa.Float(), nullable=True),
        sa.Column('plot_area', sa.Float(), nullable=True),
        sa.Column('area_unit', E['areaunit'], nullable=False),
        sa.Column('bedrooms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('bathrooms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('street', sa.String(), nullable=False),
        sa.Column('locality', sa.String(), nullable=False),
        sa.Column('city', sa.String(), nullable=False),
        sa.Column('state', sa.String(), nullable=False),
        sa.Column('pincode', sa.String(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('amenities', sa.JSON(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('owner_id', sa.UUID(), nullable=False),
        sa.Column('agent_id', sa.UUID(), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_properties_id', 'properties', ['id'])
    op.create_index('ix_properties_property_type', 'properties', ['property_type'])
    op.create_index('ix_properties_status', 'properties', ['status'])
    op.create_index('ix_properties_listing_type', 'properties', ['listing_type'])
    op.create_index('ix_properties_price', 'properties', ['price'])
    op.create_index('ix_properties_city', 'properties', ['city'])
    op.create_index('ix_properties_owner_id', 'properties', ['owner_id'])
    op.create_index('ix_properties_agent_id', 'properties', ['agent_id'])
    op.create_index('ix_properties_featured', 'properties', ['featured'])
    op.create_index('ix_properties_city_type_listing', 'properties', ['city', 'property_type', 'listing_type'])

    # Plans and subscriptions
    op.create_table(
        'plans',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('identifier', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('currency', E['currency'], nullable=False),
        sa.Column('billing_period', E['billingperiod'], nullable=False),
        sa.Column('billing_cycle_months', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('limits', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_popular', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_plans_id', 'plans', ['id'])
    op.create_index('ix_plans_identifier', 'plans', ['identifier'], unique=True)

    op.create_table(
        'addon_services',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('currency', E['currency'], nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_addon_services_id', 'addon_services', ['id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('plan_id', sa.UUID(), nullable=False),
        sa.Column('status', E['subscriptionstatus'], nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', E['currency'], nullable=False),
        sa.Column('payment_method', E['paymentmethod'], nullable=False),
        sa.Column('transaction_id', sa.String(), nullable=True),
        sa.Column('auto_renew', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('renewal_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_billing_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_plan_id', 'subscriptions', ['plan_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_end_date', 'subscriptions', ['end_date'])
    op.create_index('ix_subscriptions_user_status', 'subscriptions', ['user_id', 'status'])

    op.create_table(
        'subscription_addons',
        sa.Column('subscription_id', sa.UUID(), nullable=False),
        sa.Column('addon_id', sa.UUID(), nullable=False),
        sa.PrimaryKeyConstraint('subscription_id', 'addon_id'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['addon_id'], ['addon_services.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'subscription_payments',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('subscription_id', sa.UUID(), nullable=False),
        sa.Column('payment_type', E['paymenttype'], nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('addon_ids', sa.JSON(), nullable=False),
        sa.Column('payment_id', sa.String(), nullable=True),
        sa.Column('order_id', sa.String(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_subscription_payments_subscription_id', 'subscription_payments', ['subscription_id'])

    # Support
    op.create_table(
        'support_tickets',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('ticket_number', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('priority', E['ticketpriority'], nullable=False),
        sa.Column('status', E['ticketstatus'], nullable=False),
        sa.Column('category', E['ticketcategory'], nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('contact_email', sa.String(), nullable=False),
        sa.Column('contact_name', sa.String(), nullable=True),
        sa.Column('assigned_to', sa.UUID(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by', sa.UUID(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['resolved_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_support_tickets_id', 'support_tickets', ['id'])
    op.create_index('ix_support_tickets_ticket_number', 'support_tickets', ['ticket_number'], unique=True)
    op.create_index('ix_support_tickets_status', 'support_tickets', ['status'])
    op.create_index('ix_support_tickets_user_id', 'support_tickets', ['user_id'])
    op.create_index('ix_support_tickets_contact_email', 'support_tickets', ['contact_email'])
    op.create_index('ix_support_tickets_user_status', 'support_tickets', ['user_id', 'status'])

    op.create_table(
        'ticket_responses',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('ticket_id', sa.UUID(), nullable=False),
        sa.Column('author_id', sa.UUID(), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['ticket_id'], ['support_tickets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_ticket_responses_ticket_id', 'ticket_responses', ['ticket_id'])

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', E['notificationtype'], nullable=False),
        sa.Column('target_audience', E['targetaudience'], nullable=False),
        sa.Column('channels', sa.JSON(), nullable=False),
        sa.Column('status', E['notificationstatus'], nullable=False),
        sa.Column('is_scheduled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_by', sa.UUID(), nullable=True),
        sa.Column('failure_reason', sa.String(), nullable=True),
        sa.Column('audience_filters', sa.JSON(), nullable=False),
        sa.Column('campaign_id', sa.String(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('priority', E['notificationpriority'], nullable=False),
        sa.Column('total_recipients', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivered_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opened_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('clicked_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivery_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('open_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('click_rate', sa.Float(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['sent_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'])
    op.create_index('ix_notifications_target_audience', 'notifications', ['target_audience'])
    op.create_index('ix_notifications_sent_by', 'notifications', ['sent_by'])
    op.create_index('ix_notifications_status_created', 'notifications', ['status', 'created_at'])
    op.create_index('ix_notifications_scheduled', 'notifications', ['scheduled_date', 'status'])

    op.create_table(
        'notification_recipients',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('notification_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('delivered', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opened', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('clicked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notification_id', 'user_id', name='uq_notification_recipient'),
        sa.ForeignKeyConstraint(['notification_id'], ['notifications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_notification_recipients_notification_id', 'notification_recipients', ['notification_id'])
    op.create_index('ix_notification_recipients_user_id', 'notification_recipients', ['user_id'])

    # Vendor services and bookings
    op.create_table(
        'vendor_services',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('vendor_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', E['servicecategory'], nullable=False),
        sa.Column('pricing_type', E['pricingtype'], nullable=False),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('currency', E['currency'], nullable=False),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('availability', sa.JSON(), nullable=False),
        sa.Column('service_cities', sa.JSON(), nullable=False),
        sa.Column('online_available', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_promoted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('total_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_revenue', sa.Float(), nullable=False, server_default='0'),
        sa.Column('average_rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('completion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('statistics_updated_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_vendor_services_id', 'vendor_services', ['id'])
    op.create_index('ix_vendor_services_vendor_id', 'vendor_services', ['vendor_id'])
    op.create_index('ix_vendor_services_category', 'vendor_services', ['category'])
    op.create_index('ix_vendor_services_is_active', 'vendor_services', ['is_active'])

    op.create_table(
        'service_bookings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('service_id', sa.UUID(), nullable=False),
        sa.Column('vendor_id', sa.UUID(), nullable=False),
        sa.Column('client_id', sa.UUID(), nullable=False),
        sa.Column('property_id', sa.UUID(), nullable=True),
        sa.Column('booking_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('service_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_hours', sa.Float(), nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', E['currency'], nullable=False),
        sa.Column('status', E['bookingstatus'], nullable=False),
        sa.Column('payment_status', E['paymentstatus'], nullable=False),
        sa.Column('client_notes', sa.Text(), nullable=True),
        sa.Column('vendor_notes', sa.Text(), nullable=True),
        sa.Column('timeline', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['service_id'], ['vendor_services.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_service_bookings_id', 'service_bookings', ['id'])
    op.create_index('ix_service_bookings_service_id', 'service_bookings', ['service_id'])
    op.create_index('ix_service_bookings_vendor_id', 'service_bookings', ['vendor_id'])
    op.create_index('ix_service_bookings_client_id', 'service_bookings', ['client_id'])
    op.create_index('ix_service_bookings_status', 'service_bookings', ['status'])
    op.create_index('ix_service_bookings_service_status', 'service_bookings', ['service_id', 'status'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('vendor_id', sa.UUID(), nullable=False),
        sa.Column('client_id', sa.UUID(), nullable=False),
        sa.Column('property_id', sa.UUID(), nullable=True),
        sa.Column('service_id', sa.UUID(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('review_type', E['reviewtype'], nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('status', E['reviewstatus'], nullable=False),
        sa.Column('vendor_response', sa.Text(), nullable=True),
        sa.Column('vendor_responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('helpful_votes', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', 'client_id', 'service_id', name='uq_review_vendor_client_service'),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_review_rating_range'),
        sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['service_id'], ['vendor_services.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_reviews_id', 'reviews', ['id'])
    op.create_index('ix_reviews_vendor_id', 'reviews', ['vendor_id'])
    op.create_index('ix_reviews_client_id', 'reviews', ['client_id'])
    op.create_index('ix_reviews_service_id', 'reviews', ['service_id'])

    # Promotions
    op.create_table(
        'promotion_requests',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('property_id', sa.UUID(), nullable=False),
        sa.Column('vendor_id', sa.UUID(), nullable=False),
        sa.Column('promotion_type', E['promotiontype'], nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('requested_start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('requested_end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actual_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cost', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_status', E['paymentstatus'], nullable=False),
        sa.Column('status', E['promotionstatus'], nullable=False),
        sa.Column('approval_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.UUID(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metrics', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_promotion_requests_id', 'promotion_requests', ['id'])
    op.create_index('ix_promotion_requests_property_id', 'promotion_requests', ['property_id'])
    op.create_index('ix_promotion_requests_vendor_id', 'promotion_requests', ['vendor_id'])
    op.create_index('ix_promotion_requests_status', 'promotion_requests', ['status'])


def downgrade() -> None:
    """
    Drop every marketplace table and enum type.
    """
    for table in (
        'promotion_requests', 'reviews', 'service_bookings', 'vendor_services',
        'notification_recipients', 'notifications', 'ticket_responses', 'support_tickets',
        'subscription_payments', 'subscription_addons', 'subscriptions', 'addon_services', 'plans',
        'properties', 'platform_settings', 'two_factor_auth', 'email_verifications', 'login_attempts', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
