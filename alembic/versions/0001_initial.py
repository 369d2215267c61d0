"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_STATUSES_SQL = "'REQUESTED', 'ACCEPTED', 'IN_PROGRESS'"
NO_OVERLAP = "bookings_no_overlap"


def no_overlap_ddl(dialect: str) -> list:
    """Statements installing the booking overlap guard for the given dialect."""
    if dialect == "postgresql":
        return [
            "CREATE EXTENSION IF NOT EXISTS btree_gist",
            f"ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP} "
            "EXCLUDE USING gist (nanny_user_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
            f"WHERE (status IN ({ACTIVE_STATUSES_SQL}))",
        ]
    if dialect == "sqlite":
        return [
            f"CREATE TRIGGER {NO_OVERLAP} BEFORE INSERT ON bookings "
            f"WHEN NEW.status IN ({ACTIVE_STATUSES_SQL}) AND EXISTS ("
            "SELECT 1 FROM bookings b WHERE b.nanny_user_id = NEW.nanny_user_id "
            f"AND b.status IN ({ACTIVE_STATUSES_SQL}) "
            "AND b.start_time < NEW.end_time AND b.end_time > NEW.start_time) "
            f"BEGIN SELECT RAISE(ABORT, '{NO_OVERLAP}'); END"
        ]
    raise NotImplementedError(f"No booking overlap guard for dialect {dialect!r}")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('role', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('fcm_token', sa.String(length=255), nullable=False, unique=True),
        sa.Column('platform', sa.String(length=10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_devices_id', 'devices', ['id'])
    op.create_index('ix_devices_user_id', 'devices', ['user_id'])

    op.create_table(
        'nanny_profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('headline', sa.String(length=200), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('hourly_rate_nis', sa.Integer(), nullable=False),
        sa.Column('years_experience', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('reviews_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_jobs', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_earnings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('hourly_rate_nis > 0', name='nanny_profiles_rate_check'),
        sa.CheckConstraint('rating >= 0 AND rating <= 5', name='nanny_profiles_rating_check'),
    )
    op.create_index('ix_nanny_profiles_id', 'nanny_profiles', ['id'])
    op.create_index('ix_nanny_profiles_city', 'nanny_profiles', ['city'])

    op.create_table(
        'nanny_languages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('nanny_profile_id', sa.Integer(), sa.ForeignKey('nanny_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('language', sa.String(length=50), nullable=False),
        sa.UniqueConstraint('nanny_profile_id', 'language', name='uq_nanny_language'),
    )
    op.create_index('ix_nanny_languages_nanny_profile_id', 'nanny_languages', ['nanny_profile_id'])

    op.create_table(
        'nanny_skills',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('nanny_profile_id', sa.Integer(), sa.ForeignKey('nanny_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('skill', sa.String(length=100), nullable=False),
        sa.UniqueConstraint('nanny_profile_id', 'skill', name='uq_nanny_skill'),
    )
    op.create_index('ix_nanny_skills_nanny_profile_id', 'nanny_skills', ['nanny_profile_id'])

    op.create_table(
        'availability',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('nanny_profile_id', sa.Integer(), sa.ForeignKey('nanny_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('from_time', sa.String(length=5), nullable=False),
        sa.Column('to_time', sa.String(length=5), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('nanny_profile_id', 'day_of_week', name='uq_availability_day'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='availability_day_check'),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('parent_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('nanny_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('hourly_rate_nis', sa.Integer(), nullable=False),
        sa.Column('total_amount_nis', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('children_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('children_ages', sa.JSON(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='bookings_time_check'),
        sa.CheckConstraint('children_count >= 1 AND children_count <= 10', name='bookings_children_check'),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_parent_user_id', 'bookings', ['parent_user_id'])
    op.create_index('ix_bookings_nanny_user_id', 'bookings', ['nanny_user_id'])
    op.create_index('ix_bookings_payment_intent_id', 'bookings', ['payment_intent_id'])
    op.create_index('bookings_nanny_interval_idx', 'bookings', ['nanny_user_id', 'start_time', 'end_time'])

    # No two active bookings of a nanny may overlap
    for statement in no_overlap_ddl(op.get_bind().dialect.name):
        op.execute(statement)

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('from_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.String(length=2000), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_messages_id', 'messages', ['id'])
    op.create_index('messages_booking_created_idx', 'messages', ['booking_id', 'created_at'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False, unique=True),
        sa.Column('reviewer_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reviewee_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(length=1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='reviews_rating_check'),
    )
    op.create_index('ix_reviews_id', 'reviews', ['id'])
    op.create_index('ix_reviews_reviewee_user_id', 'reviews', ['reviewee_user_id'])

    op.create_table(
        'earnings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False, unique=True),
        sa.Column('nanny_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount_nis', sa.Integer(), nullable=False),
        sa.Column('platform_fee', sa.Integer(), nullable=False),
        sa.Column('net_amount_nis', sa.Integer(), nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_earnings_id', 'earnings', ['id'])
    op.create_index('ix_earnings_nanny_user_id', 'earnings', ['nanny_user_id'])


def downgrade() -> None:
    op.drop_table('earnings')
    op.drop_table('reviews')
    op.drop_table('messages')
    if op.get_bind().dialect.name == "sqlite":
        op.execute(f"DROP TRIGGER IF EXISTS {NO_OVERLAP}")
    op.drop_table('bookings')
    op.drop_table('availability')
    op.drop_table('nanny_skills')
    op.drop_table('nanny_languages')
    op.drop_table('nanny_profiles')
    op.drop_table('devices')
    op.drop_table('users')
