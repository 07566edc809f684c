"""initial schema: users, apartments, bookings, reviews, favorites

Revision ID: 3c9e1a7b5d20
Revises:
Create Date: 2026-10-18 10:00:00

Notes:
- bookings.status is a VARCHAR(20) holding pending | confirmed | cancelled.
- ex_bookings_no_overlap rejects overlapping non-cancelled bookings per apartment
  (closed date ranges): a BEFORE INSERT trigger on SQLite, a btree_gist EXCLUDE
  constraint on PostgreSQL.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from app.models import (
    OVERLAP_GUARD_NAME,
    POSTGRES_OVERLAP_CONSTRAINT,
    POSTGRES_OVERLAP_EXTENSION,
    SQLITE_OVERLAP_TRIGGER,
)


# revision identifiers, used by Alembic.
revision: str = "3c9e1a7b5d20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "apartments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(length=120), nullable=False),
        sa.Column("region", sa.String(length=120), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        sa.Column("area", sa.Integer(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("available", sa.Boolean(), nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="ck_apartments_price_positive"),
    )
    op.create_index("ix_apartments_id", "apartments", ["id"])
    op.create_index("ix_apartments_owner_id", "apartments", ["owner_id"])
    op.create_index("ix_apartments_location", "apartments", ["location"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("apartment_id", sa.Integer(), sa.ForeignKey("apartments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("start_date < end_date", name="ck_bookings_range"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_apartment_id", "bookings", ["apartment_id"])
    op.create_index("ix_bookings_apartment_start", "bookings", ["apartment_id", "start_date"])
    op.create_index("ix_bookings_apartment_end", "bookings", ["apartment_id", "end_date"])
    op.create_index("ix_bookings_status", "bookings", ["status"])

    dialect = op.get_bind().dialect.name
    if dialect == "sqlite":
        op.execute(SQLITE_OVERLAP_TRIGGER)
    elif dialect == "postgresql":
        op.execute(POSTGRES_OVERLAP_EXTENSION)
        op.execute(POSTGRES_OVERLAP_CONSTRAINT)

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("apartment_id", sa.Integer(), sa.ForeignKey("apartments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "apartment_id", name="uq_reviews_user_apartment"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )
    op.create_index("ix_reviews_id", "reviews", ["id"])
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])
    op.create_index("ix_reviews_apartment_id", "reviews", ["apartment_id"])

    op.create_table(
        "favorites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("apartment_id", sa.Integer(), sa.ForeignKey("apartments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "apartment_id", name="uq_favorites_user_apartment"),
    )
    op.create_index("ix_favorites_id", "favorites", ["id"])
    op.create_index("ix_favorites_user_id", "favorites", ["user_id"])
    op.create_index("ix_favorites_apartment_id", "favorites", ["apartment_id"])


def downgrade() -> None:
    op.drop_table("favorites")
    op.drop_table("reviews")
    if op.get_bind().dialect.name == "sqlite":
        op.execute(f"DROP TRIGGER IF EXISTS {OVERLAP_GUARD_NAME}")
    op.drop_table("bookings")
    op.drop_table("apartments")
    op.drop_table("users")
