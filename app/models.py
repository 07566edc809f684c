# SQLAlchemy ORM models for the marketplace tables (users, apartments, bookings, reviews, favorites).
# Keep business logic out of models; booking rules live in availability.py and lifecycle.py.
import enum

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import declarative_mixin, relationship

from .db import Base


@declarative_mixin
class TimestampMixin:
    """Common UTC-aware timestamps automatically managed by the database.

    - created_at: set on insert
    - updated_at: set on insert and updated on each modification
    """
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class User(Base, TimestampMixin):
    """Marketplace account. Any user may list apartments, book, review and favorite."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(50), nullable=True)
    password_hash = Column(String(255), nullable=False)


class Apartment(Base, TimestampMixin):
    """Rentable listing. Seed listings have no owner."""
    __tablename__ = "apartments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Monthly rent in the smallest currency unit
    price = Column(Integer, nullable=False)
    location = Column(String(120), nullable=False, index=True)
    region = Column(String(120), nullable=False)
    address = Column(String(255), nullable=True)
    bedrooms = Column(Integer, nullable=False, default=1)
    bathrooms = Column(Integer, nullable=False, default=1)
    area = Column(Integer, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    available = Column(Boolean, nullable=False, default=True)
    image_url = Column(String(500), nullable=True)

    owner = relationship("User")

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_apartments_price_positive"),
    )


class Booking(Base, TimestampMixin):
    """Reservation of an apartment for a closed date range.

    Status transitions:
    pending -> confirmed -> cancelled
       └──────────────────> cancelled

    name/email/phone are a contact snapshot taken at booking time.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    apartment_id = Column(Integer, ForeignKey("apartments.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    total_price = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)

    apartment = relationship("Apartment")

    # Overlap lookups scan (apartment_id, start_date/end_date)
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_bookings_range"),
        Index("ix_bookings_apartment_start", "apartment_id", "start_date"),
        Index("ix_bookings_apartment_end", "apartment_id", "end_date"),
        Index("ix_bookings_status", "status"),
    )


class Review(Base, TimestampMixin):
    """Rating (1-5) and optional comment; one per (user, apartment)."""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    apartment_id = Column(Integer, ForeignKey("apartments.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    user = relationship("User")
    apartment = relationship("Apartment")

    __table_args__ = (
        UniqueConstraint("user_id", "apartment_id", name="uq_reviews_user_apartment"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )


class Favorite(Base):
    """Membership record: the user has favorited the apartment."""
    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    apartment_id = Column(Integer, ForeignKey("apartments.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "apartment_id", name="uq_favorites_user_apartment"),
    )


# Database-level guard against overlapping non-cancelled bookings for the same apartment.
# The application checks first; these close the check-then-insert race across processes.
OVERLAP_GUARD_NAME = "ex_bookings_no_overlap"

SQLITE_OVERLAP_TRIGGER = f"""
CREATE TRIGGER IF NOT EXISTS {OVERLAP_GUARD_NAME}
BEFORE INSERT ON bookings
FOR EACH ROW WHEN NEW.status != 'cancelled'
BEGIN
    SELECT RAISE(ABORT, '{OVERLAP_GUARD_NAME}')
    WHERE EXISTS (
        SELECT 1 FROM bookings
        WHERE apartment_id = NEW.apartment_id
          AND status != 'cancelled'
          AND start_date <= NEW.end_date
          AND end_date >= NEW.start_date
    );
END
"""

POSTGRES_OVERLAP_EXTENSION = "CREATE EXTENSION IF NOT EXISTS btree_gist"

POSTGRES_OVERLAP_CONSTRAINT = (
    f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_GUARD_NAME} "
    "EXCLUDE USING gist (apartment_id WITH =, daterange(start_date, end_date, '[]') WITH &&) "
    "WHERE (status <> 'cancelled')"
)

event.listen(Booking.__table__, "after_create", DDL(SQLITE_OVERLAP_TRIGGER).execute_if(dialect="sqlite"))
event.listen(Booking.__table__, "after_create", DDL(POSTGRES_OVERLAP_EXTENSION).execute_if(dialect="postgresql"))
event.listen(Booking.__table__, "after_create", DDL(POSTGRES_OVERLAP_CONSTRAINT).execute_if(dialect="postgresql"))
