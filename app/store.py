# Persistence operations the booking lifecycle depends on.
# Wraps a request-scoped Session; callers own commit/rollback.
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .availability import RejectionReason
from .errors import BookingRejected, InternalError

logger = logging.getLogger("rento.store")

# Dialects that understand SELECT ... FOR UPDATE
_ROW_LOCK_DIALECTS = {"postgresql", "mysql", "mariadb", "oracle"}


def _is_overlap_violation(exc: IntegrityError) -> bool:
    return models.OVERLAP_GUARD_NAME in str(getattr(exc, "orig", exc))


class BookingStore:
    """
    Storage access for the booking lifecycle.

    get_listing / list_active_bookings / insert_booking / update_booking_status,
    plus lock_listing to serialize concurrent bookings of one apartment on
    databases with row locks. Overlapping inserts that slip past the application
    check are rejected by the ex_bookings_no_overlap guard and surface as
    DateRangeConflict.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_listing(self, listing_id: int) -> Optional[models.Apartment]:
        return self.db.get(models.Apartment, listing_id)

    def lock_listing(self, listing_id: int) -> None:
        dialect = self.db.get_bind().dialect.name
        if dialect not in _ROW_LOCK_DIALECTS:
            # SQLite serializes writers on the file lock; the trigger covers the rest
            return
        (
            self.db.query(models.Apartment.id)
            .filter(models.Apartment.id == listing_id)
            .with_for_update()
            .first()
        )

    def list_active_bookings(self, listing_id: int) -> List[models.Booking]:
        return (
            self.db.query(models.Booking)
            .filter(
                models.Booking.apartment_id == listing_id,
                models.Booking.status != models.BookingStatus.CANCELLED,
            )
            .order_by(models.Booking.start_date.asc())
            .all()
        )

    def get_booking(self, booking_id: int) -> Optional[models.Booking]:
        return self.db.get(models.Booking, booking_id)

    def insert_booking(self, record: models.Booking) -> models.Booking:
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as exc:
            if _is_overlap_violation(exc):
                logger.info("bookings.overlap_guard", extra={"apartment_id": record.apartment_id})
                raise BookingRejected(RejectionReason.DATE_RANGE_CONFLICT) from exc
            raise InternalError("Failed to create booking") from exc
        except SQLAlchemyError as exc:
            raise InternalError("Failed to create booking") from exc
        return record

    def update_booking_status(self, booking: models.Booking, status: models.BookingStatus) -> models.Booking:
        booking.status = status
        self.db.add(booking)
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            raise InternalError("Failed to update booking") from exc
        return booking
