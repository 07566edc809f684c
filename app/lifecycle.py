# Booking lifecycle: create / cancel / confirm.
# Every operation takes the authenticated user explicitly and commits or rolls back as one unit.
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Dict, FrozenSet, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .availability import Rejection, evaluate
from .errors import (
    AlreadyCancelled,
    AlreadyStarted,
    BookingRejected,
    Busy,
    InternalError,
    InvalidState,
    NotFound,
    RentoError,
)
from .locks import listing_lock_key, redis_try_lock
from .permissions import is_owner, require_owner
from .store import BookingStore

logger = logging.getLogger("rento.bookings")

BOOKING_LOCK_TTL_MS = int(os.getenv("BOOKING_LOCK_TTL_MS", "5000"))

Status = models.BookingStatus

TRANSITIONS: Dict[Status, FrozenSet[Status]] = {
    Status.PENDING: frozenset({Status.CONFIRMED, Status.CANCELLED}),
    Status.CONFIRMED: frozenset({Status.CANCELLED}),
    Status.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class ContactInfo:
    name: str
    email: str
    phone: str


def can_transition(current: Status, target: Status) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: Status, target: Status) -> None:
    if not can_transition(current, target):
        if current is Status.CANCELLED:
            raise AlreadyCancelled()
        raise InvalidState(f"Cannot change booking from {current.value} to {target.value}")


def _commit(db: Session, booking: models.Booking, failure: str) -> models.Booking:
    try:
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("bookings.commit_failed")
        raise InternalError(failure) from exc
    return booking


def create_booking(
    db: Session,
    requester: models.User,
    apartment_id: int,
    start_date: date,
    end_date: date,
    contact: ContactInfo,
    today: Optional[date] = None,
) -> models.Booking:
    """
    Validate the range with the availability engine and persist a pending booking.

    Raises NotFound for an unknown apartment, BookingRejected for any engine
    rejection (nothing is written), Busy when another process holds the
    apartment's booking lock.
    """
    store = BookingStore(db)
    listing = store.get_listing(apartment_id)
    if listing is None:
        raise NotFound("Apartment not found")

    with redis_try_lock(listing_lock_key(apartment_id), ttl_ms=BOOKING_LOCK_TTL_MS) as locked:
        if not locked:
            raise Busy()
        try:
            store.lock_listing(apartment_id)
            existing = store.list_active_bookings(apartment_id)
            outcome = evaluate(listing, start_date, end_date, existing, today=today)
            if isinstance(outcome, Rejection):
                raise BookingRejected(outcome.reason)

            booking = store.insert_booking(
                models.Booking(
                    user_id=requester.id,
                    apartment_id=apartment_id,
                    start_date=start_date,
                    end_date=end_date,
                    status=Status.PENDING,
                    total_price=outcome.total_price,
                    name=contact.name,
                    email=contact.email,
                    phone=contact.phone,
                )
            )
        except BookingRejected as exc:
            db.rollback()
            logger.info(
                "bookings.rejected",
                extra={"apartment_id": apartment_id, "user_id": requester.id, "reason": exc.reason.value},
            )
            raise
        except RentoError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("bookings.create_failed")
            raise InternalError("Failed to create booking") from exc

        booking = _commit(db, booking, "Failed to create booking")

    logger.info(
        "bookings.created",
        extra={
            "booking_id": booking.id,
            "apartment_id": apartment_id,
            "user_id": requester.id,
            "months": outcome.billed_months,
            "total_price": booking.total_price,
        },
    )
    return booking


def cancel_booking(
    db: Session,
    requester: models.User,
    booking_id: int,
    today: Optional[date] = None,
) -> models.Booking:
    """Cancel the requester's own booking before its start date."""
    store = BookingStore(db)
    booking = store.get_booking(booking_id)
    # Other users' bookings are reported as missing
    if booking is None or not is_owner(requester, booking.user_id):
        raise NotFound("Booking not found")

    if booking.status is Status.CANCELLED:
        raise AlreadyCancelled()

    if today is None:
        today = date.today()
    if booking.start_date <= today:
        raise AlreadyStarted()

    ensure_transition(booking.status, Status.CANCELLED)
    try:
        store.update_booking_status(booking, Status.CANCELLED)
    except RentoError:
        db.rollback()
        raise
    booking = _commit(db, booking, "Failed to cancel booking")
    logger.info("bookings.cancelled", extra={"booking_id": booking.id, "user_id": requester.id})
    return booking


def confirm_booking(db: Session, caller: models.User, booking_id: int) -> models.Booking:
    """Confirm a pending booking; only the apartment's owner may do this."""
    store = BookingStore(db)
    booking = store.get_booking(booking_id)
    if booking is None:
        raise NotFound("Booking not found")

    listing = store.get_listing(booking.apartment_id)
    require_owner(caller, listing.owner_id if listing else None, "Only the apartment owner can confirm bookings")

    if booking.status is not Status.PENDING:
        raise InvalidState("Can only confirm pending bookings")

    ensure_transition(booking.status, Status.CONFIRMED)
    try:
        store.update_booking_status(booking, Status.CONFIRMED)
    except RentoError:
        db.rollback()
        raise
    booking = _commit(db, booking, "Failed to confirm booking")
    logger.info("bookings.confirmed", extra={"booking_id": booking.id, "owner_id": caller.id})
    return booking
