# Availability & pricing engine: decides whether a date range may be booked and what it costs.
# Pure functions over plain values; no database access, no mutation of inputs.
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Union

# Pricing unit: every started 30-day block bills one full month
BILLING_PERIOD_DAYS = 30

CANCELLED = "cancelled"


class RejectionReason(str, enum.Enum):
    LISTING_UNAVAILABLE = "ListingUnavailable"
    START_IN_PAST = "StartInPast"
    END_BEFORE_START = "EndBeforeStart"
    DATE_RANGE_CONFLICT = "DateRangeConflict"


# User-facing messages, one per rejection reason
REJECTION_MESSAGES = {
    RejectionReason.LISTING_UNAVAILABLE: "Apartment is not available",
    RejectionReason.START_IN_PAST: "Start date cannot be in the past",
    RejectionReason.END_BEFORE_START: "End date must be after start date",
    RejectionReason.DATE_RANGE_CONFLICT: "This apartment is already booked for the selected dates",
}


@dataclass(frozen=True)
class Quote:
    """Accepted range and its stepwise monthly price."""
    total_price: int
    days: int
    billed_months: int


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason

    @property
    def message(self) -> str:
        return REJECTION_MESSAGES[self.reason]


Outcome = Union[Quote, Rejection]


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Closed-interval overlap: ranges sharing an edge date conflict."""
    return a_start <= b_end and a_end >= b_start


def billed_months(start: date, end: date) -> int:
    days = (end - start).days
    # Integer ceiling division; a 1-day stay bills one month, 31 days bill two
    return -(-days // BILLING_PERIOD_DAYS)


def quote_price(monthly_price: int, start: date, end: date) -> Quote:
    months = billed_months(start, end)
    return Quote(total_price=months * monthly_price, days=(end - start).days, billed_months=months)


def _status_value(status) -> str:
    # Accept both the BookingStatus enum and raw strings
    return getattr(status, "value", status)


def _is_active(booking) -> bool:
    return _status_value(booking.status) != CANCELLED


def evaluate(
    listing,
    candidate_start: date,
    candidate_end: date,
    existing_bookings: Iterable,
    today: Optional[date] = None,
) -> Outcome:
    """
    Validate a candidate stay against a listing and its bookings, then price it.

    Checks run in order and the first failure wins:
    1. listing missing or not available  -> ListingUnavailable
    2. start before today                -> StartInPast
    3. end not after start               -> EndBeforeStart
    4. overlap with a non-cancelled booking of this listing -> DateRangeConflict

    `listing` needs `id`, `price` and `available`; bookings need `apartment_id`,
    `start_date`, `end_date` and `status`.
    """
    if listing is None or not listing.available:
        return Rejection(RejectionReason.LISTING_UNAVAILABLE)

    if today is None:
        today = date.today()
    if candidate_start < today:
        return Rejection(RejectionReason.START_IN_PAST)

    if candidate_end <= candidate_start:
        return Rejection(RejectionReason.END_BEFORE_START)

    for booking in existing_bookings:
        if booking.apartment_id != listing.id or not _is_active(booking):
            continue
        if overlaps(booking.start_date, booking.end_date, candidate_start, candidate_end):
            return Rejection(RejectionReason.DATE_RANGE_CONFLICT)

    return quote_price(listing.price, candidate_start, candidate_end)
