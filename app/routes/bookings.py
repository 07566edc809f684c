# Booking endpoints: create, list, read, cancel and confirm.
# Validation, pricing and state rules live in lifecycle.py; handlers translate HTTP <-> domain.
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import lifecycle, models, schemas
from ..errors import NotFound
from ..permissions import is_owner
from ..rate_limit import rate_limit
from .auth import get_current_user

router = APIRouter()


def booking_out(booking: models.Booking) -> schemas.BookingRead:
    """Booking row plus the apartment fields clients display next to it."""
    item = schemas.BookingRead.model_validate(booking)
    apartment = booking.apartment
    if apartment is None:
        return item
    return item.model_copy(
        update={
            "apartment_title": apartment.title,
            "location": apartment.location,
            "region": apartment.region,
            "image_url": apartment.image_url,
            "monthly_price": apartment.price,
        }
    )


@router.post(
    "",
    response_model=schemas.Envelope[schemas.BookingRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.BookingRead]:
    booking = lifecycle.create_booking(
        db,
        requester=user,
        apartment_id=payload.apartment_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        contact=lifecycle.ContactInfo(name=payload.name, email=payload.email, phone=payload.phone),
    )
    return schemas.Envelope[schemas.BookingRead](message="Booking created successfully", data=booking_out(booking))


@router.get("", response_model=schemas.ListEnvelope[schemas.BookingRead])
def list_my_bookings(
    status_filter: Optional[models.BookingStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.ListEnvelope[schemas.BookingRead]:
    q = db.query(models.Booking).filter(models.Booking.user_id == user.id)
    if status_filter is not None:
        q = q.filter(models.Booking.status == status_filter)
    items: List[models.Booking] = q.order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()
    return schemas.ListEnvelope[schemas.BookingRead](count=len(items), data=[booking_out(b) for b in items])


@router.get("/incoming", response_model=schemas.ListEnvelope[schemas.BookingRead])
def list_incoming_bookings(
    status_filter: Optional[models.BookingStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.ListEnvelope[schemas.BookingRead]:
    """Bookings made on apartments the caller owns, soonest stay first."""
    q = (
        db.query(models.Booking)
        .join(models.Apartment, models.Apartment.id == models.Booking.apartment_id)
        .filter(models.Apartment.owner_id == user.id)
    )
    if status_filter is not None:
        q = q.filter(models.Booking.status == status_filter)
    items = q.order_by(models.Booking.start_date.asc(), models.Booking.id.asc()).all()
    return schemas.ListEnvelope[schemas.BookingRead](count=len(items), data=[booking_out(b) for b in items])


@router.get("/{booking_id}", response_model=schemas.Envelope[schemas.BookingRead])
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.BookingRead]:
    booking = db.get(models.Booking, booking_id)
    if booking is None or not is_owner(user, booking.user_id):
        raise NotFound("Booking not found")
    return schemas.Envelope[schemas.BookingRead](data=booking_out(booking))


@router.put(
    "/{booking_id}/cancel",
    response_model=schemas.Envelope[schemas.BookingRead],
    dependencies=[Depends(rate_limit("write"))],
)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.BookingRead]:
    booking = lifecycle.cancel_booking(db, requester=user, booking_id=booking_id)
    return schemas.Envelope[schemas.BookingRead](message="Booking cancelled successfully", data=booking_out(booking))


@router.put(
    "/{booking_id}/confirm",
    response_model=schemas.Envelope[schemas.BookingRead],
    dependencies=[Depends(rate_limit("write"))],
)
def confirm_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.BookingRead]:
    booking = lifecycle.confirm_booking(db, caller=user, booking_id=booking_id)
    return schemas.Envelope[schemas.BookingRead](message="Booking confirmed successfully", data=booking_out(booking))
