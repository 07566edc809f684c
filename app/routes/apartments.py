# Apartment listing endpoints: filtered/sorted browsing with rating aggregates, plus owner CRUD.
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Set

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query as SAQuery, Session

from ..db import get_db
from .. import models, schemas
from ..errors import Conflict, InternalError, NotFound
from ..permissions import require_owner
from ..rate_limit import rate_limit
from .auth import get_current_user, get_current_user_optional
from .reviews import review_out

router = APIRouter()
logger = logging.getLogger("rento.apartments")

# Columns that cannot be cleared through a partial update
_REQUIRED_FIELDS = {"title", "price", "location", "region", "bedrooms", "bathrooms", "available"}


def listing_query(db: Session) -> SAQuery:
    """Apartments joined with their review aggregates: rows of (Apartment, rating, review_count)."""
    rating = func.coalesce(func.avg(models.Review.rating), 0).label("rating")
    review_count = func.count(models.Review.id).label("review_count")
    return (
        db.query(models.Apartment, rating, review_count)
        .outerjoin(models.Review, models.Review.apartment_id == models.Apartment.id)
        .group_by(models.Apartment.id)
    )


def favorite_ids(db: Session, user: Optional[models.User]) -> Optional[Set[int]]:
    if user is None:
        return None
    rows = db.query(models.Favorite.apartment_id).filter(models.Favorite.user_id == user.id).all()
    return {row[0] for row in rows}


def apartment_out(
    apartment: models.Apartment,
    rating,
    review_count,
    favorites: Optional[Set[int]] = None,
    model=schemas.ApartmentRead,
) -> schemas.ApartmentRead:
    item = model.model_validate(apartment)
    return item.model_copy(
        update={
            "rating": round(float(rating or 0), 1),
            "review_count": int(review_count or 0),
            "favorite": (apartment.id in favorites) if favorites is not None else None,
        }
    )


def rows_out(rows: Iterable, favorites: Optional[Set[int]]) -> List[schemas.ApartmentRead]:
    return [apartment_out(apt, rating, count, favorites) for apt, rating, count in rows]


@router.get("", response_model=schemas.ListEnvelope[schemas.ApartmentRead])
def list_apartments(
    city: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    min_price: Optional[int] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[int] = Query(None, alias="maxPrice", ge=0),
    bedrooms: Optional[int] = Query(None, ge=0),
    bathrooms: Optional[int] = Query(None, ge=0),
    available: Optional[str] = Query(None),
    sort_by: schemas.SortBy = Query("newest", alias="sortBy"),
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> schemas.ListEnvelope[schemas.ApartmentRead]:
    """
    Browse apartments.

    Filters:
    - city: case-insensitive exact match on location
    - region: case-insensitive substring
    - minPrice / maxPrice: monthly price bounds
    - bedrooms / bathrooms: minimum counts
    - available: only bookable apartments when "true" or "1"

    sortBy: newest (default), price-low, price-high, rating.
    """
    q = listing_query(db)
    if city:
        q = q.filter(func.lower(models.Apartment.location) == city.strip().lower())
    if region:
        q = q.filter(func.lower(models.Apartment.region).like(f"%{region.strip().lower()}%"))
    if min_price is not None:
        q = q.filter(models.Apartment.price >= min_price)
    if max_price is not None:
        q = q.filter(models.Apartment.price <= max_price)
    if bedrooms is not None:
        q = q.filter(models.Apartment.bedrooms >= bedrooms)
    if bathrooms is not None:
        q = q.filter(models.Apartment.bathrooms >= bathrooms)
    if available in ("true", "1"):
        q = q.filter(models.Apartment.available.is_(True))

    if sort_by == "price-low":
        q = q.order_by(models.Apartment.price.asc(), models.Apartment.id.asc())
    elif sort_by == "price-high":
        q = q.order_by(models.Apartment.price.desc(), models.Apartment.id.asc())
    elif sort_by == "rating":
        q = q.order_by(func.coalesce(func.avg(models.Review.rating), 0).desc(), models.Apartment.id.asc())
    else:
        q = q.order_by(models.Apartment.created_at.desc(), models.Apartment.id.desc())

    items = rows_out(q.all(), favorite_ids(db, user))
    return schemas.ListEnvelope[schemas.ApartmentRead](count=len(items), data=items)


@router.get("/{apartment_id}", response_model=schemas.Envelope[schemas.ApartmentDetail])
def get_apartment(
    apartment_id: int,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> schemas.Envelope[schemas.ApartmentDetail]:
    row = listing_query(db).filter(models.Apartment.id == apartment_id).first()
    if row is None:
        raise NotFound("Apartment not found")
    apartment, rating, count = row

    reviews = (
        db.query(models.Review)
        .filter(models.Review.apartment_id == apartment_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .all()
    )
    detail = apartment_out(apartment, rating, count, favorite_ids(db, user), model=schemas.ApartmentDetail)
    detail = detail.model_copy(update={"reviews": [review_out(r) for r in reviews]})
    return schemas.Envelope[schemas.ApartmentDetail](data=detail)


@router.post(
    "",
    response_model=schemas.Envelope[schemas.ApartmentRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_apartment(
    payload: schemas.ApartmentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.ApartmentRead]:
    obj = models.Apartment(owner_id=user.id, **payload.model_dump())
    db.add(obj)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("apartments.create_failed")
        raise InternalError("Failed to create apartment") from exc
    db.refresh(obj)

    logger.info("apartments.created", extra={"apartment_id": obj.id, "owner_id": user.id})
    return schemas.Envelope[schemas.ApartmentRead](
        message="Apartment created successfully",
        data=apartment_out(obj, 0, 0),
    )


@router.put(
    "/{apartment_id}",
    response_model=schemas.Envelope[schemas.ApartmentRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_apartment(
    apartment_id: int,
    payload: schemas.ApartmentUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.ApartmentRead]:
    obj = db.get(models.Apartment, apartment_id)
    if obj is None:
        raise NotFound("Apartment not found")
    require_owner(user, obj.owner_id, "Not authorized to update this apartment")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(obj, field, value)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("apartments.update_failed")
        raise InternalError("Failed to update apartment") from exc

    _, rating, count = listing_query(db).filter(models.Apartment.id == apartment_id).one()
    return schemas.Envelope[schemas.ApartmentRead](
        message="Apartment updated successfully",
        data=apartment_out(obj, rating, count),
    )


@router.delete(
    "/{apartment_id}",
    response_model=schemas.MessageResponse,
    dependencies=[Depends(rate_limit("write"))],
)
def delete_apartment(
    apartment_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.MessageResponse:
    obj = db.get(models.Apartment, apartment_id)
    if obj is None:
        raise NotFound("Apartment not found")
    require_owner(user, obj.owner_id, "Not authorized to delete this apartment")

    active = (
        db.query(models.Booking.id)
        .filter(
            models.Booking.apartment_id == apartment_id,
            models.Booking.status != models.BookingStatus.CANCELLED,
            models.Booking.end_date >= date.today(),
        )
        .first()
    )
    if active is not None:
        raise Conflict("Apartment has active bookings and cannot be deleted")

    try:
        for model in (models.Review, models.Favorite, models.Booking):
            db.query(model).filter(model.apartment_id == apartment_id).delete(synchronize_session=False)
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("apartments.delete_failed")
        raise InternalError("Failed to delete apartment") from exc

    logger.info("apartments.deleted", extra={"apartment_id": apartment_id, "owner_id": user.id})
    return schemas.MessageResponse(message="Apartment deleted successfully")
