# Profile and favorites endpoints for the authenticated user.
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..errors import Conflict, InternalError, NotFound
from ..rate_limit import rate_limit
from .apartments import listing_query, rows_out
from .auth import get_current_user

router = APIRouter()
logger = logging.getLogger("rento.users")


@router.get("/profile", response_model=schemas.Envelope[schemas.ProfileRead])
def get_profile(user: models.User = Depends(get_current_user)) -> schemas.Envelope[schemas.ProfileRead]:
    return schemas.Envelope[schemas.ProfileRead](data=schemas.ProfileRead.model_validate(user))


@router.put(
    "/profile",
    response_model=schemas.Envelope[schemas.ProfileRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.ProfileRead]:
    if payload.name is not None:
        user.name = payload.name
    if payload.phone is not None:
        user.phone = payload.phone or None
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError("Failed to update profile") from exc
    db.refresh(user)
    return schemas.Envelope[schemas.ProfileRead](
        message="Profile updated successfully",
        data=schemas.ProfileRead.model_validate(user),
    )


# ----------------
# Favorites
# ----------------
def _favorite(db: Session, user: models.User, apartment_id: int):
    return (
        db.query(models.Favorite)
        .filter(models.Favorite.user_id == user.id, models.Favorite.apartment_id == apartment_id)
        .first()
    )


def _require_apartment(db: Session, apartment_id: int) -> None:
    if db.get(models.Apartment, apartment_id) is None:
        raise NotFound("Apartment not found")


@router.get("/favorites", response_model=schemas.ListEnvelope[schemas.ApartmentRead])
def list_favorites(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.ListEnvelope[schemas.ApartmentRead]:
    rows = (
        listing_query(db)
        .join(models.Favorite, models.Favorite.apartment_id == models.Apartment.id)
        .filter(models.Favorite.user_id == user.id)
        .group_by(models.Favorite.id)
        .order_by(models.Favorite.created_at.desc(), models.Favorite.id.desc())
        .all()
    )
    items = rows_out(rows, {apt.id for apt, _, _ in rows})
    return schemas.ListEnvelope[schemas.ApartmentRead](count=len(items), data=items)


@router.post(
    "/favorites/{apartment_id}",
    response_model=schemas.MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def add_favorite(
    apartment_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.MessageResponse:
    _require_apartment(db, apartment_id)
    db.add(models.Favorite(user_id=user.id, apartment_id=apartment_id))
    try:
        db.commit()
    except IntegrityError as exc:
        # uq_favorites_user_apartment
        db.rollback()
        raise Conflict("Already in favorites") from exc
    return schemas.MessageResponse(message="Added to favorites")


@router.delete(
    "/favorites/{apartment_id}",
    response_model=schemas.MessageResponse,
    dependencies=[Depends(rate_limit("write"))],
)
def remove_favorite(
    apartment_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.MessageResponse:
    fav = _favorite(db, user, apartment_id)
    if fav is None:
        raise NotFound("Favorite not found")
    db.delete(fav)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError("Failed to remove favorite") from exc
    return schemas.MessageResponse(message="Removed from favorites")


@router.post(
    "/favorites/{apartment_id}/toggle",
    response_model=schemas.Envelope[bool],
    dependencies=[Depends(rate_limit("write"))],
)
def toggle_favorite(
    apartment_id: int,
    response: Response,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[bool]:
    """Flip membership; `data` is the new state (true = now a favorite). 201 when added."""
    _require_apartment(db, apartment_id)
    fav = _favorite(db, user, apartment_id)
    if fav is None:
        db.add(models.Favorite(user_id=user.id, apartment_id=apartment_id))
        added, message = True, "Added to favorites"
    else:
        db.delete(fav)
        added, message = False, "Removed from favorites"
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Already in favorites") from exc

    if added:
        response.status_code = status.HTTP_201_CREATED
    return schemas.Envelope[bool](message=message, data=added)
