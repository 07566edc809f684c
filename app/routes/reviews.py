# Review endpoints: one review per (user, apartment), editable and deletable by its author.
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..errors import Conflict, InternalError, NotFound
from ..permissions import require_owner
from ..rate_limit import rate_limit
from .auth import get_current_user

router = APIRouter()
logger = logging.getLogger("rento.reviews")


def review_out(review: models.Review) -> schemas.ReviewRead:
    item = schemas.ReviewRead.model_validate(review)
    return item.model_copy(
        update={
            "user_name": review.user.name if review.user else None,
            "apartment_title": review.apartment.title if review.apartment else None,
        }
    )


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("reviews.commit_failed")
        raise InternalError(failure) from exc


@router.get("/apartment/{apartment_id}", response_model=schemas.Envelope[schemas.ApartmentReviews])
def list_apartment_reviews(apartment_id: int, db: Session = Depends(get_db)) -> schemas.Envelope[schemas.ApartmentReviews]:
    if db.get(models.Apartment, apartment_id) is None:
        raise NotFound("Apartment not found")

    reviews = (
        db.query(models.Review)
        .filter(models.Review.apartment_id == apartment_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .all()
    )
    total, average = (
        db.query(func.count(models.Review.id), func.coalesce(func.avg(models.Review.rating), 0))
        .filter(models.Review.apartment_id == apartment_id)
        .one()
    )
    stats = schemas.ReviewStats(total_reviews=int(total), average_rating=round(float(average), 1))
    return schemas.Envelope[schemas.ApartmentReviews](
        data=schemas.ApartmentReviews(reviews=[review_out(r) for r in reviews], stats=stats)
    )


@router.get("/user", response_model=schemas.ListEnvelope[schemas.ReviewRead])
def list_my_reviews(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.ListEnvelope[schemas.ReviewRead]:
    reviews: List[models.Review] = (
        db.query(models.Review)
        .filter(models.Review.user_id == user.id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .all()
    )
    return schemas.ListEnvelope[schemas.ReviewRead](count=len(reviews), data=[review_out(r) for r in reviews])


@router.post(
    "",
    response_model=schemas.Envelope[schemas.ReviewRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_review(
    payload: schemas.ReviewCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.ReviewRead]:
    if db.get(models.Apartment, payload.apartment_id) is None:
        raise NotFound("Apartment not found")

    already = "You have already reviewed this apartment. Please update your existing review."
    existing = (
        db.query(models.Review.id)
        .filter(models.Review.user_id == user.id, models.Review.apartment_id == payload.apartment_id)
        .first()
    )
    if existing is not None:
        raise Conflict(already)

    review = models.Review(
        user_id=user.id,
        apartment_id=payload.apartment_id,
        rating=payload.rating,
        comment=payload.comment,
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent review for the same pair
        db.rollback()
        raise Conflict(already) from exc
    db.refresh(review)

    logger.info("reviews.created", extra={"review_id": review.id, "apartment_id": review.apartment_id, "user_id": user.id})
    return schemas.Envelope[schemas.ReviewRead](message="Review created successfully", data=review_out(review))


@router.put(
    "/{review_id}",
    response_model=schemas.Envelope[schemas.ReviewRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_review(
    review_id: int,
    payload: schemas.ReviewUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.Envelope[schemas.ReviewRead]:
    review = db.get(models.Review, review_id)
    if review is None:
        raise NotFound("Review not found")
    require_owner(user, review.user_id, "Not authorized to update this review")

    if payload.rating is not None:
        review.rating = payload.rating
    if payload.comment is not None:
        review.comment = payload.comment
    _commit(db, "Failed to update review")
    db.refresh(review)
    return schemas.Envelope[schemas.ReviewRead](message="Review updated successfully", data=review_out(review))


@router.delete(
    "/{review_id}",
    response_model=schemas.MessageResponse,
    dependencies=[Depends(rate_limit("write"))],
)
def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> schemas.MessageResponse:
    review = db.get(models.Review, review_id)
    if review is None:
        raise NotFound("Review not found")
    require_owner(user, review.user_id, "Not authorized to delete this review")

    db.delete(review)
    _commit(db, "Failed to delete review")
    return schemas.MessageResponse(message="Review deleted successfully")
