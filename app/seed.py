# Sample apartments inserted into an empty database so a fresh install has something to browse.
from __future__ import annotations

import logging
import os
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models
from .db import SessionLocal
from .redis_client import truthy

logger = logging.getLogger("rento.seed")

SEED_APARTMENTS: List[dict] = [
    {
        "title": "Modern Apartment in New Borg El-Arab",
        "description": "Quiet furnished 120 m2 apartment close to everyday services, ready to move in.",
        "price": 8000,
        "location": "Alexandria",
        "region": "New Borg El-Arab",
        "bedrooms": 2,
        "bathrooms": 1,
        "area": 120,
        "lat": 31.2001,
        "lng": 29.9187,
        "available": False,
        "image_url": "https://images.unsplash.com/photo-1568605114967-8130f3a36994?w=500",
    },
    {
        "title": "Spacious Flat in Heliopolis",
        "description": "Beautiful spacious apartment in the heart of Heliopolis with modern amenities.",
        "price": 12000,
        "location": "Cairo",
        "region": "Heliopolis",
        "bedrooms": 3,
        "bathrooms": 2,
        "area": 150,
        "lat": 30.0444,
        "lng": 31.2357,
        "available": True,
        "image_url": "https://images.unsplash.com/photo-1570129477492-45c003edd2be?w=500",
    },
    {
        "title": "Cozy Home in Banha",
        "description": "Comfortable family apartment with great neighborhood.",
        "price": 10000,
        "location": "Qalyubia",
        "region": "Banha",
        "bedrooms": 2,
        "bathrooms": 2,
        "area": 130,
        "lat": 30.4658,
        "lng": 31.1844,
        "available": True,
        "image_url": "https://images.unsplash.com/photo-1580587771525-78b9dba3b914?w=500",
    },
    {
        "title": "Luxury Apartment in Heliopolis",
        "description": "Premium luxury apartment with high-end finishes.",
        "price": 15000,
        "location": "Cairo",
        "region": "Heliopolis",
        "bedrooms": 3,
        "bathrooms": 2,
        "area": 180,
        "lat": 30.0888,
        "lng": 31.3123,
        "available": True,
        "image_url": "https://images.unsplash.com/photo-1564013799919-ab600027ffc6?w=500",
    },
    {
        "title": "Family Home in 6th of October",
        "description": "Perfect for families, close to schools and amenities.",
        "price": 11000,
        "location": "Giza",
        "region": "6th of October",
        "bedrooms": 2,
        "bathrooms": 1,
        "area": 140,
        "lat": 29.9787,
        "lng": 31.0087,
        "available": True,
        "image_url": "https://images.unsplash.com/photo-1600596542815-ffad4c1539a9?w=500",
    },
    {
        "title": "Premium Villa in Smouha",
        "description": "Elegant villa with garden in prestigious Smouha area.",
        "price": 13000,
        "location": "Alexandria",
        "region": "Smouha",
        "bedrooms": 4,
        "bathrooms": 3,
        "area": 200,
        "lat": 31.2156,
        "lng": 29.9553,
        "available": True,
        "image_url": "https://images.unsplash.com/photo-1600585154340-be6161a56a0c?w=500",
    },
]


def seeding_enabled() -> bool:
    return truthy(os.getenv("RENTO_SEED_LISTINGS", "true"))


def seed_apartments(db: Optional[Session] = None) -> int:
    """
    Insert the sample apartments (unowned) when the table is empty.

    Accepts an optional Session; otherwise opens and closes its own.
    Returns the number of apartments inserted (0 when data already exists).
    """
    created_session = False
    if db is None:
        db = SessionLocal()
        created_session = True

    try:
        if db.query(models.Apartment.id).first() is not None:
            return 0
        for row in SEED_APARTMENTS:
            db.add(models.Apartment(owner_id=None, **row))
        db.commit()
        logger.info("Seeded %d sample apartments", len(SEED_APARTMENTS))
        return len(SEED_APARTMENTS)
    except Exception:
        db.rollback()
        raise
    finally:
        if created_session:
            db.close()
