# Single ownership predicate shared by booking, listing and review mutations.
from __future__ import annotations

from typing import Optional

from . import models
from .errors import Forbidden


def is_owner(user: Optional[models.User], owner_id: Optional[int]) -> bool:
    # Unowned records (owner_id NULL) belong to nobody
    return user is not None and owner_id is not None and owner_id == user.id


def require_owner(user: models.User, owner_id: Optional[int], message: str = "Not authorized") -> None:
    if not is_owner(user, owner_id):
        raise Forbidden(message)
