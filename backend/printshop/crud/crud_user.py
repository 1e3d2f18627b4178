from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..utils.auth import normalize_email


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    email = normalize_email(email)
    return (
        db.query(models.User)
        .options(joinedload(models.User.shop))
        .filter(func.lower(models.User.email) == email)
        .first()
    )
