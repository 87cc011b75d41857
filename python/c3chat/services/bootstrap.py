"""User bootstrap service.

Creates the users row on first authenticated request. Race-safe: two
concurrent first requests converge on one row.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from c3chat.db.models import User

logger = logging.getLogger(__name__)


def ensure_user(db: Session, user_id: UUID, email: str | None = None) -> User:
    """Return the user row for user_id, inserting it if missing.

    The email is refreshed when the identity provider reports a new one.
    """
    user = db.get(User, user_id)
    if user is None:
        try:
            user = User(id=user_id, email=email, free_usage_count=0)
            db.add(user)
            db.commit()
            logger.info("user_bootstrapped", extra={"user_id": str(user_id)})
            return user
        except IntegrityError:
            # Lost the race to a concurrent first request
            db.rollback()
            user = db.get(User, user_id)
            if user is None:
                raise

    if email and user.email != email:
        user.email = email
        db.commit()

    return user
