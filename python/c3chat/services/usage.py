"""Free-usage gate.

Decides, per request, whether a user may call a provider:

1. The user has a stored key for the provider -> admitted on their own key,
   the free-usage counter is untouched.
2. Otherwise, free_usage_count < limit -> admitted on the server key.
3. Otherwise -> denied (QuotaExceededError, 403).

The counter is incremented by `record_free_usage` only after a successful
generation, in the same transaction as the assistant message. The increment
is a single `UPDATE ... SET c = c + 1` so concurrent requests never lose an
update.
"""

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from c3chat.config import get_settings
from c3chat.db.models import User, UserApiKey
from c3chat.errors import ApiErrorCode, NotFoundError, QuotaExceededError
from c3chat.logging import get_logger

logger = get_logger(__name__)

AdmissionReason = Literal["own_credential", "free_quota", "quota_exceeded"]


@dataclass(frozen=True)
class Admission:
    """Outcome of the usage gate for one request."""

    allowed: bool
    uses_own_credential: bool
    reason: AdmissionReason
    free_usage_count: int


def get_free_usage_limit() -> int:
    return get_settings().free_usage_limit


def load_user(db: Session, user_id: UUID) -> User:
    """Load the user row.

    Raises:
        NotFoundError: E_USER_NOT_FOUND if the row is missing.
    """
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def has_user_credential(db: Session, user_id: UUID, provider: str) -> bool:
    stmt = select(UserApiKey.id).where(
        UserApiKey.user_id == user_id,
        UserApiKey.provider == provider,
    )
    return db.scalars(stmt).first() is not None


def admit(db: Session, user_id: UUID, provider: str, limit: int | None = None) -> Admission:
    """Evaluate the gate without side effects.

    Raises:
        NotFoundError: E_USER_NOT_FOUND if the user row is missing.
    """
    if limit is None:
        limit = get_free_usage_limit()

    user = load_user(db, user_id)
    count = user.free_usage_count

    if has_user_credential(db, user_id, provider):
        return Admission(True, True, "own_credential", count)
    if count < limit:
        return Admission(True, False, "free_quota", count)
    return Admission(False, False, "quota_exceeded", count)


def require_admission(
    db: Session, user_id: UUID, provider: str, limit: int | None = None
) -> Admission:
    """Like admit(), but a denial raises.

    Raises:
        NotFoundError: E_USER_NOT_FOUND.
        QuotaExceededError: Free quota exhausted and no own credential.
    """
    admission = admit(db, user_id, provider, limit)
    if not admission.allowed:
        logger.info(
            "usage.denied",
            user_id=str(user_id),
            provider=provider,
            free_usage_count=admission.free_usage_count,
        )
        raise QuotaExceededError()
    return admission


def record_free_usage(db: Session, user_id: UUID) -> None:
    """Atomically increment the user's free-usage counter.

    Runs inside the caller's transaction; does not commit.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(free_usage_count=User.free_usage_count + 1)
    )
    if result.rowcount == 0:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")


def reset_free_usage(db: Session, user_id: UUID) -> None:
    """Administrative reset of the counter to zero. Commits."""
    result = db.execute(update(User).where(User.id == user_id).values(free_usage_count=0))
    if result.rowcount == 0:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    db.commit()
    logger.info("usage.reset", user_id=str(user_id))
