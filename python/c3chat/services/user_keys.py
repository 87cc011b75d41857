"""User API key service layer.

Handles bring-your-own-key management:
- List a user's keys (safe fields only)
- Upsert by (user_id, provider) with fresh encryption
- Delete by provider (physical delete; never recreated implicitly)
- Decrypt a key for a provider call

Security invariants:
- Plaintext keys never persist beyond request scope
- Never log plaintext keys
- encrypted_key, key_nonce, master_key_version never returned to clients
"""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from c3chat.db.models import UserApiKey
from c3chat.errors import ApiErrorCode, NotFoundError
from c3chat.logging import get_logger
from c3chat.schemas.keys import UserApiKeyOut
from c3chat.services.crypto import CryptoError, decrypt_api_key, encrypt_api_key, mask_api_key

logger = get_logger(__name__)


def _to_out(key: UserApiKey) -> UserApiKeyOut:
    return UserApiKeyOut(
        provider=key.provider,
        key_fingerprint=key.key_fingerprint,
        masked_key=mask_api_key(key.key_fingerprint),
        created_at=key.created_at,
        updated_at=key.updated_at,
    )


def list_user_keys(db: Session, user_id: UUID) -> list[UserApiKeyOut]:
    """List all API keys for a user, newest first. Safe fields only."""
    stmt = (
        select(UserApiKey)
        .where(UserApiKey.user_id == user_id)
        .order_by(UserApiKey.created_at.desc())
    )
    return [_to_out(key) for key in db.scalars(stmt).all()]


def user_key_providers(db: Session, user_id: UUID) -> set[str]:
    """Providers for which the user has a stored key."""
    stmt = select(UserApiKey.provider).where(UserApiKey.user_id == user_id)
    return set(db.scalars(stmt).all())


def upsert_user_key(
    db: Session,
    user_id: UUID,
    provider: str,
    api_key: str,
) -> tuple[UserApiKeyOut, bool]:
    """Add or replace the key for a provider.

    The provider is canonical and the key already validated by the schema.
    Every upsert generates a new nonce and ciphertext.

    Returns:
        Tuple of (UserApiKeyOut, is_created).
    """
    ciphertext, nonce, version, fingerprint = encrypt_api_key(api_key)

    stmt = select(UserApiKey).where(
        UserApiKey.user_id == user_id,
        UserApiKey.provider == provider,
    )
    key = db.scalars(stmt).first()
    created = key is None

    if created:
        key = UserApiKey(
            user_id=user_id,
            provider=provider,
            encrypted_key=ciphertext,
            key_nonce=nonce,
            master_key_version=version,
            key_fingerprint=fingerprint,
        )
        db.add(key)
    else:
        key.encrypted_key = ciphertext
        key.key_nonce = nonce
        key.master_key_version = version
        key.key_fingerprint = fingerprint

    db.flush()
    db.commit()

    logger.info(
        "user_key_created" if created else "user_key_updated",
        user_id=str(user_id),
        provider=provider,
        fingerprint=fingerprint,
    )
    return _to_out(key), created


def delete_user_key(db: Session, user_id: UUID, provider: str) -> None:
    """Delete the user's key for a provider.

    Raises:
        NotFoundError: E_KEY_NOT_FOUND if no key is stored for the provider.
    """
    result = db.execute(
        delete(UserApiKey).where(
            UserApiKey.user_id == user_id,
            UserApiKey.provider == provider,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError(ApiErrorCode.E_KEY_NOT_FOUND, "API key not found")

    db.commit()
    logger.info("user_key_deleted", user_id=str(user_id), provider=provider)


def get_user_key_plaintext(db: Session, user_id: UUID, provider: str) -> str | None:
    """Decrypt the user's key for a provider, or None if there is none.

    A key that fails to decrypt (rotated master key, corrupted row) is
    treated as absent and logged.
    """
    stmt = select(UserApiKey).where(
        UserApiKey.user_id == user_id,
        UserApiKey.provider == provider,
    )
    row = db.scalars(stmt).first()
    if row is None:
        return None

    try:
        return decrypt_api_key(row.encrypted_key, row.key_nonce, row.master_key_version)
    except CryptoError as e:
        logger.warning(
            "user_key_decrypt_failed",
            user_id=str(user_id),
            provider=provider,
            error_type=type(e).__name__,
        )
        return None


def get_user_keys_plaintext(db: Session, user_id: UUID) -> dict[str, str]:
    """Decrypted keys for every provider the user has one for."""
    return {
        provider: key
        for provider in sorted(user_key_providers(db, user_id))
        if (key := get_user_key_plaintext(db, user_id, provider)) is not None
    }
