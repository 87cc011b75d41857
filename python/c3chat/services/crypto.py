"""Encryption at rest for user-supplied provider API keys.

Keys are sealed with NaCl SecretBox (XSalsa20-Poly1305) under a master key
loaded from C3CHAT_KEY_ENCRYPTION_KEY (base64, 32 bytes). The nonce is stored
next to the ciphertext; only the last four characters of a key (its
fingerprint) ever leave this module in clear.
"""

import base64
import binascii
from functools import lru_cache

import nacl.exceptions
import nacl.utils
from nacl.secret import SecretBox

from c3chat.config import get_settings
from c3chat.logging import get_logger

logger = get_logger(__name__)

NONCE_SIZE = SecretBox.NONCE_SIZE
MASTER_KEY_SIZE = SecretBox.KEY_SIZE

CURRENT_MASTER_KEY_VERSION = 1


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""

    pass


@lru_cache(maxsize=1)
def _get_box() -> SecretBox:
    """Build the SecretBox from the configured master key (cached)."""
    key_b64 = get_settings().c3chat_key_encryption_key
    if not key_b64:
        raise CryptoError("C3CHAT_KEY_ENCRYPTION_KEY is not set")

    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError("C3CHAT_KEY_ENCRYPTION_KEY is not valid base64") from e

    if len(key) != MASTER_KEY_SIZE:
        raise CryptoError(
            f"C3CHAT_KEY_ENCRYPTION_KEY must be {MASTER_KEY_SIZE} bytes, got {len(key)} bytes"
        )

    return SecretBox(key)


def clear_master_key_cache() -> None:
    """Forget the cached master key (tests, key rotation)."""
    _get_box.cache_clear()


def compute_key_fingerprint(api_key: str) -> str:
    """Last 4 characters of the key, safe for display and logs."""
    if len(api_key) < 4:
        return api_key
    return api_key[-4:]


def mask_api_key(fingerprint: str) -> str:
    return "*" * 8 + fingerprint


def encrypt_api_key(plaintext: str) -> tuple[bytes, bytes, int, str]:
    """Encrypt an API key for storage.

    Returns:
        Tuple of (ciphertext, nonce, master_key_version, fingerprint).

    Raises:
        CryptoError: If the master key is missing or invalid.
    """
    box = _get_box()
    nonce = nacl.utils.random(NONCE_SIZE)
    # encrypt() prepends the nonce; it is stored in its own column
    ciphertext = box.encrypt(plaintext.encode("utf-8"), nonce).ciphertext
    return ciphertext, nonce, CURRENT_MASTER_KEY_VERSION, compute_key_fingerprint(plaintext)


def decrypt_api_key(ciphertext: bytes, nonce: bytes, version: int) -> str:
    """Decrypt an API key from storage.

    Raises:
        CryptoError: On unknown key version, wrong key, or tampered data.
    """
    if version != CURRENT_MASTER_KEY_VERSION:
        raise CryptoError(f"Unknown key version: {version}")
    if len(nonce) != NONCE_SIZE:
        raise CryptoError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    try:
        plaintext = _get_box().decrypt(ciphertext, nonce)
    except nacl.exceptions.CryptoError as e:
        logger.error("decryption_failed")
        raise CryptoError("Decryption failed") from e

    return plaintext.decode("utf-8")
