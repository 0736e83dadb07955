"""
Encryption for stored tenant settings (Selling Partner client secret and
refresh token live inside the blob).

ENCRYPTION_KEY holds one Fernet key, or several comma-separated keys for
rotation: the first key encrypts, every key is tried when decrypting.
Without a key (development only) values pass through as plaintext.
"""

import json
import logging
from typing import Any
from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from sellersync.config import get_settings

logger = logging.getLogger(__name__)

_cipher: MultiFernet | None = None
_plaintext_warned = False


def _load_cipher() -> MultiFernet | None:
    global _cipher, _plaintext_warned
    if _cipher is not None:
        return _cipher

    settings = get_settings()
    keys = [k.strip() for k in settings.encryption_key.split(",") if k.strip()]

    if not keys:
        if settings.is_production:
            raise RuntimeError("ENCRYPTION_KEY must be set in production.")
        if not _plaintext_warned:
            logger.warning("ENCRYPTION_KEY not set: tenant settings are stored in plaintext (development only).")
            _plaintext_warned = True
        return None

    try:
        _cipher = MultiFernet([Fernet(k.encode()) for k in keys])
    except ValueError as exc:
        raise RuntimeError(f"Invalid ENCRYPTION_KEY: {exc}") from exc
    return _cipher


def reset_fernet() -> None:
    """Drop the cached cipher; call after the settings cache is cleared."""
    global _cipher, _plaintext_warned
    _cipher = None
    _plaintext_warned = False


def encrypt_value(plaintext: str | None) -> str | None:
    if plaintext is None:
        return None
    cipher = _load_cipher()
    if cipher is None:
        return plaintext
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str | None) -> str | None:
    if ciphertext is None:
        return None
    cipher = _load_cipher()
    if cipher is None:
        return ciphertext
    try:
        return cipher.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        # Rows written before a key was configured are still plaintext
        logger.warning("Stored value did not decrypt with any configured key; treating it as plaintext.")
        return ciphertext


def encrypt_json(value: Any) -> str:
    return encrypt_value(json.dumps(value))


def decrypt_json(stored: str) -> Any:
    """Raises json.JSONDecodeError when the decrypted text is not JSON."""
    return json.loads(decrypt_value(stored))

