"""Encryption at rest for integration credentials in the site settings row.

Values are encrypted with AES-256-GCM under a key derived from
``ENCRYPTION_KEY`` (HKDF-SHA256). The stored format is::

    ENC:v1:<base64(nonce || ciphertext || tag)>

``decrypt`` never raises: values without the prefix are treated as legacy
plain text and returned unchanged, and anything that fails to decrypt comes
back as an empty string.
"""

import base64
import os

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from dashboard_service.config import get_settings

logger = structlog.get_logger()

_PREFIX = "ENC:v1:"
_NONCE_SIZE = 12
_KEY_SIZE = 32


def _get_key() -> bytes:
    secret = get_settings().encryption_key
    if not secret:
        raise ValueError("ENCRYPTION_KEY environment variable is not set")
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=_KEY_SIZE,
        salt=None,
        info=b"aues-dashboard-settings",
    )
    return hkdf.derive(secret.encode("utf-8"))


def encrypt(plaintext: str) -> str:
    """Encrypt ``plaintext``. Empty input encrypts to an empty string."""
    if not plaintext:
        return ""
    nonce = os.urandom(_NONCE_SIZE)
    ct = AESGCM(_get_key()).encrypt(nonce, plaintext.encode("utf-8"), None)
    return _PREFIX + base64.b64encode(nonce + ct).decode("ascii")


def decrypt(value: str | None) -> str:
    """Decrypt a value produced by :func:`encrypt`, degrading to ``""``."""
    if not value:
        return ""
    if not value.startswith(_PREFIX):
        return value

    try:
        raw = base64.b64decode(value[len(_PREFIX):].encode("ascii"), validate=True)
        if len(raw) <= _NONCE_SIZE:
            raise ValueError("ciphertext too short")
        nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        return AESGCM(_get_key()).decrypt(nonce, ct, None).decode("utf-8")
    except Exception as e:
        logger.warning("Settings field decryption failed", error_type=type(e).__name__)
        return ""
