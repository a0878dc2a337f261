from __future__ import annotations

"""Encryption helpers for OAuth tokens kept on ``accounts`` rows.

Google access / refresh / id tokens are stored encrypted with AES-GCM under a
key derived from the application secret. The format is:

    ENC:v1:<base64(nonce || ciphertext || tag)>

``decrypt`` passes through anything that does not carry the prefix, so rows
written before encryption was enabled still read back.
"""

import base64
import os
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from tourillo.config import settings


_PREFIX = "ENC:v1:"
_NONCE_SIZE = 12
_KEY_SIZE = 32


def _get_key() -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=_KEY_SIZE,
        salt=None,
        info=b"oauth-account-token-encryption",
    )
    return hkdf.derive(settings.secret_key.encode("utf-8"))


def encrypt(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a string value. ``None`` is passed through."""

    if plaintext is None:
        return None
    if not isinstance(plaintext, str):
        plaintext = str(plaintext)

    aesgcm = AESGCM(_get_key())
    nonce = os.urandom(_NONCE_SIZE)
    ct = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), associated_data=None)
    return _PREFIX + base64.b64encode(nonce + ct).decode("ascii")


def decrypt(value: Optional[str]) -> Optional[str]:
    """Decrypt a value produced by :func:`encrypt`.

    Values without the ``ENC:v1:`` prefix are returned unchanged. A value
    that carries the prefix but fails authentication is also returned as-is
    and logged.
    """

    if value is None:
        return None
    if not isinstance(value, str) or not value.startswith(_PREFIX):
        return value

    try:
        raw = base64.b64decode(value[len(_PREFIX):].encode("ascii"))
        if len(raw) <= _NONCE_SIZE:
            return value
        nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        pt_bytes = AESGCM(_get_key()).decrypt(nonce, ct, associated_data=None)
        return pt_bytes.decode("utf-8")
    except Exception as e:
        from tourillo.utils.logger import logger
        logger.error(f"Crypto decryption failed: {type(e).__name__}: {e}")
        return value
