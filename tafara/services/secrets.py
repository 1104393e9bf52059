"""Reversible encryption for personal provider keys stored on profiles.

Personal OpenRouter keys are encrypted before they are written to the
`user_profiles.api_key` column and decrypted only when the chat proxy needs
them for an outbound call. HMAC-SHA256 serves as the keystream generator so
no extra dependency is needed.

Security note: This is a pragmatic improvement over plaintext storage,
but not a substitute for dedicated secret management. Keep the master
key safe and out of version control.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import os
import struct
from hashlib import sha256
from typing import Optional

from . import models
from .settings import PROJECT_ROOT


MASTER_KEY_FILE = PROJECT_ROOT / ".secrets_key"
API_KEY_PREFIX = "sk-or-"


def _load_master_key() -> bytes:
    # Priority: env var, then file, else generate
    env_key = os.getenv("APP_SECRET_KEY")
    if env_key:
        # Allow either raw or base64
        try:
            return base64.urlsafe_b64decode(env_key.encode())
        except (binascii.Error, ValueError):
            return env_key.encode()

    if MASTER_KEY_FILE.exists():
        return MASTER_KEY_FILE.read_bytes().strip()

    key = os.urandom(32)
    try:
        MASTER_KEY_FILE.write_bytes(key)
        os.chmod(MASTER_KEY_FILE, 0o600)
    except OSError:
        # Ephemeral key: stored profile keys won't decrypt after a restart
        pass
    return key


_MASTER_KEY = _load_master_key()


def _keystream(key: bytes, nonce: bytes, length: int) -> bytes:
    out = bytearray()
    counter = 0
    while len(out) < length:
        msg = nonce + struct.pack(">I", counter)
        block = hmac.new(key, msg, sha256).digest()
        out.extend(block)
        counter += 1
    return bytes(out[:length])


def encrypt(plaintext: str) -> str:
    data = plaintext.encode("utf-8")
    nonce = os.urandom(16)
    ks = _keystream(_MASTER_KEY, nonce, len(data))
    ct = bytes([a ^ b for a, b in zip(data, ks)])
    payload = b"\x01" + nonce + ct  # versioned
    return base64.urlsafe_b64encode(payload).decode("ascii")


def decrypt(token: str) -> str:
    raw = base64.urlsafe_b64decode(token.encode("ascii"))
    if not raw or raw[0] != 1:
        raise ValueError("Unsupported secret format")
    nonce = raw[1:17]
    ct = raw[17:]
    ks = _keystream(_MASTER_KEY, nonce, len(ct))
    pt = bytes([a ^ b for a, b in zip(ct, ks)])
    return pt.decode("utf-8")


def is_valid_api_key(value: str) -> bool:
    return value.startswith(API_KEY_PREFIX) and len(value) > len(API_KEY_PREFIX)


def store_api_key(profile: models.UserProfile, value: Optional[str]) -> None:
    """Encrypt `value` onto the profile; `None` or empty clears it."""
    profile.api_key = encrypt(value) if value else None


def read_api_key(profile: models.UserProfile) -> Optional[str]:
    """Return the profile's personal key, or None if unset or unreadable."""
    if not profile.api_key:
        return None
    try:
        return decrypt(profile.api_key)
    except (ValueError, binascii.Error, UnicodeDecodeError):
        return None
