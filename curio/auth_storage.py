"""Session persistence helpers for curio.

The session token and a small user record are kept in the system keyring
under the ``curio`` service. Tokens are JWTs and can exceed per-credential
size limits on some backends (Windows Credential Manager), so a token that
fails a single write is stored as base64 chunks under ``token.part{n}`` with
a ``token.parts`` index.

Functions:
  - save_session(token: str, user: Optional[dict]) -> None
  - load_session() -> Optional[dict]  # returns {'token': '...', 'user': {...} or None}
  - clear_session() -> None
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .config import KEYRING_SERVICE, TOKEN_KEY, USER_KEY

# Keep this conservative to avoid per-credential limits on Windows Credential Manager.
_CHUNK_SIZE = 1000

logger = logging.getLogger("curio.auth_storage")


def _delete_quietly(key: str) -> None:
    try:
        keyring.delete_password(KEYRING_SERVICE, key)
    except PasswordDeleteError:
        pass


def store_chunked_value(key_base: str, value: str) -> None:
    """Store a potentially-large string as base64 chunks.

    Smaller chunk sizes are tried in turn until the backend accepts every
    part and reads it back unchanged.
    """
    delete_chunked_value(key_base)

    data = value.encode("utf-8")
    last_exc: Exception | None = None
    for chunk_size in (_CHUNK_SIZE, 512, 256, 128):
        parts = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]
        written_parts = []
        try:
            for idx, part in enumerate(parts):
                b64 = base64.b64encode(part).decode("ascii")
                part_key = f"{key_base}.part{idx}"
                keyring.set_password(KEYRING_SERVICE, part_key, b64)
                if keyring.get_password(KEYRING_SERVICE, part_key) != b64:
                    raise KeyringError(f"verification failed for {part_key}")
                written_parts.append(part_key)

            keyring.set_password(KEYRING_SERVICE, f"{key_base}.parts", str(len(parts)))
            logger.debug("stored %s in %d chunk(s) (chunk_size=%d)", key_base, len(parts), chunk_size)
            return
        except KeyringError as e:
            last_exc = e
            logger.debug("chunked write with chunk_size=%d failed: %s", chunk_size, e)
            for pk in written_parts:
                _delete_quietly(pk)
            _delete_quietly(f"{key_base}.parts")

    logger.error("all chunked write attempts failed for %s", key_base)
    raise last_exc or KeyringError("failed to store chunked value")


def read_chunked_value(key_base: str) -> Optional[str]:
    count_s = keyring.get_password(KEYRING_SERVICE, f"{key_base}.parts")
    if not count_s:
        return None
    try:
        count = int(count_s)
    except ValueError:
        logger.debug("invalid parts index for %s: %r", key_base, count_s)
        return None

    parts = []
    for i in range(count):
        b64 = keyring.get_password(KEYRING_SERVICE, f"{key_base}.part{i}")
        if b64 is None:
            # missing part -> treat as corruption
            raise KeyringError(f"missing chunk {key_base}.part{i}")
        parts.append(base64.b64decode(b64.encode("ascii")))
    return b"".join(parts).decode("utf-8")


def delete_chunked_value(key_base: str) -> None:
    count_s = keyring.get_password(KEYRING_SERVICE, f"{key_base}.parts")
    if not count_s:
        return
    try:
        count = int(count_s)
    except ValueError:
        count = 0
    for i in range(count):
        _delete_quietly(f"{key_base}.part{i}")
    _delete_quietly(f"{key_base}.parts")


def save_session(token: str, user: Optional[dict] = None) -> None:
    """Persist the session token and user record in the keyring."""
    try:
        keyring.set_password(KEYRING_SERVICE, TOKEN_KEY, token)
        delete_chunked_value(TOKEN_KEY)
    except KeyringError:
        logger.debug("single token write failed; attempting chunked storage")
        _delete_quietly(TOKEN_KEY)
        store_chunked_value(TOKEN_KEY, token)

    if user is not None:
        try:
            keyring.set_password(KEYRING_SERVICE, USER_KEY, json.dumps(user))
        except KeyringError:
            logger.debug("failed to write user record to keyring (non-fatal)")
    logger.debug("wrote session to keyring")


def load_session() -> Optional[dict]:
    """Return {'token': str, 'user': dict or None}, or None when logged out."""
    token = keyring.get_password(KEYRING_SERVICE, TOKEN_KEY)
    if not token:
        token = read_chunked_value(TOKEN_KEY)
    if not token:
        return None

    user = None
    raw_user = keyring.get_password(KEYRING_SERVICE, USER_KEY)
    if raw_user:
        try:
            user = json.loads(raw_user)
        except json.JSONDecodeError:
            logger.debug("stored user record is not valid JSON; ignoring")
    return {"token": token, "user": user}


def clear_session() -> None:
    """Remove the stored token and user record (best-effort)."""
    for key in (TOKEN_KEY, USER_KEY):
        _delete_quietly(key)
    delete_chunked_value(TOKEN_KEY)
