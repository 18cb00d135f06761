"""Commit identity helpers: SHA parsing and content fingerprints."""

from __future__ import annotations

import binascii
import hashlib

from backboard.errors import CorruptHistoryError

SHA_BYTES = 20
SHORT_SHA_LEN = 9


def parse_sha(text: str) -> bytes:
    value = text.strip()
    try:
        raw = bytes.fromhex(value)
    except ValueError as exc:
        raise CorruptHistoryError(f"corrupt sha {value!r}: {exc}") from exc
    if len(raw) != SHA_BYTES:
        raise CorruptHistoryError(f"corrupt sha ({len(raw)} bytes instead of {SHA_BYTES})")
    return raw


def sha_hex(sha: bytes) -> str:
    return binascii.hexlify(sha).decode("ascii")


def short_sha(sha: bytes) -> str:
    return sha_hex(sha)[:SHORT_SHA_LEN]


def commit_fingerprint(title: str, body: str) -> bytes:
    """Hash a commit message so that cherry-picks and rebases keep the same value.

    Title and body are fed in that order with no separator.
    """
    digest = hashlib.sha1()
    digest.update(title.encode("utf-8"))
    digest.update(body.encode("utf-8"))
    return digest.digest()
