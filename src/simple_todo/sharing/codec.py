# src/simple_todo/sharing/codec.py

"""
Share tokens and batch fingerprints.

Token pipeline (encode):
  {schemaVersion, data, exportedAt} -> canonical JSON -> size guard -> gzip
  -> URL-safe base64 without padding.

decode() reverses it and validates the envelope. Every failure is re-raised as
InvalidImportLinkError; the precise cause stays on __cause__ and in the log.

gzip / SHA-1 run in worker threads (asyncio.to_thread) and cannot be cancelled.
ShareSession drops results that were overtaken by a newer request.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import gzip
import hashlib
import json
import logging
import zlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..errors import (
    CodecError,
    InvalidImportLinkError,
    PayloadTooLargeError,
    PersistenceCorruptionError,
    VersionMismatchError,
)
from ..tasks.task_models import (
    MAX_TIMESTAMP_MS,
    MIN_TIMESTAMP_MS,
    Task,
    normalize_tasks,
    now_ms,
    tasks_to_records,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
MAX_SHARE_BYTES = 200 * 1024


@dataclass(frozen=True, slots=True)
class DecodedShare:
    tasks: list[Task]
    exported_at: int | None


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_urlsafe_b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def from_urlsafe_b64(token: str) -> bytes:
    padded = token.strip() + "=" * (-len(token.strip()) % 4)
    try:
        std = padded.replace("-", "+").replace("_", "/")
        return base64.b64decode(std, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CodecError("token is not valid base64") from exc


def _gunzip(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise CodecError("token payload is not valid gzip data") from exc


def _pack(tasks: Sequence[Task], exported_at: int, max_bytes: int) -> bytes:
    envelope = {
        "schemaVersion": SCHEMA_VERSION,
        "data": tasks_to_records(list(tasks)),
        "exportedAt": exported_at,
    }
    raw = canonical_json(envelope).encode("utf-8")
    if len(raw) > max_bytes:
        raise PayloadTooLargeError(len(raw), max_bytes)
    return raw


def _unpack(raw: bytes) -> DecodedShare:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (ValueError, RecursionError) as exc:
        raise CodecError("token payload is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise CodecError("token payload is not an object")

    version = payload.get("schemaVersion")
    if isinstance(version, bool) or version != SCHEMA_VERSION:
        raise VersionMismatchError(version, SCHEMA_VERSION)

    data = payload.get("data")
    if not isinstance(data, list):
        raise CodecError("Invalid data format: tasks must be an array")

    try:
        tasks = normalize_tasks(data)
    except PersistenceCorruptionError as exc:
        raise CodecError(str(exc)) from exc
    except (TypeError, ValueError, OverflowError) as exc:
        raise CodecError(f"task records could not be normalized: {exc}") from exc

    exported_at = payload.get("exportedAt")
    if isinstance(exported_at, bool) or not isinstance(exported_at, int):
        exported_at = None
    elif not MIN_TIMESTAMP_MS <= exported_at < MAX_TIMESTAMP_MS:
        exported_at = None
    return DecodedShare(tasks=tasks, exported_at=exported_at)


async def encode_tasks(
    tasks: Sequence[Task],
    *,
    max_bytes: int = MAX_SHARE_BYTES,
    now: int | None = None,
) -> str:
    """Encode a batch into an opaque URL-fragment-safe token."""
    raw = _pack(tasks, now_ms() if now is None else now, max_bytes)
    compressed = await asyncio.to_thread(gzip.compress, raw)
    token = to_urlsafe_b64(compressed)
    logger.debug("Encoded %d tasks raw=%d token=%d", len(tasks), len(raw), len(token))
    return token


async def decode_tasks(token: str) -> DecodedShare:
    """Decode a share token; any failure becomes InvalidImportLinkError."""
    try:
        compressed = from_urlsafe_b64(token)
        raw = await asyncio.to_thread(_gunzip, compressed)
        return _unpack(raw)
    except (CodecError, VersionMismatchError) as exc:
        logger.warning("Share token rejected: %s", exc)
        raise InvalidImportLinkError() from exc


def _sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


async def fingerprint_tasks(tasks: Sequence[Task]) -> str:
    """Order-independent content hash of a batch (sorted by id, SHA-1 hex)."""
    ordered = sorted(tasks, key=lambda t: t.id)
    data = canonical_json(tasks_to_records(ordered)).encode("utf-8")
    return await asyncio.to_thread(_sha1_hex, data)


class ShareSession:
    """
    Wraps encode/decode/fingerprint with a request generation counter.

    Each call takes a new generation; when it finishes, the result is returned
    only if no newer call started meanwhile, otherwise None.
    """

    def __init__(self, *, max_bytes: int = MAX_SHARE_BYTES) -> None:
        self.max_bytes = max_bytes
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def _next(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int, what: str) -> bool:
        if generation != self._generation:
            logger.debug("Discarding stale %s result gen=%s latest=%s", what, generation, self._generation)
            return False
        return True

    async def encode(self, tasks: Sequence[Task]) -> str | None:
        gen = self._next()
        token = await encode_tasks(tasks, max_bytes=self.max_bytes)
        return token if self._is_current(gen, "encode") else None

    async def decode(self, token: str) -> DecodedShare | None:
        gen = self._next()
        decoded = await decode_tasks(token)
        return decoded if self._is_current(gen, "decode") else None

    async def decode_with_fingerprint(self, token: str) -> tuple[DecodedShare, str] | None:
        gen = self._next()
        decoded = await decode_tasks(token)
        fingerprint = await fingerprint_tasks(decoded.tasks)
        if not self._is_current(gen, "decode"):
            return None
        return decoded, fingerprint
