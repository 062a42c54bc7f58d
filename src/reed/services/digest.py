"""Content digests: SHA-256 over a file's bytes, read in fixed-size chunks."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from reed.logs import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1 << 16


def digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def digest_stream(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    hasher = hashlib.sha256()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        hasher.update(chunk)
    return hasher.hexdigest()


def sha256_file(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Hex digest of a file; memory use is bounded by ``chunk_size``."""
    with path.open("rb") as handle:
        return digest_stream(handle, chunk_size)


@dataclass(slots=True)
class DigestResult:
    path: Path
    digest: str | None = None
    error: OSError | None = None

    @property
    def ok(self) -> bool:
        return self.digest is not None


def _digest_one(path: Path) -> DigestResult:
    try:
        return DigestResult(path=path, digest=sha256_file(path))
    except OSError as exc:
        logger.warning("digest.read_failed", path=str(path), error=str(exc))
        return DigestResult(path=path, error=exc)


def digest_files(paths: Iterable[Path], *, workers: int = 1) -> list[DigestResult]:
    """Digest many files, optionally on a thread pool.

    Results come back in input order whatever order the workers finish in;
    read failures are returned on the result instead of raised.
    """
    items: Sequence[Path] = list(paths)
    if workers <= 1 or len(items) <= 1:
        return [_digest_one(path) for path in items]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_digest_one, items))
