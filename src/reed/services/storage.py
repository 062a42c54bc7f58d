"""Durable storage for the library: one JSON snapshot written atomically."""

from __future__ import annotations

import copy
import fcntl
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from reed.errors import LibraryRootMismatchError, StoreCorruptError
from reed.logs import get_logger
from reed.models import Library, LibraryRecord

logger = get_logger(__name__)

STORE_VERSION = 1


class StoreFile(BaseModel):
    """On-disk layout of the store."""

    version: int = STORE_VERSION
    library_root: Path
    records: list[LibraryRecord] = Field(default_factory=list)


class LibraryStore(Protocol):
    """High-level contract for loading and persisting a library."""

    def load(self) -> Library:
        ...

    def persist(self, library: Library) -> None:
        ...


class JsonLibraryStore:
    """Whole-snapshot JSON store.

    ``persist`` writes the snapshot to a temporary file in the same directory,
    flushes it to disk and only then renames it over the previous snapshot.
    """

    def __init__(self, path: Path, library_root: Path | None = None) -> None:
        self._path = path
        self._library_root = library_root

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(f"{self._path.name}.lock")

    def load(self) -> Library:
        if not self._path.exists():
            root = self._library_root or self._path.parent
            logger.info("store.created", path=str(self._path), library_root=str(root))
            return Library(root=root)
        try:
            payload = self._path.read_bytes()
            snapshot = StoreFile.model_validate_json(payload)
            library = Library(root=snapshot.library_root, records=snapshot.records)
        except (OSError, ValidationError) as exc:
            raise StoreCorruptError(f"Cannot read library store {self._path}: {exc}") from exc
        if snapshot.version > STORE_VERSION:
            raise StoreCorruptError(
                f"Library store {self._path} has version {snapshot.version}, "
                f"newer than supported version {STORE_VERSION}"
            )
        if self._library_root is not None and not _same_path(library.root, self._library_root):
            raise LibraryRootMismatchError(
                f"Store {self._path} belongs to library {library.root}, not {self._library_root}"
            )
        logger.debug("store.loaded", path=str(self._path), records=len(library.records))
        return library

    def persist(self, library: Library) -> None:
        snapshot = StoreFile(library_root=library.root, records=library.records)
        data = snapshot.model_dump_json(indent=2).encode("utf-8")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        _fsync_directory(self._path.parent)
        logger.info("store.persisted", path=str(self._path), records=len(library.records))

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        """Exclusive lock for a whole load-mutate-persist span."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = self.lock_path.open("w")
        try:
            fcntl.flock(handle, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)
            handle.close()


class MemoryLibraryStore:
    """Keeps snapshots in memory; used where no file should be touched."""

    def __init__(self, library_root: Path, records: list[LibraryRecord] | None = None) -> None:
        self._snapshot = Library(root=library_root, records=list(records or []))
        self.persist_count = 0

    def load(self) -> Library:
        return copy.deepcopy(self._snapshot)

    def persist(self, library: Library) -> None:
        self._snapshot = copy.deepcopy(library)
        self.persist_count += 1


def load_store(store_path: Path, library_root: Path | None = None) -> Library:
    return JsonLibraryStore(store_path, library_root).load()


def persist_store(store_path: Path, library: Library) -> None:
    JsonLibraryStore(store_path).persist(library)


def _same_path(left: Path, right: Path) -> bool:
    return left.expanduser().resolve() == right.expanduser().resolve()


def _fsync_directory(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        logger.debug("store.dir_fsync_unsupported", directory=str(directory))
    finally:
        os.close(fd)
