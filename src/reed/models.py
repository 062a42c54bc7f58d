"""Core data models used throughout reed."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reed.errors import DuplicateDigestError, DuplicatePathError
from reed.utils import split_authors


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetadataRecord(BaseModel):
    """One bibliographic entry parsed from a bibliography file."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    entry_type: str = Field(min_length=1)
    fields: dict[str, str] = Field(default_factory=dict)

    @field_validator("entry_type")
    @classmethod
    def _normalize_entry_type(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("fields")
    @classmethod
    def _normalize_field_names(cls, value: dict[str, str]) -> dict[str, str]:
        return {name.strip().lower(): text for name, text in value.items()}

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.fields.get(name.lower(), default)

    @property
    def authors(self) -> list[str]:
        return split_authors(self.fields.get("author", ""))

    @property
    def title(self) -> str | None:
        return self.fields.get("title")

    @property
    def year(self) -> str | None:
        return self.fields.get("year")


class LibraryRecord(BaseModel):
    """A file known to the library, identified by its content digest."""

    model_config = ConfigDict(frozen=True)

    digest: str = Field(min_length=1)
    library_path: str
    linked_key: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)
    source_name: str | None = None
    imported_at: datetime = Field(default_factory=_utcnow)

    @field_validator("library_path")
    @classmethod
    def _relative_path(cls, value: str) -> str:
        path = PurePosixPath(value)
        if not value or path.is_absolute() or ".." in path.parts:
            raise ValueError(f"library_path must be relative to the library root: {value!r}")
        return path.as_posix()


class Library(BaseModel):
    """All library records plus the root directory they are relative to."""

    root: Path
    records: list[LibraryRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique(self) -> "Library":
        digests: set[str] = set()
        paths: set[str] = set()
        for record in self.records:
            if record.digest in digests:
                raise ValueError(f"duplicate digest {record.digest}")
            if record.library_path in paths:
                raise ValueError(f"duplicate library path {record.library_path}")
            digests.add(record.digest)
            paths.add(record.library_path)
        return self

    def find_by_digest(self, digest: str) -> LibraryRecord | None:
        for record in self.records:
            if record.digest == digest:
                return record
        return None

    def find_by_path(self, library_path: str) -> LibraryRecord | None:
        for record in self.records:
            if record.library_path == library_path:
                return record
        return None

    def insert(self, record: LibraryRecord) -> None:
        """Add a record, enforcing one record per digest and per path."""
        existing = self.find_by_digest(record.digest)
        if existing is not None:
            raise DuplicateDigestError(record.digest, existing.library_path)
        if self.find_by_path(record.library_path) is not None:
            raise DuplicatePathError(record.library_path)
        self.records.append(record)

    def library_paths(self) -> set[str]:
        return {record.library_path for record in self.records}

    def absolute_path(self, record: LibraryRecord) -> Path:
        return self.root / record.library_path
