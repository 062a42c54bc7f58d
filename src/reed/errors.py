"""Exception hierarchy shared by the reed services."""

from __future__ import annotations

from collections.abc import Iterable


class ReedError(RuntimeError):
    """Base class for every error raised by reed on purpose."""


class BibliographyError(ReedError):
    """Raised when bibliography text cannot be turned into records."""


class ParseError(BibliographyError):
    """A single malformed bibliography entry.

    Parse errors are collected next to the successfully parsed records rather
    than raised, so one broken entry never hides the others.
    """

    def __init__(self, message: str, raw: str, line: int) -> None:
        super().__init__(f"line {line}: {message}")
        self.message = message
        self.raw = raw
        self.line = line


class DecodingError(BibliographyError):
    """Bibliography bytes are not valid UTF-8."""


class DuplicateKeyError(BibliographyError):
    """Two entries in one bibliography share a citation key."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = sorted(set(keys))
        super().__init__(f"Duplicate citation keys: {', '.join(self.keys)}")


class MatchError(ReedError):
    """An explicitly requested citation key is not in the bibliography."""


class StoreError(ReedError):
    """Base class for metadata store failures."""


class StoreCorruptError(StoreError):
    """An existing store file could not be read back."""


class DuplicateDigestError(StoreError):
    """The content digest already has a library record."""

    def __init__(self, digest: str, existing_path: str) -> None:
        super().__init__(f"Content {digest[:12]} already stored at {existing_path}")
        self.digest = digest
        self.existing_path = existing_path


class DuplicatePathError(StoreError):
    """Another library record already points at this path."""

    def __init__(self, library_path: str) -> None:
        super().__init__(f"Library path {library_path} is already recorded")
        self.library_path = library_path


class LibraryRootMismatchError(StoreError):
    """The store file belongs to a different library root."""
