"""Policies that pair a candidate file with one bibliography record."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader

from reed.errors import MatchError
from reed.logs import get_logger
from reed.models import MetadataRecord
from reed.utils import extract_doi

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class ImportCandidate:
    """A file to import, optionally with the citation key it belongs to."""

    path: Path
    key: str | None = None


@dataclass(slots=True)
class MatchContext:
    records: Sequence[MetadataRecord]
    batch_size: int

    def find_key(self, key: str) -> MetadataRecord | None:
        folded = key.casefold()
        for record in self.records:
            if record.key.casefold() == folded:
                return record
        return None

    def known_keys(self) -> list[str]:
        return [record.key for record in self.records]


class RecordMatcher(Protocol):
    """Protocol for matching policies."""

    name: str

    def match(self, candidate: ImportCandidate, context: MatchContext) -> MetadataRecord | None:
        ...


class ExplicitKeyMatcher:
    """Uses the key given alongside the file; an unknown key is an error."""

    name = "explicit-key"

    def match(self, candidate: ImportCandidate, context: MatchContext) -> MetadataRecord | None:
        if candidate.key is None:
            return None
        record = context.find_key(candidate.key)
        if record is None:
            raise MatchError(
                f"Key {candidate.key} unknown; known keys are: {', '.join(context.known_keys()) or 'none'}"
            )
        return record


class FilenameKeyMatcher:
    """Matches files named after a citation key, e.g. ``smith2020.pdf``."""

    name = "filename-key"

    def match(self, candidate: ImportCandidate, context: MatchContext) -> MetadataRecord | None:
        return context.find_key(candidate.path.stem)


class DoiMatcher:
    """Matches a DOI found in a PDF's metadata or first page to a ``doi`` field."""

    name = "doi"

    def match(self, candidate: ImportCandidate, context: MatchContext) -> MetadataRecord | None:
        by_doi = {
            doi: record
            for record in context.records
            if (doi := extract_doi(record.get("doi") or ""))
        }
        if not by_doi or candidate.path.suffix.lower() != ".pdf":
            return None
        doi = self._pdf_doi(candidate.path)
        return by_doi.get(doi) if doi else None

    def _pdf_doi(self, path: Path) -> str | None:
        try:
            reader = PdfReader(str(path))
            info = reader.metadata or {}
            doi = extract_doi(" ".join(str(value) for value in info.values() if value))
            if doi is None and reader.pages:
                doi = extract_doi(reader.pages[0].extract_text() or "")
        except Exception as exc:  # pragma: no cover - best effort parsing
            logger.warning("match.pdf_read_failed", path=str(path), error=str(exc))
            return None
        return doi


class SingleRecordMatcher:
    """A lone record is unambiguous only when it comes with a lone file."""

    name = "single-record"

    def match(self, candidate: ImportCandidate, context: MatchContext) -> MetadataRecord | None:
        if len(context.records) == 1 and context.batch_size == 1:
            return context.records[0]
        return None


class MatcherChain:
    """Tries policies in order and returns the first match."""

    name = "chain"

    def __init__(self, matchers: Iterable[RecordMatcher]) -> None:
        self._matchers = list(matchers)

    def match(self, candidate: ImportCandidate, context: MatchContext) -> MetadataRecord | None:
        for matcher in self._matchers:
            record = matcher.match(candidate, context)
            if record is not None:
                logger.debug(
                    "match.hit",
                    matcher=matcher.name,
                    path=str(candidate.path),
                    key=record.key,
                )
                return record
        logger.debug("match.miss", path=str(candidate.path))
        return None


def default_matcher() -> MatcherChain:
    return MatcherChain(
        [
            ExplicitKeyMatcher(),
            FilenameKeyMatcher(),
            DoiMatcher(),
            SingleRecordMatcher(),
        ]
    )
