"""Turn BibTeX text into metadata records, one entry at a time.

Splitting, ``@string`` resolution and brace removal are done by bibtexparser.
Entries it cannot parse come back as failed blocks and are reported as
``ParseError``s next to the records that did parse.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import bibtexparser
from bibtexparser.model import DuplicateBlockKeyBlock, Entry, ParsingFailedBlock
from pydantic import ValidationError

from reed.errors import DecodingError, DuplicateKeyError, ParseError
from reed.logs import get_logger
from reed.models import MetadataRecord

logger = get_logger(__name__)

MONTH_MACROS = {
    "jan": "January",
    "feb": "February",
    "mar": "March",
    "apr": "April",
    "may": "May",
    "jun": "June",
    "jul": "July",
    "aug": "August",
    "sep": "September",
    "oct": "October",
    "nov": "November",
    "dec": "December",
}


@dataclass(slots=True)
class ParseResult:
    """Records that parsed cleanly plus one error per rejected entry."""

    records: list[MetadataRecord] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)


def decode_bibliography(data: bytes) -> str:
    """Decode bibliography bytes as UTF-8, failing on the first bad byte."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodingError(
            f"Bibliography is not valid UTF-8 (byte {exc.start}: {exc.reason})"
        ) from exc
    return text.removeprefix("\ufeff")


def parse_bibliography(data: str | bytes) -> ParseResult:
    """Parse bibliography text into records.

    Malformed entries are reported in ``ParseResult.errors`` and parsing
    continues with the next entry. Invalid UTF-8 raises ``DecodingError`` and a
    citation key used twice raises ``DuplicateKeyError``.
    """
    text = decode_bibliography(data) if isinstance(data, bytes) else data
    library = bibtexparser.parse_string(text)

    duplicates = [
        block.key for block in library.failed_blocks if isinstance(block, DuplicateBlockKeyBlock)
    ]
    if duplicates:
        raise DuplicateKeyError(duplicates)

    result = ParseResult()
    for block in library.failed_blocks:
        result.errors.append(_failed_block_error(block))
    for entry in library.entries:
        try:
            result.records.append(_entry_to_record(entry))
        except ParseError as exc:
            result.errors.append(exc)
    result.errors.sort(key=lambda error: error.line)
    for error in result.errors:
        logger.warning("bibliography.entry_failed", line=error.line, error=error.message)

    _check_duplicate_keys(result.records)
    logger.debug(
        "bibliography.parsed",
        records=len(result.records),
        errors=len(result.errors),
    )
    return result


def _failed_block_error(block: ParsingFailedBlock) -> ParseError:
    message = str(block.error) or type(block.error).__name__
    return ParseError(message, raw=(block.raw or "").strip(), line=block.start_line + 1)


def _entry_to_record(entry: Entry) -> MetadataRecord:
    line = entry.start_line + 1
    raw = (entry.raw or "").strip()
    fields: dict[str, str] = {}
    for entry_field in entry.fields:
        name = entry_field.key.strip().lower()
        if name in fields:
            raise ParseError(f"Field {name!r} given twice in entry {entry.key!r}", raw, line)
        fields[name] = _clean_value(name, entry_field.value)
    try:
        return MetadataRecord(key=entry.key.strip(), entry_type=entry.entry_type, fields=fields)
    except ValidationError as exc:
        raise ParseError(
            f"Invalid entry {entry.key!r}: {exc.errors()[0]['msg']}", raw, line
        ) from exc


def _clean_value(name: str, value: object) -> str:
    text = " ".join(str(value).split())
    if name == "month":
        return MONTH_MACROS.get(text.lower(), text)
    return text


def _check_duplicate_keys(records: list[MetadataRecord]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for record in records:
        folded = record.key.casefold()
        if folded in seen:
            duplicates.append(record.key)
        seen.add(folded)
    if duplicates:
        raise DuplicateKeyError(duplicates)
