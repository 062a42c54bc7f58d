"""Render canonical file names from metadata and keep them collision-free.

Templates use ``%`` placeholders:

======  =====================================================
``%F``  original file stem (``%f`` lower case)
``%K``  citation key (``%k`` lower case)
``%A``  first author names joined by the separator (``%a``)
``%L``  first author last names joined by the separator (``%l``)
``%T``  title (``%t`` lower case)
``%Y``  year, ``%y`` two-digit year
``%M``  month name (``%m`` lower case)
``%E``  entry type
``%{x}`` raw value of field ``x``
``%%``  a literal percent sign
======  =====================================================

A placeholder whose field is missing renders empty. Unknown sequences are
left as written.
"""

from __future__ import annotations

import itertools
import os
import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from reed.models import MetadataRecord
from reed.utils import last_name, strip_braces

PLACEHOLDER = re.compile(r"%(?:\{([^}]*)\}|(.))", flags=re.DOTALL)
FORBIDDEN_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
WHITESPACE = re.compile(r"\s+")
EDGE_CHARS = " ._-"
MIN_NAME_LENGTH = 32

FIELD_PLACEHOLDERS = {
    "A": "author",
    "a": "author",
    "L": "author",
    "l": "author",
    "T": "title",
    "t": "title",
    "Y": "year",
    "y": "year",
    "M": "month",
    "m": "month",
}

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(slots=True, frozen=True)
class NamingOptions:
    max_author_names: int = 2
    author_separator: str = "_"
    max_length: int = 180
    substitute: str = "_"

    def __post_init__(self) -> None:
        if self.max_length < MIN_NAME_LENGTH:
            raise ValueError(
                f"max_length must be at least {MIN_NAME_LENGTH} bytes, got {self.max_length}"
            )


def month_name(value: str) -> str:
    """Map ``3``, ``mar`` or ``March`` to ``March``; other values pass through."""
    value = strip_braces(value).strip()
    if value.isdigit():
        number = int(value)
        return MONTH_NAMES[number - 1] if 1 <= number <= 12 else value
    prefix = value[:3].lower()
    for name in MONTH_NAMES:
        if name[:3].lower() == prefix:
            return name
    return value


def _two_digit_year(value: str) -> str:
    value = value.strip()
    return value[-2:] if value.isdigit() and len(value) >= 2 else value


def _authors(record: MetadataRecord, options: NamingOptions, *, last_only: bool) -> str:
    if options.max_author_names == 0:
        return ""
    names = record.authors[: options.max_author_names]
    if last_only:
        names = [last_name(name) for name in names]
    else:
        names = [strip_braces(name) for name in names]
    return options.author_separator.join(name for name in names if name)


class NameTemplate:
    """A parsed naming template bound to its rendering options."""

    def __init__(self, template: str, options: NamingOptions | None = None) -> None:
        self.template = template
        self.options = options or NamingOptions()

    def referenced_fields(self) -> set[str]:
        fields: set[str] = set()
        for match in PLACEHOLDER.finditer(self.template):
            custom, code = match.groups()
            if custom is not None:
                fields.add(custom.strip().lower())
            elif code in FIELD_PLACEHOLDERS:
                fields.add(FIELD_PLACEHOLDERS[code])
        return fields

    def provenance(self, record: MetadataRecord | None) -> dict[str, str]:
        """The subset of ``record.fields`` this template reads."""
        if record is None:
            return {}
        return {
            name: record.fields[name]
            for name in sorted(self.referenced_fields())
            if name in record.fields
        }

    def expand(self, record: MetadataRecord | None, original_stem: str = "") -> str:
        """Substitute placeholders without any filesystem clean-up."""

        def replace(match: re.Match[str]) -> str:
            custom, code = match.groups()
            if custom is not None:
                value = record.get(custom.strip()) if record else None
                return strip_braces(value or "")
            return self._expand_code(code, record, original_stem, match.group(0))

        return PLACEHOLDER.sub(replace, self.template)

    def _expand_code(
        self,
        code: str,
        record: MetadataRecord | None,
        original_stem: str,
        raw: str,
    ) -> str:
        if code == "%":
            return "%"
        if code == "F":
            return original_stem
        if code == "f":
            return original_stem.lower()
        if code not in FIELD_PLACEHOLDERS and code not in "KkE":
            return raw
        if record is None:
            return ""
        if code in "Kk":
            return record.key if code == "K" else record.key.lower()
        if code == "E":
            return record.entry_type
        if code in "AaLl":
            value = _authors(record, self.options, last_only=code in "Ll")
        else:
            field_value = record.get(FIELD_PLACEHOLDERS[code])
            if not field_value:
                return ""
            if code in "Yy":
                value = field_value if code == "Y" else _two_digit_year(field_value)
            elif code in "Mm":
                value = month_name(field_value)
            else:
                value = strip_braces(field_value)
        return value if code.isupper() else value.lower()

    def render(
        self,
        record: MetadataRecord | None,
        original_name: str = "",
        *,
        fallback: str = "document",
    ) -> tuple[str, str]:
        """Return the sanitized ``(stem, extension)`` for a file.

        Files without a record keep their original stem, as do files whose
        template renders empty. ``fallback`` covers an empty original stem.
        """
        original = Path(original_name)
        extension = sanitize_extension(original.suffix)
        stem = ""
        if record is not None:
            stem = sanitize_component(self.expand(record, original.stem), self.options.substitute)
        if not stem:
            stem = sanitize_component(original.stem, self.options.substitute)
        if not stem:
            stem = sanitize_component(fallback, self.options.substitute) or "document"
        return stem, extension


def render(
    template: str,
    record: MetadataRecord | None,
    original_name: str = "",
    options: NamingOptions | None = None,
) -> str:
    """Render a bounded, filesystem-safe candidate name for one file."""
    name_template = NameTemplate(template, options)
    stem, extension = name_template.render(record, original_name)
    return fit_name(stem, extension, name_template.options.max_length)


def sanitize_component(text: str, substitute: str = "_") -> str:
    """Make text safe to use as (part of) a single path component."""
    text = unicodedata.normalize("NFC", strip_braces(text))
    text = FORBIDDEN_CHARS.sub(substitute, text)
    text = WHITESPACE.sub(" ", text)
    return text.strip(EDGE_CHARS)


def sanitize_extension(suffix: str) -> str:
    cleaned = sanitize_component(suffix.lstrip("."), substitute="")
    cleaned = cleaned.replace(" ", "")[:16]
    return f".{cleaned}" if cleaned else ""


def _clip_bytes(text: str, max_bytes: int) -> str:
    if max_bytes <= 0:
        return ""
    clipped = text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")
    return clipped.rstrip(EDGE_CHARS) if len(clipped) < len(text) else clipped


def fit_name(stem: str, extension: str, max_length: int, suffix: str = "") -> str:
    """Join stem, disambiguator and extension within ``max_length`` UTF-8 bytes.

    Only the stem is shortened, so the extension and suffix always survive.
    """
    tail = f"{suffix}{extension}"
    clipped = _clip_bytes(stem, max_length - len(tail.encode("utf-8")))
    if not clipped:
        raise ValueError(f"No room for a name before {tail!r} within {max_length} bytes")
    return f"{clipped}{tail}"


class NameAllocator:
    """Hands out names in one directory, never the same name twice.

    A name is taken when it exists on disk or was reserved, either up front
    (names recorded in the library) or by an earlier ``allocate`` call in the
    same batch. Collisions get ``-1``, ``-2``, ... using the smallest free
    number, so the same snapshot always yields the same names.
    """

    def __init__(
        self,
        directory: Path,
        *,
        reserved: Iterable[str] = (),
        max_length: int = 180,
    ) -> None:
        self._directory = directory
        self._reserved = set(reserved)
        self._max_length = max_length

    def is_taken(self, name: str) -> bool:
        return name in self._reserved or os.path.lexists(self._directory / name)

    def allocate(self, stem: str, extension: str = "") -> str:
        for number in itertools.count():
            suffix = f"-{number}" if number else ""
            name = fit_name(stem, extension, self._max_length, suffix)
            if not self.is_taken(name):
                self._reserved.add(name)
                return name
        raise AssertionError("unreachable")

    def is_reserved(self, name: str) -> bool:
        return name in self._reserved

    def reserve(self, name: str) -> None:
        self._reserved.add(name)

    def release(self, name: str) -> None:
        self._reserved.discard(name)
