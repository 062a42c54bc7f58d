"""Utility helpers for identifiers, author names and slugs."""

from __future__ import annotations

import re
import unicodedata

DOI_PATTERN = re.compile(r"(10\.\d{4,9}/[\w.;()/:+-]+)", flags=re.IGNORECASE)
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
AUTHOR_SEPARATOR_PATTERN = re.compile(r"\s+and\s+", flags=re.IGNORECASE)


def extract_doi(identifier: str) -> str | None:
    """Return a normalized DOI if the identifier contains one."""
    if not identifier:
        return None
    match = DOI_PATTERN.search(identifier.strip())
    if not match:
        return None
    doi = match.group(1).rstrip(".;,)")
    return doi.lower()


def slugify(value: str, max_length: int = 80) -> str:
    """Create a filesystem-safe slug."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    value = value.lower()
    value = SLUG_PATTERN.sub("-", value).strip("-")
    if not value:
        value = "item"
    return value[:max_length]


def strip_braces(value: str) -> str:
    """Drop BibTeX grouping braces, keeping their content."""
    return value.replace("{", "").replace("}", "")


def split_authors(value: str) -> list[str]:
    """Split a BibTeX ``author`` field on its ``and`` separators."""
    value = " ".join(value.split())
    if not value:
        return []
    return [name.strip() for name in AUTHOR_SEPARATOR_PATTERN.split(value) if name.strip()]


def last_name(author: str) -> str:
    """``Last, First`` and ``First Last`` both yield ``Last``."""
    author = strip_braces(author).strip()
    if "," in author:
        return author.split(",", 1)[0].strip()
    parts = author.split()
    return parts[-1] if parts else ""
