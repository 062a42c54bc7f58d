"""Citation export helpers."""

from __future__ import annotations

from collections.abc import Iterable

from reed.models import MetadataRecord

FIELD_ORDER = ("author", "title", "journal", "booktitle", "year", "month", "doi")


def export_bibtex(records: Iterable[MetadataRecord]) -> str:
    entries = [record_to_bibtex(record) for record in records]
    return "\n\n".join(entries)


def record_to_bibtex(record: MetadataRecord) -> str:
    ordered = [name for name in FIELD_ORDER if name in record.fields]
    ordered += sorted(name for name in record.fields if name not in FIELD_ORDER)
    body = ",\n".join(
        f"  {name} = {{{record.fields[name]}}}" for name in ordered if record.fields[name]
    )
    if not body:
        return f"@{record.entry_type}{{{record.key}}}"
    return f"@{record.entry_type}{{{record.key},\n{body}\n}}"
