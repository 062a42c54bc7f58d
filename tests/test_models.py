from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from reed.errors import DuplicateDigestError, DuplicatePathError
from reed.models import Library, LibraryRecord, MetadataRecord


def test_metadata_record_normalizes_names() -> None:
    record = MetadataRecord(
        key="Smith2020",
        entry_type="Article",
        fields={"Author": "Smith, John and Doe, Jane", "TITLE": "Deep Learning"},
    )

    assert record.entry_type == "article"
    assert record.get("title") == "Deep Learning"
    assert record.get("Title") == "Deep Learning"
    assert record.authors == ["Smith, John", "Doe, Jane"]
    assert record.year is None


def test_metadata_record_requires_key() -> None:
    with pytest.raises(ValidationError):
        MetadataRecord(key="", entry_type="misc")


@pytest.mark.parametrize("path", ["/abs/paper.pdf", "../outside.pdf", ""])
def test_library_record_rejects_paths_outside_root(path: str) -> None:
    with pytest.raises(ValidationError):
        LibraryRecord(digest="abc", library_path=path)


def test_library_record_defaults() -> None:
    record = LibraryRecord(digest="abc", library_path="Smith2020.pdf")

    assert record.linked_key is None
    assert record.fields == {}
    assert record.imported_at.utcoffset() == timedelta(0)


def test_library_insert_enforces_uniqueness(tmp_path: Path) -> None:
    library = Library(root=tmp_path)
    library.insert(LibraryRecord(digest="d1", library_path="a.pdf"))

    with pytest.raises(DuplicateDigestError) as excinfo:
        library.insert(LibraryRecord(digest="d1", library_path="b.pdf"))
    assert excinfo.value.existing_path == "a.pdf"

    with pytest.raises(DuplicatePathError):
        library.insert(LibraryRecord(digest="d2", library_path="a.pdf"))

    assert len(library.records) == 1
    assert library.absolute_path(library.records[0]) == tmp_path / "a.pdf"


def test_library_validation_rejects_duplicate_digests(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Library(
            root=tmp_path,
            records=[
                LibraryRecord(digest="d1", library_path="a.pdf"),
                LibraryRecord(digest="d1", library_path="b.pdf"),
            ],
        )
