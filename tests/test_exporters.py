from reed.exporters import export_bibtex, record_to_bibtex
from reed.models import MetadataRecord
from reed.services.bibliography import parse_bibliography


def _sample_record() -> MetadataRecord:
    return MetadataRecord(
        key="lovelace2021",
        entry_type="article",
        fields={
            "doi": "10.1000/xyz123",
            "title": "Sample {Study}",
            "author": "Lovelace, Ada",
            "journal": "Journal of Tests",
            "year": "2021",
            "volume": "7",
        },
    )


def test_bibtex_export_contains_expected_fields() -> None:
    result = record_to_bibtex(_sample_record())

    assert result.startswith("@article{lovelace2021,\n  author = {Lovelace, Ada},")
    assert "  volume = {7}" in result
    assert result.endswith("\n}")


def test_exported_bibtex_parses_back() -> None:
    record = _sample_record()
    text = export_bibtex([record, MetadataRecord(key="other", entry_type="misc", fields={"note": "x"})])

    parsed = parse_bibliography(text)

    assert parsed.errors == []
    assert parsed.records[0] == record
    assert parsed.records[1].fields == {"note": "x"}


def test_record_without_fields_renders_key_only() -> None:
    assert record_to_bibtex(MetadataRecord(key="bare", entry_type="misc")) == "@misc{bare}"
