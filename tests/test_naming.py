from pathlib import Path

import pytest

from reed.models import MetadataRecord
from reed.services.naming import (
    NameAllocator,
    NameTemplate,
    NamingOptions,
    fit_name,
    month_name,
    render,
    sanitize_component,
)


def _record(**fields: str) -> MetadataRecord:
    base = {
        "author": "Smith, John and Doe, Jane and Roe, Richard",
        "title": "Deep {Learning}: A Survey",
        "year": "2020",
        "month": "mar",
        "journal": "J. Tests",
    }
    base.update(fields)
    return MetadataRecord(key="Smith2020", entry_type="article", fields=base)


@pytest.mark.parametrize(
    ("template", "expected"),
    [
        ("%L-%Y-%T", "Smith_Doe-2020-Deep Learning_ A Survey.pdf"),
        ("%k_%y_%m_%E", "smith2020_20_march_article.pdf"),
        ("%A", "Smith, John_Doe, Jane.pdf"),
        ("%l %t", "smith_doe deep learning_ a survey.pdf"),
        ("%{journal} %{missing}", "J. Tests.pdf"),
        ("%E%%%Q", "article%%Q.pdf"),
        ("%F-%K", "scan 01-Smith2020.pdf"),
    ],
)
def test_render_placeholders(template: str, expected: str) -> None:
    assert render(template, _record(), "scan 01.pdf") == expected


def test_missing_fields_render_empty() -> None:
    record = MetadataRecord(key="anon", entry_type="misc", fields={"title": "Notes"})

    assert render("%L%Y-%T", record, "x.pdf") == "Notes.pdf"
    assert render("%L%Y", record, "x.pdf") == "x.pdf"


def test_author_count_and_separator_options() -> None:
    options = NamingOptions(max_author_names=3, author_separator=" & ")

    assert render("%L", _record(), "a.pdf", options) == "Smith & Doe & Roe.pdf"
    assert render("%L", _record(), "a.pdf", NamingOptions(max_author_names=1)) == "Smith.pdf"


def test_unmatched_file_keeps_original_stem() -> None:
    assert render("%L-%Y", None, "scan 01.pdf") == "scan 01.pdf"
    assert render("[%K] %T", None, "scan.pdf") == "scan.pdf"
    assert NameTemplate("%L").render(None, "???.pdf", fallback="0123abcd") == ("0123abcd", ".pdf")


def test_sanitize_component() -> None:
    assert sanitize_component('a/b\\c:d*e?f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j"
    assert sanitize_component("line\nbreak") == "line_break"
    assert sanitize_component("  {BERT}:   Pre-training  ") == "BERT_ Pre-training"
    assert sanitize_component("..hidden.") == "hidden"


def test_long_names_keep_extension() -> None:
    options = NamingOptions(max_length=64)

    assert render("%T", _record(title="x" * 500), "a.pdf", options) == "x" * 60 + ".pdf"

    name = render("%T", _record(title="é" * 100), "a.pdf", NamingOptions(max_length=65))
    assert name == "é" * 30 + ".pdf"
    assert len(name.encode("utf-8")) <= 65


def test_fit_name_keeps_suffix() -> None:
    assert fit_name("abcdef", ".pdf", 10, "-12") == "abc-12.pdf"
    assert fit_name("abc", ".pdf", 180) == "abc.pdf"


def test_name_length_must_leave_room_for_a_stem() -> None:
    with pytest.raises(ValueError):
        fit_name("abc", ".pdf", 6, "-1")
    with pytest.raises(ValueError):
        NamingOptions(max_length=8)


def test_render_is_deterministic() -> None:
    assert render("%L-%Y-%T", _record(), "a.pdf") == render("%L-%Y-%T", _record(), "a.pdf")


def test_referenced_fields_and_provenance() -> None:
    template = NameTemplate("%L-%Y-%{Journal}-%K-%%T")

    assert template.referenced_fields() == {"author", "year", "journal"}
    assert template.provenance(_record()) == {
        "author": "Smith, John and Doe, Jane and Roe, Richard",
        "journal": "J. Tests",
        "year": "2020",
    }
    assert template.provenance(None) == {}


@pytest.mark.parametrize(
    ("value", "expected"),
    [("3", "March"), ("Sept", "September"), ("{Dec}", "December"), ("13", "13"), ("Spring", "Spring")],
)
def test_month_name(value: str, expected: str) -> None:
    assert month_name(value) == expected


def test_allocator_uses_numeric_suffixes(tmp_path: Path) -> None:
    allocator = NameAllocator(tmp_path)

    names = [allocator.allocate("Smith2020") for _ in range(3)]

    assert names == ["Smith2020", "Smith2020-1", "Smith2020-2"]


def test_allocator_picks_smallest_free_suffix(tmp_path: Path) -> None:
    (tmp_path / "Smith2020.pdf").write_bytes(b"a")
    (tmp_path / "Smith2020-2.pdf").write_bytes(b"b")

    allocator = NameAllocator(tmp_path)
    assert allocator.allocate("Smith2020", ".pdf") == "Smith2020-1.pdf"
    assert allocator.allocate("Smith2020", ".pdf") == "Smith2020-3.pdf"
    assert NameAllocator(tmp_path).allocate("Smith2020", ".pdf") == "Smith2020-1.pdf"


def test_allocator_reserved_names_and_release(tmp_path: Path) -> None:
    allocator = NameAllocator(tmp_path, reserved={"a.pdf"})

    assert allocator.allocate("a", ".pdf") == "a-1.pdf"
    allocator.release("a-1.pdf")
    assert allocator.allocate("a", ".pdf") == "a-1.pdf"


def test_allocator_respects_length_limit(tmp_path: Path) -> None:
    allocator = NameAllocator(tmp_path, max_length=40)

    first = allocator.allocate("y" * 100, ".pdf")
    second = allocator.allocate("y" * 100, ".pdf")

    assert first == "y" * 36 + ".pdf"
    assert second == "y" * 34 + "-1.pdf"
