from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from reed import cli
from reed.services.storage import load_store

runner = CliRunner()


def test_config_json_flag(tmp_path, monkeypatch):
    library_root = tmp_path / "papers"
    monkeypatch.setenv("REED_LIBRARY_ROOT", str(library_root))
    monkeypatch.setenv("REED_NAME_TEMPLATE", "%K")
    monkeypatch.setenv("REED_LOG_LEVEL", "DEBUG")

    result = runner.invoke(cli.app, ["config", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout.strip())
    assert Path(payload["library_root"]) == library_root
    assert payload["name_template"] == "%K"
    assert payload["log_level"] == "DEBUG"
    assert library_root.is_dir()


def test_init_writes_env_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REED_LIBRARY_ROOT", str(tmp_path / "default"))
    target = tmp_path / "custom"

    result = runner.invoke(cli.app, ["init", "--library-root", str(target)])

    assert result.exit_code == 0
    assert target.is_dir()
    assert f"REED_LIBRARY_ROOT={target}" in (tmp_path / ".env").read_text()


def test_import_command_with_bibliography(tmp_path, monkeypatch):
    library_root = tmp_path / "papers"
    monkeypatch.setenv("REED_LIBRARY_ROOT", str(library_root))
    bib = tmp_path / "refs.bib"
    bib.write_text("@article{smith2020, author = {Smith, John}, title = {Deep}, year = 2020}\n")
    paper = tmp_path / "download.pdf"
    paper.write_bytes(b"%PDF smith")

    result = runner.invoke(
        cli.app,
        ["import", str(paper), "--bib", str(bib), "--template", "%L%Y"],
    )

    assert result.exit_code == 0
    assert (library_root / "Smith2020.pdf").exists()
    library = load_store(library_root / "library.json", library_root)
    assert [record.linked_key for record in library.records] == ["smith2020"]


def test_import_command_rejects_duplicate_keys(tmp_path, monkeypatch):
    monkeypatch.setenv("REED_LIBRARY_ROOT", str(tmp_path / "papers"))
    bib = tmp_path / "refs.bib"
    bib.write_text("@misc{dup, title = {A}}\n@misc{dup, title = {B}}\n")
    paper = tmp_path / "a.pdf"
    paper.write_bytes(b"a")

    result = runner.invoke(cli.app, ["import", str(paper), "--bib", str(bib)])

    assert result.exit_code == 1
    assert "Duplicate citation keys" in result.stdout
    assert paper.exists()
