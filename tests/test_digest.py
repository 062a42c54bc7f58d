from pathlib import Path

from reed.services.digest import digest_bytes, digest_files, sha256_file

ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_digest_bytes_known_vector() -> None:
    assert digest_bytes(b"abc") == ABC_SHA256


def test_file_digest_ignores_name_and_chunking(tmp_path: Path) -> None:
    payload = b"%PDF-1.4 " + bytes(range(256)) * 1024
    original = tmp_path / "paper.pdf"
    original.write_bytes(payload)
    expected = sha256_file(original)

    renamed = tmp_path / "renamed.bin"
    original.rename(renamed)

    assert sha256_file(renamed) == expected
    assert sha256_file(renamed, chunk_size=7) == expected
    assert expected == digest_bytes(payload)


def test_digest_files_keeps_input_order_and_reports_failures(tmp_path: Path) -> None:
    paths = []
    for index in range(6):
        path = tmp_path / f"file-{index}.txt"
        path.write_text(f"content {index}")
        paths.append(path)
    missing = tmp_path / "missing.txt"
    paths.insert(3, missing)

    results = digest_files(paths, workers=4)

    assert [result.path for result in results] == paths
    assert not results[3].ok
    assert isinstance(results[3].error, FileNotFoundError)
    assert results[0].digest == digest_bytes(b"content 0")
    assert results[-1].digest == digest_bytes(b"content 5")
    assert [r.digest for r in results] == [r.digest for r in digest_files(paths)]
