"""Tests for the upload surface (file → LocalFile)."""

from __future__ import annotations

import base64
import io
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from sdm_kms.ingest.loaders import SUPPORTED_EXTENSIONS, is_supported, load_file, load_paths


def _write(path: Path, data: bytes | str) -> Path:
    if isinstance(data, str):
        path.write_text(data, encoding="utf-8")
    else:
        path.write_bytes(data)
    return path


def test_supported_extensions_cover_text_and_office() -> None:
    for ext in (".txt", ".md", ".py", ".html", ".pdf", ".docx", ".xlsx", ".pptx"):
        assert ext in SUPPORTED_EXTENSIONS
    assert is_supported(Path("REPORT.PDF"))
    assert not is_supported(Path("image.png"))


def test_load_text_file(tmp_path: Path) -> None:
    f = load_file(_write(tmp_path / "notes.md", "# Heading\nbody"))
    assert f.name == "notes.md"
    assert f.type == "text/markdown"
    assert f.content == "# Heading\nbody"
    assert f.size == len("# Heading\nbody".encode())
    assert f.processed_data is None
    assert f.id


def test_load_pdf_binary_mode_is_base64(tmp_path: Path) -> None:
    raw = b"%PDF-1.4 test"
    f = load_file(_write(tmp_path / "datasheet.pdf", raw))
    assert f.type == "application/pdf"
    assert f.is_binary
    assert base64.b64decode(f.content) == raw


def test_load_pdf_text_mode_uses_page_text(tmp_path: Path) -> None:
    path = _write(tmp_path / "datasheet.pdf", b"%PDF-1.4 test")
    with patch("sdm_kms.ingest.loaders.office.pdf_to_text", return_value="page text") as mock:
        f = load_file(path, pdf_mode="text")
    mock.assert_called_once()
    assert f.type == "text/plain"
    assert f.content == "page text"
    assert not f.is_binary


def test_load_docx_extracts_text(tmp_path: Path) -> None:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("word/document.xml", "<w:document><w:body><w:p><w:t>Hello</w:t></w:p></w:body></w:document>")
    f = load_file(_write(tmp_path / "memo.docx", buf.getvalue()))
    assert f.content == "Hello"
    assert f.type == "text/plain"


def test_load_unsupported_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unsupported"):
        load_file(_write(tmp_path / "photo.png", b"\x89PNG"))


def test_load_paths_skips_unsupported_and_broken(tmp_path: Path) -> None:
    _write(tmp_path / "a.txt", "alpha")
    _write(tmp_path / "b.png", b"\x89PNG")
    _write(tmp_path / "c.docx", b"not a zip")

    result = load_paths([tmp_path])

    assert [f.name for f in result.files] == ["a.txt"]
    reasons = {Path(s.path).name: s.reason for s in result.skipped}
    assert "unsupported" in reasons["b.png"]
    assert "c.docx" in reasons


def test_load_paths_recursive(tmp_path: Path) -> None:
    sub = tmp_path / "sub"
    sub.mkdir()
    _write(tmp_path / "top.txt", "top")
    _write(sub / "deep.txt", "deep")
    _write(tmp_path / ".hidden.txt", "hidden")

    flat = load_paths([tmp_path])
    deep = load_paths([tmp_path], recursive=True)

    assert [f.name for f in flat.files] == ["top.txt"]
    assert sorted(f.name for f in deep.files) == ["deep.txt", "top.txt"]
