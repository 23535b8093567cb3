"""Upload surface: turn files on disk into LocalFile records.

Allow-list by extension:
  .txt .md .json .csv .js .ts .tsx .py .html .css .java .c .cpp → text
  .pdf  → inline base64 (or page text with pdf_mode='text')
  .docx .pptx .xlsx → extracted text
Anything else is skipped with a warning; a file that fails to decode is
skipped with an error. A batch always returns whatever did load.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sdm_kms.ingest import office
from sdm_kms.models import LocalFile, new_id, now_ms

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    [".txt", ".md", ".json", ".csv", ".js", ".ts", ".tsx", ".py", ".html", ".css", ".java", ".c", ".cpp"]
)
DOCUMENT_EXTENSIONS: frozenset[str] = frozenset([".pdf", ".docx", ".xlsx", ".pptx"])
SUPPORTED_EXTENSIONS: frozenset[str] = TEXT_EXTENSIONS | DOCUMENT_EXTENSIONS

_TEXT_MIME: dict[str, str] = {
    ".md": "text/markdown",
    ".json": "application/json",
    ".csv": "text/csv",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
}


@dataclass
class SkippedFile:
    path: str
    reason: str


@dataclass
class LoadResult:
    files: list[LocalFile] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def load_file(path: Path, pdf_mode: str = "binary") -> LocalFile:
    """Decode one allow-listed file.

    Raises:
        ValueError: Unsupported extension or undecodable content.
        OSError: The file cannot be read.
    """
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported file type: {ext!r}")

    data = path.read_bytes()
    mime, content = _decode(ext, data, pdf_mode)
    return LocalFile(
        id=new_id(),
        name=path.name,
        type=mime,
        content=content,
        size=len(data),
        timestamp=now_ms(),
    )


def _decode(ext: str, data: bytes, pdf_mode: str) -> tuple[str, str]:
    if ext == ".pdf":
        if pdf_mode == "text":
            return "text/plain", office.pdf_to_text(data)
        return "application/pdf", office.pdf_to_base64(data)
    if ext == ".docx":
        return "text/plain", office.docx_to_text(data)
    if ext == ".pptx":
        return "text/plain", office.pptx_to_text(data)
    if ext == ".xlsx":
        return "text/csv", office.xlsx_to_text(data)

    text = data.decode("utf-8", errors="replace")
    if ext == ".html":
        return "text/plain", office.html_to_text(text)
    return _TEXT_MIME.get(ext, "text/plain"), text


def load_paths(
    paths: list[Path],
    *,
    recursive: bool = False,
    pdf_mode: str = "binary",
) -> LoadResult:
    """Load every supported file under *paths*; directories are expanded."""
    result = LoadResult()
    for path in _expand(paths, recursive):
        if not is_supported(path):
            logger.warning("Skipped unsupported file: %s", path.name)
            result.skipped.append(SkippedFile(str(path), f"unsupported type {path.suffix!r}"))
            continue
        try:
            result.files.append(load_file(path, pdf_mode=pdf_mode))
        except Exception as exc:
            logger.error("Failed to read %s: %s", path.name, exc)
            result.skipped.append(SkippedFile(str(path), str(exc)))
    return result


def _expand(paths: list[Path], recursive: bool) -> list[Path]:
    expanded: list[Path] = []
    for path in paths:
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            expanded.extend(
                p for p in sorted(path.glob(pattern)) if p.is_file() and not p.name.startswith(".")
            )
        else:
            expanded.append(path)
    return expanded
