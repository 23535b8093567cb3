"""Raw-bytes decoders for the upload surface.

OOXML documents (docx / pptx / xlsx) are ZIP archives of XML parts; they are
read with stdlib ``zipfile`` and parsed with ``beautifulsoup4``'s html.parser
(lxml is not a dependency). PDFs are either passed through as base64 or
reduced to page text with ``pypdf``. HTML is converted with ``html2text``.
"""

from __future__ import annotations

import base64
import csv
import io
import re
import warnings
import zipfile

import html2text
import pypdf
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

# html.parser handles the simple OOXML parts fine.
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0  # no line wrapping

_SLIDE_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_CELL_COL_RE = re.compile(r"^([A-Z]+)")


def _soup(zf: zipfile.ZipFile, name: str) -> BeautifulSoup:
    return BeautifulSoup(zf.read(name).decode("utf-8", errors="replace"), "html.parser")


# ------------------------------------------------------------------
# PDF
# ------------------------------------------------------------------


def pdf_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def pdf_to_text(data: bytes) -> str:
    """Extract page text; pages without a text layer are skipped."""
    reader = pypdf.PdfReader(io.BytesIO(data))
    pages: list[str] = []
    for page in reader.pages:
        text = (page.extract_text() or "").strip()
        if text:
            pages.append(text)
    return "\n\n".join(pages)


# ------------------------------------------------------------------
# HTML
# ------------------------------------------------------------------


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "nav", "footer", "head"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


# ------------------------------------------------------------------
# Word
# ------------------------------------------------------------------


def docx_to_text(data: bytes) -> str:
    """Paragraph text of ``word/document.xml``, one paragraph per line."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        if "word/document.xml" not in zf.namelist():
            raise ValueError("Not a Word document: word/document.xml missing.")
        soup = _soup(zf, "word/document.xml")

    lines: list[str] = []
    for para in soup.find_all("w:p"):
        runs: list[str] = []
        for node in para.find_all(["w:t", "w:tab", "w:br"]):
            if node.name == "w:t":
                runs.append(node.get_text())
            elif node.name == "w:tab":
                runs.append("\t")
            else:
                runs.append("\n")
        lines.append("".join(runs))
    return "\n".join(lines).strip()


# ------------------------------------------------------------------
# PowerPoint
# ------------------------------------------------------------------


def pptx_to_text(data: bytes) -> str:
    """Slide text in slide order, each slide under a ``--- Slide N ---`` header."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        slides: list[tuple[int, str]] = []
        for name in zf.namelist():
            match = _SLIDE_RE.match(name)
            if match:
                slides.append((int(match.group(1)), name))
        if not slides:
            raise ValueError("Not a PowerPoint deck: no ppt/slides/slideN.xml parts.")

        blocks: list[str] = []
        for number, name in sorted(slides):
            soup = _soup(zf, name)
            paras = ["".join(t.get_text() for t in p.find_all("a:t")) for p in soup.find_all("a:p")]
            body = "\n".join(p for p in paras if p.strip())
            blocks.append(f"--- Slide {number} ---\n{body}")
    return "\n".join(blocks)


# ------------------------------------------------------------------
# Excel
# ------------------------------------------------------------------


def _column_index(ref: str) -> int:
    match = _CELL_COL_RE.match(ref or "")
    if not match:
        return -1
    index = 0
    for ch in match.group(1):
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def _shared_strings(zf: zipfile.ZipFile) -> list[str]:
    if "xl/sharedStrings.xml" not in zf.namelist():
        return []
    soup = _soup(zf, "xl/sharedStrings.xml")
    return ["".join(t.get_text() for t in si.find_all("t")) for si in soup.find_all("si")]


def _sheet_targets(zf: zipfile.ZipFile) -> list[tuple[str, str]]:
    """(sheet name, part path) pairs in workbook order."""
    rels = _soup(zf, "xl/_rels/workbook.xml.rels")
    targets = {
        rel.get("id"): rel.get("target", "").lstrip("/")
        for rel in rels.find_all("relationship")
    }
    workbook = _soup(zf, "xl/workbook.xml")
    sheets: list[tuple[str, str]] = []
    for sheet in workbook.find_all("sheet"):
        target = targets.get(sheet.get("r:id"), "")
        if not target:
            continue
        path = target if target.startswith("xl/") else f"xl/{target}"
        sheets.append((sheet.get("name", ""), path))
    return sheets


def xlsx_to_text(data: bytes) -> str:
    """Every sheet rendered as CSV under a ``--- Sheet: name ---`` header."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        names = set(zf.namelist())
        if "xl/workbook.xml" not in names:
            raise ValueError("Not an Excel workbook: xl/workbook.xml missing.")
        strings = _shared_strings(zf)

        out: list[str] = []
        for sheet_name, path in _sheet_targets(zf):
            if path not in names:
                continue
            soup = _soup(zf, path)
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            for row in soup.find_all("row"):
                values: dict[int, str] = {}
                for pos, cell in enumerate(row.find_all("c")):
                    col = _column_index(cell.get("r", ""))
                    values[col if col >= 0 else pos] = _cell_value(cell, strings)
                if values:
                    width = max(values) + 1
                    writer.writerow([values.get(i, "") for i in range(width)])
            out.append(f"--- Sheet: {sheet_name} ---\n{buf.getvalue()}")
    return "".join(out)


def _cell_value(cell, strings: list[str]) -> str:
    kind = cell.get("t")
    if kind == "inlinestr" or kind == "inlineStr":
        return "".join(t.get_text() for t in cell.find_all("t"))
    v = cell.find("v")
    if v is None:
        return ""
    raw = v.get_text()
    if kind == "s":
        try:
            return strings[int(raw)]
        except (ValueError, IndexError):
            return ""
    return raw
