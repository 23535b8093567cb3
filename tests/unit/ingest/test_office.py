"""Tests for OOXML / HTML / PDF decoders."""

from __future__ import annotations

import base64
import io
import zipfile

import pytest

from sdm_kms.ingest import office

# ---------------------------------------------------------------------------
# Fixture builders
# ---------------------------------------------------------------------------

_W = 'xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main"'
_A = 'xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main"'


def _zip(parts: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, body in parts.items():
            zf.writestr(name, body)
    return buf.getvalue()


def _docx(paragraphs: list[str]) -> bytes:
    body = "".join(f"<w:p><w:r><w:t>{p}</w:t></w:r></w:p>" for p in paragraphs)
    return _zip({"word/document.xml": f"<w:document {_W}><w:body>{body}</w:body></w:document>"})


def _slide(lines: list[str]) -> str:
    paras = "".join(f"<a:p><a:r><a:t>{t}</a:t></a:r></a:p>" for t in lines)
    return f"<p:sld {_A}><p:cSld><p:spTree><p:sp><p:txBody>{paras}</p:txBody></p:sp></p:spTree></p:cSld></p:sld>"


def _xlsx() -> bytes:
    workbook = (
        '<workbook xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships">'
        '<sheets><sheet name="Costs" sheetId="1" r:id="rId1"/></sheets></workbook>'
    )
    rels = (
        "<Relationships>"
        '<Relationship Id="rId1" Target="worksheets/sheet1.xml"/>'
        "</Relationships>"
    )
    shared = "<sst><si><t>Item</t></si><si><t>Cost</t></si><si><t>Steel</t></si></sst>"
    sheet = (
        "<worksheet><sheetData>"
        '<row r="1"><c r="A1" t="s"><v>0</v></c><c r="B1" t="s"><v>1</v></c></row>'
        '<row r="2"><c r="A2" t="s"><v>2</v></c><c r="C2"><v>42</v></c></row>'
        "</sheetData></worksheet>"
    )
    return _zip(
        {
            "xl/workbook.xml": workbook,
            "xl/_rels/workbook.xml.rels": rels,
            "xl/sharedStrings.xml": shared,
            "xl/worksheets/sheet1.xml": sheet,
        }
    )


# ---------------------------------------------------------------------------
# Word
# ---------------------------------------------------------------------------


def test_docx_paragraphs_one_per_line() -> None:
    assert office.docx_to_text(_docx(["First para", "Second para"])) == "First para\nSecond para"


def test_docx_without_document_part_raises() -> None:
    with pytest.raises(ValueError, match="Word"):
        office.docx_to_text(_zip({"other.xml": "<x/>"}))


def test_docx_not_a_zip_raises() -> None:
    with pytest.raises(zipfile.BadZipFile):
        office.docx_to_text(b"plain bytes")


# ---------------------------------------------------------------------------
# PowerPoint
# ---------------------------------------------------------------------------


def test_pptx_slides_in_numeric_order() -> None:
    data = _zip(
        {
            "ppt/slides/slide10.xml": _slide(["Ten"]),
            "ppt/slides/slide2.xml": _slide(["Two", "More"]),
            "ppt/slides/slide1.xml": _slide(["One"]),
        }
    )
    text = office.pptx_to_text(data)
    assert text == (
        "--- Slide 1 ---\nOne\n"
        "--- Slide 2 ---\nTwo\nMore\n"
        "--- Slide 10 ---\nTen"
    )


def test_pptx_without_slides_raises() -> None:
    with pytest.raises(ValueError, match="PowerPoint"):
        office.pptx_to_text(_zip({"ppt/presentation.xml": "<p/>"}))


# ---------------------------------------------------------------------------
# Excel
# ---------------------------------------------------------------------------


def test_xlsx_sheets_rendered_as_csv() -> None:
    text = office.xlsx_to_text(_xlsx())
    assert text == "--- Sheet: Costs ---\nItem,Cost\nSteel,,42\n"


def test_xlsx_without_workbook_raises() -> None:
    with pytest.raises(ValueError, match="Excel"):
        office.xlsx_to_text(_zip({"xl/other.xml": "<x/>"}))


@pytest.mark.parametrize("ref,index", [("A1", 0), ("B7", 1), ("Z3", 25), ("AA1", 26), ("", -1)])
def test_column_index(ref: str, index: int) -> None:
    assert office._column_index(ref) == index


# ---------------------------------------------------------------------------
# HTML + PDF
# ---------------------------------------------------------------------------


def test_html_drops_scripts_and_keeps_text() -> None:
    html = "<html><head><title>t</title></head><body><script>x()</script><h1>Title</h1><p>Body text</p></body></html>"
    text = office.html_to_text(html)
    assert "Title" in text
    assert "Body text" in text
    assert "x()" not in text


def test_pdf_to_base64_round_trips() -> None:
    data = b"%PDF-1.4 fake"
    assert base64.b64decode(office.pdf_to_base64(data)) == data
