"""Tests for reading receipt files."""

import sys
from unittest.mock import MagicMock, patch

from kabala.acquire import ReceiptSource, extract_pdf_text, read_receipt


def _mock_pdfplumber(*page_texts):
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    pdf = MagicMock()
    pdf.pages = pages

    mock_pdfplumber = MagicMock()
    mock_pdfplumber.open.return_value.__enter__.return_value = pdf
    return mock_pdfplumber


def test_from_text():
    source = ReceiptSource.from_text("שופרסל")
    assert source.text == "שופרסל"
    assert source.origin == "copy_paste"
    assert source.data is None


def test_read_text_file(tmp_path):
    path = tmp_path / "receipt.txt"
    path.write_text("חלב    6.90\n", encoding="utf-8")

    source = read_receipt(path)

    assert source.text == "חלב    6.90\n"
    assert source.origin == "copy_paste"


def test_read_image_as_bytes(tmp_path):
    path = tmp_path / "receipt.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")

    source = read_receipt(path)

    assert source.text is None
    assert source.mime_type == "image/jpeg"
    assert source.data == b"\xff\xd8\xff\xe0fake-jpeg"
    assert source.origin == "photo_ocr"


def test_extract_pdf_text_joins_pages(tmp_path):
    mock_pdfplumber = _mock_pdfplumber("עמוד 1", None, "עמוד 3")

    with patch.dict(sys.modules, {"pdfplumber": mock_pdfplumber}):
        text = extract_pdf_text(tmp_path / "r.pdf")

    assert text == "עמוד 1\n\nעמוד 3"
    mock_pdfplumber.open.assert_called_once_with(str(tmp_path / "r.pdf"))


def test_read_pdf_with_text_layer(tmp_path):
    path = tmp_path / "order.pdf"
    path.write_bytes(b"%PDF-1.4")

    with patch.dict(sys.modules, {"pdfplumber": _mock_pdfplumber("שופרסל אונליין")}):
        source = read_receipt(path)

    assert source.text == "שופרסל אונליין"
    assert source.origin == "pdf_upload"


def test_read_scanned_pdf_as_document(tmp_path):
    """A PDF without a text layer is sent to the multimodal parser."""
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"%PDF-1.4 scanned")

    with patch.dict(sys.modules, {"pdfplumber": _mock_pdfplumber("", "  ")}):
        source = read_receipt(path)

    assert source.text is None
    assert source.mime_type == "application/pdf"
    assert source.data == b"%PDF-1.4 scanned"
    assert source.origin == "pdf_upload"
