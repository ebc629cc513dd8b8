"""Read receipt files into text or raw document bytes."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptSource:
    """Either extracted text or (mime type, bytes) for multimodal parsing."""

    text: str | None = None
    mime_type: str = "text/plain"
    data: bytes | None = None
    origin: str = "copy_paste"  # copy_paste / pdf_upload / photo_ocr

    @classmethod
    def from_text(cls, text: str) -> ReceiptSource:
        return cls(text=text)


def extract_pdf_text(path: str | Path) -> str:
    """Extract the text layer of a PDF, page by page."""
    try:
        import pdfplumber
    except ImportError:
        raise ImportError("pdfplumber is required: pip install pdfplumber") from None

    pages: list[str] = []
    with pdfplumber.open(str(path)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n".join(pages)


def read_receipt(path: str | Path) -> ReceiptSource:
    """Load a receipt file.

    PDFs with a text layer become text; scanned PDFs (no text) and images
    are returned as bytes for the multimodal parser. Anything else is read
    as UTF-8 text.
    """
    p = Path(path).expanduser()
    mime_type = mimetypes.guess_type(p.name)[0] or "text/plain"

    if mime_type == "application/pdf":
        text = extract_pdf_text(p)
        if text.strip():
            return ReceiptSource(text=text, origin="pdf_upload")
        logger.info("PDF %s has no text layer, sending as document", p.name)
        return ReceiptSource(
            mime_type=mime_type, data=p.read_bytes(), origin="pdf_upload"
        )

    if mime_type.startswith("image/"):
        return ReceiptSource(
            mime_type=mime_type, data=p.read_bytes(), origin="photo_ocr"
        )

    return ReceiptSource(text=p.read_text(encoding="utf-8"), origin="copy_paste")
