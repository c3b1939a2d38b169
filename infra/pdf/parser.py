import os
import re
from dataclasses import dataclass

import pdfplumber

from domain.errors import TextExtractionError


@dataclass
class PdfText:
    text: str
    page_count: int
    word_count: int


def parse_pdf_text(path: str) -> str:
    # pages joined by a blank line so paragraph splitting never glues pages together
    text_parts = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            t = page.extract_text() or ""
            text_parts.append(t)
    return "\n\n".join(text_parts)


def clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def extract_text(path: str) -> PdfText:
    if not path:
        raise TextExtractionError("File path is empty")
    resolved = os.path.abspath(path)
    if not os.path.isfile(resolved):
        raise TextExtractionError(f"File not found: {resolved}")
    try:
        with pdfplumber.open(resolved) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as exc:
        raise TextExtractionError(f"Failed to extract text from PDF {os.path.basename(resolved)}: {exc}") from exc
    cleaned = clean_text("\n".join(pages))
    return PdfText(text=cleaned, page_count=len(pages),
                   word_count=len(cleaned.split()) if cleaned else 0)
