"""
Document text extraction for resume parsing.
PDF via PyMuPDF, DOCX via python-docx.
"""
import asyncio
import io
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import fitz  # PyMuPDF
from docx import Document

logger = logging.getLogger(__name__)


class DocumentType(str, Enum):
    PDF = "application/pdf"
    DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@dataclass
class ExtractedText:
    text: str
    page_count: Optional[int] = None


class DocumentExtractionError(Exception):
    def __init__(self, message: str, document_type: DocumentType):
        super().__init__(message)
        self.document_type = document_type


def infer_document_type(filename: str) -> DocumentType:
    """Only PDF and DOCX uploads are accepted, so anything not .pdf is DOCX."""
    if filename.lower().endswith(".pdf"):
        return DocumentType.PDF
    return DocumentType.DOCX


def extract_pdf_text(data: bytes) -> ExtractedText:
    try:
        pdf_document = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise DocumentExtractionError(f"Failed to extract text from PDF: {e}", DocumentType.PDF)

    try:
        pages = [page.get_text() for page in pdf_document]
        return ExtractedText(text="\n".join(pages), page_count=len(pages))
    finally:
        pdf_document.close()


def extract_docx_text(data: bytes) -> ExtractedText:
    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        raise DocumentExtractionError(f"Failed to extract text from DOCX: {e}", DocumentType.DOCX)

    text_parts = [para.text for para in doc.paragraphs if para.text.strip()]

    # Skills and contact blocks are often laid out as tables
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(" | ".join(row_text))

    return ExtractedText(text="\n".join(text_parts))


async def extract_document_text(data: bytes, document_type: DocumentType) -> ExtractedText:
    """Extract plain text off the event loop."""
    if document_type == DocumentType.PDF:
        extracted = await asyncio.to_thread(extract_pdf_text, data)
    elif document_type == DocumentType.DOCX:
        extracted = await asyncio.to_thread(extract_docx_text, data)
    else:
        raise DocumentExtractionError(f"Unsupported document type: {document_type}", document_type)

    logger.debug("Extracted %d characters from %s", len(extracted.text), document_type.name)
    return extracted


_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_PHONE_RE = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")


def redact_pii(text: str) -> str:
    """Mask e-mail addresses and phone numbers before text reaches the logs."""
    redacted = _EMAIL_RE.sub("[EMAIL_REDACTED]", text)
    return _PHONE_RE.sub("[PHONE_REDACTED]", redacted)
