"""Extract plain text from uploaded resumes and job descriptions (PDF, DOCX, TXT)."""

import base64
import binascii
import io

from docx import Document as DocxDocument
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from cvpro.core.exceptions import BadRequestError
from cvpro.schemas.resume import FileInput

MAX_UPLOAD_BYTES = 5 * 1024 * 1024

PDF_TYPES = ("application/pdf",)
DOCX_TYPES = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)


def pdf_text(content: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(content))
        return "\n".join((page.extract_text() or "") for page in reader.pages).strip()
    except (PdfReadError, ValueError) as e:
        raise BadRequestError(f"Invalid PDF: {e}") from e


def docx_text(content: bytes) -> str:
    try:
        doc = DocxDocument(io.BytesIO(content))
    except Exception as e:  # python-docx raises several unrelated types for a corrupt zip
        raise BadRequestError(f"Invalid DOCX: {e}") from e
    return "\n".join(p.text for p in doc.paragraphs if p.text.strip()).strip()


def extract_text(content: bytes, filename: str = "", mime_type: str | None = None) -> str:
    if len(content) > MAX_UPLOAD_BYTES:
        raise BadRequestError("File too large (max 5 MB)")
    lower = filename.lower()
    if lower.endswith(".pdf") or mime_type in PDF_TYPES:
        return pdf_text(content)
    if lower.endswith(".docx") or mime_type in DOCX_TYPES:
        return docx_text(content)
    if lower.endswith(".txt") or (mime_type or "").startswith("text/"):
        return content.decode("utf-8", errors="replace").strip()
    raise BadRequestError("Unsupported format; use PDF, DOCX or TXT")


def file_input_text(item: FileInput) -> str:
    """Text of a pasted-or-uploaded input; uploads arrive base64 encoded."""
    if item.type == "text":
        return item.content.strip()
    try:
        raw = base64.b64decode(item.content.split(",", 1)[-1], validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadRequestError("File content is not valid base64") from e
    return extract_text(raw, item.file_name or "", item.mime_type)
