"""Resume text extraction, upload and the paid export route."""

import base64
import io
from types import SimpleNamespace

import pytest
from docx import Document
from pypdf import PdfWriter

from cvpro.core.exceptions import BadRequestError, NotFoundError
from cvpro.deps import get_current_user
from cvpro.schemas.resume import FileInput
from cvpro.services import resumes as resumes_service
from cvpro.services.resume_parser import MAX_UPLOAD_BYTES, extract_text, file_input_text


def docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def blank_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_extract_docx_paragraphs():
    text = extract_text(docx_bytes("Ada Lovelace", "", "Analyst"), "cv.docx")
    assert text == "Ada Lovelace\nAnalyst"


def test_extract_docx_by_mime_type():
    mime = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    assert extract_text(docx_bytes("Grace"), "upload", mime) == "Grace"


def test_extract_blank_pdf_is_empty():
    assert extract_text(blank_pdf_bytes(), "cv.pdf") == ""


def test_corrupt_pdf_is_bad_request():
    with pytest.raises(BadRequestError):
        extract_text(b"not a pdf at all", "cv.pdf")


def test_plain_text():
    assert extract_text(b"  hello\n", "notes.txt") == "hello"


def test_unsupported_format():
    with pytest.raises(BadRequestError):
        extract_text(b"GIF89a", "photo.gif", "image/gif")


def test_too_large():
    with pytest.raises(BadRequestError):
        extract_text(b"x" * (MAX_UPLOAD_BYTES + 1), "big.txt")


def test_file_input_text_paste_and_upload():
    assert file_input_text(FileInput(type="text", content="  pasted  ")) == "pasted"
    encoded = "data:text/plain;base64," + base64.b64encode(b"uploaded text").decode()
    item = FileInput(type="file", content=encoded, mimeType="text/plain", fileName="jd.txt")
    assert file_input_text(item) == "uploaded text"


def test_file_input_text_rejects_bad_base64():
    with pytest.raises(BadRequestError):
        file_input_text(FileInput(type="file", content="%%%not-base64%%%", fileName="cv.pdf"))


@pytest.fixture
def as_user():
    from cvpro.main import app

    app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(account_id="acct-1")
    yield
    app.dependency_overrides.pop(get_current_user, None)


@pytest.mark.asyncio
async def test_upload_route_extracts_text(client, as_user):
    files = {"file": ("cv.docx", docx_bytes("Ada Lovelace"), "application/octet-stream")}
    r = await client.post("/v1/resumes/upload", files=files)
    assert r.status_code == 200
    assert r.json() == {"filename": "cv.docx", "text": "Ada Lovelace"}


@pytest.mark.asyncio
async def test_export_debits_one_credit(client, store, as_user, monkeypatch):
    await store.open_account("acct-1", 1)

    async def fake_export(account_id, resume_id):
        return {"id": resume_id, "variant": "tailored", "resume": {"fullName": "Ada"}}

    monkeypatch.setattr(resumes_service, "export_resume", fake_export)
    r = await client.post("/v1/resumes/r1/export")
    assert r.status_code == 200
    assert r.json()["variant"] == "tailored"
    assert await store.get_balance("acct-1") == 0


@pytest.mark.asyncio
async def test_export_of_missing_resume_is_refunded(client, store, as_user, monkeypatch):
    await store.open_account("acct-1", 1)

    async def missing(account_id, resume_id):
        raise NotFoundError("Resume not found")

    monkeypatch.setattr(resumes_service, "export_resume", missing)
    r = await client.post("/v1/resumes/nope/export")
    assert r.status_code == 404
    assert r.json()["error"]["details"]["refunded"] is True
    assert await store.get_balance("acct-1") == 1
