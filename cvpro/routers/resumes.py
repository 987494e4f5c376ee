from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field

from cvpro.core.exceptions import BadRequestError, NotFoundError
from cvpro.deps import get_current_user, get_entitlement_gate
from cvpro.models.user import User
from cvpro.services import resumes as resumes_service
from cvpro.services.credits import get_paid_action
from cvpro.services.entitlement import EntitlementGate
from cvpro.services.resume_parser import MAX_UPLOAD_BYTES, extract_text

router = APIRouter()


class ResumeUpsert(BaseModel):
    title: str = "Untitled resume"
    last_modified: int = Field(0, alias="lastModified")
    base_resume_input: dict[str, Any] | None = Field(None, alias="baseResumeInput")
    job_description_input: dict[str, Any] | None = Field(None, alias="jobDescriptionInput")
    base_resume_data: dict[str, Any] | None = Field(None, alias="baseResumeData")
    tailored_resume_data: dict[str, Any] | None = Field(None, alias="tailoredResumeData")
    config: dict[str, Any] | None = None
    profile_image: str | None = Field(None, alias="profileImage")

    model_config = {"populate_by_name": True}


@router.get("")
async def resumes_list(user: User = Depends(get_current_user)):
    """List saved resumes for current user."""
    docs = await resumes_service.list_resumes(user.account_id)
    return {"resumes": [resumes_service.to_dict(d) for d in docs]}


@router.put("/{resume_id}")
async def resume_upsert(resume_id: str, body: ResumeUpsert, user: User = Depends(get_current_user)):
    doc = await resumes_service.upsert_resume(user.account_id, resume_id, body.model_dump())
    return {"id": doc.resume_id, "updated_at": doc.updated_at.isoformat()}


@router.delete("/{resume_id}")
async def resume_delete(resume_id: str, user: User = Depends(get_current_user)):
    ok = await resumes_service.delete_resume(user.account_id, resume_id)
    if not ok:
        raise NotFoundError("Resume not found")
    return {"status": "deleted"}


@router.post("/upload")
async def resume_upload(user: User = Depends(get_current_user), file: UploadFile = File(...)):
    """Extract text from an uploaded PDF/DOCX/TXT resume or job description."""
    if not file.filename:
        raise BadRequestError("Missing filename")
    content = await file.read(MAX_UPLOAD_BYTES + 1)
    text = extract_text(content, file.filename, file.content_type)
    return {"filename": file.filename, "text": text}


@router.post("/{resume_id}/export")
async def resume_export(
    resume_id: str,
    user: User = Depends(get_current_user),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """Paid export of the printable resume payload; refunded if the resume cannot be exported."""
    return await gate.perform(
        user.account_id,
        get_paid_action("export"),
        lambda: resumes_service.export_resume(user.account_id, resume_id),
        reference_id=resume_id,
    )
