from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from cvpro.deps import get_account_id, get_entitlement_gate
from cvpro.schemas.resume import FileInput, ResumeConfig, ResumeData
from cvpro.services.ai import ResumeAI, get_resume_ai
from cvpro.services.credits import get_paid_action
from cvpro.services.entitlement import EntitlementGate
from cvpro.services.resume_parser import file_input_text
from cvpro.workflows import run_tailor

router = APIRouter()


class StructureRequest(BaseModel):
    resume: FileInput


class TailorRequest(BaseModel):
    job_description: FileInput = Field(..., alias="jobDescription")
    base_resume: ResumeData | None = Field(None, alias="baseResume")
    resume: FileInput | None = None
    config: ResumeConfig = Field(default_factory=ResumeConfig)
    resume_id: str | None = Field(None, alias="resumeId")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _needs_resume(self):
        if self.base_resume is None and self.resume is None:
            raise ValueError("Provide baseResume or resume")
        return self


@router.post("/structure")
async def ai_structure(
    body: StructureRequest,
    account_id: str = Depends(get_account_id),
    ai: ResumeAI = Depends(get_resume_ai),
):
    """Structure pasted or uploaded resume content into ResumeData (free)."""
    text = file_input_text(body.resume)
    data = await ai.structure(text)
    return {"resume": data.model_dump(by_alias=True)}


@router.post("/tailor")
async def ai_tailor(
    body: TailorRequest,
    account_id: str = Depends(get_account_id),
    ai: ResumeAI = Depends(get_resume_ai),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """Tailor a resume to a job description. Costs credits; refunded when generation fails."""
    job_description = file_input_text(body.job_description)
    resume_text = file_input_text(body.resume) if body.base_resume is None else ""

    async def _work():
        return await run_tailor(ai, job_description, body.config, base=body.base_resume, resume_text=resume_text)

    base, tailored = await gate.perform(account_id, get_paid_action("tailor"), _work, reference_id=body.resume_id)
    return {"base": base.model_dump(by_alias=True), "tailored": tailored.model_dump(by_alias=True)}
