"""Prompt text for resume structuring and tailoring."""

import json

from cvpro.schemas.resume import ResumeConfig, ResumeData

_SCHEMA_HINT = json.dumps(
    {
        "fullName": "string",
        "contactInfo": "Email | Phone | LinkedIn",
        "location": "string",
        "summary": "string",
        "skills": ["string"],
        "experience": [{"role": "", "company": "", "website": "domain or null", "duration": "", "points": [""]}],
        "education": [{"degree": "", "school": "", "website": "domain or null", "year": ""}],
    }
)

STRUCTURE_SYSTEM = (
    "You convert raw resume text into JSON. Use only facts present in the text. "
    f"Respond with a single JSON object shaped like: {_SCHEMA_HINT}"
)

TAILOR_SYSTEM = (
    "You are an expert resume writer. Rewrite the candidate's resume for the target job. "
    "Never invent employers, degrees or dates; reorder and rephrase to match the job. "
    f"Respond with a single JSON object shaped like: {_SCHEMA_HINT}"
)

_LENGTH = {
    "concise": "Keep it to the most relevant 2-3 bullet points per role.",
    "standard": "Use 3-5 bullet points per role.",
    "detailed": "Use up to 6 bullet points per role with measurable outcomes.",
}


def structure_user(text: str) -> str:
    return f"Resume text:\n{text[:20000]}"


def tailor_user(base: ResumeData, job_description: str, config: ResumeConfig) -> str:
    return (
        f"Write in {config.language}, {config.tone} tone. {_LENGTH[config.length]} "
        f"Rewrite intensity: {config.refinement_level}/100.\n\n"
        f"Job description:\n{job_description[:12000]}\n\n"
        f"Current resume JSON:\n{base.model_dump_json(by_alias=True, exclude={'profile_image'})}"
    )
