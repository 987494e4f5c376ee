"""Saved resume CRUD and printable export."""

from datetime import datetime
from typing import Any

from cvpro.core.exceptions import NotFoundError
from cvpro.models.saved_resume import SavedResume

FIELDS = (
    "title",
    "last_modified",
    "base_resume_input",
    "job_description_input",
    "base_resume_data",
    "tailored_resume_data",
    "config",
    "profile_image",
)


def to_dict(doc: SavedResume) -> dict[str, Any]:
    out = {"id": doc.resume_id}
    out.update({f: getattr(doc, f) for f in FIELDS})
    out["updated_at"] = doc.updated_at.isoformat()
    return out


async def list_resumes(account_id: str) -> list[SavedResume]:
    return await SavedResume.find(SavedResume.account_id == account_id).sort(-SavedResume.last_modified).to_list()


async def get_resume(account_id: str, resume_id: str) -> SavedResume | None:
    return await SavedResume.find_one(SavedResume.account_id == account_id, SavedResume.resume_id == resume_id)


async def upsert_resume(account_id: str, resume_id: str, data: dict[str, Any]) -> SavedResume:
    """Insert or replace the editor state for (account, resume_id)."""
    doc = await get_resume(account_id, resume_id)
    if doc is None:
        doc = SavedResume(account_id=account_id, resume_id=resume_id)
    for f in FIELDS:
        if f in data:
            setattr(doc, f, data[f])
    doc.updated_at = datetime.utcnow()
    await doc.save()
    return doc


async def delete_resume(account_id: str, resume_id: str) -> bool:
    doc = await get_resume(account_id, resume_id)
    if not doc:
        return False
    await doc.delete()
    return True


async def export_resume(account_id: str, resume_id: str) -> dict[str, Any]:
    """Printable payload: tailored data when present, else base data, plus render config."""
    doc = await get_resume(account_id, resume_id)
    if not doc:
        raise NotFoundError("Resume not found")
    data = doc.tailored_resume_data or doc.base_resume_data
    if not data:
        raise NotFoundError("Resume has no generated content to export")
    if doc.profile_image and not data.get("profileImage"):
        data = {**data, "profileImage": doc.profile_image}
    return {
        "id": doc.resume_id,
        "title": doc.title,
        "variant": "tailored" if doc.tailored_resume_data else "base",
        "resume": data,
        "config": doc.config or {},
        "exported_at": datetime.utcnow().isoformat(),
    }
