from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel


class SavedResume(Document):
    """Editor state for one resume, keyed by the client-generated resume id."""
    account_id: str
    resume_id: str
    title: str = "Untitled resume"
    last_modified: int = 0  # client clock, epoch ms
    base_resume_input: dict[str, Any] | None = None
    job_description_input: dict[str, Any] | None = None
    base_resume_data: dict[str, Any] | None = None
    tailored_resume_data: dict[str, Any] | None = None
    config: dict[str, Any] | None = None
    profile_image: str | None = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "saved_resumes"
        indexes = [
            IndexModel([("account_id", ASCENDING), ("resume_id", ASCENDING)], unique=True),
        ]
