from typing import Literal

from pydantic import BaseModel, Field


class Experience(BaseModel):
    role: str = ""
    company: str = ""
    website: str | None = Field(None, description="Company domain for logo lookup")
    duration: str = ""
    points: list[str] = Field(default_factory=list)


class Education(BaseModel):
    degree: str = ""
    school: str = ""
    website: str | None = None
    year: str = ""


class ResumeData(BaseModel):
    full_name: str = Field("", alias="fullName")
    contact_info: str = Field("", alias="contactInfo", description="Email | Phone | LinkedIn")
    location: str = ""
    summary: str = ""
    skills: list[str] = Field(default_factory=list)
    experience: list[Experience] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    profile_image: str | None = Field(None, alias="profileImage")

    model_config = {"populate_by_name": True}


class ResumeConfig(BaseModel):
    length: Literal["concise", "standard", "detailed"] = "standard"
    tone: Literal["corporate", "standard", "creative"] = "standard"
    template: Literal["classic", "modern", "minimal"] = "classic"
    refinement_level: int = Field(50, ge=0, le=100, alias="refinementLevel")
    show_logos: bool = Field(False, alias="showLogos")
    language: str = "English"

    model_config = {"populate_by_name": True}


class FileInput(BaseModel):
    type: Literal["text", "file"] = "text"
    content: str = Field(..., description="Text content or base64 file body")
    mime_type: str | None = Field(None, alias="mimeType")
    file_name: str | None = Field(None, alias="fileName")

    model_config = {"populate_by_name": True}
