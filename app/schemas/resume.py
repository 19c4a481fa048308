from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class Location(CamelModel):
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = None


class Contact(CamelModel):
    email: str = ""
    phone: str | None = None
    links: list[str] = Field(default_factory=list)
    location: Location | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _coerce_email(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("phone", mode="before")
    @classmethod
    def _coerce_phone(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)

    @field_validator("links", mode="before")
    @classmethod
    def _coerce_links(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)


class WorkExperience(CamelModel):
    company: str = ""
    title: str = ""
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    bullets: list[str] = Field(default_factory=list)

    @field_validator("from_", "to", mode="before")
    @classmethod
    def _coerce_dates(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)

    @field_validator("bullets", mode="before")
    @classmethod
    def _coerce_bullets(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)


class Education(CamelModel):
    institution: str = ""
    degree: str = ""
    field: str | None = None
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    gpa: str | None = None

    @field_validator("field", "from_", "to", "gpa", mode="before")
    @classmethod
    def _coerce_optional(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)


class Award(CamelModel):
    title: str = ""
    date: str | None = None
    description: str | None = None


class Certification(CamelModel):
    name: str = ""
    issuer: str | None = None
    date: str | None = None
    expiry_date: str | None = None

    @field_validator("issuer", "date", "expiry_date", mode="before")
    @classmethod
    def _coerce_optional(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)


class Project(CamelModel):
    name: str = ""
    description: str = ""
    technologies: list[str] = Field(default_factory=list)
    link: str | None = None

    @field_validator("technologies", mode="before")
    @classmethod
    def _coerce_technologies(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)


class ResumeDocument(CamelModel):
    name: str = ""
    contact: Contact = Field(default_factory=Contact)
    summary: str = ""
    skills: list[str] = Field(default_factory=list)
    work: list[WorkExperience] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    awards: list[Award] = Field(default_factory=list)
    certifications: list[Certification] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)

    @field_validator("summary", "name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("skills", "languages", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)

    @field_validator("contact", mode="before")
    @classmethod
    def _coerce_contact(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("work", "education", "awards", "certifications", "projects", mode="before")
    @classmethod
    def _coerce_sections(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, BaseModel))]

    def bullet_positions(self) -> list[tuple[int, int]]:
        """(work_index, bullet_index) pairs in document order."""
        return [
            (work_index, bullet_index)
            for work_index, item in enumerate(self.work)
            for bullet_index in range(len(item.bullets))
        ]

    def all_bullets(self) -> list[str]:
        return [bullet for item in self.work for bullet in item.bullets]

    def clone(self) -> "ResumeDocument":
        return self.model_copy(deep=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
