"""Pydantic models for the normalized migration target.

Field names are snake_case in Python and serialize to the camelCase keys the
content backend expects (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ngomigrate.constants import DEFAULT_COUNTRY, DESCRIPTION_MAX_LENGTH


class EntityType(str, Enum):
    """Legal form of an organization."""

    FOUNDATION = "foundation"
    NGO = "ngo"
    ASSOCIATION = "association"
    COMPANY = "company"
    GOVERNMENT = "government"
    SCHOOL = "school"
    OTHER = "other"


class RegistrationCountry(str, Enum):
    CHINA = "china"
    INTERNATIONAL = "international"


class ServiceCategory(str, Enum):
    """Education service categories understood by the backend."""

    EARLY_EDUCATION = "early_education"
    PRIMARY_EDUCATION = "primary_education"
    SECONDARY_EDUCATION = "secondary_education"
    HIGHER_EDUCATION = "higher_education"
    VOCATIONAL_EDUCATION = "vocational_education"
    CONTINUING_EDUCATION = "continuing_education"
    SPECIAL_EDUCATION = "special_education"
    COMMUNITY_EDUCATION = "community_education"
    POLICY_RESEARCH = "policy_research"
    TEACHER_DEVELOPMENT = "teacher_development"
    EDUCATIONAL_CONTENT = "educational_content"
    EDUCATIONAL_HARDWARE = "educational_hardware"
    STUDENT_SUPPORT = "student_support"
    LITERACY_PROGRAMS = "literacy_programs"
    ORGANIZATION_SUPPORT = "organization_support"
    OTHER = "other"


class ProjectStatus(str, Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"
    PLANNED = "planned"


class QualificationType(str, Enum):
    NO_SPECIAL = "no_special"
    TAX_DEDUCTION = "tax_deduction_eligible"
    PUBLIC_FUNDRAISING = "public_fundraising_qualified"
    TAX_EXEMPT = "tax_exempt_qualified"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class Address(_CamelModel):
    country: str = DEFAULT_COUNTRY
    province: str = ""
    city: str = ""
    district: str = ""
    street: str = ""
    building: str = ""
    floor: str = ""
    room: str = ""


class Service(_CamelModel):
    service_category: ServiceCategory = ServiceCategory.OTHER
    service_content: str = ""
    service_targets: str = ""
    support_methods: str = ""
    project_status: ProjectStatus = ProjectStatus.ONGOING
    serves_all_population: bool = False


class InternetContact(_CamelModel):
    website: Optional[str] = None
    wechat_public: Optional[str] = None
    weibo: Optional[str] = None


class Qualification(_CamelModel):
    qualification_type: QualificationType = QualificationType.NO_SPECIAL
    certificate_name: str = ""
    issuing_authority: str = ""


class ContactUserDraft(_CamelModel):
    """Login-disabled user record that only carries contact information."""

    username: str
    email: str
    password: str
    confirmed: bool = False
    blocked: bool = True
    provider: str = "local"
    phone: Optional[str] = None
    role: int = 1

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class TargetOrganization(_CamelModel):
    """Normalized organization ready to be submitted to the backend."""

    name: str
    code: str = ""
    entity_type: EntityType = EntityType.OTHER
    registration_country: RegistrationCountry = RegistrationCountry.CHINA
    established_date: Optional[str] = None
    coverage_area: str = ""
    description: str = ""
    staff_count: int = Field(default=0, ge=0)
    address: Optional[Address] = None
    services: list[Service] = Field(default_factory=list)
    internet_contact: InternetContact = Field(default_factory=InternetContact)
    qualifications: list[Qualification] = Field(default_factory=list)
    contact_user: Union[int, ContactUserDraft, None] = None
    published_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("description")
    @classmethod
    def limit_description(cls, v: str) -> str:
        return v[:DESCRIPTION_MAX_LENGTH]

    @property
    def dedup_key(self) -> str:
        """Case-insensitive, trimmed name used for duplicate detection."""
        return " ".join(self.name.split()).casefold()

    @property
    def contact_draft(self) -> ContactUserDraft | None:
        if isinstance(self.contact_user, ContactUserDraft):
            return self.contact_user
        return None

    def identity(self) -> dict[str, Any]:
        """Identifying fields written to audit log entries."""
        return {
            "name": self.name,
            "code": self.code,
            "entityType": self.entity_type.value,
            "registrationCountry": self.registration_country.value,
        }

    def to_payload(self, contact_user_id: int | None = None) -> dict[str, Any]:
        """Serialize for ``POST /organizations``.

        A pending contact-user draft is never serialized; only a resolved
        numeric id (or null) is sent.
        """
        payload = self.model_dump(
            by_alias=True, mode="json", exclude={"contact_user"}
        )
        payload["internetContact"] = self.internet_contact.model_dump(
            by_alias=True, mode="json", exclude_none=True
        )
        payload["contactUser"] = contact_user_id
        return payload
