"""Core application record models.

The four sections are saved one wizard page at a time, so each section is its
own model. ``CoreApplication`` validates the whole record at submission.
Field aliases are the camelCase names used in storage and exports.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class _SectionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Applicant(_SectionModel):
    """Who is applying."""

    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    dob: str = Field(min_length=1)
    phone: str = Field(min_length=7)
    email: str
    language: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("language")
    @classmethod
    def blank_language_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class Housing(_SectionModel):
    """The rental unit and what is owed on it."""

    address1: str = Field(min_length=1)
    address2: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    zip: str = Field(min_length=5)
    monthly_rent: float = Field(alias="monthlyRent", ge=0)
    months_behind: float = Field(alias="monthsBehind", ge=0)
    landlord_name: Optional[str] = Field(None, alias="landlordName")
    landlord_phone: Optional[str] = Field(None, alias="landlordPhone")

    @field_validator("state")
    @classmethod
    def normalize_state(cls, v: str) -> str:
        return v.upper()

    @field_validator("address2", "landlord_name", "landlord_phone")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def total_owed(self) -> float:
        return self.monthly_rent * self.months_behind


class HouseholdMember(_SectionModel):
    relation: str = Field(min_length=1)
    age_range: str = Field(alias="ageRange", min_length=1)
    income_band: str = Field(alias="incomeBand", min_length=1)


class Household(_SectionModel):
    """Household size and, optionally, the other members."""

    size: int = Field(ge=1)
    members: Optional[List[HouseholdMember]] = None


class Eligibility(_SectionModel):
    """Hardship attestation and typed signature."""

    hardship: bool
    typed_signature: str = Field(alias="typedSignature", min_length=1)
    signed_at_iso: str = Field(alias="signedAtISO", min_length=1)

    @field_validator("hardship")
    @classmethod
    def hardship_attested(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("You must attest to financial hardship")
        return v


class CoreApplication(_SectionModel):
    """All four sections together; valid only when the record is core-complete."""

    applicant: Applicant
    housing: Housing
    household: Household
    eligibility: Eligibility

    @property
    def total_owed(self) -> float:
        return self.housing.total_owed


SECTION_MODELS = {
    "applicant": Applicant,
    "housing": Housing,
    "household": Household,
    "eligibility": Eligibility,
}

CORE_SECTIONS = tuple(SECTION_MODELS)
