"""Data models for the core application and generated form specifications."""

from .application import (
    CORE_SECTIONS,
    SECTION_MODELS,
    Applicant,
    CoreApplication,
    Eligibility,
    Household,
    HouseholdMember,
    Housing,
)
from .form_spec import (
    BaseField,
    ChoiceField,
    FieldOption,
    FormSpec,
    VisibilityRule,
)

__all__ = [
    'CORE_SECTIONS',
    'SECTION_MODELS',
    'Applicant',
    'CoreApplication',
    'Eligibility',
    'Household',
    'HouseholdMember',
    'Housing',
    'BaseField',
    'ChoiceField',
    'FieldOption',
    'FormSpec',
    'VisibilityRule',
]
