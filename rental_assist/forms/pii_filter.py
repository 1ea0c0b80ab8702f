"""Drop generated fields that ask for sensitive financial or identity data."""

import logging
import re
from typing import Optional

from ..models.form_spec import FormSpec

logger = logging.getLogger(__name__)

# Matched against the field label only
DISALLOWED_LABEL_PATTERNS = (
    re.compile(r"ssn", re.IGNORECASE),
    re.compile(r"social\s*security", re.IGNORECASE),
    re.compile(r"bank", re.IGNORECASE),
    re.compile(r"routing", re.IGNORECASE),
)


def is_sensitive_label(label: Optional[str]) -> bool:
    if not label:
        return False
    return any(pattern.search(label) for pattern in DISALLOWED_LABEL_PATTERNS)


def filter_pii(spec: FormSpec) -> FormSpec:
    """
    Return a copy of ``spec`` without fields whose label matches a sensitive pattern.

    The input is not modified and field order is preserved.
    """
    kept = [f for f in spec.fields if not is_sensitive_label(f.label)]
    removed = len(spec.fields) - len(kept)
    if removed:
        logger.info(f"Removed {removed} sensitive field(s) from generated form '{spec.title}'")
    return spec.model_copy(update={"fields": kept})
