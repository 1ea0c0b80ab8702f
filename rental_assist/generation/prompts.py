"""Prompt construction for dynamic question generation."""

import json
from typing import Any, Dict, Optional

# Appended to the system instruction
SPEC_SHAPE_HINT = (
    'Shape: {"title": string, "version": "1.0", "rationale"?: string, '
    '"warnings"?: string[], "fields": [{"id": string, "type": "text"|"textarea"|'
    '"number"|"boolean"|"date"|"currency"|"select"|"radio"|"checkbox-group"|'
    '"multiselect", "label": string, "helpText"?: string, "required"?: boolean, '
    '"options"?: [{"value": string, "label": string}], "min"?: number, "max"?: number, '
    '"showIf"?: {"field": string, "equals"?: any, "anyOf"?: string[], '
    '"minSelected"?: number, "anySelected"?: boolean}}]}'
)


def build_system_prompt(max_fields: int, include_shape: bool = True) -> str:
    """
    Build the system instruction sent with every generation request.

    Args:
        max_fields: Upper bound on the number of fields the model may propose
        include_shape: Append the JSON shape reminder

    Returns:
        System instruction text
    """
    prompt = (
        "Return ONLY JSON matching DynamicFormSpec. No file uploads. "
        f"Prefer structured fields. Max {max_fields} fields. "
        "Avoid PII (SSN, bank). 8th-grade reading level."
    )
    if include_shape:
        prompt += " " + SPEC_SHAPE_HINT
    return prompt


def build_context(core: Optional[Dict[str, Any]]) -> str:
    return json.dumps({"core": core or {}})


def build_user_message(prompt: str, core: Optional[Dict[str, Any]]) -> str:
    return f"{prompt}\n\nAPPLICANT_CONTEXT:\n{build_context(core)}"
