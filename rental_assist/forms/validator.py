"""Tolerant validation of generated form specifications.

The generator is not consistent about key names, type spellings or option
shapes, so every field goes through synonym resolution before it is
validated against the model for its type. Issues from every field are
collected and raised together.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..models.form_spec import (
    DEFAULT_SPEC_VERSION,
    FIELD_MODELS,
    BaseField,
    FormSpec,
    UnsupportedField,
    canonical_type,
)
from ..utils.errors import SpecValidationError

logger = logging.getLogger(__name__)

# synonym -> canonical key
FIELD_KEY_SYNONYMS = {
    "visibleWhen": "showIf",
    "currencyCode": "currency",
}

# types whose min/max bound the numeric value
NUMERIC_TYPES = ("number", "currency")

_HEADER_KEYS = ("formId", "title", "version", "rationale", "warnings")


def validate_form_spec(raw: Any, allow_unknown_types: bool = False) -> FormSpec:
    """
    Normalize and validate a parsed JSON document as a form specification.

    Args:
        raw: Parsed JSON value (or an already validated FormSpec)
        allow_unknown_types: Keep fields with an unrecognized ``type`` as
            UnsupportedField instead of failing the whole document

    Returns:
        Canonical FormSpec

    Raises:
        SpecValidationError: With every structural issue found
    """
    if isinstance(raw, FormSpec):
        raw = raw.to_dict()

    if not isinstance(raw, Mapping):
        raise SpecValidationError.from_issues(
            [f"specification must be a JSON object, got {type(raw).__name__}"]
        )

    issues: List[str] = []
    header = _normalize_header(raw)

    try:
        spec = FormSpec.model_validate({**header, "fields": []})
    except ValidationError as e:
        issues.extend(_format_errors(e))
        spec = None

    raw_fields = raw.get("fields")
    if raw_fields is None:
        issues.append("fields: field required")
        raw_fields = []
    elif not isinstance(raw_fields, list):
        issues.append(f"fields: must be a list, got {type(raw_fields).__name__}")
        raw_fields = []

    fields: List[BaseField] = []
    seen_ids = set()
    for index, item in enumerate(raw_fields):
        prefix = f"fields[{index}]"
        parsed = _validate_field(item, prefix, allow_unknown_types, issues)
        if parsed is None:
            continue
        if parsed.id in seen_ids:
            issues.append(f"{prefix}.id: duplicate field id {parsed.id!r}")
            continue
        seen_ids.add(parsed.id)
        fields.append(parsed)

    if issues:
        logger.warning(f"Form specification rejected with {len(issues)} issue(s): {issues[:5]}")
        raise SpecValidationError.from_issues(issues)

    for f in fields:
        if f.show_if is not None and f.show_if.field not in seen_ids:
            logger.warning(
                f"Field {f.id!r} is conditional on unknown field {f.show_if.field!r}; "
                "it will be evaluated against an unset value"
            )

    spec.fields = fields
    return spec


def resolve_field_synonyms(item: Mapping[str, Any]) -> Dict[str, Any]:
    """Fold synonymous keys and loose shapes into the canonical field layout."""
    data = {key: value for key, value in item.items() if value is not None}

    for synonym, canonical in FIELD_KEY_SYNONYMS.items():
        if synonym in data:
            value = data.pop(synonym)
            data.setdefault(canonical, value)

    canonical = canonical_type(data.get("type"))
    if canonical is not None:
        data["type"] = canonical

    validations = data.get("validations")
    if isinstance(validations, Mapping):
        validations = dict(validations)
        for key in ("min", "max"):
            if key not in validations:
                continue
            value = validations.pop(key)
            if data.get("type") not in NUMERIC_TYPES:
                logger.warning(
                    f"Field {data.get('id')!r}: dropping validations.{key} on a {data.get('type')!r} field"
                )
            elif data.get(key) is None and value is not None:
                data[key] = value
        if any(v is not None for v in validations.values()):
            data["validations"] = validations
        else:
            data.pop("validations")

    rule = data.get("showIf")
    if isinstance(rule, Mapping):
        rule = dict(rule)
        any_of = rule.get("anyOf")
        if isinstance(any_of, (str, int, float)) and not isinstance(any_of, bool):
            rule["anyOf"] = [str(any_of)]
        elif isinstance(any_of, list):
            rule["anyOf"] = [v if isinstance(v, str) else str(v) for v in any_of]
        data["showIf"] = rule

    if isinstance(data.get("options"), list):
        data["options"] = [_normalize_option(option) for option in data["options"]]

    return data


def _normalize_header(raw: Mapping[str, Any]) -> Dict[str, Any]:
    header = {key: raw[key] for key in _HEADER_KEYS if raw.get(key) is not None}

    version = header.get("version", DEFAULT_SPEC_VERSION)
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        version = str(version)
    header["version"] = version

    warnings = header.get("warnings")
    if isinstance(warnings, str):
        header["warnings"] = [warnings]
    elif isinstance(warnings, list):
        header["warnings"] = [w if isinstance(w, str) else str(w) for w in warnings if w is not None]

    return header


def _validate_field(
    item: Any,
    prefix: str,
    allow_unknown_types: bool,
    issues: List[str],
) -> Optional[BaseField]:
    if not isinstance(item, Mapping):
        issues.append(f"{prefix}: must be an object, got {type(item).__name__}")
        return None

    data = resolve_field_synonyms(item)
    field_type = data.get("type")
    model = FIELD_MODELS.get(field_type)

    if model is None:
        if allow_unknown_types and isinstance(field_type, str) and field_type.strip():
            model = UnsupportedField
        elif field_type is None:
            issues.append(f"{prefix}.type: field required")
            return None
        else:
            issues.append(f"{prefix}.type: unsupported field type {field_type!r}")
            return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        issues.extend(_format_errors(e, prefix))
        return None


def _normalize_option(option: Any) -> Any:
    if isinstance(option, bool):
        text = "true" if option else "false"
        return {"value": text, "label": text}
    if isinstance(option, (str, int, float)):
        return {"value": str(option), "label": str(option)}
    if isinstance(option, Mapping):
        value = option.get("value")
        if value is None:
            value = option.get("id", option.get("label"))
        label = option.get("label")
        if label is None:
            label = option.get("text", value)
        return {
            "value": _as_text(value),
            "label": _as_text(label),
        }
    return option


def _as_text(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _format_errors(error: ValidationError, prefix: str = "") -> List[str]:
    formatted = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item.get("loc", ()))
        path = ".".join(part for part in (prefix, loc) if part) or "specification"
        formatted.append(f"{path}: {item.get('msg', 'invalid value')}")
    return formatted
