"""Conditional visibility evaluation against live answer state."""

from typing import Any, List, Mapping, Optional

from ..models.form_spec import BaseField, VisibilityRule


def selected_values(value: Any) -> Optional[List[str]]:
    """
    Read a multi-choice value as a list of selected option values.

    Accepts a per-option boolean map (the shape checkbox groups are captured
    in) or a list. Returns None for anything that is not multi-valued.
    """
    if isinstance(value, Mapping):
        return [str(key) for key, checked in value.items() if checked]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [v if isinstance(v, str) else str(v) for v in value]
    return None


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion; True never equals 1, "1" never equals 1."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    numeric = (int, float)
    if isinstance(left, numeric) and isinstance(right, numeric):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    selected = selected_values(value)
    if selected is not None:
        return not selected
    return False


def evaluate_rule(rule: VisibilityRule, answers: Mapping[str, Any]) -> bool:
    value = answers.get(rule.field)
    selected = selected_values(value)

    if rule.has_equals:
        live = selected if isinstance(value, Mapping) else value
        return strict_equals(live, rule.equals)

    if rule.any_of is not None:
        if isinstance(value, str):
            return value in rule.any_of
        if selected is not None:
            return any(v in rule.any_of for v in selected)
        return False

    if rule.min_selected is not None:
        return selected is not None and len(selected) >= rule.min_selected

    if rule.any_selected is not None:
        return bool(selected) == rule.any_selected

    return not is_empty(value)


def is_field_visible(field: BaseField, answers: Mapping[str, Any]) -> bool:
    if field.show_if is None:
        return True
    return evaluate_rule(field.show_if, answers)
