"""Render a form specification and collect submitted answers.

The renderer never touches HTML itself. ``render`` produces an ordered list
of ``RenderedField`` entries that the templates dispatch on by ``widget``,
and ``collect`` turns captured form state into an answer map.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.form_spec import (
    BaseField,
    ChoiceField,
    FormSpec,
    NumberField,
    UnsupportedField,
)
from .visibility import is_empty, is_field_visible, selected_values

logger = logging.getLogger(__name__)

WIDGETS = {
    "text": "text",
    "textarea": "textarea",
    "number": "number",
    "currency": "currency",
    "date": "date",
    "boolean": "checkbox",
    "select": "select",
    "radio": "radio",
    "checkbox-group": "checkbox_group",
    "multiselect": "multiselect",
}
UNSUPPORTED_WIDGET = "unsupported"

_FALSE_STRINGS = {"", "0", "false", "off", "no"}


def widget_for(f: BaseField) -> str:
    if isinstance(f, UnsupportedField):
        return UNSUPPORTED_WIDGET
    return WIDGETS.get(f.type, UNSUPPORTED_WIDGET)


@dataclass
class RenderedField:
    """One visible field, ready for a template."""

    field: BaseField
    widget: str
    value: Any = None
    checked: Dict[str, bool] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def id(self) -> str:
        return self.field.id

    @property
    def label(self) -> str:
        return self.field.label


@dataclass
class SubmissionResult:
    """Outcome of collecting one submission."""

    answers: Dict[str, Any]
    errors: Dict[str, str] = field(default_factory=dict)
    hidden: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class FormRenderer:
    """
    Interpret a validated form specification.

    Attributes:
        spec: Validated (and PII-filtered) form specification
        initial_answers: Previously saved answers used when no live state is given
    """

    def __init__(self, spec: FormSpec, initial_answers: Optional[Mapping[str, Any]] = None):
        self.spec = spec
        self.initial_answers: Dict[str, Any] = dict(initial_answers or {})

    def is_visible(self, f: BaseField, live_answers: Mapping[str, Any]) -> bool:
        return is_field_visible(f, live_answers)

    def resolve_visibility(self, live_answers: Mapping[str, Any]) -> Tuple[List[BaseField], Dict[str, Any]]:
        """
        Walk the fields in order and drop each hidden field from the state.

        A hidden field counts as unset for every field after it, so a stale
        value can never unlock a chain of dependent questions.

        Returns:
            The visible fields and the state with hidden ids removed
        """
        state = dict(live_answers)
        visible = []
        for f in self.spec.fields:
            if self.is_visible(f, state):
                visible.append(f)
            else:
                state.pop(f.id, None)
        return visible, state

    def visible_fields(self, live_answers: Optional[Mapping[str, Any]] = None) -> List[BaseField]:
        state = self.initial_answers if live_answers is None else live_answers
        return self.resolve_visibility(state)[0]

    def render(
        self,
        live_answers: Optional[Mapping[str, Any]] = None,
        errors: Optional[Mapping[str, str]] = None,
    ) -> List[RenderedField]:
        """
        Build the visible fields in specification order.

        Args:
            live_answers: Current in-progress state; saved answers are used when None
            errors: Field-level error messages keyed by field id

        Returns:
            RenderedField entries for fields whose visibility rule currently holds
        """
        visible, state = self.resolve_visibility(
            self.initial_answers if live_answers is None else live_answers
        )
        errors = errors or {}
        rendered = []
        for f in visible:
            value = state.get(f.id)
            checked: Dict[str, bool] = {}
            if f.is_multi and isinstance(f, ChoiceField):
                chosen = set(selected_values(value) or ([value] if isinstance(value, str) else []))
                checked = {option.value: option.value in chosen for option in f.options}
            rendered.append(RenderedField(
                field=f,
                widget=widget_for(f),
                value=value,
                checked=checked,
                error=errors.get(f.id),
            ))
        return rendered

    def collect(self, form_state: Mapping[str, Any]) -> SubmissionResult:
        """
        Turn captured form state into an answer map.

        Hidden fields are dropped, and their values do not count towards the
        visibility of later fields. Checkbox groups and multiselects, captured as
        per-option booleans, become lists of the selected option values. Every
        other value passes through unchanged.

        Args:
            form_state: Live state keyed by field id

        Returns:
            SubmissionResult with answers, field errors, and the ids that were hidden
        """
        answers: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        visible, form_state = self.resolve_visibility(form_state)
        visible_ids = {f.id for f in visible}
        hidden = [f.id for f in self.spec.fields if f.id not in visible_ids]

        for f in visible:
            if isinstance(f, UnsupportedField):
                continue

            if f.is_multi and isinstance(f, ChoiceField):
                value = self._selected_options(f, form_state.get(f.id))
            elif f.id in form_state:
                value = form_state[f.id]
            else:
                value = None

            error = self._check(f, value)
            if error:
                errors[f.id] = error
            if value is not None:
                answers[f.id] = value

        if errors:
            logger.info(f"Submission for '{self.spec.title}' has {len(errors)} field error(s)")
        return SubmissionResult(answers=answers, errors=errors, hidden=hidden)

    def form_state_from_pairs(self, pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
        """
        Build form state from posted HTML form pairs.

        Checkbox groups post ``<id>.<option>`` keys, multiselects post repeated
        ``<id>`` keys, and a checked boolean posts ``<id>=on``. Unchecked boxes
        post nothing, so they are filled in as False here.
        """
        by_id = {f.id: f for f in self.spec.fields}
        groups = [f for f in self.spec.fields if f.type == "checkbox-group"]
        state: Dict[str, Any] = {}

        for key, value in pairs:
            f = by_id.get(key)
            if f is not None:
                if f.type == "multiselect":
                    state.setdefault(key, {})[str(value)] = True
                elif f.type == "boolean":
                    state[key] = str(value).strip().lower() not in _FALSE_STRINGS
                else:
                    state[key] = value
                continue
            for group in groups:
                prefix = group.id + "."
                if key.startswith(prefix):
                    checked = str(value).strip().lower() not in _FALSE_STRINGS
                    state.setdefault(group.id, {})[key[len(prefix):]] = checked
                    break

        for f in self.spec.fields:
            if f.is_multi and isinstance(f, ChoiceField):
                per_option = state.setdefault(f.id, {})
                for option in f.options:
                    per_option.setdefault(option.value, False)
            elif f.type == "boolean":
                state.setdefault(f.id, False)
        return state

    @staticmethod
    def _selected_options(f: ChoiceField, raw: Any) -> List[str]:
        chosen = selected_values(raw)
        if chosen is None:
            chosen = [raw] if isinstance(raw, str) and raw else []
        chosen_set = set(chosen)
        return [value for value in f.option_values() if value in chosen_set]

    def _check(self, f: BaseField, value: Any) -> Optional[str]:
        if is_empty(value):
            if f.required:
                return "Select at least one option" if f.is_multi else "This field is required"
            return None

        if isinstance(f, ChoiceField):
            if f.is_multi:
                if f.min_selected and len(value) < f.min_selected:
                    return f"Select at least {f.min_selected} options"
            elif str(value) not in f.option_values():
                return "Choose one of the listed options"
            return None

        if isinstance(f, NumberField):
            if isinstance(value, bool):
                return "Enter a number"
            try:
                number = float(value)
            except (TypeError, ValueError):
                return "Enter a number"
            if not math.isfinite(number):
                return "Enter a number"
            if f.min is not None and number < f.min:
                return f"Must be at least {f.min:g}"
            if f.max is not None and number > f.max:
                return f"Must be at most {f.max:g}"
            return None

        if f.type == "date":
            try:
                date.fromisoformat(str(value)[:10])
            except ValueError:
                return "Enter a valid date"
            return None

        if f.type in ("text", "textarea") and f.validations is not None:
            text = str(value)
            rules = f.validations
            if rules.min_length is not None and len(text) < rules.min_length:
                return f"Must be at least {rules.min_length} characters"
            if rules.max_length is not None and len(text) > rules.max_length:
                return f"Must be at most {rules.max_length} characters"
            if rules.pattern and not re.fullmatch(rules.pattern, text):
                return "Does not match the expected format"
        return None
