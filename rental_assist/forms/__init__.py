"""Dynamic form validation, filtering, and rendering."""

from .pii_filter import filter_pii, is_sensitive_label
from .renderer import FormRenderer, RenderedField, SubmissionResult
from .validator import validate_form_spec
from .visibility import evaluate_rule, is_field_visible

__all__ = [
    'FormRenderer',
    'RenderedField',
    'SubmissionResult',
    'evaluate_rule',
    'filter_pii',
    'is_field_visible',
    'is_sensitive_label',
    'validate_form_spec',
]
