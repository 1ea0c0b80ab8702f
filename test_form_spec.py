"""Tests for form specification validation and synonym resolution."""

import pytest

from rental_assist.forms.validator import resolve_field_synonyms, validate_form_spec
from rental_assist.models.form_spec import (
    ChoiceField,
    CurrencyField,
    UnsupportedField,
)
from rental_assist.utils.errors import ErrorType, SpecValidationError


def _spec(*fields, **header):
    return {"title": header.pop("title", "Follow-up"), "fields": list(fields), **header}


def test_sample_generator_output_is_normalized(sample_spec_raw):
    spec = validate_form_spec(sample_spec_raw)

    assert spec.version == "1"
    assert spec.warnings == ["Do not include bank or Social Security numbers."]
    types = {f.id: f.type for f in spec.fields}
    assert types["eviction_notice"] == "boolean"
    assert types["income_source"] == "select"
    assert types["documents"] == "multiselect"

    court_date = spec.field_by_id("court_date")
    assert court_date.show_if.field == "eviction_notice"
    assert court_date.show_if.equals is True

    arrears = spec.field_by_id("utility_arrears")
    assert isinstance(arrears, CurrencyField)
    assert arrears.currency == "USD"
    assert arrears.min == 0
    assert arrears.max == 20000
    assert arrears.validations is None

    income = spec.field_by_id("income_source")
    assert [(o.value, o.label) for o in income.options] == [
        ("Job", "Job"),
        ("Unemployment benefits", "Unemployment benefits"),
        ("ssi", "SSI or SSDI"),
        ("None", "None"),
    ]


def test_validation_is_idempotent(sample_spec_raw):
    once = validate_form_spec(sample_spec_raw)
    twice = validate_form_spec(once.to_dict())

    assert twice.to_dict() == once.to_dict()
    assert validate_form_spec(once).to_dict() == once.to_dict()


def test_canonical_dump_uses_wire_names(sample_spec_raw):
    data = validate_form_spec(sample_spec_raw).to_dict()
    by_id = {f["id"]: f for f in data["fields"]}

    assert "showIf" in by_id["court_date"]
    assert "visibleWhen" not in by_id["court_date"]
    assert by_id["priority_groups"]["helpText"] == "Check all that apply."
    assert by_id["documents"]["minSelected"] == 1


def test_version_defaults_when_absent():
    spec = validate_form_spec(_spec({"id": "a", "type": "text", "label": "Anything else?"}))
    assert spec.version == "1.0"


def test_unknown_keys_are_ignored():
    spec = validate_form_spec(_spec(
        {"id": "a", "type": "text", "label": "Anything else?", "uiHint": "wide", "order": 3},
        layout="single-column",
    ))
    assert spec.fields[0].id == "a"
    assert "uiHint" not in spec.fields[0].to_dict()


@pytest.mark.parametrize("raw", [None, [], "spec", 42])
def test_non_object_input_is_rejected(raw):
    with pytest.raises(SpecValidationError) as exc_info:
        validate_form_spec(raw)
    assert exc_info.value.error_type == ErrorType.SPEC_VALIDATION_FAILED


def test_missing_title_and_fields_are_hard_failures():
    with pytest.raises(SpecValidationError) as exc_info:
        validate_form_spec({"version": "1.0"})

    issues = exc_info.value.issues
    assert any(issue.startswith("title") for issue in issues)
    assert any(issue.startswith("fields") for issue in issues)


def test_type_outside_enumeration_fails_whole_document():
    raw = _spec(
        {"id": "a", "type": "text", "label": "Fine"},
        {"id": "b", "type": "signature", "label": "Sign here"},
    )
    with pytest.raises(SpecValidationError) as exc_info:
        validate_form_spec(raw)
    assert "fields[1].type: unsupported field type 'signature'" in exc_info.value.issues


def test_unknown_type_kept_as_unsupported_when_allowed():
    raw = _spec(
        {"id": "a", "type": "text", "label": "Fine"},
        {"id": "b", "type": "signature", "label": "Sign here", "penColor": "blue"},
    )
    spec = validate_form_spec(raw, allow_unknown_types=True)

    assert isinstance(spec.fields[1], UnsupportedField)
    assert spec.fields[1].model_extra["penColor"] == "blue"


def test_issues_from_every_field_are_collected():
    raw = _spec(
        {"id": "a", "type": "select", "label": "Pick one"},
        {"id": "b", "type": "text"},
        "not a field",
    )
    with pytest.raises(SpecValidationError) as exc_info:
        validate_form_spec(raw)

    issues = exc_info.value.issues
    assert any(issue.startswith("fields[0].options") for issue in issues)
    assert any(issue.startswith("fields[1].label") for issue in issues)
    assert any(issue.startswith("fields[2]:") for issue in issues)


def test_choice_field_requires_options():
    with pytest.raises(SpecValidationError):
        validate_form_spec(_spec({"id": "a", "type": "radio", "label": "Pick", "options": []}))


def test_duplicate_field_ids_are_rejected():
    raw = _spec(
        {"id": "a", "type": "text", "label": "First"},
        {"id": "a", "type": "number", "label": "Second"},
    )
    with pytest.raises(SpecValidationError) as exc_info:
        validate_form_spec(raw)
    assert any("duplicate field id 'a'" in issue for issue in exc_info.value.issues)


def test_duplicate_option_values_keep_first():
    spec = validate_form_spec(_spec({
        "id": "a", "type": "radio", "label": "Pick",
        "options": [{"value": "x", "label": "First"}, {"value": "x", "label": "Second"}, "y"],
    }))
    field = spec.fields[0]
    assert isinstance(field, ChoiceField)
    assert [(o.value, o.label) for o in field.options] == [("x", "First"), ("y", "y")]


def test_dangling_visibility_reference_is_tolerated():
    spec = validate_form_spec(_spec(
        {"id": "a", "type": "text", "label": "Details", "showIf": {"field": "removed", "equals": "yes"}},
    ))
    assert spec.fields[0].show_if.field == "removed"


def test_numeric_bounds_must_be_ordered():
    with pytest.raises(SpecValidationError):
        validate_form_spec(_spec({"id": "n", "type": "number", "label": "How many", "min": 5, "max": 1}))


def test_invalid_pattern_is_rejected():
    with pytest.raises(SpecValidationError):
        validate_form_spec(_spec(
            {"id": "t", "type": "text", "label": "Code", "validations": {"pattern": "("}},
        ))


def test_resolve_field_synonyms_keeps_explicit_bounds():
    data = resolve_field_synonyms({
        "id": "n",
        "type": " Number ",
        "label": "How many",
        "max": 10,
        "validations": {"min": 1, "max": 99, "minLength": None},
        "visibleWhen": {"field": "x", "anyOf": 3},
        "currencyCode": "USD",
    })
    assert data["type"] == "number"
    assert data["min"] == 1
    assert data["max"] == 10
    assert "validations" not in data
    assert data["showIf"] == {"field": "x", "anyOf": ["3"]}
    assert data["currency"] == "USD"


def test_numeric_bounds_on_text_fields_are_dropped_with_warning(caplog):
    with caplog.at_level("WARNING", logger="rental_assist.forms.validator"):
        data = resolve_field_synonyms({
            "id": "notes",
            "type": "text",
            "label": "Anything else?",
            "validations": {"min": 1, "max": 200, "maxLength": 500},
        })

    assert "min" not in data
    assert "max" not in data
    assert data["validations"] == {"maxLength": 500}
    assert "dropping validations.max on a 'text' field" in caplog.text


def test_option_shapes_are_folded():
    data = resolve_field_synonyms({
        "id": "c", "type": "multi_select", "label": "Pick",
        "options": ["a", 2, True, {"value": "d"}, {"label": "E"}, {"id": "f", "text": "Eff"}],
    })
    assert data["type"] == "multiselect"
    assert data["options"] == [
        {"value": "a", "label": "a"},
        {"value": "2", "label": "2"},
        {"value": "true", "label": "true"},
        {"value": "d", "label": "d"},
        {"value": "E", "label": "E"},
        {"value": "f", "label": "Eff"},
    ]
