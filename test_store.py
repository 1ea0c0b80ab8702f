"""Tests for the in-memory and SQL application stores."""

import pytest

from rental_assist.storage.base import STATUS_DRAFT, STATUS_SUBMITTED
from rental_assist.storage.memory_store import InMemoryApplicationStore
from rental_assist.storage.sql_store import SqlApplicationStore


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryApplicationStore()
    return SqlApplicationStore("sqlite:///:memory:")


def test_get_unknown_session_returns_none(store):
    assert store.get("missing") is None


def test_merge_creates_draft_record(store):
    record = store.merge("s1", core={"applicant": {"firstName": "Ana"}})

    assert record.session_id == "s1"
    assert record.status == STATUS_DRAFT
    assert record.core == {"applicant": {"firstName": "Ana"}}
    assert record.dynamic_spec is None
    assert store.get("s1").id == record.id


def test_merge_updates_only_given_attributes(store):
    first = store.merge("s1", core={"applicant": {"firstName": "Ana"}}, prompt="Ask about utilities")
    second = store.merge("s1", dynamic_answers={"q1": ["a", "b"]})

    assert second.id == first.id
    assert second.prompt == "Ask about utilities"
    assert second.core == {"applicant": {"firstName": "Ana"}}
    assert second.dynamic_answers == {"q1": ["a", "b"]}
    assert second.updated_at >= first.updated_at


def test_json_attributes_round_trip(store):
    spec = {
        "title": "Follow-up",
        "version": "1.0",
        "fields": [{"id": "x", "type": "boolean", "label": "Yes?", "showIf": {"field": "y", "equals": None}}],
    }
    store.merge("s1", dynamic_spec=spec, dynamic_answers={"x": True, "n": 2.5})

    record = store.get("s1")
    assert record.dynamic_spec == spec
    assert record.dynamic_answers == {"x": True, "n": 2.5}


def test_returned_records_are_copies(store):
    store.merge("s1", core={"housing": {"city": "Akron"}})
    record = store.get("s1")
    record.core["applicant"] = {"firstName": "changed"}

    assert "applicant" not in store.get("s1").core


def test_sessions_are_isolated(store):
    store.merge("s1", prompt="one")
    store.merge("s2", prompt="two")

    assert store.get("s1").prompt == "one"
    assert store.get("s2").prompt == "two"


def test_clear_removes_record(store):
    store.merge("s1", prompt="one")
    store.clear("s1")
    store.clear("s1")

    assert store.get("s1") is None


def test_status_change(store):
    store.merge("s1", prompt="one")
    record = store.merge("s1", status=STATUS_SUBMITTED)

    assert record.is_submitted
    assert store.get("s1").is_submitted


def test_rejects_unknown_attributes(store):
    with pytest.raises(ValueError):
        store.merge("s1", id="other")
    with pytest.raises(ValueError):
        store.merge("s1", status="archived")


def test_record_to_dict_uses_camel_case(store):
    data = store.merge("s1", prompt="one").to_dict()

    assert set(data) == {
        "id", "sessionId", "status", "core", "prompt",
        "dynamicSpec", "dynamicAnswers", "createdAt", "updatedAt",
    }
    assert data["sessionId"] == "s1"
