"""Shared fixtures: sample generator output and a scripted generator client."""

import json
import os
from typing import Any, Dict, List, Optional

import pytest

from rental_assist.generation.orchestrator import SpecGenerator
from rental_assist.service import ApplicationService
from rental_assist.storage.memory_store import InMemoryApplicationStore

SAMPLE_SPEC_PATH = os.path.join(os.path.dirname(__file__), "data", "sample_specs", "eviction_followup.json")


class FakeBedrockClient:
    """Stands in for BedrockClient; replies with queued text or raises queued errors."""

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []

    async def converse(self, system_prompt: str, user_message: str,
                       temperature: float = 0.2, max_tokens: int = 4096) -> Dict[str, Any]:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_message": user_message,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return {
            "text": reply,
            "stop_reason": "end_turn",
            "usage": {"inputTokens": 10, "outputTokens": 20},
            "request_id": "req-1",
            "model": "fake-model",
        }


@pytest.fixture
def sample_spec_text() -> str:
    with open(SAMPLE_SPEC_PATH, "r") as f:
        return f.read()


@pytest.fixture
def sample_spec_raw(sample_spec_text) -> Dict[str, Any]:
    return json.loads(sample_spec_text)


@pytest.fixture
def fake_client() -> FakeBedrockClient:
    return FakeBedrockClient()


@pytest.fixture
def service(fake_client) -> ApplicationService:
    generator = SpecGenerator(fake_client, max_fields=8)
    return ApplicationService(InMemoryApplicationStore(), generator)


@pytest.fixture
def core_sections() -> Dict[str, Dict[str, Any]]:
    """Four independently valid section submissions, as a browser would post them."""
    return {
        "applicant": {
            "firstName": "Maria",
            "lastName": "Lopez",
            "dob": "1985-04-12",
            "phone": "555-123-4567",
            "email": "maria@example.org",
            "language": "es",
        },
        "housing": {
            "address1": "12 Elm St",
            "address2": "",
            "city": "Springfield",
            "state": "il",
            "zip": "62704",
            "monthlyRent": "1200",
            "monthsBehind": "2",
            "landlordName": "Oak Property Mgmt",
        },
        "household": {
            "size": "3",
            "members": [
                {"relation": "child", "ageRange": "0-17", "incomeBand": "none"},
                {"relation": "parent", "ageRange": "62+", "incomeBand": "low"},
            ],
        },
        "eligibility": {
            "hardship": True,
            "typedSignature": "Maria Lopez",
        },
    }
