"""Tests for the generation orchestrator and the Bedrock client wrapper."""

import json
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from conftest import FakeBedrockClient
from rental_assist.generation.orchestrator import SpecGenerator
from rental_assist.generation.prompts import build_system_prompt, build_user_message
from rental_assist.utils import bedrock_client as bedrock_module
from rental_assist.utils.bedrock_client import BedrockClient
from rental_assist.utils.errors import BedrockAPIError, ErrorType

CORE = {"housing": {"monthlyRent": 1200, "monthsBehind": 2}}


def _client_error(code, message="failed"):
    return ClientError({"Error": {"Code": code, "Message": message}}, "Converse")


def test_system_prompt_lists_constraints():
    prompt = build_system_prompt(5)

    assert prompt.startswith("Return ONLY JSON matching DynamicFormSpec.")
    assert "No file uploads." in prompt
    assert "Max 5 fields." in prompt
    assert "Avoid PII (SSN, bank)." in prompt
    assert "8th-grade reading level." in prompt


def test_user_message_carries_applicant_context():
    message = build_user_message("Ask about utilities", CORE)
    prompt, context = message.split("\n\nAPPLICANT_CONTEXT:\n")

    assert prompt == "Ask about utilities"
    assert json.loads(context) == {"core": CORE}


@pytest.mark.asyncio
async def test_generate_validates_and_filters(sample_spec_text):
    client = FakeBedrockClient([sample_spec_text])
    generator = SpecGenerator(client, max_fields=6)

    result = await generator.generate(CORE, "Ask about eviction")

    assert result.ok
    assert result.spec.field_by_id("ssn_last4") is None
    assert result.spec.field_by_id("eviction_notice") is not None
    assert result.raw["title"] == "A few more questions about your situation"
    assert result.debug["content"] == sample_spec_text
    assert result.debug["response"]["request_id"] == "req-1"
    assert "Max 6 fields." in client.calls[0]["system_prompt"]
    assert client.calls[0]["user_message"].startswith("Ask about eviction\n\nAPPLICANT_CONTEXT:\n")


@pytest.mark.asyncio
async def test_blank_prompt_uses_default():
    client = FakeBedrockClient(["{}"])
    generator = SpecGenerator(client, default_prompt="Default screener prompt")

    await generator.generate(CORE, "   ")

    assert client.calls[0]["user_message"].startswith("Default screener prompt\n\n")


@pytest.mark.asyncio
async def test_max_fields_override():
    client = FakeBedrockClient(["{}"])
    await SpecGenerator(client, max_fields=8).generate(CORE, max_fields=3)
    assert "Max 3 fields." in client.calls[0]["system_prompt"]


@pytest.mark.asyncio
async def test_invalid_json_yields_null_spec():
    client = FakeBedrockClient(['{"title": "Oops", "fields": ['])
    result = await SpecGenerator(client).generate(CORE)

    assert result.spec is None
    assert result.raw == {}
    assert result.debug["content"] == '{"title": "Oops", "fields": ['
    assert result.issues


@pytest.mark.asyncio
async def test_non_object_json_yields_empty_raw():
    client = FakeBedrockClient(['["not", "a", "spec"]'])
    result = await SpecGenerator(client).generate(CORE)

    assert result.spec is None
    assert result.raw == {}


@pytest.mark.asyncio
async def test_structurally_invalid_spec_keeps_raw():
    raw = {"fields": [{"id": "a", "type": "text", "label": "Notes"}]}
    client = FakeBedrockClient([json.dumps(raw)])
    result = await SpecGenerator(client).generate(CORE)

    assert result.spec is None
    assert result.raw == raw
    assert any(issue.startswith("title") for issue in result.issues)


@pytest.mark.asyncio
async def test_service_error_is_returned_as_data():
    error = BedrockAPIError.from_client_error(_client_error("ThrottlingException", "slow down"), "converse")
    client = FakeBedrockClient([error])

    result = await SpecGenerator(client).generate(CORE)

    assert result.spec is None
    assert result.raw == {}
    debug_error = result.debug["response"]["error"]
    assert debug_error["code"] == "ThrottlingException"
    assert debug_error["param"] is None
    assert "slow down" in debug_error["message"]
    assert result.debug["request"]["system"].startswith("Return ONLY JSON")


@pytest.mark.asyncio
async def test_unexpected_error_is_returned_as_data():
    client = FakeBedrockClient([RuntimeError("connection reset")])
    result = await SpecGenerator(client).generate(CORE)

    assert result.spec is None
    assert result.debug["response"]["error"] == {
        "message": "connection reset",
        "code": "RuntimeError",
        "param": None,
    }


def test_result_to_dict(sample_spec_raw):
    from rental_assist.generation.orchestrator import GenerationResult

    result = GenerationResult(raw=sample_spec_raw, spec=None, debug={"content": ""}, issues=["title: missing"])
    data = result.to_dict()

    assert data["spec"] is None
    assert data["issues"] == ["title: missing"]
    assert "generatedAt" in data


class _FakeRuntime:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def converse(self, **params):
        self.calls.append(params)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


CONVERSE_RESPONSE = {
    "output": {"message": {"role": "assistant", "content": [{"text": '{"title": "T",'}, {"text": '"fields": []}'}]}},
    "stopReason": "end_turn",
    "usage": {"inputTokens": 12, "outputTokens": 8},
    "ResponseMetadata": {"RequestId": "abc-123"},
}


@pytest.fixture
def no_sleep(monkeypatch):
    waits = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    monkeypatch.setattr(bedrock_module, "asyncio", SimpleNamespace(sleep=fake_sleep))
    return waits


@pytest.mark.asyncio
async def test_bedrock_client_parses_converse_response():
    runtime = _FakeRuntime([CONVERSE_RESPONSE])
    client = BedrockClient(model_id="test-model", runtime=runtime)

    response = await client.converse("system", "user", temperature=0.1, max_tokens=100)

    assert response["text"] == '{"title": "T",\n"fields": []}'
    assert response["request_id"] == "abc-123"
    assert response["stop_reason"] == "end_turn"
    params = runtime.calls[0]
    assert params["modelId"] == "test-model"
    assert params["system"] == [{"text": "system"}]
    assert params["messages"][0]["content"] == [{"text": "user"}]
    assert params["inferenceConfig"] == {"temperature": 0.1, "maxTokens": 100}


@pytest.mark.asyncio
async def test_bedrock_client_retries_throttling(no_sleep):
    runtime = _FakeRuntime([_client_error("ThrottlingException"), CONVERSE_RESPONSE])
    client = BedrockClient(runtime=runtime, max_retries=3)

    response = await client.converse("system", "user")

    assert response["request_id"] == "abc-123"
    assert len(runtime.calls) == 2
    assert no_sleep == [1]


@pytest.mark.asyncio
async def test_bedrock_client_does_not_retry_validation_errors(no_sleep):
    runtime = _FakeRuntime([_client_error("ValidationException", "bad input")])
    client = BedrockClient(runtime=runtime, max_retries=3)

    with pytest.raises(BedrockAPIError) as exc_info:
        await client.converse("system", "user")

    assert exc_info.value.error_type == ErrorType.GENERATOR_INVALID_REQUEST
    assert len(runtime.calls) == 1
    assert no_sleep == []


@pytest.mark.asyncio
async def test_bedrock_client_gives_up_after_max_retries(no_sleep):
    runtime = _FakeRuntime([_client_error("ServiceUnavailableException")] * 2)
    client = BedrockClient(runtime=runtime, max_retries=2)

    with pytest.raises(BedrockAPIError) as exc_info:
        await client.converse("system", "user")

    assert exc_info.value.error_type == ErrorType.GENERATOR_SERVICE_ERROR
    assert exc_info.value.context.recoverable
    assert no_sleep == [1]
