"""Generation of the supplemental questionnaire from the core application."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..forms.pii_filter import filter_pii
from ..forms.validator import validate_form_spec
from ..models.form_spec import FormSpec
from ..utils.config import DEFAULT_PROMPT
from ..utils.errors import BedrockAPIError, SpecValidationError
from .prompts import build_context, build_system_prompt, build_user_message

logger = logging.getLogger(__name__)


def _preview(text: str, limit: int) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."


@dataclass
class GenerationResult:
    """
    Outcome of one generation attempt.

    Attributes:
        raw: Parsed JSON from the model, or an empty dict when parsing failed
        spec: Validated and PII-filtered specification, None when validation failed
        debug: Request, response (or error) and raw content for inspection
        issues: Validation problems found in ``raw``
    """

    raw: Dict[str, Any]
    spec: Optional[FormSpec]
    debug: Dict[str, Any]
    issues: List[str] = field(default_factory=list)
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def ok(self) -> bool:
        return self.spec is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw": self.raw,
            "spec": self.spec.to_dict() if self.spec is not None else None,
            "debug": self.debug,
            "issues": self.issues,
            "generatedAt": self.generated_at,
        }


class SpecGenerator:
    """
    Ask the language model for a follow-up questionnaire and validate it.

    ``generate`` never raises for generator, parse or validation failures;
    each of them is reported through the returned GenerationResult.
    """

    def __init__(
        self,
        client: Any,
        max_fields: int = 8,
        default_prompt: str = DEFAULT_PROMPT,
        allow_unknown_types: bool = False,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ):
        """
        Args:
            client: Object exposing ``async converse(system_prompt, user_message, ...)``
            max_fields: Default upper bound on generated fields
            default_prompt: Prompt used when the caller supplies none
            allow_unknown_types: Keep unknown field types as unsupported fields
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
        """
        self.client = client
        self.max_fields = max_fields
        self.default_prompt = default_prompt
        self.allow_unknown_types = allow_unknown_types
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(
        self,
        core: Optional[Dict[str, Any]],
        prompt: Optional[str] = None,
        max_fields: Optional[int] = None,
    ) -> GenerationResult:
        """
        Generate, validate and PII-filter a form specification.

        Args:
            core: Core application record used as applicant context
            prompt: Screener prompt; the default prompt is used when blank
            max_fields: Override for the field limit

        Returns:
            GenerationResult
        """
        limit = max_fields or self.max_fields
        user_prompt = (prompt or "").strip() or self.default_prompt
        system_prompt = build_system_prompt(limit)
        user_message = build_user_message(user_prompt, core)

        logger.info(f"Generating questions (max_fields={limit})")
        logger.debug(f"System prompt: {_preview(system_prompt, 160)}")
        logger.debug(f"User prompt: {_preview(user_prompt, 200)}")
        logger.debug(f"Context: {_preview(build_context(core), 200)}")

        debug: Dict[str, Any] = {
            "request": {
                "system": system_prompt,
                "user": user_message,
                "maxFields": limit,
                "temperature": self.temperature,
            },
        }

        content = ""
        try:
            response = await self.client.converse(
                system_prompt=system_prompt,
                user_message=user_message,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            content = response.get("text") or ""
            debug["response"] = {
                key: value for key, value in response.items() if key != "text"
            }
        except BedrockAPIError as e:
            logger.error(f"Question generation failed: {e}")
            debug["response"] = {"error": e.to_debug()}
        except Exception as e:  # pylint: disable=broad-except
            logger.error(f"Unexpected error generating questions: {str(e)}", exc_info=True)
            debug["response"] = {
                "error": {"message": str(e), "code": type(e).__name__, "param": None}
            }

        debug["content"] = content
        logger.debug(f"Response: {_preview(content, 200)}")

        raw = self._parse(content)
        try:
            spec = validate_form_spec(raw, allow_unknown_types=self.allow_unknown_types)
        except SpecValidationError as e:
            logger.warning(f"Generated specification rejected: {len(e.issues)} issue(s)")
            return GenerationResult(raw=raw, spec=None, debug=debug, issues=e.issues)

        spec = filter_pii(spec)
        logger.info(f"Generated form '{spec.title}' with {len(spec.fields)} field(s)")
        return GenerationResult(raw=raw, spec=spec, debug=debug)

    @staticmethod
    def _parse(content: str) -> Dict[str, Any]:
        """Strict JSON parse; anything unparseable becomes an empty object."""
        if not content or not content.strip():
            return {}
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Model response is not valid JSON: {e}")
            return {}
        if not isinstance(parsed, dict):
            logger.warning(f"Model response is JSON {type(parsed).__name__}, expected object")
            return {}
        return parsed
