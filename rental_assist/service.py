"""Wizard operations over the application store.

Every page and API route goes through ``ApplicationService``; it owns the
rules about when a record may change and what gets stored after each step.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .forms.renderer import FormRenderer, SubmissionResult
from .forms.validator import validate_form_spec
from .generation.orchestrator import GenerationResult, SpecGenerator
from .models.application import CORE_SECTIONS, SECTION_MODELS, CoreApplication, Housing
from .models.form_spec import FormSpec
from .storage.base import STATUS_SUBMITTED, ApplicationRecord, ApplicationStore
from .storage.memory_store import InMemoryApplicationStore
from .storage.sql_store import SqlApplicationStore
from .utils.bedrock_client import BedrockClient
from .utils.config import Config
from .utils.errors import (
    ApplicationStateError,
    SectionValidationError,
    SpecValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class CoreStatus:
    """Completeness of the four core sections."""

    sections: Dict[str, bool] = field(default_factory=dict)
    total_owed: Optional[float] = None

    @property
    def complete(self) -> bool:
        return all(self.sections.get(name, False) for name in CORE_SECTIONS)

    @property
    def missing(self) -> List[str]:
        return [name for name in CORE_SECTIONS if not self.sections.get(name, False)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections": self.sections,
            "complete": self.complete,
            "missing": self.missing,
            "totalOwed": self.total_owed,
        }


class ApplicationService:
    """
    Wizard operations keyed by session id.

    Attributes:
        store: Application persistence
        generator: Questionnaire generator
        allow_unknown_types: Passed to the validator when a stored spec is reloaded
    """

    def __init__(
        self,
        store: ApplicationStore,
        generator: SpecGenerator,
        allow_unknown_types: bool = False,
    ):
        self.store = store
        self.generator = generator
        self.allow_unknown_types = allow_unknown_types

    def get_application(self, session_id: str) -> Optional[ApplicationRecord]:
        return self.store.get(session_id)

    def require_application(self, session_id: str) -> ApplicationRecord:
        record = self.store.get(session_id)
        if record is None:
            raise ApplicationStateError.not_found(session_id)
        return record

    def _require_draft(self, session_id: str) -> Optional[ApplicationRecord]:
        record = self.store.get(session_id)
        if record is not None and record.is_submitted:
            raise ApplicationStateError.already_submitted(record.id)
        return record

    def save_section(
        self, session_id: str, section: str, data: Mapping[str, Any]
    ) -> ApplicationRecord:
        """
        Validate one core section and store it.

        Args:
            session_id: Session identifier
            section: One of applicant, housing, household, eligibility
            data: Submitted values, camelCase or snake_case keys

        Returns:
            Updated application record

        Raises:
            ValueError: If ``section`` is not a core section
            SectionValidationError: If the values do not validate
            ApplicationStateError: If the application was already submitted
        """
        model = SECTION_MODELS.get(section)
        if model is None:
            raise ValueError(f"Unknown section: {section}")

        record = self._require_draft(session_id)

        values = dict(data)
        if section == "eligibility":
            values.pop("signed_at_iso", None)
            values["signedAtISO"] = datetime.now(timezone.utc).isoformat()

        try:
            parsed = model.model_validate(values)
        except ValidationError as e:
            raise SectionValidationError.from_pydantic(section, e)

        core = dict(record.core) if record is not None else {}
        core[section] = parsed.to_dict()
        logger.info(f"Saved section '{section}'")
        return self.store.merge(session_id, core=core)

    def core_status(self, record: Optional[ApplicationRecord]) -> CoreStatus:
        core = record.core if record is not None else {}
        status = CoreStatus()
        for name in CORE_SECTIONS:
            data = core.get(name)
            if data is None:
                status.sections[name] = False
                continue
            try:
                parsed = SECTION_MODELS[name].model_validate(data)
            except ValidationError:
                status.sections[name] = False
                continue
            status.sections[name] = True
            if isinstance(parsed, Housing):
                status.total_owed = parsed.total_owed
        return status

    async def generate_questions(
        self,
        session_id: str,
        prompt: Optional[str] = None,
        max_fields: Optional[int] = None,
    ) -> GenerationResult:
        """
        Generate a questionnaire from the stored core record.

        The prompt is saved first. A successful generation replaces the stored
        specification and clears the previous answers; a failed one leaves both
        untouched.
        """
        record = self._require_draft(session_id)
        effective_prompt = (prompt or "").strip() or self.generator.default_prompt
        record = self.store.merge(session_id, prompt=effective_prompt)

        result = await self.generator.generate(record.core, effective_prompt, max_fields)
        if result.ok:
            self.store.merge(session_id, dynamic_spec=result.spec.to_dict(), dynamic_answers={})
        else:
            logger.warning("Generation failed; keeping the previous questions")
        return result

    def current_spec(self, record: Optional[ApplicationRecord]) -> Optional[FormSpec]:
        if record is None or not record.dynamic_spec:
            return None
        try:
            return validate_form_spec(record.dynamic_spec, allow_unknown_types=self.allow_unknown_types)
        except SpecValidationError as e:
            logger.error(f"Stored form specification no longer validates: {e}")
            return None

    def renderer_for(self, record: Optional[ApplicationRecord]) -> Optional[FormRenderer]:
        spec = self.current_spec(record)
        if spec is None:
            return None
        return FormRenderer(spec, record.dynamic_answers or {})

    def save_answers(self, session_id: str, form_state: Mapping[str, Any]) -> SubmissionResult:
        """
        Collect and store answers for the generated questions.

        Answers for fields that are hidden in this submission, or that are not
        in the current specification, are removed from the stored answer map.

        Raises:
            ApplicationStateError: If there is no application, it was submitted,
                or no questions have been generated yet
        """
        record = self.require_application(session_id)
        if record.is_submitted:
            raise ApplicationStateError.already_submitted(record.id)

        renderer = self.renderer_for(record)
        if renderer is None:
            raise ApplicationStateError.incomplete(record.id, ["dynamicSpec"])

        result = renderer.collect(form_state)
        if not result.ok:
            return result

        known = set(renderer.spec.field_ids)
        answers = dict(record.dynamic_answers or {})
        answers.update(result.answers)
        for field_id in list(answers):
            if field_id in result.hidden or field_id not in known:
                del answers[field_id]

        self.store.merge(session_id, dynamic_answers=answers)
        logger.info(f"Saved {len(answers)} answer(s)")
        result.answers = answers
        return result

    def build_export(self, record: ApplicationRecord) -> Dict[str, Any]:
        """Consolidated record: core sections, questions, answers and metadata."""
        status = self.core_status(record)
        return {
            "core": record.core,
            "dynamicQuestions": record.dynamic_spec,
            "dynamicAnswers": record.dynamic_answers or {},
            "derived": {"totalOwed": status.total_owed},
            "metadata": {
                "prompt": record.prompt,
                "status": record.status,
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            },
        }

    def submit(self, session_id: str) -> ApplicationRecord:
        record = self.require_application(session_id)
        if record.is_submitted:
            logger.info(f"Application {record.id} already submitted")
            return record

        status = self.core_status(record)
        if not status.complete:
            raise ApplicationStateError.incomplete(record.id, status.missing)

        application = CoreApplication.model_validate(record.core)
        record = self.store.merge(session_id, status=STATUS_SUBMITTED)
        logger.info(f"Submitted application {record.id}, total owed {application.total_owed:.2f}")
        return record

    def reset(self, session_id: str) -> None:
        self.store.clear(session_id)


def create_service(config: Config) -> ApplicationService:
    """Build the service, its store and the Bedrock-backed generator from config."""
    if config.storage.backend == "sql":
        store: ApplicationStore = SqlApplicationStore(config.storage.database_url)
    else:
        store = InMemoryApplicationStore()

    client = BedrockClient(
        region=config.aws_region,
        model_id=config.bedrock.model_id,
        timeout=config.bedrock.timeout,
        max_retries=config.bedrock.max_retries,
    )
    generator = SpecGenerator(
        client,
        max_fields=config.generation.max_fields,
        default_prompt=config.generation.default_prompt,
        allow_unknown_types=config.generation.allow_unknown_field_types,
        temperature=config.bedrock.temperature,
        max_tokens=config.bedrock.max_tokens,
    )
    return ApplicationService(
        store,
        generator,
        allow_unknown_types=config.generation.allow_unknown_field_types,
    )
