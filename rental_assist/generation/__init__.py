"""Language-model driven questionnaire generation."""

from .orchestrator import GenerationResult, SpecGenerator
from .prompts import build_system_prompt, build_user_message

__all__ = [
    'GenerationResult',
    'SpecGenerator',
    'build_system_prompt',
    'build_user_message',
]
