"""Utility modules for configuration, logging, errors, and AWS integration."""

from .config import Config
from .errors import (
    ApplicationStateError,
    BedrockAPIError,
    ConfigurationError,
    ErrorContext,
    ErrorType,
    RentalAssistanceError,
    SectionValidationError,
    SpecValidationError,
)

__all__ = [
    'Config',
    'ApplicationStateError',
    'BedrockAPIError',
    'ConfigurationError',
    'ErrorContext',
    'ErrorType',
    'RentalAssistanceError',
    'SectionValidationError',
    'SpecValidationError',
]
