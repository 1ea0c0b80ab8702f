"""Configuration management for the rental assistance wizard."""

import os
import yaml
from dataclasses import dataclass
from typing import Any, Dict

from .errors import ConfigurationError


DEFAULT_PROMPT = (
    "You are assisting a rental assistance screener. Propose up to 8 targeted "
    "follow-ups that affect eligibility or award amount. Focus on eviction status, "
    "utility arrears, priority populations, and documentation needs. Prefer "
    "structured fields over free text."
)


@dataclass
class BedrockConfig:
    """AWS Bedrock configuration."""
    model_id: str
    timeout: int
    max_retries: int
    temperature: float = 0.2
    max_tokens: int = 4096


@dataclass
class GenerationConfig:
    """Dynamic question generation settings."""
    max_fields: int = 8
    default_prompt: str = DEFAULT_PROMPT
    allow_unknown_field_types: bool = False


@dataclass
class StorageConfig:
    """Application store configuration."""
    backend: str = "memory"
    database_url: str = ""


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    format: str
    file: str


@dataclass
class Config:
    """Main configuration class."""
    aws_region: str
    bedrock: BedrockConfig
    generation: GenerationConfig
    storage: StorageConfig
    logging: LoggingConfig

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - AWS_REGION
        - BEDROCK_MODEL_ID
        - MAX_DYNAMIC_FIELDS
        - STORAGE_BACKEND
        - DATABASE_URL
        - LOG_LEVEL

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings

        Raises:
            ConfigurationError: If the file is missing or a required key is absent
        """
        if not os.path.exists(config_path):
            raise ConfigurationError.missing(config_path)

        with open(config_path, 'r') as f:
            try:
                config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError.invalid(config_path, e)

        try:
            return cls._from_dict(config_data)
        except KeyError as e:
            raise ConfigurationError.missing(str(e.args[0]))
        except (TypeError, ValueError) as e:
            raise ConfigurationError.invalid(str(e), e)

    @classmethod
    def _from_dict(cls, config_data: Dict[str, Any]) -> "Config":
        aws_region = os.getenv("AWS_REGION", config_data["aws"]["region"])

        bedrock_data = config_data["aws"]["bedrock"]
        bedrock_config = BedrockConfig(
            model_id=os.getenv("BEDROCK_MODEL_ID", bedrock_data["model_id"]),
            timeout=int(bedrock_data["timeout"]),
            max_retries=int(bedrock_data["max_retries"]),
            temperature=float(bedrock_data.get("temperature", 0.2)),
            max_tokens=int(bedrock_data.get("max_tokens", 4096)),
        )

        gen = config_data.get("generation", {}) or {}
        generation_config = GenerationConfig(
            max_fields=int(os.getenv("MAX_DYNAMIC_FIELDS", gen.get("max_fields", 8))),
            default_prompt=gen.get("default_prompt") or DEFAULT_PROMPT,
            allow_unknown_field_types=bool(gen.get("allow_unknown_field_types", False)),
        )

        st = config_data.get("storage", {}) or {}
        storage_config = StorageConfig(
            backend=os.getenv("STORAGE_BACKEND", st.get("backend", "memory")),
            database_url=os.getenv("DATABASE_URL", st.get("database_url", "")),
        )
        if storage_config.backend not in ("memory", "sql"):
            raise ValueError(f"storage.backend must be 'memory' or 'sql', got {storage_config.backend!r}")
        if storage_config.backend == "sql" and not storage_config.database_url:
            raise KeyError("storage.database_url")

        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", config_data["logging"]["level"]),
            format=config_data["logging"]["format"],
            file=config_data["logging"].get("file", ""),
        )

        return cls(
            aws_region=aws_region,
            bedrock=bedrock_config,
            generation=generation_config,
            storage=storage_config,
            logging=logging_config,
        )
