"""AWS Bedrock client wrapper with retry logic and error handling."""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from dotenv import load_dotenv

from .errors import BedrockAPIError, ErrorType, ErrorContext

# Ensure environment variables are loaded
load_dotenv()

logger = logging.getLogger(__name__)


class BedrockClient:
    """
    Wrapper for the AWS Bedrock Runtime Converse API.

    Provides a single text-in/text-out call with a system prompt, plus
    automatic retry with exponential backoff for throttling and transient
    service errors. Any other failure is raised as BedrockAPIError.
    """

    RETRYABLE_ERRORS = {
        "ThrottlingException",
        "TooManyRequestsException",
        "ServiceUnavailableException",
        "InternalServerException",
        "RequestTimeout",
        "RequestTimeoutException",
    }

    def __init__(
        self,
        region: str = "us-east-1",
        model_id: str = "amazon.nova-pro-v1:0",
        timeout: int = 120,
        max_retries: int = 3,
        runtime: Any = None,
    ):
        """
        Initialize Bedrock client.

        Args:
            region: AWS region for Bedrock service
            model_id: Converse-capable model identifier
            timeout: Connect/read timeout in seconds
            max_retries: Maximum number of attempts per call
            runtime: Optional pre-built bedrock-runtime client
        """
        self.region = region
        self.model_id = model_id
        self.max_retries = max(1, max_retries)

        if runtime is not None:
            self.runtime = runtime
        else:
            config_kwargs: Dict[str, Any] = {
                "region_name": region,
                "connect_timeout": timeout,
                "read_timeout": timeout,
                "retries": {"max_attempts": 0},  # We handle retries manually
            }
            # API-key auth; botocore reads AWS_BEARER_TOKEN_BEDROCK itself
            if os.getenv("AWS_BEARER_TOKEN_BEDROCK"):
                config_kwargs["signature_version"] = "bearer"
                logger.info("BedrockClient configured to use Amazon Bedrock API key authentication")
            self.runtime = boto3.client("bedrock-runtime", config=Config(**config_kwargs))

        logger.info(
            f"Initialized BedrockClient: region={region}, "
            f"model={model_id}, max_retries={self.max_retries}"
        )

    async def converse(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ) -> Dict[str, Any]:
        """
        Send one system + user turn through the Converse API.

        Args:
            system_prompt: System instruction text
            user_message: User turn text
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Dict with 'text', 'stop_reason', 'usage', 'request_id' and 'model'

        Raises:
            BedrockAPIError: If the call fails or all retry attempts are exhausted
        """
        params = {
            "modelId": self.model_id,
            "system": [{"text": system_prompt}],
            "messages": [{"role": "user", "content": [{"text": user_message}]}],
            "inferenceConfig": {
                "temperature": temperature,
                "maxTokens": max_tokens,
            },
        }

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Invoking {self.model_id} (attempt {attempt + 1}/{self.max_retries})")
                response = self.runtime.converse(**params)
                logger.info(
                    f"Converse call successful: stop_reason={response.get('stopReason')}, "
                    f"usage={response.get('usage')}"
                )
                return self._parse_converse_response(response)

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))
                logger.warning(
                    f"Bedrock API error (attempt {attempt + 1}/{self.max_retries}): "
                    f"code={error_code}, message={error_message}"
                )

                if error_code in self.RETRYABLE_ERRORS and attempt < self.max_retries - 1:
                    wait_time = 2 ** attempt
                    logger.info(f"Retrying in {wait_time} seconds...")
                    await asyncio.sleep(wait_time)
                    continue

                raise BedrockAPIError.from_client_error(
                    error=e,
                    operation="converse",
                    recoverable=error_code in self.RETRYABLE_ERRORS,
                    fallback_action="Try generating again",
                )

            except Exception as e:
                logger.error(f"Unexpected error invoking {self.model_id}: {str(e)}")
                raise BedrockAPIError(ErrorContext(
                    error_type=ErrorType.GENERATOR_SERVICE_ERROR,
                    message=f"Unexpected error invoking {self.model_id}: {str(e)}",
                    recoverable=False,
                    details={"error_code": type(e).__name__, "operation": "converse"},
                    original_exception=e,
                ))

        raise BedrockAPIError(ErrorContext(
            error_type=ErrorType.GENERATOR_SERVICE_ERROR,
            message=f"Failed to invoke {self.model_id} after {self.max_retries} attempts",
            recoverable=True,
            details={"operation": "converse"},
        ))

    def _parse_converse_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """Flatten a Converse API response into text plus metadata."""
        message = response.get("output", {}).get("message", {})
        content: List[Dict[str, Any]] = message.get("content", []) or []
        text_parts = [block["text"] for block in content if "text" in block]

        return {
            "text": "\n".join(text_parts),
            "stop_reason": response.get("stopReason", "unknown"),
            "usage": response.get("usage", {}),
            "request_id": response.get("ResponseMetadata", {}).get("RequestId"),
            "model": self.model_id,
        }
