"""
LLM Client Module for AWS Bedrock Claude Integration
Provides the thread-safe model client used by every classifier
"""
from __future__ import annotations

import json
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..config import LLMConfig
from ..utils import get_logger, LLMError, InferenceMetrics, is_retryable_error

logger = get_logger(__name__)

# Bedrock error codes that clear up on their own
_RETRYABLE_ERROR_CODES = {
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceUnavailableException",
    "InternalServerException",
    "ModelNotReadyException",
    "ModelTimeoutException",
}


@dataclass
class GenerateResponseResult:
    """Result of a single generate_response call"""
    content: str
    conversation_id: str
    model_id: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: Optional[str] = None
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "conversation_id": self.conversation_id,
            "model_id": self.model_id,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "stop_reason": self.stop_reason,
            "latency_ms": self.latency_ms,
        }


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients

    Implementations must be synchronous per invocation and safe to call from
    many worker threads at once.
    """

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the model answering requests"""

    @abstractmethod
    def generate_response(
        self,
        prompt: str,
        system_message: str,
        temperature: float,
        thinking: bool = False,
    ) -> GenerateResponseResult:
        """Send one prompt and return the raw text answer"""


def classify_llm_error(error: Exception, model_id: Optional[str] = None) -> LLMError:
    """Wrap a raw client failure into an LLMError with retryability decided"""
    if isinstance(error, LLMError):
        return error

    status_code: Optional[int] = None
    retryable: bool

    if isinstance(error, ClientError):
        error_info = error.response.get("Error", {})
        code = error_info.get("Code", "")
        status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        retryable = code in _RETRYABLE_ERROR_CODES or (status_code is not None and status_code >= 500)
        message = f"Bedrock request failed ({code}): {error_info.get('Message', str(error))}"
    elif isinstance(error, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        retryable = True
        message = f"Bedrock connection failed: {error}"
    elif isinstance(error, BotoCoreError):
        retryable = is_retryable_error(error)
        message = f"Bedrock client error: {error}"
    else:
        retryable = is_retryable_error(error)
        message = f"Bedrock Claude invocation failed: {error}"

    return LLMError(
        message=message,
        model_id=model_id,
        retryable=retryable,
        status_code=status_code,
        original_error=error,
    )


class BedrockClaudeClient(BaseLLMClient):
    """
    AWS Bedrock Claude Client
    Thread-safe client for interacting with Claude via AWS Bedrock
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client = None
        self._lock = threading.Lock()

    @property
    def model_id(self) -> str:
        return self.config.model_id

    def _get_client(self):
        """Get or create Boto3 Bedrock client (lazy initialization)"""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    boto_config = Config(
                        region_name=self.config.aws_region,
                        retries={
                            'max_attempts': 0,  # retries are handled by the concurrency core
                            'mode': 'standard'
                        },
                        connect_timeout=30,
                        read_timeout=self.config.request_timeout,
                    )

                    session_kwargs = {}
                    if self.config.aws_access_key_id:
                        session_kwargs['aws_access_key_id'] = self.config.aws_access_key_id.get_secret_value()
                    if self.config.aws_secret_access_key:
                        session_kwargs['aws_secret_access_key'] = self.config.aws_secret_access_key.get_secret_value()
                    if self.config.aws_session_token:
                        session_kwargs['aws_session_token'] = self.config.aws_session_token.get_secret_value()

                    if session_kwargs:
                        session = boto3.Session(**session_kwargs)
                        self._client = session.client('bedrock-runtime', config=boto_config)
                    else:
                        self._client = boto3.client(
                            'bedrock-runtime',
                            config=boto_config,
                            region_name=self.config.aws_region
                        )

                    logger.info(
                        "Initialized Bedrock client",
                        extra={"extra_fields": {
                            "region": self.config.aws_region,
                            "model_id": self.config.model_id
                        }}
                    )

        return self._client

    def _build_request_body(
        self,
        prompt: str,
        system_message: str,
        temperature: float,
        thinking: bool,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": self.config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_message:
            body["system"] = system_message

        if thinking:
            # Extended thinking rejects custom sampling parameters
            body["thinking"] = {
                "type": "enabled",
                "budget_tokens": self.config.thinking_budget_tokens,
            }
            body["max_tokens"] = max(self.config.max_tokens, self.config.thinking_budget_tokens + 1024)
        else:
            body["temperature"] = temperature
            body["top_p"] = self.config.top_p
        return body

    def generate_response(
        self,
        prompt: str,
        system_message: str,
        temperature: float,
        thinking: bool = False,
    ) -> GenerateResponseResult:
        """
        Invoke Claude via Bedrock

        Args:
            prompt: User prompt
            system_message: System prompt framing the task
            temperature: Sampling temperature (ignored when thinking is enabled)
            thinking: Enable extended thinking

        Returns:
            GenerateResponseResult with the concatenated text blocks
        """
        client = self._get_client()
        request_body = self._build_request_body(prompt, system_message, temperature, thinking)
        start_time = time.time()

        try:
            response = client.invoke_model(
                modelId=self.config.model_id,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json",
            )
            response_body = json.loads(response['body'].read())
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            error = classify_llm_error(e, self.config.model_id)
            logger.error(
                f"LLM invocation failed: {error.message}",
                extra={"extra_fields": {
                    "latency_ms": round(latency_ms, 2),
                    "retryable": error.retryable,
                }}
            )
            raise error

        latency_ms = (time.time() - start_time) * 1000

        content = ""
        for block in response_body.get("content") or []:
            if block.get("type") == "text":
                content += block.get("text", "")

        usage = response_body.get("usage", {})
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)

        InferenceMetrics.record_llm_call(
            duration=latency_ms / 1000,
            model_id=self.config.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

        logger.debug(
            "LLM invocation successful",
            extra={"extra_fields": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "latency_ms": round(latency_ms, 2),
            }}
        )

        return GenerateResponseResult(
            content=content,
            conversation_id=response_body.get("id") or str(uuid.uuid4()),
            model_id=self.config.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            stop_reason=response_body.get("stop_reason"),
            latency_ms=latency_ms,
        )


class LLMClientFactory:
    """Factory for creating LLM clients"""

    _clients: Dict[str, BaseLLMClient] = {}
    _lock = threading.Lock()

    @classmethod
    def get_client(cls, config: LLMConfig) -> BaseLLMClient:
        """
        Get or create LLM client instance

        One client is shared per provider, model and region
        """
        key = f"{config.provider.value}_{config.model_id}_{config.aws_region}"

        if key not in cls._clients:
            with cls._lock:
                if key not in cls._clients:
                    if config.provider.value == "bedrock_claude":
                        cls._clients[key] = BedrockClaudeClient(config)
                    else:
                        raise ValueError(f"Unsupported LLM provider: {config.provider}")

        return cls._clients[key]

    @classmethod
    def clear_clients(cls) -> None:
        """Clear all cached clients"""
        with cls._lock:
            cls._clients.clear()


def get_llm_client(config: LLMConfig) -> BaseLLMClient:
    """Get LLM client instance"""
    return LLMClientFactory.get_client(config)
