"""
Configuration Management for Schema Inference
Uses Pydantic for validation and type safety
"""
from __future__ import annotations

import os
from enum import Enum
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

from .utils.errors import ConfigurationError


class LLMProvider(str, Enum):
    """Supported LLM providers"""
    BEDROCK_CLAUDE = "bedrock_claude"


class LogLevel(str, Enum):
    """Log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LLMConfig(BaseModel):
    """LLM configuration for Bedrock Claude"""
    provider: LLMProvider = LLMProvider.BEDROCK_CLAUDE
    model_id: str = "anthropic.claude-3-5-sonnet-20241022-v2:0"
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[SecretStr] = None
    aws_secret_access_key: Optional[SecretStr] = None
    aws_session_token: Optional[SecretStr] = None
    max_tokens: int = Field(default=4096, ge=100, le=100000)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    thinking_budget_tokens: int = Field(default=2048, ge=1024, le=32000)
    request_timeout: int = Field(default=120, ge=10, le=600)


class WorkerPoolConfig(BaseModel):
    """Bounded parallelism for model-calling work items"""
    max_concurrent: int = Field(default=8, ge=1, le=128)


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker gating outbound model calls"""
    threshold: int = Field(default=5, ge=1, le=1000)
    reset_after_seconds: float = Field(default=30.0, gt=0.0, le=3600.0)


class RetryConfig(BaseModel):
    """Exponential backoff around a single model call"""
    max_retries: int = Field(default=3, ge=0, le=20)
    initial_delay: float = Field(default=0.5, ge=0.0, le=60.0)
    max_delay: float = Field(default=10.0, ge=0.0, le=600.0)
    multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    jitter_factor: float = Field(default=0.1, ge=0.0, le=1.0)


class ExtractionConfig(BaseModel):
    """Thresholds and switches for column feature extraction"""
    sample_limit: int = Field(default=50, ge=1, le=1000)
    enum_cardinality_threshold: float = Field(default=0.01, gt=0.0, le=1.0)
    enum_max_distinct: int = Field(default=50, ge=1)
    unix_timestamp_match_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    uuid_match_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    external_id_match_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    currency_match_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    chunk_size: int = Field(default=50, ge=1, le=500)
    classification_temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    fk_resolution_temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    enable_enum_analysis: bool = True
    enable_fk_resolution: bool = True
    enable_cross_column_analysis: bool = True


class SystemConfig(BaseModel):
    """Main system configuration"""
    llm: LLMConfig = Field(default_factory=LLMConfig)
    worker_pool: WorkerPoolConfig = Field(default_factory=WorkerPoolConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    log_level: LogLevel = LogLevel.INFO
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "SystemConfig":
        """Create configuration from environment variables (and a .env file if present)"""
        load_dotenv()

        def _secret(name: str) -> Optional[SecretStr]:
            value = os.getenv(name)
            return SecretStr(value) if value else None

        llm_config = LLMConfig(
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            model_id=os.getenv("BEDROCK_MODEL_ID", "anthropic.claude-3-5-sonnet-20241022-v2:0"),
            aws_access_key_id=_secret("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=_secret("AWS_SECRET_ACCESS_KEY"),
            aws_session_token=_secret("AWS_SESSION_TOKEN"),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4096")),
        )

        return cls(
            llm=llm_config,
            worker_pool=WorkerPoolConfig(
                max_concurrent=int(os.getenv("SCHEMA_INFERENCE_MAX_CONCURRENT", "8")),
            ),
            circuit_breaker=CircuitBreakerConfig(
                threshold=int(os.getenv("SCHEMA_INFERENCE_BREAKER_THRESHOLD", "5")),
                reset_after_seconds=float(os.getenv("SCHEMA_INFERENCE_BREAKER_RESET_SECONDS", "30")),
            ),
            retry=RetryConfig(
                max_retries=int(os.getenv("SCHEMA_INFERENCE_MAX_RETRIES", "3")),
                initial_delay=float(os.getenv("SCHEMA_INFERENCE_RETRY_INITIAL_DELAY", "0.5")),
                max_delay=float(os.getenv("SCHEMA_INFERENCE_RETRY_MAX_DELAY", "10")),
            ),
            extraction=ExtractionConfig(
                chunk_size=int(os.getenv("SCHEMA_INFERENCE_CHUNK_SIZE", "50")),
            ),
            log_level=LogLevel(os.getenv("LOG_LEVEL", "INFO").upper()),
            json_logs=os.getenv("SCHEMA_INFERENCE_JSON_LOGS", "false").lower() == "true",
        )

    @classmethod
    def from_yaml(cls, path: str) -> "SystemConfig":
        """Load configuration from a YAML file

        The file mirrors the model layout, e.g.::

            worker_pool:
              max_concurrent: 4
            extraction:
              chunk_size: 25
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data: Dict[str, Any] = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                message=f"Failed to load configuration file {path}: {e}",
                config_key=path,
                original_error=e,
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                config_key=path,
            )
        return cls.model_validate(data)


# Global configuration instance
_config: Optional[SystemConfig] = None


def get_config() -> SystemConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = SystemConfig.from_env()
    return _config


def set_config(config: SystemConfig) -> None:
    """Set the global configuration instance"""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance"""
    global _config
    _config = None
