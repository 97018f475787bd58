"""
LLM Client Package

Provides the model-client contract used by the feature extraction phases and
its AWS Bedrock Claude implementation (boto3).
"""

from .bedrock_client import (
    GenerateResponseResult,
    BaseLLMClient,
    BedrockClaudeClient,
    LLMClientFactory,
    classify_llm_error,
    get_llm_client,
)
from .parsing import extract_json_text, parse_json_response

__all__ = [
    # Data models
    "GenerateResponseResult",

    # Base class
    "BaseLLMClient",

    # Client implementations
    "BedrockClaudeClient",

    # Factory
    "LLMClientFactory",
    "get_llm_client",

    # Helpers
    "classify_llm_error",
    "extract_json_text",
    "parse_json_response",
]
