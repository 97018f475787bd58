"""
Shared test fixtures
"""
import os
import sys
import threading

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema_inference.config import ExtractionConfig, RetryConfig, SystemConfig, WorkerPoolConfig
from schema_inference.llm_client import BaseLLMClient, GenerateResponseResult
from schema_inference.utils import get_metrics_collector


class MockLLMClient(BaseLLMClient):
    """
    Scripted model client

    ``responses`` maps a prompt substring to either the answer text or an
    exception to raise. The first matching substring wins; prompts matching
    nothing get ``default``.
    """

    def __init__(self, responses=None, default="{}"):
        self.responses = responses or {}
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    @property
    def model_id(self) -> str:
        return "mock-model"

    def generate_response(self, prompt, system_message, temperature, thinking=False):
        with self._lock:
            self.calls.append({
                "prompt": prompt,
                "system_message": system_message,
                "temperature": temperature,
                "thinking": thinking,
            })

        answer = self.default
        for marker, scripted in self.responses.items():
            if marker in prompt:
                answer = scripted
                break

        if isinstance(answer, BaseException):
            raise answer
        return GenerateResponseResult(
            content=answer,
            conversation_id="mock-conversation",
            model_id=self.model_id,
            input_tokens=100,
            output_tokens=50,
            latency_ms=10.0,
        )


@pytest.fixture
def make_llm_client():
    """Factory for scripted model clients"""
    def make(responses=None, default="{}"):
        return MockLLMClient(responses, default)
    return make


@pytest.fixture
def fast_config():
    """System config with no retry delays and a small pool"""
    return SystemConfig(
        worker_pool=WorkerPoolConfig(max_concurrent=4),
        retry=RetryConfig(max_retries=2, initial_delay=0.0, max_delay=0.0, jitter_factor=0.0),
        extraction=ExtractionConfig(),
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    """Keep metrics from leaking between tests"""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()
