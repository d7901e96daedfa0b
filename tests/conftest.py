# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for InstantSolve tests."""

import asyncio
import json
import os
from typing import Generator

import httpx
import pytest

# Set test environment variables before importing app
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DISABLE_LOGGING", "1")

from instantsolve.config import ModelKeySettings, OpenRouterSettings, Settings
from instantsolve.dispatcher import build_selector
from instantsolve.registry import MODEL_IDS

BASE_URL = "https://openrouter.test/api/v1"

QUICK_PRIMARY = MODEL_IDS["phi_3_mini"]
QUICK_BACKUP = MODEL_IDS["zephyr"]
MATH_PRIMARY = MODEL_IDS["phi_3_medium"]
MATH_BACKUP = MODEL_IDS["gemini"]
DETAILED_PRIMARY = MODEL_IDS["llama_3"]
VISION_MODEL = MODEL_IDS["llama_vision"]
CREATIVE_PRIMARY = MODEL_IDS["mythomax"]


def completion_payload(content: str, model: str = "test-model") -> dict:
    """A successful chat-completions response body."""
    return {
        "id": "gen-test",
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20},
    }


class FakeProvider:
    """
    Stand-in for the chat-completions endpoint.

    Behaviour is configured per model id; unconfigured models answer with
    a default text. Every request body and header set is recorded.
    """

    def __init__(self, default_answer: str = "Default answer."):
        self.default_answer = default_answer
        self.behaviors = {}
        self.requests: list[dict] = []
        self.headers: list[httpx.Headers] = []

    def answer(self, model_id: str, content: str) -> None:
        self.behaviors[model_id] = lambda request: httpx.Response(
            200, json=completion_payload(content, model_id)
        )

    def fail(self, model_id: str, status_code: int = 500, body: str = "upstream exploded") -> None:
        self.behaviors[model_id] = lambda request: httpx.Response(status_code, text=body)

    def malformed(self, model_id: str) -> None:
        self.behaviors[model_id] = lambda request: httpx.Response(200, json={"choices": []})

    def unreachable(self, model_id: str) -> None:
        def _raise(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.behaviors[model_id] = _raise

    def timeout(self, model_id: str) -> None:
        def _raise(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        self.behaviors[model_id] = _raise

    def hang(self, model_id: str, seconds: float = 5.0) -> None:
        async def _slow(request):
            await asyncio.sleep(seconds)
            return httpx.Response(200, json=completion_payload("too late", model_id))

        self.behaviors[model_id] = _slow

    def handler(self, request: httpx.Request):
        payload = json.loads(request.content)
        self.requests.append(payload)
        self.headers.append(request.headers)
        behavior = self.behaviors.get(payload["model"])
        if behavior is None:
            return httpx.Response(200, json=completion_payload(self.default_answer, payload["model"]))
        return behavior(request)

    @property
    def models_called(self) -> list[str]:
        return [payload["model"] for payload in self.requests]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    """Settings with every model key configured."""
    keys = {f"{name}_key": f"key-{name}" for name in MODEL_IDS}
    return Settings(
        openrouter=OpenRouterSettings(base_url=BASE_URL, timeout=5.0),
        keys=ModelKeySettings(**keys),
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def http_client(provider: FakeProvider) -> httpx.AsyncClient:
    """AsyncClient wired to the fake provider."""
    return httpx.AsyncClient(transport=httpx.MockTransport(provider.handler))


@pytest.fixture
def selector(settings, http_client):
    """Fully wired selector talking to the fake provider."""
    return build_selector(settings, http_client=http_client)


@pytest.fixture
def test_client(selector) -> Generator:
    """Create a test client for the FastAPI application."""
    from fastapi.testclient import TestClient
    from api.main import app

    with TestClient(app) as client:
        app.state.selector = selector
        yield client
