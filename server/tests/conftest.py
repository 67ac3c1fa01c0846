from __future__ import annotations

from typing import Callable

import httpx
import pytest

from transcribe_relay.config import Settings


class StubTranscriptionService:
    """Stands in for the OpenAI transcription endpoint via ``httpx.MockTransport``."""

    def __init__(self, status_code: int = 200, payload: object | None = None):
        self.status_code = status_code
        self.payload = {"text": "hello world"} if payload is None else payload
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = {
            "openai_api_key": "test-key",
            "openai_base_url": "https://api.openai.test/v1",
            "upload_dir": str(tmp_path / "uploads"),
            "include_artifact_url": False,
            "public_base_url": None,
            "allowed_origin": "*",
            "max_upload_bytes": 1024,
            "max_concurrent_relays": 2,
            "relay_timeout": None,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def stub_service() -> StubTranscriptionService:
    return StubTranscriptionService()
