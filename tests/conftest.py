"""Shared pytest fixtures."""

import gc
import json
import os
import threading
from collections.abc import AsyncGenerator, Callable
from io import BytesIO
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from hypothesis import HealthCheck, settings
from PIL import Image

from plan_analysis.config import Settings
from plan_analysis.db import AnalysisStorage
from plan_analysis.utils.bucket_store import LocalBucketStore


# Hypothesis settings profiles for different environments
settings.register_profile("fast", max_examples=25)
settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent a local .env file from leaking into test Settings instances."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )


@pytest.fixture(autouse=True)
def _cleanup_aiosqlite_threads():
    """Safety net: stop aiosqlite worker threads leaked by a test.

    aiosqlite creates a non-daemon worker thread per connection; a leaked
    connection keeps the process alive after the run.
    """
    yield

    from aiosqlite.core import Connection

    leaked = False
    gc.collect()
    for obj in gc.get_objects():
        if isinstance(obj, Connection) and obj._connection is not None:
            leaked = True
            obj.stop()

    for thread in threading.enumerate():
        if "_connection_worker_thread" in (thread.name or "") and thread.is_alive():
            thread.join(timeout=1.0)

    if leaked:
        import warnings

        warnings.warn(
            "Test leaked aiosqlite connection(s); add 'await storage.close()' to fixture teardown",
            ResourceWarning,
            stacklevel=1,
        )


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (64, 48)) -> bytes:
    """Encode a small solid image in the given Pillow format."""
    buf = BytesIO()
    Image.new("RGB", size, color=(240, 240, 240)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def plan_png() -> bytes:
    """A small valid PNG standing in for an uploaded floor plan."""
    return make_image_bytes("PNG")


@pytest.fixture
def plan_jpeg() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def bucket_store(tmp_path: Path) -> LocalBucketStore:
    return LocalBucketStore(tmp_path / "buckets")


@pytest_asyncio.fixture
async def storage() -> AsyncGenerator[AnalysisStorage, None]:
    s = AnalysisStorage(":memory:")
    await s.initialize()
    yield s
    await s.close()


def _message_body(text: str | None, model: str) -> dict[str, Any]:
    content = [] if text is None else [{"type": "text", "text": text}]
    return {
        "id": "msg_01XFDUDYJgAACzvnptvVoYEL",
        "type": "message",
        "role": "assistant",
        "content": content,
        "model": model,
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 1523, "output_tokens": 312},
    }


@pytest.fixture
def text_response() -> Callable[..., httpx.Response]:
    """Factory for a successful Messages API response with one text block.

    Pass ``None`` to get a response with no content blocks at all.
    """

    def factory(text: str | None, model: str = "claude-sonnet-4-5-20250929") -> httpx.Response:
        return httpx.Response(200, json=_message_body(text, model))

    return factory


@pytest.fixture
def error_response() -> Callable[[int, str], httpx.Response]:
    """Factory for a Messages API error response (404 -> not_found_error, ...)."""
    error_types = {
        400: "invalid_request_error",
        401: "authentication_error",
        404: "not_found_error",
        429: "rate_limit_error",
        500: "api_error",
        529: "overloaded_error",
    }

    def factory(status: int, message: str = "error") -> httpx.Response:
        return httpx.Response(
            status,
            json={
                "type": "error",
                "error": {"type": error_types.get(status, "api_error"), "message": message},
            },
        )

    return factory


def requested_model(request: httpx.Request) -> str:
    """Model name a captured Messages API request asked for."""
    return str(json.loads(request.content)["model"])


@pytest.fixture
def by_model() -> Callable[[dict[str, httpx.Response]], Callable[[httpx.Request], httpx.Response]]:
    """respx side effect that answers each request according to its model name."""

    def factory(
        responses: dict[str, httpx.Response],
    ) -> Callable[[httpx.Request], httpx.Response]:
        def side_effect(request: httpx.Request) -> httpx.Response:
            return responses[requested_model(request)]

        return side_effect

    return factory
