"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and shared test
doubles. Fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os

import pytest

# Models used in request-shape assertions.
OPENAI_MODEL = "gpt-4o-mini"
ANTHROPIC_MODEL = "claude-2.1"
GROQ_MODEL = "llama3-8b-8192"

_PROVIDER_ENV_PREFIXES = ("OPENAI_", "ANTHROPIC_", "GROQ_", "AWS_")

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class RecordingSink:
    """EventSink double that keeps every (topic, payload) pair in order."""

    events: list[tuple[str, str]] = field(default_factory=list)

    def emit(self, topic: str, payload: str) -> None:
        self.events.append((topic, payload))

    @property
    def data(self) -> list[str]:
        return [payload for topic, payload in self.events if topic == "data"]

    @property
    def text(self) -> str:
        return "".join(self.data)


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears OPENAI_*, ANTHROPIC_*, GROQ_* and AWS_* env vars to prevent test
    pollution. Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith(_PROVIDER_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    for name in ("httpx", "httpcore", "botocore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Record retry backoff delays instead of sleeping."""
    delays: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("llm_api.retry.asyncio.sleep", _fake_sleep)
    return delays


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
