"""Configuration: frozen model, request and connection settings."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
import os
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from llm_api.constants import DEFAULT_BEDROCK_REGION
from llm_api.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from llm_api.events import EventSink
    from llm_api.types import ModelFunction

load_dotenv()


@dataclass(frozen=True)
class ModelConfig:
    """Per-client model settings, fixed for the lifetime of the client."""

    model: str | None = None
    #: Total context window. Enables the pre-flight token budget check.
    context_size: int | None = None
    #: Default cap on generated tokens; ``RequestOptions`` may override it.
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, float] | None = None
    user: str | None = None
    #: Stream responses; fragments go to ``RequestOptions.events``.
    stream: bool = False
    stop: str | list[str] | None = None

    def __post_init__(self) -> None:
        """Validate numeric fields early for clear errors."""
        if self.context_size is not None and self.context_size <= 0:
            raise ConfigurationError(
                f"context_size must be > 0, got {self.context_size}",
                hint="Set it to the model's total context window, e.g. 4096.",
            )
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ConfigurationError(
                f"max_tokens must be > 0, got {self.max_tokens}",
            )

    def to_dict(self) -> dict[str, Any]:
        """Return the set fields, for request logging."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class RequestOptions:
    """Per-call overrides layered on top of ``ModelConfig``.

    Unset fields are ``None`` and get provider defaults through
    ``with_defaults``. Instances never change; a retry works on the copy
    returned by ``next_retry``.
    """

    #: A string, or a zero-argument callable evaluated once per call.
    system_message: str | Callable[[], str] | None = None
    #: Prefill for the assistant turn (Anthropic and Groq providers only).
    response_prefix: str | None = None
    stop: str | list[str] | None = None
    functions: list[ModelFunction] | None = None
    #: Force the model to call this function.
    call_function: str | None = None
    retries: int | None = None
    #: Seconds to sleep before the next retry; doubles on every retry.
    retry_interval: float | None = None
    #: Seconds allowed for a single attempt.
    timeout: float | None = None
    minimum_response_tokens: int | None = None
    maximum_response_tokens: int | None = None
    events: EventSink | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Validate option shapes early for clear errors."""
        if self.system_message is not None and not (
            isinstance(self.system_message, str) or callable(self.system_message)
        ):
            raise ConfigurationError(
                "system_message must be a string or a callable returning one",
                hint="Pass system_message='You are a concise assistant.'",
            )
        if self.retries is not None and self.retries < 0:
            raise ConfigurationError(f"retries must be >= 0, got {self.retries}")
        if self.retry_interval is not None and self.retry_interval < 0:
            raise ConfigurationError(
                f"retry_interval must be >= 0, got {self.retry_interval}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {self.timeout}")
        for name in ("minimum_response_tokens", "maximum_response_tokens"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")
        if self.call_function is not None and not any(
            f.name == self.call_function for f in self.functions or []
        ):
            raise ConfigurationError(
                f"call_function {self.call_function!r} is not among the functions",
                hint="Add the function to RequestOptions.functions.",
            )

    def with_defaults(self, **defaults: Any) -> RequestOptions:
        """Fill unset fields from *defaults*; explicit values win."""
        missing = {
            name: value
            for name, value in defaults.items()
            if getattr(self, name) is None
        }
        return replace(self, **missing) if missing else self

    def next_retry(self) -> RequestOptions:
        """Options for the following attempt: one retry fewer, twice the wait."""
        return replace(
            self,
            retries=(self.retries or 0) - 1,
            retry_interval=(self.retry_interval or 0.0) * 2,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the set fields, for request logging."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or f.name == "events":
                continue
            if f.name == "system_message" and callable(value):
                value = "<callable>"
            elif f.name == "functions":
                value = [fn.name for fn in value]
            data[f.name] = value
        return data


def _resolve_api_key(api_key: str | None, env_var: str, provider: str) -> str:
    resolved = api_key if api_key is not None else os.environ.get(env_var)
    if not resolved:
        raise ConfigurationError(
            f"API key required for {provider}",
            hint=f"Set {env_var} environment variable or pass api_key=...",
        )
    return resolved


@dataclass(frozen=True)
class OpenAIConfig:
    """Connection settings for OpenAI and Azure OpenAI.

    Azure routing is used only when both ``azure_endpoint`` and
    ``azure_deployment`` are set.
    """

    #: Auto-resolved from ``OPENAI_API_KEY`` when *None*.
    api_key: str | None = None
    base_url: str | None = None
    organization: str | None = None
    azure_endpoint: str | None = None
    azure_deployment: str | None = None
    azure_api_version: str | None = None

    def __post_init__(self) -> None:
        """Auto-resolve API key from the environment."""
        object.__setattr__(
            self, "api_key", _resolve_api_key(self.api_key, "OPENAI_API_KEY", "openai")
        )

    @property
    def is_azure(self) -> bool:
        return bool(self.azure_endpoint and self.azure_deployment)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"OpenAIConfig(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, azure_endpoint={self.azure_endpoint!r}, "
            f"azure_deployment={self.azure_deployment!r})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class AnthropicConfig:
    """Connection settings for the Anthropic API."""

    #: Auto-resolved from ``ANTHROPIC_API_KEY`` when *None*.
    api_key: str | None = None
    base_url: str | None = None

    def __post_init__(self) -> None:
        """Auto-resolve API key from the environment."""
        object.__setattr__(
            self,
            "api_key",
            _resolve_api_key(self.api_key, "ANTHROPIC_API_KEY", "anthropic"),
        )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"AnthropicConfig(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class GroqConfig:
    """Connection settings for the Groq API."""

    #: Auto-resolved from ``GROQ_API_KEY`` when *None*.
    api_key: str | None = None
    base_url: str | None = None

    def __post_init__(self) -> None:
        """Auto-resolve API key from the environment."""
        object.__setattr__(
            self, "api_key", _resolve_api_key(self.api_key, "GROQ_API_KEY", "groq")
        )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"GroqConfig(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class BedrockConfig:
    """AWS settings for Anthropic models hosted on Bedrock.

    Credentials left as *None* fall back to the standard boto3 credential
    chain (environment, shared config, instance role).
    """

    #: Auto-resolved from ``AWS_REGION`` when *None*.
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None

    def __post_init__(self) -> None:
        """Resolve the region from the environment."""
        if self.region is None:
            object.__setattr__(
                self, "region", os.environ.get("AWS_REGION", DEFAULT_BEDROCK_REGION)
            )
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ConfigurationError(
                "access_key_id and secret_access_key must be set together",
                hint="Pass both, or neither to use the default AWS credential chain.",
            )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"BedrockConfig(region={self.region!r}, "
            f"access_key_id={'[REDACTED]' if self.access_key_id else None})"
        )

    __repr__ = __str__
