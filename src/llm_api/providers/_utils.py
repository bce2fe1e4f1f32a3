"""Shared utilities for provider implementations."""

from __future__ import annotations

from dataclasses import asdict
import json
import logging
from typing import TYPE_CHECKING, Any
import uuid

from llm_api.constants import DEFAULT_AZURE_API_VERSION
from llm_api.types import Usage

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.config import ModelConfig, OpenAIConfig, RequestOptions
    from llm_api.types import Message

logger = logging.getLogger(__name__)


def openai_client_kwargs(config: OpenAIConfig) -> dict[str, Any]:
    """Build ``AsyncOpenAI`` keyword arguments, routing to Azure when configured.

    Retries are disabled at the SDK level; the retry controller owns them.
    """
    kwargs: dict[str, Any] = {"api_key": config.api_key, "max_retries": 0}
    if config.organization:
        kwargs["organization"] = config.organization

    if config.is_azure:
        endpoint = str(config.azure_endpoint)
        separator = "" if endpoint.endswith("/") else "/"
        kwargs["base_url"] = (
            f"{endpoint}{separator}openai/deployments/{config.azure_deployment}"
        )
        # Azure authenticates with an api-key header, not a bearer token.
        kwargs["default_headers"] = {"api-key": str(config.api_key)}
        kwargs["default_query"] = {
            "api-version": config.azure_api_version or DEFAULT_AZURE_API_VERSION
        }
    else:
        if config.azure_endpoint or config.azure_deployment:
            logger.debug(
                "Azure routing needs both azure_endpoint and azure_deployment; "
                "using standard routing"
            )
        if config.base_url:
            kwargs["base_url"] = config.base_url
    return kwargs


def sampling_params(model_config: ModelConfig) -> dict[str, Any]:
    """Map ``ModelConfig`` sampling fields to chat-completion parameters."""
    params = {
        "temperature": model_config.temperature,
        "top_p": model_config.top_p,
        "presence_penalty": model_config.presence_penalty,
        "frequency_penalty": model_config.frequency_penalty,
        "logit_bias": model_config.logit_bias,
        "user": model_config.user,
    }
    return {k: v for k, v in params.items() if v is not None}


def stop_sequences(
    model_config: ModelConfig, options: RequestOptions
) -> list[str] | None:
    """Return request stop sequences as a list; options win over the model config."""
    stop = options.stop if options.stop is not None else model_config.stop
    if stop is None:
        return None
    return [stop] if isinstance(stop, str) else list(stop)


def usage_from_openai(raw: Any) -> Usage | None:
    """Copy OpenAI-style usage through; None when the provider sent none."""
    if raw is None:
        return None
    return Usage(
        prompt_tokens=int(getattr(raw, "prompt_tokens", 0) or 0),
        completion_tokens=int(getattr(raw, "completion_tokens", 0) or 0),
        total_tokens=int(getattr(raw, "total_tokens", 0) or 0),
    )


def new_call_id() -> str:
    """Id for calls whose provider assigns none."""
    return f"call_{uuid.uuid4().hex[:24]}"


def log_request(
    provider: str,
    payload: Sequence[Message] | str,
    model_config: ModelConfig,
    options: RequestOptions,
) -> None:
    """Log a request summary at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    if isinstance(payload, str):
        rendered = payload
    else:
        rendered = json.dumps([asdict(m) for m in payload], default=str)
    logger.debug(
        "%s completion requested: %s, config: %s, options: %s",
        provider,
        rendered,
        model_config.to_dict(),
        options.to_dict(),
    )
