"""Token budget guard: refuse prompts that leave no room for an answer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from llm_api.constants import DEFAULT_MAX_PROMPT_TOKENS, MINIMUM_RESPONSE_TOKENS
from llm_api.errors import TokenError
from llm_api.tokens import count_tokens

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.config import ModelConfig, RequestOptions
    from llm_api.types import ModelFunction


def max_prompt_tokens(model_config: ModelConfig, options: RequestOptions) -> int:
    """Return the prompt budget: context size minus the reserved response."""
    if model_config.context_size is None:
        return DEFAULT_MAX_PROMPT_TOKENS
    minimum = (
        options.minimum_response_tokens
        if options.minimum_response_tokens is not None
        else MINIMUM_RESPONSE_TOKENS
    )
    return model_config.context_size - minimum


def check_token_budget(
    model_config: ModelConfig,
    options: RequestOptions,
    texts: Sequence[str],
    functions: Sequence[ModelFunction | dict[str, Any]] | None = None,
) -> int:
    """Return the estimated prompt tokens, or raise if they exceed the budget.

    Raises:
        TokenError: With ``overflow_tokens = estimate - budget``.
    """
    budget = max_prompt_tokens(model_config, options)
    estimate = count_tokens(texts, functions)
    if estimate > budget:
        raise TokenError(
            "Prompt too big, not enough tokens to meet minimum response",
            estimate - budget,
            hint=(
                f"Estimated {estimate} prompt tokens against a budget of {budget}; "
                "trim the history or lower minimum_response_tokens."
            ),
        )
    return estimate


def max_response_tokens(
    model_config: ModelConfig, options: RequestOptions, prompt_tokens: int
) -> int | None:
    """Return the response token cap to send, or None for no cap.

    The request option wins over the model config. With a known context size
    the cap never exceeds what is left after the prompt, and never drops
    below 1.
    """
    requested = (
        options.maximum_response_tokens
        if options.maximum_response_tokens is not None
        else model_config.max_tokens
    )
    if requested is None:
        return None
    if model_config.context_size is None:
        return requested
    # Providers reject a zero cap.
    return max(1, min(requested, model_config.context_size - prompt_tokens))
