"""Token estimation for pre-flight budget checks.

Counts are an approximation built on the ``cl100k_base`` encoding. They are
good enough to catch prompts that cannot fit, not to predict provider billing.
"""

from __future__ import annotations

from functools import lru_cache
import json
from typing import TYPE_CHECKING, Any

import tiktoken

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from llm_api.types import ModelFunction

_ENCODING_NAME = "cl100k_base"

# Every message is framed as <im_start>{role}\n{content}<im_end>\n
_TOKENS_PER_MESSAGE = 5
# Every reply is primed with <im_start>assistant\n
_TOKENS_PER_REPLY = 2
_TOKENS_PER_FUNCTION = 5
# Estimated overhead of priming the function list
_FUNCTIONS_OVERHEAD = 20


@lru_cache(maxsize=1)
def _encoding() -> tiktoken.Encoding:
    return tiktoken.get_encoding(_ENCODING_NAME)


def _encoded_length(text: str) -> int:
    return len(_encoding().encode(text, disallowed_special=()))


def _function_payload(function: ModelFunction | dict[str, Any]) -> str:
    data = function if isinstance(function, dict) else function.to_dict()
    return json.dumps(data, separators=(",", ":"))


def count_tokens(
    texts: Iterable[str],
    functions: Sequence[ModelFunction | dict[str, Any]] | None = None,
) -> int:
    """Estimate the prompt tokens of *texts* plus optional function schemas."""
    total = 0
    for text in texts:
        total += _TOKENS_PER_MESSAGE + _encoded_length(text)
    total += _TOKENS_PER_REPLY

    if functions:
        for function in functions:
            total += _TOKENS_PER_FUNCTION + _encoded_length(_function_payload(function))
        total += _FUNCTIONS_OVERHEAD

    return total
