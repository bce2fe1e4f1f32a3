"""Small HTTP-related helpers shared across llm-api.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations


def is_retryable_status(status_code: int | None) -> bool:
    """Rate limits and server errors are worth another attempt."""
    if not isinstance(status_code, int):
        return False
    return status_code == 429 or 500 <= status_code <= 599


def is_auth_status(status_code: int | None) -> bool:
    """Credential failures never succeed on retry."""
    return status_code in {401, 403}
