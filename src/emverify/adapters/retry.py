"""
Retry helpers shared by the HTTP clients.

Exponential backoff with jitter, honouring a server's Retry-After header
when one is present.
"""

from __future__ import annotations

import random
from collections.abc import Mapping


# Status codes worth retrying: rate limiting and transient server errors
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def calculate_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
    retry_after: float | None = None,
) -> float:
    """
    Calculate the delay before the next retry.

    Args:
        attempt: Zero-based attempt number
        initial_delay: Delay before the first retry
        max_delay: Upper bound for the delay
        backoff_factor: Multiplier per attempt
        jitter: Random jitter factor (0.1 = +/-10%)
        retry_after: Server-provided delay, overrides the backoff

    Returns:
        Delay in seconds
    """
    if retry_after is not None:
        base = float(retry_after)
    else:
        base = initial_delay * (backoff_factor**attempt)
    base = min(base, max_delay)

    if jitter:
        base += base * random.uniform(-jitter, jitter)

    return max(0.0, base)


def get_retry_after(response: object) -> float | None:
    """
    Read a Retry-After header (seconds form) from a response.

    Works with any response object exposing a ``headers`` mapping.
    """
    headers: Mapping[str, str] = getattr(response, "headers", None) or {}
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
