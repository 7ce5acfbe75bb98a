# src/gymadmin_core/polling/backoff.py

from __future__ import annotations


def backoff_delay(base: float, multiplier: float, attempt: int, cap: float) -> float:
    """
    Exponential backoff shared by timer tasks and push reconnects:

        min(base * multiplier ** attempt, cap)

    attempt=0 gives `base` (clamped to cap).
    """
    attempt = max(0, int(attempt))
    try:
        delay = float(base) * float(multiplier) ** attempt
    except OverflowError:
        return float(cap)
    return min(delay, float(cap))
