import random

# email API answers worth another attempt; everything else 4xx is final
RETRYABLE_STATUS_CODES = frozenset({408, 409, 425, 429})


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUS_CODES


def compute_backoff_seconds(attempt: int, base: int = 10, cap: int = 900) -> int:
    """Delay before notification retry ``attempt`` (1-based): doubling, capped, plus up to 30s jitter."""
    delay = min(cap, base * (2 ** max(0, attempt - 1)))
    return delay + random.randint(0, min(30, delay // 3))
