# decision/retry.py

import logging
import time

from decision.errors import RetriesExhaustedError, TransportError


def backoff_delay(attempt, base_delay, cap_delay):
    """Delay before the attempt after `attempt` (1-based): base * attempt, capped."""
    return max(0.0, min(base_delay * attempt, cap_delay))


def call_with_retries(fn, attempts, base_delay, cap_delay, retry_on=(TransportError,),
                      sleep=time.sleep, label="operation"):
    """
    Call fn() up to `attempts` times, sleeping between failures.

    Returns (result, attempts_used). Raises RetriesExhaustedError once every
    attempt failed with one of `retry_on`; anything else propagates at once.
    """
    attempts = max(1, int(attempts))
    last_error = None

    for attempt in range(1, attempts + 1):
        try:
            return fn(), attempt
        except retry_on as e:
            last_error = e
            if attempt < attempts:
                delay = backoff_delay(attempt, base_delay, cap_delay)
                logging.warning(
                    f"{label} failed (attempt {attempt}/{attempts}), retrying in {delay:.1f}s: {e}"
                )
                sleep(delay)
            else:
                logging.error(f"{label} failed after {attempts} attempt(s): {e}")

    raise RetriesExhaustedError(label, attempts, last_error)
