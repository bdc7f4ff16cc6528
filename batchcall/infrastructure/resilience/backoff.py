"""Backoff policy for failed request attempts.

Two independent curves, chosen by failure class:

* HTTP-level retryable status (429 or 5xx): exponential,
  ``min(2000, 200 * 2**(attempt - 1))`` ms -> 200, 400, 800, 1600, 2000...
* Transport-level failure (timeout or connectivity): linear,
  ``300 * attempt`` ms -> 300, 600, 900...

Once ``attempt`` reaches ``max_retry`` the policy is exhausted and returns
``None`` so the caller surfaces a terminal failure instead of sleeping.
"""

from dataclasses import dataclass
from typing import Optional

from batchcall.domain.models.outcomes import FailureClass

STATUS_BASE_DELAY_MS = 200
STATUS_MAX_DELAY_MS = 2000
TRANSPORT_DELAY_STEP_MS = 300


def is_retryable_status(status: int) -> bool:
    """Server overload signals: 429 Too Many Requests, or any 5xx."""
    return status == 429 or 500 <= status < 600


@dataclass(frozen=True)
class BackoffPolicy:
    """Maps (failure class, attempt number) to the delay before the next attempt."""
    status_base_ms: int = STATUS_BASE_DELAY_MS
    status_max_ms: int = STATUS_MAX_DELAY_MS
    transport_step_ms: int = TRANSPORT_DELAY_STEP_MS

    def delay_ms(self, failure_class: FailureClass, attempt: int, max_retry: int) -> Optional[int]:
        """Returns the delay in milliseconds, or None once attempts are exhausted.

        Args:
            failure_class: Which curve applies.
            attempt: The 1-based number of the attempt that just failed.
            max_retry: Total number of attempts allowed.
        """
        if attempt >= max_retry:
            return None
        if failure_class is FailureClass.HTTP_STATUS:
            return min(self.status_max_ms, self.status_base_ms * 2 ** (attempt - 1))
        return self.transport_step_ms * attempt


DEFAULT_BACKOFF = BackoffPolicy()


def backoff_delay_ms(failure_class: FailureClass, attempt: int, max_retry: int) -> Optional[int]:
    """Module-level shortcut for the default policy."""
    return DEFAULT_BACKOFF.delay_ms(failure_class, attempt, max_retry)
