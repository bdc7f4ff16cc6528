"""Tagged outcomes of a single request attempt.

The request client turns every attempt into one of these values and the
retry loop consumes them, so the state machine
``Attempting -> {Success | Retrying -> Attempting | Failed}`` can be
exercised without relying on exception unwinding.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class FailureClass(str, Enum):
    """Selects which backoff curve applies to a failed attempt."""
    HTTP_STATUS = "http_status"   # 429 / 5xx
    TRANSPORT = "transport"       # timeout or connectivity failure


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class RetryableFailure:
    cause: Exception
    delay_ms: int
    failure_class: FailureClass


@dataclass(frozen=True)
class TerminalFailure:
    cause: Exception


AttemptOutcome = Union[Success, RetryableFailure, TerminalFailure]


@dataclass(frozen=True)
class AttemptRecord:
    """What happened on one attempt, kept for inspection and logging."""
    attempt: int
    outcome: str  # 'success', 'retryable', 'terminal'
    delay_ms: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, attempt: int, outcome: AttemptOutcome) -> "AttemptRecord":
        if isinstance(outcome, Success):
            return cls(attempt=attempt, outcome="success")
        if isinstance(outcome, RetryableFailure):
            return cls(attempt=attempt, outcome="retryable", delay_ms=outcome.delay_ms, error=str(outcome.cause))
        return cls(attempt=attempt, outcome="terminal", error=str(outcome.cause))
