"""Domain Events related to requests and batches.

Examples include events for when requests are attempted, retried, fail,
or succeed, and for the lifecycle of a batch.
"""

from dataclasses import dataclass, field
import time
from typing import Any, Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# Receives every event emitted by the request client or the worker pool.
EventListener = Callable[[DomainEvent], None]

# --- Request Events ---

@dataclass
class RequestAttempted(DomainEvent):
    """Event triggered when one attempt of a request is about to be made."""
    url: str
    attempt_number: int
    max_attempts: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestSucceeded(DomainEvent):
    """Event triggered when a request succeeds."""
    url: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    url: str
    attempt_number: int
    delay_ms: int
    failure_class: str
    reason: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestFailed(DomainEvent):
    """Event triggered when a request fails terminally."""
    url: str
    attempt_number: int
    error_type: str
    error_message: str
    status: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

# --- Batch Events ---

@dataclass
class BatchStarted(DomainEvent):
    size: int
    workers: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class BatchCompleted(DomainEvent):
    size: int
    elapsed_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class BatchFailed(DomainEvent):
    """Event triggered when a batch aborts on a failure or cancellation."""
    size: int
    error_type: str
    error_message: str
    detail: Optional[Any] = None
    timestamp: float = field(default_factory=time.time)
