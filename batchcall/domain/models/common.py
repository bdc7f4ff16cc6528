"""Defines common Value Objects used across the batch engine.

These objects represent requests, responses and batch results, ensuring
consistency between the core services and the infrastructure adapters.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, NewType, Optional

# === Core Value Objects ===

Url = NewType("Url", str)                       # Target of one JSON POST

# An opaque, zero-argument unit of async work. Identified only by its position.
Operation = Callable[[], Awaitable[Any]]

Headers = Dict[str, str]


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to issue one underlying request."""
    url: Url
    payload: Any = field(default_factory=dict)
    headers: Headers = field(default_factory=dict)


@dataclass(frozen=True)
class HttpResponse:
    """Status and body of one transport round trip."""
    status: int
    text: str = ""
    headers: Headers = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parses the body as JSON. Raises ValueError on malformed bodies."""
        return json.loads(self.text)


# === Batch Results ===

@dataclass
class BatchItemResult:
    """Outcome of one operation when failures are captured per slot."""
    index: int
    ok: bool
    value: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    url: str = ""


@dataclass
class BatchReport:
    """Summary of a finished batch, as shown by the CLI."""
    items: List[BatchItemResult]
    elapsed_seconds: float
    workers: int
    retries: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return len(self.items) - self.succeeded
