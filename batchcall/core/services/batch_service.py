"""Batch Service: turns request descriptors into a finished batch.

Loads request files, builds one operation per descriptor on top of the
resilient request client, and runs them through the bounded worker pool.
In "keep going" mode every operation captures its own failure into its
result slot so one bad request does not abort the batch.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from batchcall.domain.errors import RequestFileError
from batchcall.domain.events.api_events import DomainEvent, RetryScheduled
from batchcall.domain.models.common import (
    BatchItemResult,
    BatchReport,
    Operation,
    RequestDescriptor,
    Url,
)
from batchcall.infrastructure.resilience.request_client import ResilientRequestClient
from batchcall.infrastructure.resilience.scheduler import BoundedWorkerPool, effective_concurrency

logger = logging.getLogger(__name__)


def _descriptor_from_item(item: Any, position: int) -> RequestDescriptor:
    if not isinstance(item, dict):
        raise RequestFileError(f"Request #{position} must be a mapping, got {type(item).__name__}")
    url = item.get("url")
    if not url or not isinstance(url, str):
        raise RequestFileError(f"Request #{position} is missing a 'url'")
    headers = item.get("headers") or {}
    if not isinstance(headers, dict):
        raise RequestFileError(f"Request #{position} has non-mapping 'headers'")
    payload = item.get("payload", {})
    return RequestDescriptor(
        url=Url(url),
        payload=payload,
        headers={str(k): str(v) for k, v in headers.items()},
    )


def parse_requests(text: str, suffix: str = "") -> List[RequestDescriptor]:
    """Parses a JSON array, JSON Lines, or YAML list of request descriptors.

    Args:
        text: File contents.
        suffix: File extension, used to pick the parser ('.jsonl', '.yaml', ...).

    Raises:
        RequestFileError: If the text cannot be parsed or an item is invalid.
    """
    suffix = suffix.lower()
    try:
        if suffix in (".jsonl", ".ndjson"):
            items = [json.loads(line) for line in text.splitlines() if line.strip()]
        elif suffix in (".yaml", ".yml"):
            items = yaml.safe_load(text)
        else:
            items = json.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise RequestFileError(f"Could not parse requests: {e}") from e

    if items is None:
        return []
    if not isinstance(items, list):
        raise RequestFileError("Request file must contain a list of requests")
    return [_descriptor_from_item(item, n) for n, item in enumerate(items)]


class BatchService:
    """Runs batches of JSON requests."""

    def __init__(self, request_client: ResilientRequestClient, worker_pool: BoundedWorkerPool):
        self.request_client = request_client
        self.worker_pool = worker_pool
        self._retries = 0

    def record_event(self, event: DomainEvent) -> None:
        """Event listener; wire it into the client to count retries."""
        if isinstance(event, RetryScheduled):
            self._retries += 1

    def load_requests(self, path: Union[str, Path]) -> List[RequestDescriptor]:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RequestFileError(f"Could not read {path}: {e}") from e
        descriptors = parse_requests(text, path.suffix)
        logger.info(f"Loaded {len(descriptors)} request(s) from {path}")
        return descriptors

    def build_operations(
        self,
        descriptors: List[RequestDescriptor],
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> List[Operation]:
        operations: List[Operation] = []
        for descriptor in descriptors:
            headers = {**(extra_headers or {}), **descriptor.headers}

            async def operation(d: RequestDescriptor = descriptor, h: Dict[str, str] = headers) -> Any:
                return await self.request_client.execute(d.url, d.payload, h)

            operations.append(operation)
        return operations

    @staticmethod
    def capture_failures(index: int, operation: Operation) -> Operation:
        """Wraps an operation so its failure lands in its own result slot."""
        async def captured() -> BatchItemResult:
            try:
                value = await operation()
            except Exception as e:
                logger.warning(f"Request #{index} failed: {type(e).__name__}: {e}")
                return BatchItemResult(index=index, ok=False, error=str(e), error_type=type(e).__name__)
            return BatchItemResult(index=index, ok=True, value=value)
        return captured

    async def run(
        self,
        descriptors: List[RequestDescriptor],
        limit: Optional[int] = None,
        keep_going: bool = False,
        extra_headers: Optional[Dict[str, str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchReport:
        """Runs the descriptors and summarises the outcome.

        Args:
            descriptors: Requests, in the order results should be reported.
            limit: Concurrency override.
            keep_going: Capture per-request failures instead of aborting.
            extra_headers: Headers applied to every request (descriptor headers win).
            cancel_event: Optional batch-wide cancellation signal.

        Raises:
            Exception: Without keep_going, the first request failure.
        """
        self._retries = 0
        operations = self.build_operations(descriptors, extra_headers)
        if keep_going:
            operations = [self.capture_failures(n, op) for n, op in enumerate(operations)]

        config = self.worker_pool.config_store.get_config()
        workers = effective_concurrency(config.concurrency if limit is None else limit, len(operations)) if operations else 0

        start_time = time.perf_counter()
        results = await self.worker_pool.run(operations, limit=limit, cancel_event=cancel_event)
        elapsed = time.perf_counter() - start_time

        if keep_going:
            items = results
        else:
            items = [BatchItemResult(index=n, ok=True, value=value) for n, value in enumerate(results)]
        for item, descriptor in zip(items, descriptors):
            item.url = descriptor.url
        return BatchReport(items=items, elapsed_seconds=elapsed, workers=workers, retries=self._retries)
