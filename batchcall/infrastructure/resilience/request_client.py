"""Client for executing JSON API calls with automatic retries.

Each logical request is issued up to ``max_retry`` times. Every attempt runs
under its own timeout guard and is reduced to a tagged outcome
(Success / RetryableFailure / TerminalFailure) that the retry loop consumes:

* 2xx: parse the body and return it, skipping remaining attempts.
* 429 / 5xx: sleep on the exponential curve, then try again.
* timeout / connectivity failure: sleep on the linear curve, then try again.
* anything else, or no attempts left: raise.
"""

import asyncio
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from batchcall.domain.errors import (
    AttemptTimeoutError,
    RetryLoopDefect,
    RetryableHTTPError,
    TerminalHTTPError,
    TransportError,
)
from batchcall.domain.events.api_events import (
    DomainEvent,
    EventListener,
    RequestAttempted,
    RequestFailed,
    RequestSucceeded,
    RetryScheduled,
)
from batchcall.domain.interfaces.http_client import HTTPClient
from batchcall.domain.interfaces.token_provider import TokenProvider
from batchcall.domain.models.common import Headers, RequestDescriptor
from batchcall.domain.models.outcomes import (
    AttemptOutcome,
    AttemptRecord,
    FailureClass,
    RetryableFailure,
    Success,
    TerminalFailure,
)
from batchcall.infrastructure.config.settings import ConfigStore, EngineConfig
from batchcall.infrastructure.resilience.backoff import DEFAULT_BACKOFF, BackoffPolicy, is_retryable_status

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Headers = {
    'Content-Type': 'application/json;charset=UTF-8',
    'X-Requested-With': 'XMLHttpRequest',
}

# Different backends look for the anti-forgery token under different names.
TOKEN_HEADER_ALIASES = (
    'RequestVerificationToken',
    'X-CSRF-TOKEN',
    'X-Request-Verification-Token',
)

EMPTY_BODY_TEXT = "request failed"

_CONNECTIVITY_PATTERN = re.compile(r"network|failed to fetch|connection", re.IGNORECASE)

Sleep = Callable[[float], Awaitable[Any]]


def is_transport_failure(exc: BaseException) -> bool:
    """True for timeouts and recognizable connectivity failures."""
    if isinstance(exc, (TimeoutError, TransportError)):
        return True
    return bool(_CONNECTIVITY_PATTERN.search(f"{type(exc).__name__}: {exc}"))


class ResilientRequestClient:
    """Executes one logical request to completion or final failure."""

    def __init__(
        self,
        http_client: HTTPClient,
        config_store: ConfigStore,
        token_provider: Optional[TokenProvider] = None,
        backoff: BackoffPolicy = DEFAULT_BACKOFF,
        sleep: Sleep = asyncio.sleep,
        listener: Optional[EventListener] = None,
    ):
        """Initializes the request client.

        Args:
            http_client: Transport used to send each attempt.
            config_store: Source of timeout_ms / max_retry; read once per request.
            token_provider: Optional source of anti-forgery tokens.
            backoff: Delay curves applied between attempts.
            sleep: Coroutine used for backoff waits.
            listener: Optional callback receiving domain events.
        """
        self.http_client = http_client
        self.config_store = config_store
        self.token_provider = token_provider
        self.backoff = backoff
        self._sleep = sleep
        self.listener = listener

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.listener is not None:
            self.listener(event)

    def collect_tokens(self) -> List[str]:
        """Collects tokens; a failing provider counts as "no tokens"."""
        if self.token_provider is None:
            return []
        try:
            return list(self.token_provider.collect_tokens())
        except Exception as e:
            logger.warning(f"Token collection failed, sending request without tokens: {e}")
            return []

    def build_headers(self, extra_headers: Optional[Headers] = None) -> Headers:
        """Default headers, then caller headers, then tokens under every alias."""
        headers: Dict[str, str] = {**DEFAULT_HEADERS, **(extra_headers or {})}
        for token in self.collect_tokens():
            for name in TOKEN_HEADER_ALIASES:
                headers[name] = token
        return headers

    async def execute_request(self, descriptor: RequestDescriptor, history: Optional[List[AttemptRecord]] = None) -> Any:
        return await self.execute(descriptor.url, descriptor.payload, descriptor.headers, history=history)

    async def execute(
        self,
        url: str,
        payload: Any,
        extra_headers: Optional[Headers] = None,
        history: Optional[List[AttemptRecord]] = None,
    ) -> Any:
        """Posts ``payload`` to ``url`` and returns the parsed JSON body.

        Args:
            url: Request target.
            payload: JSON-serialisable body.
            extra_headers: Headers merged over the defaults.
            history: Optional list that receives one AttemptRecord per attempt.

        Returns:
            The decoded JSON response body.

        Raises:
            TerminalHTTPError: Non-retryable status, or retries exhausted on 429/5xx.
                ``str(err)`` reads ``HTTP <status>: <body>``.
            AttemptTimeoutError: Every attempt timed out.
            Exception: The underlying transport exception once retries are exhausted,
                or any other error raised by the transport.
        """
        config = self.config_store.get_config()
        headers = self.build_headers(extra_headers)

        for attempt in range(1, config.max_retry + 1):
            self._dispatch(RequestAttempted(url=url, attempt_number=attempt, max_attempts=config.max_retry))
            start_time = time.perf_counter()
            outcome = await self.attempt_once(url, payload, headers, attempt, config)
            if history is not None:
                history.append(AttemptRecord.from_outcome(attempt, outcome))

            if isinstance(outcome, Success):
                latency_ms = (time.perf_counter() - start_time) * 1000
                self._dispatch(RequestSucceeded(url=url, attempt_number=attempt, latency_ms=latency_ms))
                return outcome.value

            if isinstance(outcome, RetryableFailure):
                logger.warning(
                    f"Retryable error calling {url} on attempt {attempt}/{config.max_retry}: "
                    f"{type(outcome.cause).__name__}: {outcome.cause}. Waiting {outcome.delay_ms}ms..."
                )
                self._dispatch(RetryScheduled(
                    url=url,
                    attempt_number=attempt,
                    delay_ms=outcome.delay_ms,
                    failure_class=outcome.failure_class.value,
                    reason=str(outcome.cause),
                ))
                await self._sleep(outcome.delay_ms / 1000)
                continue

            error = outcome.cause
            logger.error(f"Request to {url} failed on attempt {attempt}/{config.max_retry}: {error}")
            self._dispatch(RequestFailed(
                url=url,
                attempt_number=attempt,
                error_type=type(error).__name__,
                error_message=str(error),
                status=getattr(error, 'status', None),
            ))
            raise error

        raise RetryLoopDefect(f"Attempt loop for {url} ended without an outcome (max_retry={config.max_retry})")

    async def attempt_once(self, url: str, payload: Any, headers: Headers, attempt: int, config: EngineConfig) -> AttemptOutcome:
        """Issues a single attempt and classifies what happened."""
        try:
            async with asyncio.timeout(config.timeout_ms / 1000):
                response = await self.http_client.post_json(url, payload, headers)
        except TimeoutError as e:
            if isinstance(e, AttemptTimeoutError):
                error = e
            else:
                error = AttemptTimeoutError(
                    f"Request to {url} timed out after {config.timeout_ms}ms",
                    attempt=attempt,
                    timeout_ms=config.timeout_ms,
                )
                error.__cause__ = e
            return self._transport_outcome(error, attempt, config)
        except Exception as e:
            if is_transport_failure(e):
                return self._transport_outcome(e, attempt, config)
            return TerminalFailure(e)

        if response.ok:
            try:
                return Success(response.json())
            except ValueError as e:
                return TerminalFailure(e)

        body = response.text or EMPTY_BODY_TEXT
        if is_retryable_status(response.status):
            delay = self.backoff.delay_ms(FailureClass.HTTP_STATUS, attempt, config.max_retry)
            if delay is not None:
                return RetryableFailure(RetryableHTTPError(response.status, body), delay, FailureClass.HTTP_STATUS)
        return TerminalFailure(TerminalHTTPError(response.status, body))

    def _transport_outcome(self, error: Exception, attempt: int, config: EngineConfig) -> AttemptOutcome:
        delay = self.backoff.delay_ms(FailureClass.TRANSPORT, attempt, config.max_retry)
        if delay is None:
            return TerminalFailure(error)
        return RetryableFailure(error, delay, FailureClass.TRANSPORT)
