import asyncio

import pytest

from batchcall.domain.errors import AttemptTimeoutError, RetryLoopDefect, TerminalHTTPError, TransportError
from batchcall.domain.events.api_events import RequestFailed, RequestSucceeded, RetryScheduled
from batchcall.domain.interfaces.token_provider import TokenProvider
from batchcall.domain.models.common import RequestDescriptor
from batchcall.domain.models.outcomes import FailureClass, RetryableFailure, Success, TerminalFailure
from batchcall.infrastructure.config.settings import ConfigStore, EngineConfig
from batchcall.infrastructure.resilience.request_client import (
    DEFAULT_HEADERS,
    TOKEN_HEADER_ALIASES,
    ResilientRequestClient,
    is_transport_failure,
)
from batchcall.infrastructure.tokens.token_provider import StaticTokenProvider

from conftest import ScriptedHTTPClient, ok, status


def make_client(http, config_store, sleep, **kwargs):
    return ResilientRequestClient(http_client=http, config_store=config_store, sleep=sleep, **kwargs)


@pytest.mark.asyncio
async def test_success_returns_parsed_body(config_store, sleep_recorder):
    http = ScriptedHTTPClient([ok('{"items": [1, 2]}')])
    client = make_client(http, config_store, sleep_recorder)

    result = await client.execute("https://api.example/list", {"page": 1})

    assert result == {"items": [1, 2]}
    assert len(http.calls) == 1
    assert http.calls[0]['payload'] == {"page": 1}
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_execute_request_uses_descriptor(config_store, sleep_recorder):
    http = ScriptedHTTPClient([ok('1')])
    client = make_client(http, config_store, sleep_recorder)
    descriptor = RequestDescriptor(url="/one", payload={"a": 1}, headers={"X-Trace": "t1"})

    assert await client.execute_request(descriptor) == 1
    assert http.calls[0]['url'] == "/one"
    assert http.calls[0]['headers']['X-Trace'] == "t1"


@pytest.mark.asyncio
async def test_headers_merge_defaults_extra_and_tokens(config_store, sleep_recorder):
    http = ScriptedHTTPClient([ok()])
    client = make_client(http, config_store, sleep_recorder, token_provider=StaticTokenProvider(["first", "second"]))

    await client.execute("/x", {}, {"X-Requested-With": "custom", "X-Extra": "1"})

    headers = http.calls[0]['headers']
    assert headers['Content-Type'] == DEFAULT_HEADERS['Content-Type']
    assert headers['X-Requested-With'] == "custom"
    assert headers['X-Extra'] == "1"
    # Every alias carries the last collected token
    for name in TOKEN_HEADER_ALIASES:
        assert headers[name] == "second"


@pytest.mark.asyncio
async def test_token_provider_failure_is_not_an_error(config_store, sleep_recorder, mocker):
    provider = mocker.MagicMock(spec=TokenProvider)
    provider.collect_tokens.side_effect = RuntimeError("page not loaded")
    http = ScriptedHTTPClient([ok()])
    client = make_client(http, config_store, sleep_recorder, token_provider=provider)

    assert await client.execute("/x", {}) == {"ok": True}
    assert not any(name in http.calls[0]['headers'] for name in TOKEN_HEADER_ALIASES)


@pytest.mark.asyncio
async def test_persistent_500_exhausts_exactly_max_retry_attempts(config_store, sleep_recorder):
    http = ScriptedHTTPClient([status(500, "boom")])
    client = make_client(http, config_store, sleep_recorder)

    with pytest.raises(TerminalHTTPError) as excinfo:
        await client.execute("/x", {})

    assert len(http.calls) == 4
    assert excinfo.value.status == 500
    assert excinfo.value.body == "boom"


@pytest.mark.asyncio
async def test_persistent_429_backs_off_exponentially_and_reports_body(config_store, sleep_recorder):
    http = ScriptedHTTPClient([status(429, "slow down")])
    client = make_client(http, config_store, sleep_recorder)

    with pytest.raises(TerminalHTTPError) as excinfo:
        await client.execute("/x", {})

    assert str(excinfo.value) == "HTTP 429: slow down"
    assert sleep_recorder.delays_ms == [200, 400, 800]
    assert len(http.calls) == 4


@pytest.mark.asyncio
async def test_success_after_three_failures_short_circuits(sleep_recorder):
    store = ConfigStore(EngineConfig(max_retry=5))
    http = ScriptedHTTPClient([status(500), status(502), status(503), ok('"done"'), ok('"never"')])
    client = make_client(http, store, sleep_recorder)

    assert await client.execute("/x", {}) == "done"
    assert len(http.calls) == 4
    assert sleep_recorder.delays_ms == [200, 400, 800]


@pytest.mark.asyncio
async def test_timeouts_back_off_linearly_then_raise_timeout(sleep_recorder):
    store = ConfigStore(EngineConfig(timeout_ms=20, max_retry=4))
    http = ScriptedHTTPClient([lambda: asyncio.sleep(10)])
    client = make_client(http, store, sleep_recorder)

    with pytest.raises(AttemptTimeoutError) as excinfo:
        await client.execute("/slow", {})

    assert isinstance(excinfo.value, TimeoutError)
    assert excinfo.value.attempt == 4
    assert len(http.calls) == 4
    assert sleep_recorder.delays_ms == [300, 600, 900]


@pytest.mark.asyncio
async def test_non_retryable_status_fails_immediately(config_store, sleep_recorder):
    http = ScriptedHTTPClient([status(404, "missing")])
    client = make_client(http, config_store, sleep_recorder)

    with pytest.raises(TerminalHTTPError, match="HTTP 404: missing"):
        await client.execute("/x", {})
    assert len(http.calls) == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_empty_error_body_gets_placeholder_text(config_store, sleep_recorder):
    client = make_client(ScriptedHTTPClient([status(400)]), config_store, sleep_recorder)

    with pytest.raises(TerminalHTTPError, match="HTTP 400: request failed"):
        await client.execute("/x", {})


@pytest.mark.asyncio
async def test_connectivity_failure_is_retried_then_rethrown_as_is(config_store, sleep_recorder):
    error = ConnectionResetError("connection reset by peer")
    http = ScriptedHTTPClient([error])
    client = make_client(http, config_store, sleep_recorder)

    with pytest.raises(ConnectionResetError) as excinfo:
        await client.execute("/x", {})

    assert excinfo.value is error
    assert len(http.calls) == 4
    assert sleep_recorder.delays_ms == [300, 600, 900]


@pytest.mark.asyncio
async def test_transport_error_recovers(config_store, sleep_recorder):
    http = ScriptedHTTPClient([TransportError("dns lookup failed"), ok('{"n": 1}')])
    client = make_client(http, config_store, sleep_recorder)

    assert await client.execute("/x", {}) == {"n": 1}
    assert sleep_recorder.delays_ms == [300]


@pytest.mark.asyncio
async def test_unrecognised_exception_is_terminal(config_store, sleep_recorder):
    error = KeyError("payload")
    http = ScriptedHTTPClient([error])
    client = make_client(http, config_store, sleep_recorder)

    with pytest.raises(KeyError) as excinfo:
        await client.execute("/x", {})
    assert excinfo.value is error
    assert len(http.calls) == 1


@pytest.mark.asyncio
async def test_malformed_success_body_is_terminal(config_store, sleep_recorder):
    http = ScriptedHTTPClient([ok("<html>not json</html>")])
    client = make_client(http, config_store, sleep_recorder)

    with pytest.raises(ValueError):
        await client.execute("/x", {})
    assert len(http.calls) == 1


@pytest.mark.asyncio
async def test_history_records_each_attempt(config_store, sleep_recorder):
    http = ScriptedHTTPClient([status(503, "busy"), ok()])
    client = make_client(http, config_store, sleep_recorder)
    history = []

    await client.execute("/x", {}, history=history)

    assert [r.outcome for r in history] == ["retryable", "success"]
    assert history[0].delay_ms == 200
    assert history[0].error == "HTTP 503: busy"


@pytest.mark.asyncio
async def test_config_change_mid_request_does_not_affect_it(sleep_recorder):
    store = ConfigStore(EngineConfig(max_retry=2))

    def handler(url, payload, headers):
        store.set_config({"max_retry": 10})
        return status(500)

    http = ScriptedHTTPClient(handler=handler)
    client = make_client(http, store, sleep_recorder)

    with pytest.raises(TerminalHTTPError):
        await client.execute("/x", {})
    assert len(http.calls) == 2


@pytest.mark.asyncio
async def test_zero_attempt_budget_is_reported_as_defect(sleep_recorder):
    http = ScriptedHTTPClient([ok()])
    client = make_client(http, ConfigStore(EngineConfig(max_retry=0)), sleep_recorder)

    with pytest.raises(RetryLoopDefect):
        await client.execute("/x", {})
    assert http.calls == []


@pytest.mark.asyncio
async def test_events_are_dispatched_to_listener(config_store, sleep_recorder):
    events = []
    http = ScriptedHTTPClient([status(429), ok()])
    client = make_client(http, config_store, sleep_recorder, listener=events.append)

    await client.execute("/x", {})

    retries = [e for e in events if isinstance(e, RetryScheduled)]
    assert len(retries) == 1
    assert retries[0].failure_class == FailureClass.HTTP_STATUS.value
    assert retries[0].delay_ms == 200
    assert isinstance(events[-1], RequestSucceeded)
    assert events[-1].attempt_number == 2


@pytest.mark.asyncio
async def test_terminal_failure_event_carries_status(config_store, sleep_recorder):
    events = []
    client = make_client(ScriptedHTTPClient([status(403, "no")]), config_store, sleep_recorder, listener=events.append)

    with pytest.raises(TerminalHTTPError):
        await client.execute("/x", {})
    failed = [e for e in events if isinstance(e, RequestFailed)]
    assert failed[0].status == 403


@pytest.mark.asyncio
async def test_attempt_once_classifies_outcomes(config_store, sleep_recorder):
    config = config_store.get_config()
    client = make_client(ScriptedHTTPClient([status(503, "busy")]), config_store, sleep_recorder)

    first = await client.attempt_once("/x", {}, {}, 1, config)
    last = await client.attempt_once("/x", {}, {}, config.max_retry, config)

    assert isinstance(first, RetryableFailure)
    assert first.delay_ms == 200
    assert first.failure_class is FailureClass.HTTP_STATUS
    assert isinstance(last, TerminalFailure)
    assert isinstance(last.cause, TerminalHTTPError)

    client.http_client = ScriptedHTTPClient([ok('[1]')])
    assert await client.attempt_once("/x", {}, {}, 1, config) == Success([1])


@pytest.mark.parametrize("error, expected", [
    (TimeoutError(), True),
    (TransportError("x"), True),
    (ConnectionError("x"), True),
    (OSError("Network is unreachable"), True),
    (RuntimeError("Failed to fetch"), True),
    (ValueError("bad payload"), False),
])
def test_is_transport_failure(error, expected):
    assert is_transport_failure(error) is expected
