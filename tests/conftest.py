import asyncio
import logging

import pytest
from typer.testing import CliRunner

from batchcall.domain.interfaces.http_client import HTTPClient
from batchcall.domain.models.common import HttpResponse
from batchcall.infrastructure.config.settings import ConfigStore, EngineConfig


class ScriptedHTTPClient(HTTPClient):
    """Fake transport that plays back responses, one per call.

    Each script step is an HttpResponse (returned), an exception instance
    (raised) or a zero-argument callable returning an awaitable (awaited, so a
    step can hang until the attempt times out). The last step repeats.
    """

    def __init__(self, script=None, handler=None):
        self.script = list(script or [])
        self.handler = handler
        self.calls = []
        self.closed = False

    async def post_json(self, url, payload, headers):
        self.calls.append({'url': url, 'payload': payload, 'headers': dict(headers)})
        if self.handler is not None:
            step = self.handler(url, payload, headers)
        elif len(self.script) > 1:
            step = self.script.pop(0)
        else:
            step = self.script[0]
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step()
        return step

    async def aclose(self):
        self.closed = True


class SleepRecorder:
    """Stands in for asyncio.sleep; records delays without waiting for them."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)
        await asyncio.sleep(0)

    @property
    def delays_ms(self):
        return [round(d * 1000) for d in self.delays]


def ok(body='{"ok": true}'):
    return HttpResponse(status=200, text=body)


def status(code, body=""):
    return HttpResponse(status=code, text=body)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def config_store():
    return ConfigStore(EngineConfig(concurrency=3, throttle_ms=0, timeout_ms=1000, max_retry=4))


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures the root logger; put the previous handlers back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
