import pytest
from rich.console import Console

from batchcall.domain.interfaces.user_interface import UserInterface
from batchcall.domain.models.common import BatchItemResult, BatchReport
from batchcall.infrastructure.cli.display import ConsoleDisplay, fix_width, fmt, preview, try_decode
from batchcall.infrastructure.config.settings import EngineConfig


@pytest.fixture
def display():
    return ConsoleDisplay(console=Console(record=True, width=120, color_system=None))


@pytest.mark.parametrize("value, expected", [
    (None, ''),
    ('', ''),
    (1234567, '1,234,567'),
    ('2500', '2,500'),
    (1234.5678, '1,234.568'),
    (0.5, '0.5'),
    ('abc', 'abc'),
    (True, 'True'),
])
def test_fmt(value, expected):
    assert fmt(value) == expected


def test_fix_width_pads_and_truncates():
    assert fix_width("abc", 5) == "abc  "
    assert fix_width("abcdefgh", 5) == "abcd…"
    assert fix_width(None, 3) == "   "


@pytest.mark.parametrize("url, expected", [
    ("/search?q=%EC%9D%98%EC%9E%90", "/search?q=의자"),
    ("/a%20b", "/a b"),
    ("/bad%FF", "/bad%FF"),
    ("/plain", "/plain"),
])
def test_try_decode_falls_back_on_malformed_escapes(url, expected):
    assert try_decode(url) == expected


def test_preview_renders_json_compactly():
    assert preview({"a": [1, 2]}, width=40) == '{"a":[1,2]}'
    assert preview(list(range(100)), width=10) == "[0,1,2,3,…"


def test_display_report_lists_items_and_totals(display):
    report = BatchReport(
        items=[
            BatchItemResult(index=0, ok=True, value={"id": 7}, url="/goods/%EC%9D%98%EC%9E%90"),
            BatchItemResult(index=1, ok=False, error="HTTP 404: missing", error_type="TerminalHTTPError"),
        ],
        elapsed_seconds=1.5,
        workers=2,
        retries=3,
    )

    display.display_report(report)
    text = display.console.export_text()

    assert '{"id":7}' in text
    assert "/goods/의자" in text
    assert "TerminalHTTPError" in text
    assert "HTTP 404: missing" in text
    assert "1 succeeded, 1 failed, 3 retries, 2 workers, 1.50s" in text


def test_display_config_shows_every_key(display):
    display.display_config(EngineConfig(concurrency=12000))
    text = display.console.export_text()

    for key in ("concurrency", "throttle_ms", "timeout_ms", "max_retry"):
        assert key in text
    assert "12,000" in text


def test_messages_render(display):
    display.display_info("starting")
    display.display_warning("careful")
    display.display_error("broken")
    text = display.console.export_text()

    for word in ("starting", "careful", "broken", "Error", "Warning"):
        assert word in text


def test_user_interface_requires_every_display_method():
    class ReportOnly(UserInterface):
        def display_error(self, error_message, **kwargs): pass
        def display_warning(self, warning_message, **kwargs): pass
        def display_info(self, info_message, **kwargs): pass
        def display_report(self, report, **kwargs): pass

    with pytest.raises(TypeError, match="display_config"):
        ReportOnly()
    assert not hasattr(UserInterface, "display_output")
    assert isinstance(ConsoleDisplay(console=Console(record=True)), UserInterface)
