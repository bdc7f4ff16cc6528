import json
import logging
import math
from typing import Any, Optional
from urllib.parse import unquote

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from batchcall.domain.interfaces.user_interface import UserInterface
from batchcall.domain.models.common import BatchReport
from batchcall.infrastructure.config.settings import EngineConfig

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_WIDTH = 60
URL_WIDTH = 40


def fmt(value: Any) -> str:
    """Numbers get thousands separators; None and '' become ''."""
    if value is None or value == '':
        return ''
    if isinstance(value, bool):
        return str(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if not math.isfinite(number):
        return str(value)
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip('0').rstrip('.')


def fix_width(text: Any, width: int) -> str:
    """Pads or truncates to exactly ``width`` characters, marking cuts with an ellipsis."""
    s = '' if text is None else str(text)
    if len(s) > width:
        return s[:width - 1] + '…'
    return s.ljust(width)


def try_decode(text: str) -> str:
    """Percent-decodes a URL for display; malformed escapes leave it as given."""
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError:
        return text


def preview(value: Any, width: int = DEFAULT_PREVIEW_WIDTH) -> str:
    """One-line rendering of a JSON result for the results table."""
    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False, separators=(',', ':'))
    else:
        text = fmt(value)
    return fix_width(text, width).rstrip()


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_report(self, report: BatchReport, **kwargs: Any) -> None:
        """Renders one row per operation followed by a totals line.

        Args:
            report: The finished batch.
            **kwargs: preview_width overrides the value column width.
        """
        width = kwargs.get("preview_width", DEFAULT_PREVIEW_WIDTH)
        table = Table(title="Batch results", box=ROUNDED, show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Request")
        table.add_column("Status")
        table.add_column("Result")

        for item in report.items:
            request = fix_width(try_decode(item.url), URL_WIDTH).rstrip()
            if item.ok:
                status = Text("ok", style="green")
                result = preview(item.value, width)
            else:
                status = Text(item.error_type or "error", style="red")
                result = fix_width(item.error, width).rstrip()
            table.add_row(str(item.index), Text(request), status, Text(result))

        self.console.print(table)
        self.console.print(
            f"[bold]{fmt(report.succeeded)}[/bold] succeeded, "
            f"[bold]{fmt(report.failed)}[/bold] failed, "
            f"{fmt(report.retries)} retries, "
            f"{report.workers} workers, {report.elapsed_seconds:.2f}s"
        )

    def display_config(self, config: Any, **kwargs: Any) -> None:
        values = config.as_dict() if isinstance(config, EngineConfig) else dict(config)
        table = Table(title="Engine configuration", box=SIMPLE)
        table.add_column("Key")
        table.add_column("Value", justify="right")
        for key, value in values.items():
            table.add_row(key, fmt(value))
        self.console.print(table)
