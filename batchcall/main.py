"""Main entry point for the batchcall application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Coroutine, Dict, List, Optional

import typer

# --- Core Layer ---
from batchcall.core.command_handler import CommandHandler
from batchcall.core.services.batch_service import BatchService

# --- Infrastructure Layer ---
# Config
from batchcall.infrastructure.config.settings import DEFAULT_CONFIG_FILE, ConfigStore, Settings
# UI
from batchcall.infrastructure.cli.display import ConsoleDisplay
# Transport
from batchcall.infrastructure.http.httpx_client import HttpxClient
# Tokens
from batchcall.infrastructure.tokens.token_provider import ChainedTokenProvider, HtmlTokenProvider, StaticTokenProvider
# Resilience
from batchcall.infrastructure.resilience.request_client import ResilientRequestClient
from batchcall.infrastructure.resilience.scheduler import BoundedWorkerPool
# Monitoring
from batchcall.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, resolve_level, setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies(
    settings: Settings,
    overrides: Optional[Dict[str, Any]] = None,
    tokens: Optional[List[str]] = None,
    token_page: Optional[Path] = None,
    base_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command.

    This acts as the Composition Root.

    Args:
        settings: Loaded layered settings.
        overrides: Engine values given on the command line; None entries are skipped.
        tokens: Explicit request tokens.
        token_page: Saved HTML page to scrape tokens from.
        base_url: Prefix for relative request URLs.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Configuration: settings first, command-line flags on top
    config_store = ConfigStore(settings.engine_config())
    config_store.set_config({k: v for k, v in (overrides or {}).items() if v is not None})
    dependencies['config_store'] = config_store
    logger.info(f"Engine config: {config_store.get_config()}")

    # 2. Infrastructure adapters
    dependencies['ui'] = ConsoleDisplay()
    dependencies['http_client'] = HttpxClient(base_url=base_url or str(settings.get('http.base_url', '') or ''))

    providers = []
    if tokens:
        providers.append(StaticTokenProvider(tokens))
    if token_page:
        providers.append(HtmlTokenProvider.from_file(token_page))
    dependencies['token_provider'] = ChainedTokenProvider(providers) if providers else None

    # 3. Resilience engine; the batch service listens to request events
    dependencies['worker_pool'] = BoundedWorkerPool(config_store)
    request_client = ResilientRequestClient(
        http_client=dependencies['http_client'],
        config_store=config_store,
        token_provider=dependencies['token_provider'],
    )
    dependencies['request_client'] = request_client
    batch_service = BatchService(request_client, dependencies['worker_pool'])
    request_client.listener = batch_service.record_event
    dependencies['batch_service'] = batch_service

    # 4. Command handler
    dependencies['command_handler'] = CommandHandler(
        batch_service=batch_service,
        config_store=config_store,
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="batchcall",
    help="batchcall: run batches of JSON API calls with bounded concurrency, timeouts and retries.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs an async command from a sync Typer command."""
    return asyncio.run(coro)


def parse_headers(values: Optional[List[str]]) -> Dict[str, str]:
    """Turns ['Name: value', ...] into a header mapping."""
    headers: Dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(':')
        if not sep or not name.strip():
            raise typer.BadParameter(f"Header must look like 'Name: value', got {raw!r}", param_hint="--header")
        headers[name.strip()] = value.strip()
    return headers


def load_settings(config_file: Optional[Path], log_level: Optional[str] = None) -> Settings:
    """Loads layered settings, then reconfigures logging from them.

    A level given on the command line wins over `logging.level`.
    """
    settings = Settings(config_file=config_file or DEFAULT_CONFIG_FILE)
    settings.load_config()
    log_file = settings.get('logging.file')
    setup_logging(
        log_level=resolve_level(log_level or settings.get('logging.level')),
        log_format=str(settings.get('logging.format', DEFAULT_LOG_FORMAT)),
        log_file=str(log_file) if log_file else None,
    )
    return settings


# --- CLI Commands ---

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML configuration file (default: ~/.batchcall/config.yaml).")
]


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    ] = None,
):
    """batchcall command line."""
    ctx.obj = {'log_level': log_level}
    setup_logging(log_level=resolve_level(log_level), log_format=DEFAULT_LOG_FORMAT)


@app.command()
def run(
    ctx: typer.Context,
    requests_file: Annotated[Path, typer.Argument(
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
        help="JSON array, JSON Lines or YAML list of {url, payload, headers} requests.")],
    concurrency: Annotated[Optional[int], typer.Option("--concurrency", "-n", help="Maximum requests in flight.")] = None,
    throttle_ms: Annotated[Optional[int], typer.Option("--throttle-ms", help="Pause per worker after each request.")] = None,
    timeout_ms: Annotated[Optional[int], typer.Option("--timeout-ms", help="Timeout of each attempt.")] = None,
    max_retry: Annotated[Optional[int], typer.Option("--max-retry", help="Attempts per request.")] = None,
    token: Annotated[Optional[List[str]], typer.Option("--token", "-t", help="Anti-forgery token (repeatable).")] = None,
    token_page: Annotated[Optional[Path], typer.Option(
        "--token-page", exists=True, dir_okay=False, readable=True,
        help="Saved HTML page to collect tokens from.")] = None,
    header: Annotated[Optional[List[str]], typer.Option("--header", "-H", help="Extra header 'Name: value' (repeatable).")] = None,
    base_url: Annotated[Optional[str], typer.Option("--base-url", help="Prefix for relative request URLs.")] = None,
    keep_going: Annotated[bool, typer.Option("--keep-going", "-k", help="Record failed requests instead of aborting.")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write results as JSON to this file.")] = None,
    config: ConfigOption = None,
):
    """Run every request in REQUESTS_FILE and show the results in order."""
    extra_headers = parse_headers(header)
    settings = load_settings(config, ctx.obj.get('log_level'))
    deps = create_dependencies(
        settings,
        overrides={
            'concurrency': concurrency,
            'throttle_ms': throttle_ms,
            'timeout_ms': timeout_ms,
            'max_retry': max_retry,
        },
        tokens=token,
        token_page=token_page,
        base_url=base_url,
    )
    handler: CommandHandler = deps['command_handler']

    async def _run() -> bool:
        try:
            return await handler.handle_run(
                str(requests_file),
                keep_going=keep_going,
                extra_headers=extra_headers,
                output_file=str(output) if output else None,
            )
        finally:
            await deps['http_client'].aclose()

    if not run_async(_run()):
        raise typer.Exit(code=1)


@app.command(name="show-config")
def show_config_command(ctx: typer.Context, config: ConfigOption = None):
    """Show the effective engine configuration."""
    deps = create_dependencies(load_settings(config, ctx.obj.get('log_level')))
    handler: CommandHandler = deps['command_handler']
    handler.handle_show_config()


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
