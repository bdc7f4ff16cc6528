"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the BatchService, reporting through the UserInterface. Errors are caught
here, at the command boundary, logged and shown to the user.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from batchcall.core.services.batch_service import BatchService
from batchcall.domain.errors import BatchCallError
from batchcall.domain.interfaces.user_interface import UserInterface
from batchcall.domain.models.common import BatchReport
from batchcall.infrastructure.config.settings import ConfigStore

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to the batch service."""

    def __init__(self, batch_service: BatchService, config_store: ConfigStore, ui: UserInterface):
        self.batch_service = batch_service
        self.config_store = config_store
        self.ui = ui

    async def handle_run(
        self,
        requests_file: str,
        limit: Optional[int] = None,
        keep_going: bool = False,
        extra_headers: Optional[Dict[str, str]] = None,
        output_file: Optional[str] = None,
    ) -> bool:
        """Handles the 'run' command.

        Returns:
            True when every request succeeded.
        """
        logger.info(f"Handling 'run' for {requests_file} (limit={limit or 'default'}, keep_going={keep_going})")
        try:
            descriptors = self.batch_service.load_requests(requests_file)
        except BatchCallError as e:
            logger.error(f"Failed to load requests: {e}")
            self.ui.display_error(f"Failed to load requests: {e}")
            return False

        if not descriptors:
            self.ui.display_warning(f"No requests found in {requests_file}")
            return True

        self.ui.display_info(f"Running {len(descriptors)} request(s)...")
        try:
            report = await self.batch_service.run(
                descriptors,
                limit=limit,
                keep_going=keep_going,
                extra_headers=extra_headers,
            )
        except Exception as e:
            logger.error(f"Batch failed: {e}", exc_info=True)
            self.ui.display_error(f"Batch failed: {type(e).__name__}: {e}")
            return False

        self.ui.display_report(report)
        if output_file:
            self._write_report(report, output_file)
        return report.failed == 0

    def handle_show_config(self) -> None:
        """Handles the 'show-config' command."""
        self.ui.display_config(self.config_store.get_config())

    def _write_report(self, report: BatchReport, output_file: str) -> None:
        data = [
            {"index": item.index, "ok": item.ok, "value": item.value, "error": item.error}
            for item in report.items
        ]
        try:
            Path(output_file).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write results to {output_file}: {e}")
            self.ui.display_error(f"Failed to write results to {output_file}: {e}")
            return
        self.ui.display_info(f"Results written to {output_file}")
