"""Interface for reporting to the user.

Defines the contract for displaying batch results, configuration, errors,
warnings and informational messages, allowing different UI implementations
(e.g., console, quiet/JSON output).
"""

import abc
from typing import Any

from batchcall.domain.models.common import BatchReport


class UserInterface(abc.ABC):
    """Abstract Base Class for user-facing output."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_report(self, report: BatchReport, **kwargs: Any) -> None:
        """Displays the per-item results and totals of a finished batch.

        Args:
            report: The batch report to render.
            **kwargs: Additional display options (e.g., preview_width).
        """
        pass

    @abc.abstractmethod
    def display_config(self, config: Any, **kwargs: Any) -> None:
        """Displays the effective engine configuration.

        Args:
            config: The configuration snapshot to show.
        """
        pass
