"""Interface for configuration providers.

Defines the contract for retrieving configuration settings
(e.g., engine limits, logging options) from various sources.
"""

import abc
from typing import Any, Optional


class ConfigurationProvider(abc.ABC):
    """Abstract Base Class for retrieving configuration values."""

    @abc.abstractmethod
    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """Gets a configuration value by key.

        Args:
            key: The configuration key (e.g., 'engine.concurrency', 'logging.level').
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default if not found.
        """
        pass

    @abc.abstractmethod
    def load_config(self) -> None:
        """Loads or reloads the configuration from its source(s)."""
        pass
