"""
Base class for verification and liveness components.

Provides common functionality for all components including
logging and configuration access.
"""

from __future__ import annotations

from typing import Optional, Any

from ..config import Config, get_config
from ..logger import get_logger


class BaseComponent:
    """
    Base class for the verification and liveness components.

    Provides:
    - Consistent logging
    - Configuration access
    """

    # Component name for logging (override in subclass)
    name: str = "voteguard"

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize component.

        Args:
            config: Configuration (default: global config)
        """
        self.config = config or get_config()
        self.logger = get_logger(self.name)

    @property
    def debug_mode(self) -> bool:
        """Check if debug mode is enabled."""
        return self.config.debug

    @staticmethod
    def _format(message: str, kwargs: dict[str, Any]) -> str:
        extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
        return f"{message} {extra}".strip()

    def log_debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message (only in debug mode)."""
        if self.debug_mode:
            self.logger.debug(self._format(message, kwargs))

    def log_info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format(message, kwargs))

    def log_warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format(message, kwargs))

    def log_error(self, message: str, error: Optional[Exception] = None) -> None:
        """Log error message."""
        if error:
            self.logger.error(f"{message}: {error}", exc_info=self.debug_mode)
        else:
            self.logger.error(message)
