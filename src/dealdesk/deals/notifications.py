"""User-facing outcome notifications.

The workflow reports every user action's outcome ("Deal created",
"Failed to update deal: ...") through an injected Notifier rather than a
process-wide channel. LogNotifier is the default and writes them as
structured log events.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    """Receives transient success/error messages for one user action."""

    def success(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


class LogNotifier:
    """Notifier that emits structlog events."""

    def success(self, message: str, **context: Any) -> None:
        logger.info("notify.success", message=message, **context)

    def error(self, message: str, **context: Any) -> None:
        logger.warning("notify.error", message=message, **context)
