"""Rich console and logging for focusgroup.

The CLI and the logging handler share one ``console`` so that streamed
simulation events and log records interleave cleanly.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["LOG_LEVEL_ENV", "SimulationLogHandler", "configure_logging", "console"]

LOG_LEVEL_ENV: Final[str] = "FOCUSGROUP_LOG_LEVEL"

# google-genai and httpx log every request at INFO.
QUIET_LOGGERS: Final[tuple[str, ...]] = ("httpx", "google_genai")

console = Console()


class SimulationLogHandler(RichHandler):
    """The one root handler owned by ``configure_logging``."""

    def __init__(self) -> None:
        super().__init__(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
        self.setFormatter(logging.Formatter("%(message)s"))


def _resolve_level(level: int | str | None) -> int:
    """Explicit level first, then ``FOCUSGROUP_LOG_LEVEL``, then INFO.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: int | str | None = None) -> None:
    """Install the Rich handler on the root logger; repeated calls only adjust the level."""
    root = logging.getLogger()
    if not any(isinstance(handler, SimulationLogHandler) for handler in root.handlers):
        root.handlers.clear()
        root.addHandler(SimulationLogHandler())
    root.setLevel(_resolve_level(level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.captureWarnings(True)
