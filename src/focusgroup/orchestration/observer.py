"""Progress notifications from a running simulation.

Observers are fire-and-forget: the orchestrator never waits on them and a
failing observer is logged, never allowed to abort the run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from focusgroup.llm.usage import TokenUsage
    from focusgroup.models import PersonaProfile, SalesPitch, SimulationLog, SimulationStatus

logger = logging.getLogger(__name__)


class SimulationObserver(Protocol):
    """Callbacks a caller can implement to follow a run as it happens."""

    def on_status_change(self, status: SimulationStatus) -> None: ...

    def on_log(self, entry: SimulationLog) -> None: ...

    def on_personas_ready(self, personas: list[PersonaProfile]) -> None: ...

    def on_consumer_update(self, persona_id: str, changes: dict[str, Any]) -> None: ...

    def on_progress(self, percent: int) -> None: ...

    def on_pitch_ready(self, pitch: SalesPitch) -> None: ...

    def on_token_usage(self, usage: TokenUsage) -> None: ...


class NullObserver:
    """Observer that ignores every notification."""

    def on_status_change(self, status: SimulationStatus) -> None:
        pass

    def on_log(self, entry: SimulationLog) -> None:
        pass

    def on_personas_ready(self, personas: list[PersonaProfile]) -> None:
        pass

    def on_consumer_update(self, persona_id: str, changes: dict[str, Any]) -> None:
        pass

    def on_progress(self, percent: int) -> None:
        pass

    def on_pitch_ready(self, pitch: SalesPitch) -> None:
        pass

    def on_token_usage(self, usage: TokenUsage) -> None:
        pass


def notify(observer: SimulationObserver, event: str, *args: Any) -> None:
    """Call ``observer.<event>(*args)``, logging instead of raising on failure."""
    callback = getattr(observer, event, None)
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.exception("Observer callback %s failed", event)
