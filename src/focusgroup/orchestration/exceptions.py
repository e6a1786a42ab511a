"""Exceptions for the orchestration module."""

from __future__ import annotations

from typing import TYPE_CHECKING

from focusgroup.exceptions import FocusGroupError

if TYPE_CHECKING:
    from focusgroup.models import ConsumerState, SimulationLog


class OrchestrationError(FocusGroupError):
    """Base exception for orchestration errors."""


class NoSurvivingPersonasError(OrchestrationError):
    """Raised when every persona dropped out of a fan-out phase."""

    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"All persona simulations failed during {phase}. Please wait a moment and retry.")


class RunFatalError(OrchestrationError):
    """The run ended in the ``error`` state.

    Carries the simulation log and consumer states accumulated before the
    failure so callers can inspect what happened.
    """

    def __init__(
        self,
        message: str,
        *,
        logs: list[SimulationLog],
        consumer_states: dict[str, ConsumerState],
    ) -> None:
        super().__init__(message)
        self.logs = logs
        self.consumer_states = consumer_states
