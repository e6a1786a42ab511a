"""Simulation orchestration: phase sequencing, persona state and observers."""

from focusgroup.orchestration.exceptions import NoSurvivingPersonasError, OrchestrationError, RunFatalError
from focusgroup.orchestration.observer import NullObserver, SimulationObserver
from focusgroup.orchestration.simulation import SimulationOrchestrator, create_orchestrator
from focusgroup.orchestration.state import ConsumerStateStore, Direct, Functional, Patch

__all__ = [
    "ConsumerStateStore",
    "Direct",
    "Functional",
    "NoSurvivingPersonasError",
    "NullObserver",
    "OrchestrationError",
    "Patch",
    "RunFatalError",
    "SimulationObserver",
    "SimulationOrchestrator",
    "create_orchestrator",
]
