"""focusgroup: market simulation with a panel of AI consumer personas."""

from focusgroup.models import ProductInput, SimulationResult
from focusgroup.orchestration import SimulationOrchestrator, create_orchestrator

__version__ = "0.1.0"
__all__ = [
    "ProductInput",
    "SimulationOrchestrator",
    "SimulationResult",
    "create_orchestrator",
]
