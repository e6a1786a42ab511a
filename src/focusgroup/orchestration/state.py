"""Per-persona state shared by the fan-out tasks of a run.

Updates are patches, applied one at a time as a merge onto the latest state:

- ``Direct(changes)`` merges fixed values
- ``Functional(fn)`` computes the changes from the state at apply time

Siblings update different personas concurrently, so a patch never replaces
a whole state it did not read.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from focusgroup.models import ConsumerState, ConsumerStatus, InteractionItem, InteractionType, PersonaProfile

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True, slots=True)
class Direct:
    changes: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Functional:
    fn: Callable[[ConsumerState], dict[str, Any]]


Patch = Direct | Functional


class ConsumerStateStore:
    """Mapping of persona id to ``ConsumerState`` with merge-only updates."""

    def __init__(self, on_update: UpdateCallback | None = None) -> None:
        self._states: dict[str, ConsumerState] = {}
        self._on_update = on_update

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def initialize(self, profile: PersonaProfile, interest_level: int) -> ConsumerState:
        state = ConsumerState(
            profile=profile,
            status=ConsumerStatus.LISTENING,
            interest_level=interest_level,
        )
        self._states[profile.id] = state
        if self._on_update is not None:
            self._on_update(profile.id, state.model_dump())
        return state

    def get(self, persona_id: str) -> ConsumerState:
        return self._states[persona_id]

    def apply(self, persona_id: str, patch: Patch) -> ConsumerState:
        """Resolve ``patch`` against the current state and merge the result.

        Raises:
            KeyError: for an unknown persona
            pydantic.ValidationError: when the merged state is invalid; the
                stored state is left untouched

        """
        current = self._states[persona_id]
        match patch:
            case Direct(changes=changes):
                resolved = dict(changes)
            case Functional(fn=fn):
                resolved = dict(fn(current))

        merged = ConsumerState.model_validate(current.model_dump() | resolved)
        self._states[persona_id] = merged
        if self._on_update is not None:
            self._on_update(persona_id, resolved)
        return merged

    def update(self, persona_id: str, **changes: Any) -> ConsumerState:
        return self.apply(persona_id, Direct(changes))

    def append_history(
        self,
        persona_id: str,
        entry_type: InteractionType,
        content: str,
        interest_level: int,
    ) -> InteractionItem:
        """Append one history entry; timestamps never go backwards."""
        appended: list[InteractionItem] = []

        def _append(prev: ConsumerState) -> dict[str, Any]:
            history = prev.interaction_history
            timestamp = max(time.time(), history[-1].timestamp) if history else time.time()
            item = InteractionItem(
                type=entry_type,
                content=content,
                timestamp=timestamp,
                interest_level=interest_level,
            )
            appended.append(item)
            return {"interaction_history": [*history, item]}

        self.apply(persona_id, Functional(_append))
        return appended[0]

    def snapshot(self) -> dict[str, ConsumerState]:
        """Independent copies of every state."""
        return {persona_id: state.model_copy(deep=True) for persona_id, state in self._states.items()}
