"""Long-horizon memory helpers: event creation, drift cadence, drift application.

The orchestrator owns the live memory list; these functions hold the rules so
they can be tested without running a session.
"""

import uuid

from velvet.models import (
    AgentStage,
    InteractionType,
    MemoryEvent,
    PreferenceDrift,
    UserProfile,
)

DRIFT_CHECK_EVERY = 3


def new_event(type: InteractionType, detail: str, stage: AgentStage) -> MemoryEvent:
    """Create a pending event stamped with the stage the user acted in."""
    return MemoryEvent(
        id=str(uuid.uuid4()),
        type=type,
        detail=detail,
        context_summary=stage.value,
    )


def drift_due(length: int) -> bool:
    """True when a list that just grew to `length` events should be checked.

    Fires on the 3rd, 6th, 9th, ... event.
    """
    return length > 0 and length % DRIFT_CHECK_EVERY == 0


def apply_drift(profile: UserProfile, drift: PreferenceDrift) -> UserProfile | None:
    """Shallow-merge a drift patch onto `profile`.

    Returns the updated profile, or None when the result says no drift or
    carries no patch.
    """
    if not drift.has_drifted or drift.new_profile is None:
        return None
    changes = drift.new_profile.model_dump(exclude_none=True)
    return profile.model_copy(update=changes)
