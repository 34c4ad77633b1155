"""Personalization pipeline.

Runs the creative cycle for one person's session:
  1. Plan: a Blueprint (strategy, visual metaphor, copy angle) from the
     profile plus the newest memory events.
  2. Draft: design system + copy + product concepts from the blueprint.
     Remix regenerates against the existing blueprint instead.
  3. Assets: hero image first, then every product image concurrently.
  4. Verify: vibe audit of the illustrated draft.
  5. Refine: on misalignment, rewrite once and trust the result.

Side channel: every user action is logged to long-horizon memory; every third
event triggers a background preference-drift check that can patch the live
profile.

Onboarding (calibrate_profile) runs before any session exists.
"""

from .memory import DRIFT_CHECK_EVERY, apply_drift, drift_due, new_event  # noqa: F401
from .onboarding import DEFAULT_CALIBRATION, calibrate_profile  # noqa: F401
from .orchestrator import (  # noqa: F401
    CycleFailure,
    Orchestrator,
    SessionState,
    splice_images,
    trust_refinement,
)
