"""Onboarding: turn a name and a free-text bio into a UserProfile."""

import logging

from velvet import agents
from velvet.llm import GenerationError, GenerativeService
from velvet.models import Calibration, PersonalityType, UserProfile
from velvet.prompts import PromptError

logger = logging.getLogger(__name__)

# Used whenever calibration cannot produce a profile, so onboarding never blocks.
DEFAULT_CALIBRATION = Calibration(
    personality=PersonalityType.CREATIVE,
    interests=["General"],
    tone="Friendly",
    pace=3,
)


async def calibrate_profile(
    service: GenerativeService,
    name: str,
    bio: str,
    mood_board_url: str | None = None,
) -> UserProfile:
    if not name.strip() or not bio.strip():
        raise ValueError("Both a name and a bio are required to calibrate")

    try:
        calibration = await agents.calibrate_persona(service, bio, mood_board_url or None)
    except (GenerationError, PromptError) as e:
        logger.warning("Calibration failed, using default profile: %s", e)
        calibration = DEFAULT_CALIBRATION

    return UserProfile(
        name=name.strip(),
        bio=bio,
        personality=calibration.personality,
        interests=calibration.interests or [],
        tone=calibration.tone or "Neutral",
        pace=calibration.pace or 3,
        mood_board_url=mood_board_url or None,
    )
