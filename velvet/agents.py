"""Agent calls: one async function per generative operation.

Each function renders its prompt, declares the response shape it expects,
calls the injected service, and decodes the answer into a typed model.

Structured calls raise GenerationError on any failure. Image calls are soft:
an empty or failed image yields None (or, for edits, the original image), but
a missing credential is always raised so callers can prompt for setup.
"""

import logging
from collections.abc import Sequence

from velvet import prompts, schemas
from velvet.llm import FailureKind, GenerationError, GenerativeService, ImageAsset, decode
from velvet.models import (
    Blueprint,
    Calibration,
    DesignSystem,
    ExperienceData,
    MemoryEvent,
    PreferenceDrift,
    UserProfile,
    VerificationResult,
)

logger = logging.getLogger(__name__)

DRAFT_TEMPERATURE = 0.9
REMIX_TEMPERATURE = 1.0
MIN_DRIFT_HISTORY = 2

HERO_ASPECT_RATIO = "16:9"
PRODUCT_ASPECT_RATIO = "4:3"


# ---------------------------------------------------------------------------
# Structured calls
# ---------------------------------------------------------------------------

async def calibrate_persona(
    service: GenerativeService, bio: str, mood_board_url: str | None = None
) -> Calibration:
    text = await service.generate_text(
        "calibrate",
        prompts.calibration_prompt(bio, mood_board_url),
        system=prompts.CALIBRATION_SYSTEM,
        schema=schemas.CALIBRATION,
    )
    return decode(text, Calibration, stage="calibrate")


async def create_blueprint(
    service: GenerativeService, profile: UserProfile, history: Sequence[MemoryEvent] = ()
) -> Blueprint:
    """Plan a creative brief, conditioned on the newest memory events."""
    text = await service.generate_text(
        "blueprint",
        prompts.blueprint_prompt(profile, history),
        system=prompts.BLUEPRINT_SYSTEM,
        schema=schemas.BLUEPRINT,
    )
    return decode(text, Blueprint, stage="blueprint")


async def generate_draft(
    service: GenerativeService, profile: UserProfile, blueprint: Blueprint
) -> ExperienceData:
    text = await service.generate_text(
        "draft",
        prompts.draft_prompt(profile, blueprint),
        schema=schemas.EXPERIENCE,
        temperature=DRAFT_TEMPERATURE,
    )
    return decode(text, ExperienceData, stage="draft")


async def remix_draft(
    service: GenerativeService,
    profile: UserProfile,
    blueprint: Blueprint,
    previous: ExperienceData,
) -> ExperienceData:
    """Regenerate with the previous concept names listed so they are not repeated."""
    text = await service.generate_text(
        "remix",
        prompts.remix_prompt(profile, blueprint, previous),
        schema=schemas.EXPERIENCE,
        temperature=REMIX_TEMPERATURE,
    )
    return decode(text, ExperienceData, stage="remix")


async def verify_draft(
    service: GenerativeService, draft: ExperienceData, profile: UserProfile
) -> VerificationResult:
    text = await service.generate_text(
        "verify",
        prompts.verify_prompt(draft, profile),
        schema=schemas.VERIFICATION,
    )
    return decode(text, VerificationResult, stage="verify")


async def refine_draft(
    service: GenerativeService,
    draft: ExperienceData,
    critique: VerificationResult,
    profile: UserProfile,
) -> ExperienceData:
    text = await service.generate_text(
        "refine",
        prompts.refine_prompt(draft, critique, profile),
        schema=schemas.EXPERIENCE,
    )
    return decode(text, ExperienceData, stage="refine")


async def detect_preference_drift(
    service: GenerativeService, profile: UserProfile, history: Sequence[MemoryEvent]
) -> PreferenceDrift:
    """Ask whether behaviour contradicts the declared profile.

    With fewer than two events there is nothing to compare, so no call is made.
    """
    if len(history) < MIN_DRIFT_HISTORY:
        return PreferenceDrift(has_drifted=False, reasoning="Insufficient data", detected_pattern="")

    text = await service.generate_text(
        "drift",
        prompts.drift_prompt(profile, history),
        schema=schemas.DRIFT,
    )
    return decode(text, PreferenceDrift, stage="drift")


async def mutate_design(
    service: GenerativeService, profile: UserProfile, design: DesignSystem, instruction: str
) -> DesignSystem:
    text = await service.generate_text(
        "mutate_design",
        prompts.mutate_design_prompt(profile, design, instruction),
        schema=schemas.DESIGN_SYSTEM,
    )
    return decode(text, DesignSystem, stage="mutate_design")


# ---------------------------------------------------------------------------
# Free-text calls
# ---------------------------------------------------------------------------

async def simulate_persona_chat(
    service: GenerativeService, profile: UserProfile, message: str, context: ExperienceData
) -> str:
    text = await service.generate_text(
        "persona_chat", prompts.persona_chat_prompt(profile, message, context)
    )
    return text.strip() or "..."


async def polish_copy(service: GenerativeService, text: str, tone: str) -> str:
    """Rewrite `text` in `tone`; an empty answer keeps the original."""
    rewritten = await service.generate_text(
        "polish_copy", prompts.polish_copy_prompt(text, tone), fast=True
    )
    return rewritten.strip() or text


# ---------------------------------------------------------------------------
# Image calls
# ---------------------------------------------------------------------------

async def _soft_image(
    service: GenerativeService,
    stage: str,
    prompt: str,
    *,
    aspect_ratio: str | None = None,
    image: ImageAsset | None = None,
) -> ImageAsset | None:
    try:
        asset = await service.generate_image(stage, prompt, aspect_ratio=aspect_ratio, image=image)
    except GenerationError as e:
        if e.kind is FailureKind.MISSING_CREDENTIAL:
            raise
        logger.warning("Image call %s failed (%s): %s", stage, e.kind.value, e)
        return None
    if asset is None:
        logger.info("Image call %s produced no image (%s)", stage, FailureKind.EMPTY_ASSET.value)
    return asset


async def generate_visual_asset(
    service: GenerativeService, prompt: str, design: DesignSystem
) -> ImageAsset | None:
    return await _soft_image(
        service, "hero_image", prompts.hero_image_prompt(prompt, design),
        aspect_ratio=HERO_ASPECT_RATIO,
    )


async def generate_product_asset(
    service: GenerativeService, concept_name: str, description: str, design: DesignSystem
) -> ImageAsset | None:
    return await _soft_image(
        service, "product_image", prompts.product_image_prompt(concept_name, description, design),
        aspect_ratio=PRODUCT_ASPECT_RATIO,
    )


async def generate_project_thumbnail(service: GenerativeService) -> ImageAsset | None:
    return await _soft_image(
        service, "thumbnail", prompts.THUMBNAIL_PROMPT, aspect_ratio=HERO_ASPECT_RATIO
    )


async def refine_visual_asset(
    service: GenerativeService, image: ImageAsset, instruction: str
) -> ImageAsset:
    """Paint-to-edit. Returns the original image if the edit yields nothing."""
    edited = await _soft_image(service, "edit_image", instruction, image=image)
    return edited or image
