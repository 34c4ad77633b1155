"""Core domain models.

All pipeline stages, agent calls and storage functions operate on these types.
Pydantic is used for validation and serialisation at every data boundary.

Field names are snake_case in Python. The generative service speaks camelCase
(``primaryColor``, ``conceptName``, ...), so models that cross that boundary
declare aliases and accept either spelling.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PersonalityType(str, Enum):
    ANALYTICAL = "Analytical & Data-Driven"
    CREATIVE = "Creative & Expressive"
    ZEN = "Zen & Minimalist"
    HIGH_ENERGY = "High Energy & Action-Oriented"
    EMPATHETIC = "Empathetic & Community-Focused"
    AUTHORITATIVE = "Authoritative & Leader"
    WHIMSICAL = "Whimsical & Playful"


class AgentStage(str, Enum):
    IDLE = "IDLE"
    CALIBRATING = "CALIBRATING"
    PLANNING = "PLANNING"
    DRAFTING = "DRAFTING"
    GENERATING_ASSETS = "GENERATING_ASSETS"
    VERIFYING = "VERIFYING"
    REFINING = "REFINING"
    COMPLETE = "COMPLETE"
    DRIFT_DETECTED = "DRIFT_DETECTED"


InteractionType = Literal["REMIX", "CHAT", "VISUAL_EDIT", "COPY_EDIT", "REJECT"]
EventStatus = Literal["pending", "confirmed", "failed"]
FontFamily = Literal["sans", "serif", "mono"]
Spacing = Literal["compact", "comfortable", "spacious"]


class _ServiceModel(BaseModel):
    """Base for models exchanged with the generative service."""

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class UserProfile(_ServiceModel):
    """The live psychographic profile of the person the page is built for."""

    name: str
    bio: str = ""
    personality: PersonalityType
    interests: list[str] = Field(default_factory=list)
    tone: str = "Neutral"
    pace: int = Field(default=3, ge=1, le=5)  # 1 = slow/deep, 5 = fast/skimmable
    mood_board_url: str | None = Field(default=None, alias="moodBoardUrl")


class Calibration(_ServiceModel):
    """Profile fragment inferred from a bio by the calibration call."""

    personality: PersonalityType
    interests: list[str] = Field(default_factory=list)
    tone: str
    pace: int = Field(ge=1, le=5)


class ProfilePatch(_ServiceModel):
    """Partial profile proposed by drift detection. ``None`` means unchanged."""

    tone: str | None = None
    pace: int | None = Field(default=None, ge=1, le=5)
    personality: PersonalityType | None = None


# ---------------------------------------------------------------------------
# Creative cycle
# ---------------------------------------------------------------------------

class Blueprint(_ServiceModel):
    strategy: str = Field(min_length=1)
    visual_metaphor: str = Field(min_length=1, alias="visualMetaphor")
    copy_angle: str = Field(min_length=1, alias="copyAngle")


class DesignSystem(_ServiceModel):
    primary_color: str = Field(alias="primaryColor")
    secondary_color: str = Field(alias="secondaryColor")
    background_color: str = Field(alias="backgroundColor")
    text_color: str = Field(alias="textColor")
    font_family: FontFamily = Field(alias="fontFamily")
    border_radius: str = Field(alias="borderRadius")
    spacing: Spacing


class Feature(_ServiceModel):
    title: str
    description: str
    icon: str


class ProductConcept(_ServiceModel):
    concept_name: str = Field(alias="conceptName")
    core_function: str = Field(alias="coreFunction")
    aesthetic_description: str = Field(alias="aestheticDescription")
    unique_selling_point: str = Field(alias="uniqueSellingPoint")
    image_url: str | None = Field(default=None, alias="imageUrl")


class GeneratedContent(_ServiceModel):
    headline: str
    subheadline: str
    cta_text: str = Field(alias="ctaText")
    features: list[Feature] = Field(default_factory=list)
    product_concepts: list[ProductConcept] = Field(default_factory=list, alias="productConcepts")
    hero_image_prompt: str | None = Field(default=None, alias="heroImagePrompt")
    hero_image_url: str | None = Field(default=None, alias="heroImageUrl")


class VerificationResult(_ServiceModel):
    """Vibe audit of a draft.

    ``score`` and ``aligned`` are reported independently by the model; nothing
    here forces them to agree.
    """

    score: int = Field(ge=0, le=100)
    aligned: bool
    critique: str
    suggestions: str
    tone_mismatch: bool = Field(default=False, alias="toneMismatch")
    visual_overload: bool = Field(default=False, alias="visualOverload")
    pace_friction: bool = Field(default=False, alias="paceFriction")


class ExperienceData(_ServiceModel):
    design: DesignSystem
    content: GeneratedContent
    verification: VerificationResult | None = None


# ---------------------------------------------------------------------------
# Long-horizon memory
# ---------------------------------------------------------------------------

class MemoryEvent(_ServiceModel):
    """One user-initiated interaction in a person's append-only memory log."""

    id: str
    timestamp: datetime = Field(default_factory=_now)
    type: InteractionType
    detail: str
    context_summary: str = Field(default="", alias="contextSummary")
    status: EventStatus = "pending"


class PreferenceDrift(_ServiceModel):
    has_drifted: bool = Field(alias="hasDrifted")
    new_profile: ProfilePatch | None = Field(default=None, alias="newProfile")
    reasoning: str = ""
    detected_pattern: str = Field(default="", alias="detectedPattern")


# ---------------------------------------------------------------------------
# Session-only records
# ---------------------------------------------------------------------------

class LogEntry(BaseModel):
    stage: AgentStage
    message: str
    timestamp: datetime = Field(default_factory=_now)


class ChatMessage(BaseModel):
    role: Literal["user", "persona"]
    text: str


class DriftAlert(BaseModel):
    message: str
    pattern: str
