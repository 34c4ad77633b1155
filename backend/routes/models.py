"""Pydantic request/response models for API endpoints."""

from typing import Literal

from pydantic import BaseModel, Field

from velvet.models import PersonalityType


class CalibrateBody(BaseModel):
    name: str
    bio: str
    mood_board_url: str | None = None


class CreateSession(BaseModel):
    name: str
    bio: str = ""
    personality: PersonalityType
    interests: list[str] = Field(default_factory=list)
    tone: str = "Neutral"
    pace: int = Field(default=3, ge=1, le=5)
    mood_board_url: str | None = None


class UpdateSettings(BaseModel):
    base_url: str | None = None
    text_model: str | None = None
    image_model: str | None = None
    fast_model: str | None = None
    call_timeout: float | None = Field(default=None, gt=0)
    refine_passes: int | None = Field(default=None, ge=1)
    reverify_refinements: bool | None = None


class ApiKeyBody(BaseModel):
    api_key: str


class ChatBody(BaseModel):
    message: str


class VisualBody(BaseModel):
    instruction: str


class CopyBody(BaseModel):
    target: Literal["headline", "subheadline"]
    tone: str


class ImageEditBody(BaseModel):
    target: Literal["hero", "product"]
    instruction: str
    index: int | None = None
