"""Tests for velvet.pipeline.onboarding.calibrate_profile."""

import pytest

from velvet.llm import FailureKind, GenerationError
from velvet.models import PersonalityType
from velvet.pipeline import DEFAULT_CALIBRATION, calibrate_profile

from tests.helpers import StubService


async def test_calibration_builds_profile():
    service = StubService()
    profile = await calibrate_profile(service, "  Mika ", "I like quiet mornings.")
    assert profile.name == "Mika"
    assert profile.bio == "I like quiet mornings."
    assert profile.personality is PersonalityType.ZEN
    assert profile.interests == ["Tea"]
    assert profile.tone == "Calm"
    assert profile.pace == 2
    assert profile.mood_board_url is None


async def test_mood_board_is_passed_and_kept():
    service = StubService()
    profile = await calibrate_profile(service, "Mika", "bio", "https://pin.example/b")
    assert profile.mood_board_url == "https://pin.example/b"
    assert "https://pin.example/b" in service.prompts_for("calibrate")[0]


async def test_failure_falls_back_to_default():
    service = StubService({"calibrate": GenerationError(FailureKind.TRANSPORT, "down")})
    profile = await calibrate_profile(service, "Mika", "bio")
    assert profile.personality is DEFAULT_CALIBRATION.personality
    assert profile.interests == ["General"]
    assert profile.tone == "Friendly"
    assert profile.pace == 3


async def test_malformed_response_falls_back_to_default():
    service = StubService({"calibrate": '{"personality": "Chaotic"}'})
    profile = await calibrate_profile(service, "Mika", "bio")
    assert profile.personality is PersonalityType.CREATIVE


@pytest.mark.parametrize("name, bio", [("", "bio"), ("Mika", "  ")])
async def test_blank_inputs_rejected(name, bio):
    with pytest.raises(ValueError):
        await calibrate_profile(StubService(), name, bio)
