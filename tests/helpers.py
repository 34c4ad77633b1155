"""Shared test doubles and canned service responses."""

import asyncio
import json
from typing import Any, Callable

from velvet.llm import ImageAsset
from velvet.models import PersonalityType, UserProfile

BLUEPRINT = {
    "strategy": "Quiet confidence through negative space",
    "visualMetaphor": "A single stone in raked sand",
    "copyAngle": "Less, but better",
}

DESIGN = {
    "primaryColor": "#2F4F4F",
    "secondaryColor": "#A9A9A9",
    "backgroundColor": "#FAFAF7",
    "textColor": "#1A1A1A",
    "fontFamily": "serif",
    "borderRadius": "4px",
    "spacing": "spacious",
}

CONCEPT_NAMES = ["Stone Lamp", "Cedar Desk Tray", "Linen Journal"]


def experience(headline: str = "Breathe. Build.", names: list[str] | None = None) -> dict:
    names = names or CONCEPT_NAMES
    return {
        "design": DESIGN,
        "content": {
            "headline": headline,
            "subheadline": "Tools that stay out of your way.",
            "ctaText": "Begin",
            "features": [{"title": "Calm", "description": "No noise.", "icon": "leaf"}],
            "productConcepts": [
                {
                    "conceptName": n,
                    "coreFunction": "Holds things",
                    "aestheticDescription": "Matte basalt",
                    "uniqueSellingPoint": "Silent",
                }
                for n in names
            ],
            "heroImagePrompt": "A stone lamp on a low oak table at dawn",
        },
    }


def verification(score: int = 90, aligned: bool = True, **flags: bool) -> dict:
    return {
        "score": score,
        "aligned": aligned,
        "critique": "Looks right." if aligned else "Too dense for a slow reader.",
        "suggestions": "None." if aligned else "Shorten copy, add whitespace.",
        **flags,
    }


NO_DRIFT = {"hasDrifted": False, "reasoning": "Consistent", "detectedPattern": ""}


def zen_profile(**overrides: Any) -> UserProfile:
    fields = {
        "name": "Mika",
        "bio": "I like quiet mornings and tea.",
        "personality": PersonalityType.ZEN,
        "interests": ["Tea", "Woodworking"],
        "tone": "Calm",
        "pace": 1,
    }
    fields.update(overrides)
    return UserProfile(**fields)


def default_responses() -> dict[str, Any]:
    return {
        "calibrate": {
            "personality": PersonalityType.ZEN.value,
            "interests": ["Tea"],
            "tone": "Calm",
            "pace": 2,
        },
        "blueprint": BLUEPRINT,
        "draft": experience(),
        "remix": experience("Again, differently.", ["Basalt Kettle", "Oak Shelf", "Felt Case"]),
        "verify": verification(),
        "refine": experience("Breathe."),
        "drift": NO_DRIFT,
        "mutate_design": {**DESIGN, "backgroundColor": "#000000", "textColor": "#FFFFFF"},
        "persona_chat": "I would read this slowly, twice.",
        "polish_copy": "Still. Sharp. Yours.",
    }


class StubService:
    """Scripted GenerativeService.

    Text responses are looked up by stage. A value may be:
      - a dict or list: returned as JSON
      - a str: returned as is
      - an Exception: raised
      - a list wrapped in Replies(...): consumed one item per call
      - a callable(prompt): called, and its result handled as above

    Images default to a small PNG payload tagged with the stage. Set
    `image_hook` to an async callable(stage, prompt, kwargs) to control them.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = default_responses()
        self.responses.update(responses or {})
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.image_calls: list[tuple[str, str, dict[str, Any]]] = []
        self.image_hook: Callable[..., Any] | None = None

    def stages(self) -> list[str]:
        return [stage for stage, _, _ in self.calls]

    def prompts_for(self, stage: str) -> list[str]:
        return [prompt for s, prompt, _ in self.calls if s == stage]

    async def generate_text(self, stage: str, prompt: str, **kwargs: Any) -> str:
        self.calls.append((stage, prompt, kwargs))
        await asyncio.sleep(0)
        response = self.responses[stage]
        if isinstance(response, Replies):
            response = response.next()
        if callable(response) and not isinstance(response, type):
            response = response(prompt)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response

    async def generate_image(self, stage: str, prompt: str, **kwargs: Any) -> ImageAsset | None:
        self.image_calls.append((stage, prompt, kwargs))
        if self.image_hook is not None:
            return await self.image_hook(stage, prompt, kwargs)
        await asyncio.sleep(0)
        return ImageAsset(data=f"png:{stage}".encode())


class Replies:
    """Successive responses for one stage; the last one repeats."""

    def __init__(self, *items: Any) -> None:
        self._items = list(items)

    def next(self) -> Any:
        if len(self._items) > 1:
            return self._items.pop(0)
        return self._items[0]
