"""Handlebars prompt rendering for the agent calls.

Each agent call has a template constant and a builder that assembles the
template context from domain models. Builders are pure: same inputs, same
prompt. Values that may contain quotes or JSON are inserted with triple-stash
(``{{{ }}}``) so Handlebars does not HTML-escape them.
"""

import json
from collections.abc import Callable, Sequence
from typing import Any

import pybars

from velvet.models import (
    Blueprint,
    DesignSystem,
    ExperienceData,
    MemoryEvent,
    UserProfile,
    VerificationResult,
)

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

HISTORY_WINDOW = 10


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}}: iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── System instructions ──────────────────────────────────

CALIBRATION_SYSTEM = (
    "You are a psychologist and UX researcher. "
    "Infer personality, interests, tone, and cognitive pace."
)
BLUEPRINT_SYSTEM = "You are a Creative Director planning a hyper-personalized product experience."


# ── Templates ────────────────────────────────────────────

CALIBRATION_PROMPT = """\
Analyze this user input to infer their psychographic profile.
Bio/Input: "{{{bio}}}"
{{#if mood_board_url}}
User's Mood Board / Pinterest: {{{mood_board_url}}} (Use this context to infer visual taste if possible)
{{/if}}
"""

BLUEPRINT_PROMPT = """\
Create a Creative Blueprint for:
- Personality: {{{profile.personality}}}
- Interests: {{{profile.interests}}}
- Tone: {{{profile.tone}}}
- Pace: {{profile.pace}}
{{#if profile.mood_board_url}}
- Visual Inspiration (Mood Board): {{{profile.mood_board_url}}}
{{/if}}
{{#if memory}}

LONG-HORIZON MEMORY (Past Interactions):
{{#last memory 10}}
- {{{type}}}: {{{detail}}}
{{/last}}

CRITICAL: Incorporate these past preferences into the blueprint. If they asked \
for 'Dark Mode' before, ensure the visual metaphor reflects that.
{{/if}}
"""

DRAFT_PROMPT = """\
Execute this Blueprint:
Strategy: {{{blueprint.strategy}}}
Visuals: {{{blueprint.visual_metaphor}}}
Copy: {{{blueprint.copy_angle}}}

User Profile:
- Personality: {{{profile.personality}}}
- Interests: {{{profile.interests}}}
- Tone: {{{profile.tone}}}

TASK: Generate a landing page structure AND 3 distinct, high-fidelity Product Design Concepts.

GUIDELINES FOR PRODUCT CONCEPTS:
1. HYBRID SYNTHESIS: Combine the user's specific INTERESTS into a functional physical or digital product.
   (e.g., Interests: "F1" + "Gaming" -> Concept: "Aerodynamic Carbon-Fiber Mouse with Telemetry Display").
2. INDUSTRIAL REALISM: Focus on manufacturability. Specify materials (e.g., anodized aluminum, \
vegetable-tanned leather, frosted glass), form factor, and ergonomics.
3. UTILITY: The product must be USEFUL. No abstract art. It should be a tool, device, or accessory \
that fits their lifestyle.

IMPORTANT: Provide a detailed 'heroImagePrompt' that describes the main visual. It should be \
high-resolution, photorealistic or 3D render style, matching the visual metaphor.
"""

REMIX_PROMPT = """\
The user was not satisfied with the previous generation.
Create completely NEW and DIFFERENT concepts.

Blueprint Strategy: {{{blueprint.strategy}}}
User Profile:
- Personality: {{{profile.personality}}}
- Interests: {{{profile.interests}}}

Previous Concepts: {{{previous_concepts}}}

TASK: Generate 3 fresh Product Design Concepts and a new landing page.

GUIDELINES:
1. Merge user interests into FUNCTIONAL product designs (e.g. Hiking + Coffee = Portable Titanium Espresso Press).
2. Focus on REALISTIC Industrial Design: specific materials, finishes, and mechanics.
3. Ensure they are distinctly different from the previous attempt.
"""

VERIFY_PROMPT = """\
VIBE ENGINEERING AUDIT

Critique this draft against the user profile.
User: {{{profile.personality}}}, {{{profile.tone}}} tone, Pace: {{profile.pace}}/5.

Draft Design: Colors {{{design.primary_color}}}, Font {{design.font_family}}, Spacing {{design.spacing}}.
Draft Copy: "{{{headline}}}"

CHECK FOR:
1. Tone Mismatch: Is it too corporate for a 'Creative' person? Too silly for 'Authoritative'?
2. Visual Overload: Is 'spacing: compact' too overwhelming for a 'Zen' personality?
3. Pace Friction: Does the copy length match the user's cognitive pace? (Fast pace = short copy).

Be extremely critical.
"""

REFINE_PROMPT = """\
AUTO-REFINE EXPERIENCE

Critique received: {{{critique.critique}}}
Specific issues:
- Tone Mismatch: {{critique.tone_mismatch}}
- Visual Overload: {{critique.visual_overload}}
- Pace Friction: {{critique.pace_friction}}

Suggestions: {{{critique.suggestions}}}

User Profile: {{{profile.personality}}}, {{{profile.tone}}} tone, Pace: {{profile.pace}}/5.

Task: Fix these issues specifically. Modify the Design System and Copy to align perfectly.
Original Draft: {{{draft}}}
"""

DRIFT_PROMPT = """\
LONG-HORIZON PERSONALIZATION ENGINE

Current Profile: {{{profile}}}

Recent Interaction History (Newest last):
{{{history}}}

Task: Detect if the user's actual preferences (demonstrated by behavior) have drifted away \
from their initial profile.

Example: If profile says "Zen/Minimalist" but user keeps asking for "Punchy" copy and \
"High Contrast" visuals, there is drift towards "High Energy".

Return 'hasDrifted: true' ONLY if there is a clear, repeated pattern contradicting the current profile.
"""

PERSONA_CHAT_PROMPT = """\
ROLE: You are {{{name}}}, a person with these traits: {{{personality}}}.
CONTEXT: Looking at a website designed for you. Headline: "{{{headline}}}".
TASK: Reply to this question from the designer.
Question: "{{{message}}}"
"""

MUTATE_DESIGN_PROMPT = """\
Modify this Design System based on the instruction: "{{{instruction}}}"
Current System: {{{design}}}

User Profile Context: {{{personality}}}, {{{tone}}}

Return the updated Design System JSON only.
"""

POLISH_COPY_PROMPT = """\
Rewrite the following text to have a "{{{tone}}}" tone.
Keep the core meaning, but adjust the style.

Original Text: "{{{text}}}"

Return only the rewritten text.
"""

HERO_IMAGE_PROMPT = """\
High quality, professional product photography or 3D render.
Subject: {{{subject}}}
Aesthetic: Uses {{{primary_color}}} and {{{secondary_color}}} accents.
Style: {{#if editorial}}Elegant, editorial{{else}}Modern, clean, minimal{{/if}}.

Format: Photorealistic, 8k resolution.
"""

PRODUCT_IMAGE_PROMPT = """\
Professional Industrial Design Product Photography.
Subject: {{{name}}}.
Design Features: {{{description}}}.
Style: Studio lighting, {{{primary_color}}} accents.
Focus: Realism, material textures, ergonomic details.
High definition, 4k.
"""

THUMBNAIL_PROMPT = """\
Cinematic abstract 3D composition representing "Velvet", an AI Hyper-Personalization Engine.
Visuals: Sleek dark slate glass surfaces, glowing blue data streams, floating UI blueprints.
Vibe: Industrial Design meets Futurism. Mysterious, Elegant, High-Tech.
Center: A subtle, stylized 'V' logo in brushed titanium or light.
Lighting: Volumetric, moody, rim lighting.
Resolution: 8k, photorealistic.
"""


# ── Context helpers ──────────────────────────────────────


def _profile_ctx(profile: UserProfile) -> dict[str, Any]:
    return {
        "name": profile.name,
        "personality": profile.personality.value,
        "interests": ", ".join(profile.interests),
        "tone": profile.tone,
        "pace": profile.pace,
        "mood_board_url": profile.mood_board_url or "",
    }


def _to_json(model) -> str:
    return model.model_dump_json(by_alias=True, exclude_none=True)


# ── Builders ─────────────────────────────────────────────


def calibration_prompt(bio: str, mood_board_url: str | None = None) -> str:
    return render_prompt(CALIBRATION_PROMPT, {"bio": bio, "mood_board_url": mood_board_url or ""})


def blueprint_prompt(profile: UserProfile, history: Sequence[MemoryEvent] = ()) -> str:
    """Blueprint prompt; only the newest HISTORY_WINDOW events are included."""
    memory = [{"type": e.type, "detail": e.detail} for e in history]
    return render_prompt(BLUEPRINT_PROMPT, {"profile": _profile_ctx(profile), "memory": memory})


def draft_prompt(profile: UserProfile, blueprint: Blueprint) -> str:
    return render_prompt(DRAFT_PROMPT, {
        "profile": _profile_ctx(profile),
        "blueprint": blueprint.model_dump(),
    })


def remix_prompt(profile: UserProfile, blueprint: Blueprint, previous: ExperienceData) -> str:
    names = [c.concept_name for c in previous.content.product_concepts]
    return render_prompt(REMIX_PROMPT, {
        "profile": _profile_ctx(profile),
        "blueprint": blueprint.model_dump(),
        "previous_concepts": json.dumps(names),
    })


def verify_prompt(draft: ExperienceData, profile: UserProfile) -> str:
    return render_prompt(VERIFY_PROMPT, {
        "profile": _profile_ctx(profile),
        "design": draft.design.model_dump(),
        "headline": draft.content.headline,
    })


def refine_prompt(
    draft: ExperienceData, critique: VerificationResult, profile: UserProfile
) -> str:
    critique_ctx = critique.model_dump()
    for flag in ("tone_mismatch", "visual_overload", "pace_friction"):
        critique_ctx[flag] = str(critique_ctx[flag]).lower()
    return render_prompt(REFINE_PROMPT, {
        "critique": critique_ctx,
        "profile": _profile_ctx(profile),
        "draft": _to_json(draft.model_copy(update={"verification": None})),
    })


def drift_prompt(profile: UserProfile, history: Sequence[MemoryEvent]) -> str:
    recent = [e.model_dump(mode="json", by_alias=True) for e in history[-HISTORY_WINDOW:]]
    return render_prompt(DRIFT_PROMPT, {
        "profile": _to_json(profile),
        "history": json.dumps(recent),
    })


def persona_chat_prompt(profile: UserProfile, message: str, context: ExperienceData) -> str:
    return render_prompt(PERSONA_CHAT_PROMPT, {
        "name": profile.name,
        "personality": profile.personality.value,
        "headline": context.content.headline,
        "message": message,
    })


def mutate_design_prompt(profile: UserProfile, design: DesignSystem, instruction: str) -> str:
    return render_prompt(MUTATE_DESIGN_PROMPT, {
        "instruction": instruction,
        "design": _to_json(design),
        "personality": profile.personality.value,
        "tone": profile.tone,
    })


def polish_copy_prompt(text: str, tone: str) -> str:
    return render_prompt(POLISH_COPY_PROMPT, {"text": text, "tone": tone})


def hero_image_prompt(subject: str, design: DesignSystem) -> str:
    return render_prompt(HERO_IMAGE_PROMPT, {
        "subject": subject,
        "primary_color": design.primary_color,
        "secondary_color": design.secondary_color,
        "editorial": design.font_family == "serif",
    })


def product_image_prompt(name: str, description: str, design: DesignSystem) -> str:
    return render_prompt(PRODUCT_IMAGE_PROMPT, {
        "name": name,
        "description": description,
        "primary_color": design.primary_color,
    })
