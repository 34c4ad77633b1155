"""Response shapes sent with structured calls (Gemini ``responseSchema``).

These describe what the service is asked to return. What the caller accepts is
decided by the pydantic models in velvet.models; the two are kept in step by
tests/test_schemas.py.
"""

from typing import Any

from velvet.models import PersonalityType

PERSONALITIES = [p.value for p in PersonalityType]

CALIBRATION: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "personality": {"type": "STRING", "enum": PERSONALITIES},
        "interests": {"type": "ARRAY", "items": {"type": "STRING"}},
        "tone": {"type": "STRING"},
        "pace": {"type": "INTEGER", "description": "1 for slow/deep, 5 for fast/skimmable"},
    },
    "required": ["personality", "interests", "tone", "pace"],
}

BLUEPRINT: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "strategy": {"type": "STRING", "description": "High level UX strategy"},
        "visualMetaphor": {"type": "STRING", "description": "The core visual concept"},
        "copyAngle": {"type": "STRING", "description": "The rhetorical approach for text"},
    },
    "required": ["strategy", "visualMetaphor", "copyAngle"],
}

DESIGN_SYSTEM: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "primaryColor": {"type": "STRING"},
        "secondaryColor": {"type": "STRING"},
        "backgroundColor": {"type": "STRING"},
        "textColor": {"type": "STRING"},
        "fontFamily": {"type": "STRING", "enum": ["sans", "serif", "mono"]},
        "borderRadius": {"type": "STRING"},
        "spacing": {"type": "STRING", "enum": ["compact", "comfortable", "spacious"]},
    },
    "required": [
        "primaryColor", "secondaryColor", "backgroundColor", "textColor",
        "fontFamily", "borderRadius", "spacing",
    ],
}

EXPERIENCE: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "design": DESIGN_SYSTEM,
        "content": {
            "type": "OBJECT",
            "properties": {
                "headline": {"type": "STRING"},
                "subheadline": {"type": "STRING"},
                "ctaText": {"type": "STRING"},
                "heroImagePrompt": {
                    "type": "STRING",
                    "description": (
                        "Detailed prompt for generating a photorealistic hero image. "
                        "Include style, lighting, and mention if text should be visible "
                        "(only simple words)."
                    ),
                },
                "features": {
                    "type": "ARRAY",
                    "items": {
                        "type": "OBJECT",
                        "properties": {
                            "title": {"type": "STRING"},
                            "description": {"type": "STRING"},
                            "icon": {"type": "STRING"},
                        },
                        "required": ["title", "description", "icon"],
                    },
                },
                "productConcepts": {
                    "type": "ARRAY",
                    "items": {
                        "type": "OBJECT",
                        "properties": {
                            "conceptName": {"type": "STRING"},
                            "coreFunction": {"type": "STRING"},
                            "aestheticDescription": {
                                "type": "STRING",
                                "description": (
                                    "Visual description of the physical or digital product "
                                    "look for image generation."
                                ),
                            },
                            "uniqueSellingPoint": {"type": "STRING"},
                        },
                        "required": [
                            "conceptName", "coreFunction",
                            "aestheticDescription", "uniqueSellingPoint",
                        ],
                    },
                },
            },
            "required": [
                "headline", "subheadline", "ctaText",
                "features", "productConcepts", "heroImagePrompt",
            ],
        },
    },
    "required": ["design", "content"],
}

VERIFICATION: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "INTEGER", "description": "0 to 100 alignment score"},
        "aligned": {"type": "BOOLEAN", "description": "Is it good enough to show?"},
        "critique": {"type": "STRING", "description": "What is wrong or right?"},
        "suggestions": {"type": "STRING", "description": "Specific instructions for refinement"},
        "toneMismatch": {"type": "BOOLEAN"},
        "visualOverload": {"type": "BOOLEAN"},
        "paceFriction": {"type": "BOOLEAN"},
    },
    "required": [
        "score", "aligned", "critique", "suggestions",
        "toneMismatch", "visualOverload", "paceFriction",
    ],
}

DRIFT: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "hasDrifted": {"type": "BOOLEAN"},
        "reasoning": {
            "type": "STRING",
            "description": "Why the profile needs to evolve based on interaction history.",
        },
        "detectedPattern": {
            "type": "STRING",
            "description": "e.g. 'User consistently prefers darker, high-contrast modes'.",
        },
        "newProfile": {
            "type": "OBJECT",
            "properties": {
                "tone": {"type": "STRING"},
                "pace": {"type": "INTEGER"},
                "personality": {"type": "STRING", "enum": PERSONALITIES},
            },
            "nullable": True,
        },
    },
    "required": ["hasDrifted", "reasoning", "detectedPattern"],
}
