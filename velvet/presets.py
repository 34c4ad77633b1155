"""Preset instructions offered next to the free-text tools."""

VISUAL_MUTATIONS: list[str] = [
    "Make it Dark Mode",
    "Make it Minimalist (White)",
    "High Contrast / Bold",
    "Soft Pastels",
    "Tech / Cyberpunk",
    "Luxury / Serif",
]

HEADLINE_TONES: list[str] = ["Punchy", "Mysterious", "Friendly", "Corporate"]

SUBHEADLINE_TONES: list[str] = ["Detailed", "Concise", "Emotional", "Data-focused"]


def as_dict() -> dict[str, list[str]]:
    return {
        "visual_mutations": VISUAL_MUTATIONS,
        "headline_tones": HEADLINE_TONES,
        "subheadline_tones": SUBHEADLINE_TONES,
    }
