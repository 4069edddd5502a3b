"""
Prompt templates for the generation flows.

All builders return flat strings; the client wraps them as a single
user message.
"""

from __future__ import annotations

from collections.abc import Sequence


def build_label_prompt(prompt: str, count: int = 3) -> str:
    """
    Ask for `count` short design directions for a submission.

    The response is expected to be a bare JSON array of strings.
    """
    return f"""
Generate {count} Kryptonian HUD design directions for: "{prompt}".
Directions should focus on different data visualization modalities (e.g., Crystalline, Holographic, Neural).
Return ONLY raw JSON array of strings.
""".strip()


def build_artifact_prompt(prompt: str, label: str) -> str:
    """
    Ask for one HUD component rendered in the given style direction.

    Args:
        prompt: The user's submission
        label: Style direction for this artifact

    Returns:
        Prompt requesting body-level HTML using Tailwind CSS
    """
    return f"""
Design a complex, high-fidelity HUD component for: "{prompt}".
STYLE: {label} (Kryptonian Technical Aesthetic)

RULES:
- Theme: Dark background, glowing teal/cyan accents (#22d3ee), crystalline geometry.
- Layout: Use borders, scanlines, and status indicators.
- Use Tailwind CSS.
- Ensure a technical, "data-heavy" look with monospace fonts.
- Return ONLY the internal HTML body content. No <html> or <body> tags needed.
""".strip()


def build_mutation_prompt(prompt: str, personas: Sequence[str]) -> str:
    """Ask for one JSON object per persona, each a radical variant of the submission."""
    names = ", ".join(f'"{p}"' for p in personas)
    return f"""
Generate {len(personas)} radical technical mutations for: "{prompt}".
Personas: {names}.
Required JSON Output Format: `{{ "name": "Persona Name", "html": "..." }}`
""".strip()


def build_suggestion_prompt(count: int = 20) -> str:
    """Ask for example prompts to rotate through the input placeholder."""
    return (
        f"Generate {count} futuristic Kryptonian HUD UI component prompts "
        '(e.g. "Crystalline thermal map", "Neural sync relay", "Orbital trajectory graph"). '
        "Return ONLY a raw JSON array of strings."
    )


__all__ = [
    "build_artifact_prompt",
    "build_label_prompt",
    "build_mutation_prompt",
    "build_suggestion_prompt",
]
