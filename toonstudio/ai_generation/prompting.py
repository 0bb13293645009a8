"""
Prompt construction utilities for ToonStudio image generation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

DEFAULT_COVER_STYLE = "Professional digital art"

PANEL_ASPECT_RATIO = "1:1"
COVER_ASPECT_RATIO = "3:4"


@dataclass(frozen=True)
class ImagePrompt:
    """Container for the text prompt and framing passed to the image model."""

    text: str
    aspect_ratio: str | None = None


def build_panel_prompt(description: str) -> ImagePrompt:
    """
    Wrap a panel description; style and characters are already baked into it.
    """
    if not description or not description.strip():
        raise ValueError("description must be a non-empty string.")
    return ImagePrompt(text=description.strip(), aspect_ratio=PANEL_ASPECT_RATIO)


def build_cover_prompt(title: str, summary: str, style: str | None = None) -> ImagePrompt:
    if not title or not title.strip():
        raise ValueError("title must be a non-empty string.")

    text = (
        f'A high quality book cover illustration for a story titled "{title.strip()}".\n'
        f"The story is about: {summary.strip()}.\n"
        f"Style: {(style or DEFAULT_COVER_STYLE).strip()}.\n"
        "Do NOT include text on the image."
    )
    return ImagePrompt(text=text, aspect_ratio=COVER_ASPECT_RATIO)


def build_edit_prompt(instruction: str) -> ImagePrompt:
    if not instruction or not instruction.strip():
        raise ValueError("instruction must be a non-empty string.")
    return ImagePrompt(text=instruction.strip())


def build_improved_style(style: str | None, suggestions: Sequence[str]) -> str:
    """Fold critique suggestions into a visual style for cover regeneration."""
    base = (style or DEFAULT_COVER_STYLE).strip()
    suggestion_text = ", ".join(item.strip() for item in suggestions if item and item.strip())
    if not suggestion_text:
        return base
    return f"{base}. IMPROVEMENTS: {suggestion_text}"
