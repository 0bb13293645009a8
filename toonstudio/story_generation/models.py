"""
Plain records exchanged between the ToonStudio services and the ebook pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Sequence

DEFAULT_PANEL_COUNT = 6
DEFAULT_AUDIENCE = "General Audience"
DEFAULT_VISUAL_STYLE = "Vibrant Digital Cartoon"

VIRAL_POTENTIAL_LEVELS = ("Low", "Medium", "High", "Viral Hit")


class LayoutStyle(str, Enum):
    """How panels are laid out on ebook pages."""

    STORYBOOK = "STORYBOOK"
    COMIC_STRIP = "COMIC_STRIP"

    @classmethod
    def coerce(cls, value: Any) -> "LayoutStyle":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unknown layout style {value!r}.") from exc


def _coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None

    text = str(value).strip()
    return text or None


def _coerce_panel_count(value: Any) -> int:
    if value is None or value == "":
        return DEFAULT_PANEL_COUNT

    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected an integer-compatible panel count, got {value!r}") from exc

    if count < 1:
        raise ValueError("panel_count must be at least 1.")
    return count


@dataclass(frozen=True)
class Story:
    """
    A story idea found by trend search or authored by the user.

    Attributes
    ----------
    id:
        Identifier unique within one search batch (``story-<batch>-<index>``) or
        ``custom-<timestamp>`` for user-authored stories.
    title, summary:
        Catchy title and a short plot summary.
    source:
        Where the story came from (e.g. "Reddit r/NoSleep", "User Imagination").
    panel_count:
        Number of panels the script should contain.
    visual_style:
        Art direction chosen by the user (e.g. "Pixar 3D Animation").
    layout_style:
        Storybook (one panel per page) or comic strip (four panels per page).
    target_audience:
        Reader group the text and art should suit.
    """

    id: str
    title: str
    summary: str
    source: str | None = None
    panel_count: int = DEFAULT_PANEL_COUNT
    visual_style: str | None = None
    layout_style: LayoutStyle = LayoutStyle.STORYBOOK
    target_audience: str | None = None

    def with_preferences(
        self,
        *,
        panel_count: int | None = None,
        visual_style: str | None = None,
        layout_style: LayoutStyle | str | None = None,
        target_audience: str | None = None,
    ) -> "Story":
        """Return a copy carrying the user's style, layout, and audience selections."""
        changes: dict[str, Any] = {}
        if panel_count is not None:
            changes["panel_count"] = _coerce_panel_count(panel_count)
        if visual_style is not None:
            changes["visual_style"] = visual_style
        if layout_style is not None:
            changes["layout_style"] = LayoutStyle.coerce(layout_style)
        if target_audience is not None:
            changes["target_audience"] = target_audience
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Story":
        for key in ("id", "title", "summary"):
            if not str(data.get(key) or "").strip():
                raise ValueError(f"Story data must include a non-empty '{key}' field.")

        layout = data.get("layout_style") or data.get("layoutStyle")
        return cls(
            id=str(data["id"]).strip(),
            title=str(data["title"]).strip(),
            summary=str(data["summary"]).strip(),
            source=_coerce_optional_str(data.get("source")),
            panel_count=_coerce_panel_count(data.get("panel_count") or data.get("panelCount")),
            visual_style=_coerce_optional_str(data.get("visual_style") or data.get("visualStyle")),
            layout_style=LayoutStyle.coerce(layout) if layout else LayoutStyle.STORYBOOK,
            target_audience=_coerce_optional_str(
                data.get("target_audience") or data.get("targetAudience")
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "source": self.source,
            "panel_count": self.panel_count,
            "visual_style": self.visual_style,
            "layout_style": self.layout_style.value,
            "target_audience": self.target_audience,
        }


@dataclass
class Panel:
    """
    One page/illustration unit of the ebook.

    Captions and images are mutated in place by edits and regeneration; the
    ``id`` is the panel's sequence index and never changes.
    """

    id: int
    description: str
    caption: str
    image_url: str | None = None
    is_generating: bool = False
    generation_failed: bool = False

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Panel":
        try:
            panel_id = int(data["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid panel entry: {data}") from exc

        return cls(
            id=panel_id,
            description=str(data.get("description") or "").strip(),
            caption=str(data.get("caption") or "").strip(),
            image_url=_coerce_optional_str(data.get("image_url") or data.get("imageUrl")),
            generation_failed=bool(data.get("generation_failed", False)),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "caption": self.caption,
            "image_url": self.image_url,
            "generation_failed": self.generation_failed,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Snapshot of a marketability critique; replaced on every re-analysis."""

    score: int
    viral_potential: str
    coherence_check: str
    critique: str
    text_quality: str
    visual_quality: str
    suggestions: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisResult":
        suggestions = data.get("suggestions") or ()
        if isinstance(suggestions, str):
            suggestions = [suggestions]
        return cls(
            score=int(data.get("score", 0)),
            viral_potential=str(data.get("viral_potential") or data.get("viralPotential") or "Low"),
            coherence_check=str(data.get("coherence_check") or data.get("coherenceCheck") or ""),
            critique=str(data.get("critique") or ""),
            text_quality=str(data.get("text_quality") or data.get("textQuality") or ""),
            visual_quality=str(data.get("visual_quality") or data.get("visualQuality") or ""),
            suggestions=tuple(str(item) for item in suggestions),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "viral_potential": self.viral_potential,
            "coherence_check": self.coherence_check,
            "critique": self.critique,
            "text_quality": self.text_quality,
            "visual_quality": self.visual_quality,
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class RefinedPanel:
    id: int
    caption: str


@dataclass(frozen=True)
class RefinedContent:
    """Proposed replacement title, summary, and captions from the editor pass."""

    new_title: str
    new_summary: str
    refined_panels: tuple[RefinedPanel, ...] = field(default_factory=tuple)

    def caption_for(self, panel_id: int) -> str | None:
        for refined in self.refined_panels:
            if refined.id == panel_id:
                return refined.caption
        return None


def captions_payload(panels: Sequence[Panel]) -> list[dict[str, Any]]:
    """Return the ``{id, caption}`` pairs sent to the model for rewriting."""
    return [{"id": panel.id, "caption": panel.caption} for panel in panels]
