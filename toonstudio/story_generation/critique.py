"""
Publisher-style critique of an ebook and caption refinement from that critique.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Sequence

from toonstudio.common import (
    CompletionCallable,
    StoryServiceError,
    call_chat_completion,
    request_structured_json,
)

from .models import VIRAL_POTENTIAL_LEVELS, AnalysisResult, Panel, RefinedContent, RefinedPanel
from .prompting import (
    ANALYSIS_SCHEMA,
    DEFAULT_PLACEHOLDERS,
    REFINEMENT_SCHEMA,
    PlaceholderTexts,
    build_analysis_prompt,
    build_refinement_prompt,
)

logger = logging.getLogger(__name__)


class PublisherAgent:
    """
    Scores an ebook's marketability and rewrites its text to address the critique.

    Parameters
    ----------
    analysis_model:
        Multimodal reasoning model used for the critique. The cover image is
        attached when available. Falls back to ``TOONSTUDIO_ANALYSIS_MODEL``.
    text_model:
        Model used to rewrite the title and captions. Falls back to
        ``TOONSTUDIO_TEXT_MODEL``.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        analysis_model: str | None = None,
        text_model: str | None = None,
        completion_fn: CompletionCallable | None = None,
        placeholders: PlaceholderTexts = DEFAULT_PLACEHOLDERS,
    ) -> None:
        self._api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("LITELLM_API_KEY")
        self._analysis_model = (
            analysis_model
            or os.getenv("TOONSTUDIO_ANALYSIS_MODEL")
            or os.getenv("LITELLM_MODEL")
            or "gemini/gemini-3-pro-preview"
        )
        self._text_model = (
            text_model
            or os.getenv("TOONSTUDIO_TEXT_MODEL")
            or os.getenv("LITELLM_MODEL")
            or "gemini/gemini-2.5-flash"
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._placeholders = placeholders

    @property
    def analysis_model(self) -> str:
        return self._analysis_model

    @property
    def text_model(self) -> str:
        return self._text_model

    def analyze_story_potential(
        self,
        title: str,
        summary: str,
        audience: str,
        style: str,
        cover_image: str | None = None,
        captions_sample: str | None = None,
    ) -> AnalysisResult:
        """
        Critique the project as an Etsy/KDP publisher would.

        ``cover_image`` is a data URI (or URL) attached for the visual review.
        Failures never propagate; a clearly-labelled placeholder result is
        returned instead.
        """
        prompt_text = build_analysis_prompt(
            title=title,
            summary=summary,
            audience=audience,
            style=style,
            captions_sample=captions_sample,
            has_cover=bool(cover_image),
        )

        content: list[dict[str, Any]] = []
        if cover_image:
            content.append({"type": "image_url", "image_url": {"url": cover_image}})
        content.append({"type": "text", "text": prompt_text})

        try:
            data = request_structured_json(
                self._completion_fn,
                model=self._analysis_model,
                messages=[{"role": "user", "content": content}],
                schema=ANALYSIS_SCHEMA,
                schema_name="marketability_analysis",
                api_key=self._api_key,
            )
        except Exception:
            logger.exception("Error in agent analysis.")
            return self._error_analysis()

        return self._analysis_from_payload(data or {})

    def refine_story_content(
        self,
        current_title: str,
        current_summary: str,
        panels: Sequence[Panel],
        critique: str,
        audience: str,
    ) -> RefinedContent:
        """
        Rewrite title, summary, and captions to address ``critique``.

        An unparsable reply yields a no-op refinement. Request failures raise
        :class:`StoryServiceError`.
        """
        prompt = build_refinement_prompt(
            title=current_title,
            summary=current_summary,
            panels=panels,
            critique=critique,
            audience=audience,
        )

        try:
            data = request_structured_json(
                self._completion_fn,
                model=self._text_model,
                messages=[{"role": "user", "content": prompt}],
                schema=REFINEMENT_SCHEMA,
                schema_name="content_refinement",
                api_key=self._api_key,
            )
        except Exception as exc:
            logger.error("Error refining story: %s", exc, exc_info=True)
            raise StoryServiceError("Could not refine the story text.") from exc

        data = data or {}
        known_ids = {panel.id for panel in panels}
        return RefinedContent(
            new_title=str(data.get("newTitle") or current_title).strip(),
            new_summary=str(data.get("newSummary") or current_summary).strip(),
            refined_panels=tuple(_refined_panels(data.get("refinedPanels"), known_ids)),
        )

    def _analysis_from_payload(self, data: Mapping[str, Any]) -> AnalysisResult:
        placeholders = self._placeholders
        viral = str(data.get("viralPotential") or "").strip()
        suggestions = data.get("suggestions")
        if isinstance(suggestions, list) and suggestions:
            suggestion_items = tuple(str(item) for item in suggestions)
        else:
            suggestion_items = (placeholders.analysis_default_suggestion,)

        return AnalysisResult(
            score=_coerce_score(data.get("score")),
            viral_potential=viral if viral in VIRAL_POTENTIAL_LEVELS else "Low",
            coherence_check=str(data.get("coherenceCheck") or placeholders.analysis_not_run),
            critique=str(data.get("critique") or placeholders.analysis_no_feedback),
            text_quality=str(data.get("textQuality") or placeholders.analysis_standard),
            visual_quality=str(data.get("visualQuality") or placeholders.analysis_standard),
            suggestions=suggestion_items,
        )

    def _error_analysis(self) -> AnalysisResult:
        placeholders = self._placeholders
        return AnalysisResult(
            score=0,
            viral_potential="Low",
            coherence_check=placeholders.analysis_error,
            critique=placeholders.analysis_error_critique,
            text_quality=placeholders.analysis_unknown,
            visual_quality=placeholders.analysis_unknown,
            suggestions=tuple(placeholders.analysis_error_suggestions),
        )


def _coerce_score(value: Any) -> int:
    if value is None or value == "":
        return 5
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 5
    return max(0, min(score, 10))


def _refined_panels(raw: Any, known_ids: set[int]) -> list[RefinedPanel]:
    if not isinstance(raw, list):
        return []

    refined: list[RefinedPanel] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        try:
            panel_id = int(item["id"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping refined panel without a valid id: %r", item)
            continue
        caption = item.get("caption")
        if panel_id not in known_ids or caption is None:
            continue
        refined.append(RefinedPanel(id=panel_id, caption=str(caption).strip()))
    return refined
