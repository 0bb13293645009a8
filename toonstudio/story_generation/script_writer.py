"""
Draft multi-panel scripts whose image prompts share one style and cast.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping

from toonstudio.common import CompletionCallable, call_chat_completion, request_structured_json

from .models import DEFAULT_AUDIENCE, DEFAULT_VISUAL_STYLE, Panel, Story
from .prompting import (
    DEFAULT_PLACEHOLDERS,
    PlaceholderTexts,
    build_script_prompt,
    build_script_schema,
    compose_panel_description,
    placeholder_panel_description,
)

logger = logging.getLogger(__name__)


class ScriptWriter:
    """
    Turns a story summary into an ordered list of illustrated panels.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        completion_fn: CompletionCallable | None = None,
        placeholders: PlaceholderTexts = DEFAULT_PLACEHOLDERS,
    ) -> None:
        self._api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("LITELLM_API_KEY")
        self._model = (
            model
            or os.getenv("TOONSTUDIO_SCRIPT_MODEL")
            or os.getenv("TOONSTUDIO_TEXT_MODEL")
            or os.getenv("LITELLM_MODEL")
            or "gemini/gemini-2.5-flash"
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._placeholders = placeholders

    @property
    def model(self) -> str:
        return self._model

    def generate_script(self, story: Story, **response_kwargs: Any) -> list[Panel]:
        """
        Draft ``story.panel_count`` panels for ``story``.

        The model designs the visual style and characters first; both are baked
        into every panel description so the illustrations stay consistent. If the
        request fails or nothing usable comes back, placeholder panels are
        returned so the ebook can still be built and edited by hand.
        """
        count = story.panel_count or 6
        style = story.visual_style or DEFAULT_VISUAL_STYLE
        audience = story.target_audience or DEFAULT_AUDIENCE

        prompt = build_script_prompt(
            title=story.title,
            summary=story.summary,
            panel_count=count,
            visual_style=style,
            audience=audience,
        )

        try:
            data = request_structured_json(
                self._completion_fn,
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                schema=build_script_schema(audience),
                schema_name="story_script",
                api_key=self._api_key,
                **response_kwargs,
            )
        except Exception:
            logger.exception("Error generating script for story %s.", story.id)
            data = None

        panels = self._panels_from_payload(data, default_style=style)
        if panels:
            return panels

        logger.warning("Script for story %s had no usable panels; using placeholders.", story.id)
        return [
            Panel(
                id=index,
                description=placeholder_panel_description(style, story.title),
                caption=self._placeholders.script_caption,
            )
            for index in range(count)
        ]

    @staticmethod
    def _panels_from_payload(data: Mapping[str, Any] | None, *, default_style: str) -> list[Panel]:
        if not data:
            return []

        style = str(data.get("visualStyle") or default_style).strip()
        characters = str(data.get("characterDesign") or "").strip()
        raw_panels = data.get("panels")
        if not isinstance(raw_panels, list):
            return []

        panels: list[Panel] = []
        for item in raw_panels:
            if not isinstance(item, Mapping):
                continue
            action = str(item.get("actionDescription") or "").strip()
            caption = str(item.get("caption") or "").strip()
            panels.append(
                Panel(
                    id=len(panels),
                    description=compose_panel_description(style, characters, action),
                    caption=caption,
                )
            )
        return panels
