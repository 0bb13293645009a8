"""
Story discovery: trending-story search and prompt-to-story drafting.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Mapping

from toonstudio.common import (
    CompletionCallable,
    StoryServiceError,
    call_chat_completion,
    request_structured_json,
)

from .models import DEFAULT_AUDIENCE, DEFAULT_PANEL_COUNT, Story
from .prompting import (
    DEFAULT_PLACEHOLDERS,
    STORY_SUMMARY_SCHEMA,
    PlaceholderTexts,
    build_search_prompt,
    build_story_from_prompt_prompt,
)

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_TOOL: Mapping[str, Any] = {"googleSearch": {}}


class StoryScout:
    """
    Finds story ideas worth illustrating.

    Trend search uses the text model with Google Search grounding, which does not
    combine with a declared output schema, so its reply is parsed from free text.
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
            or os.getenv("TOONSTUDIO_TEXT_MODEL")
            or os.getenv("LITELLM_MODEL")
            or "gemini/gemini-2.5-flash"
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._placeholders = placeholders

    @property
    def model(self) -> str:
        """Return the model identifier in use."""
        return self._model

    def find_trending_stories(
        self,
        topic: str = "general",
        target_audience: str = DEFAULT_AUDIENCE,
        *,
        result_count: int = 5,
        temperature: float | None = None,
    ) -> list[Story]:
        """
        Search for trending stories about ``topic`` suitable for ``target_audience``.

        Every parsed entry becomes a :class:`Story` with a unique id and the
        requested audience. A reply without a parsable JSON array yields exactly
        one placeholder entry. Request failures raise :class:`StoryServiceError`.
        """
        prompt = build_search_prompt(topic, target_audience, result_count=result_count)

        try:
            parsed = request_structured_json(
                self._completion_fn,
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                expect="array",
                api_key=self._api_key,
                tools=[GOOGLE_SEARCH_TOOL],
                temperature=temperature,
            )
        except Exception as exc:
            logger.error("Error finding stories: %s", exc, exc_info=True)
            raise StoryServiceError("Failed to fetch viral stories.") from exc

        entries = [item for item in parsed or [] if isinstance(item, Mapping)]
        if entries:
            batch = uuid.uuid4().hex[:12]
            return [
                self._story_from_entry(item, story_id=f"story-{batch}-{index}", audience=target_audience)
                for index, item in enumerate(entries)
            ]

        return [
            Story(
                id=self._placeholders.search_id,
                title=self._placeholders.search_title,
                summary=self._placeholders.search_summary,
                source=self._placeholders.search_source,
                panel_count=DEFAULT_PANEL_COUNT,
                target_audience=target_audience,
            )
        ]

    def create_story_from_prompt(
        self,
        user_prompt: str,
        panel_count: int = DEFAULT_PANEL_COUNT,
        target_audience: str = DEFAULT_AUDIENCE,
    ) -> Story:
        """
        Turn a free-form idea into a structured story record.

        Never fails: request or parse problems produce a story that keeps the
        user's prompt as its summary.
        """
        if not user_prompt or not user_prompt.strip():
            raise ValueError("user_prompt must be a non-empty string.")

        story_id = f"custom-{int(time.time() * 1000)}"
        prompt = build_story_from_prompt_prompt(user_prompt, panel_count, target_audience)

        try:
            data = request_structured_json(
                self._completion_fn,
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                schema=STORY_SUMMARY_SCHEMA,
                schema_name="story_summary",
                api_key=self._api_key,
            )
        except Exception:
            logger.exception("Error creating story from prompt.")
            return Story(
                id=story_id,
                title=self._placeholders.custom_story_title,
                summary=user_prompt,
                source=self._placeholders.custom_source,
                panel_count=panel_count,
                target_audience=target_audience,
            )

        data = data or {}
        return Story(
            id=story_id,
            title=_text_or(data.get("title"), self._placeholders.untitled_story),
            summary=_text_or(data.get("summary"), user_prompt),
            source=self._placeholders.custom_source,
            panel_count=panel_count,
            target_audience=target_audience,
        )

    def _story_from_entry(self, item: Mapping[str, Any], *, story_id: str, audience: str) -> Story:
        return Story(
            id=story_id,
            title=_text_or(item.get("title"), self._placeholders.untitled_story),
            summary=_text_or(item.get("summary"), ""),
            source=_text_or(item.get("source"), self._placeholders.default_search_source),
            panel_count=DEFAULT_PANEL_COUNT,
            target_audience=audience,
        )


def _text_or(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default
