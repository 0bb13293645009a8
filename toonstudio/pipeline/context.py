"""
Application-level state shared by the ToonStudio entry points.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from toonstudio.story_generation import Story

from .pipeline import EbookProject

TEXT_KEY_VARIABLES = ("GEMINI_API_KEY", "LITELLM_API_KEY")
IMAGE_TOKEN_VARIABLE = "REPLICATE_API_TOKEN"


class AppState(str, Enum):
    DISCOVER = "DISCOVER"
    SCRIPTING = "SCRIPTING"
    BUILDING = "BUILDING"
    READING = "READING"


@dataclass
class AppContext:
    """
    Which screen of the flow the user is on, the chosen story, and its project.

    Credentials are checked once when the context is created; callers should
    refuse to start discovery while :attr:`has_api_key` is false.
    """

    text_api_key: str | None = None
    image_api_token: str | None = None
    state: AppState = AppState.DISCOVER
    selected_story: Story | None = None
    project: EbookProject | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppContext":
        env = os.environ if environ is None else environ
        text_key = next((env[name] for name in TEXT_KEY_VARIABLES if env.get(name)), None)
        return cls(text_api_key=text_key, image_api_token=env.get(IMAGE_TOKEN_VARIABLE) or None)

    @property
    def has_api_key(self) -> bool:
        return bool(self.text_api_key and self.image_api_token)

    def missing_credentials(self) -> list[str]:
        missing: list[str] = []
        if not self.text_api_key:
            missing.append(" or ".join(TEXT_KEY_VARIABLES))
        if not self.image_api_token:
            missing.append(IMAGE_TOKEN_VARIABLE)
        return missing

    def require_api_key(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise ValueError(f"Missing API credentials: {', '.join(missing)}.")

    def select_story(self, story: Story) -> None:
        self.selected_story = story
        self.project = None
        self.state = AppState.BUILDING

    def begin_scripting(self) -> None:
        if self.selected_story is None:
            raise ValueError("Select a story before drafting its script.")
        self.state = AppState.SCRIPTING

    def attach_project(self, project: EbookProject) -> None:
        self.selected_story = project.story
        self.project = project
        self.state = AppState.BUILDING

    def open_reader(self) -> None:
        if self.project is None:
            raise ValueError("There is no ebook to read yet.")
        self.state = AppState.READING

    def close_reader(self) -> None:
        self.state = AppState.BUILDING if self.project is not None else AppState.DISCOVER

    def back_to_discover(self) -> None:
        self.selected_story = None
        self.project = None
        self.state = AppState.DISCOVER
