"""
Orchestrates the ToonStudio flow from story idea to illustrated, critiqued ebook.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Literal, Mapping

import yaml

from toonstudio.ai_generation import ReplicateImageGenerator, build_improved_style
from toonstudio.common import CompletionCallable
from toonstudio.story_generation import (
    AnalysisResult,
    LayoutStyle,
    Panel,
    PublisherAgent,
    RefinedContent,
    ScriptWriter,
    Story,
    StoryScout,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]
ImageTarget = int | Literal["cover"]

COVER = "cover"
DEFAULT_PANEL_DELAY = 4.0
COMIC_PANELS_PER_PAGE = 4


@dataclass
class EbookProject:
    """The ebook under construction: script, cover, edits, and latest critique."""

    story: Story
    title: str
    author: str
    panels: list[Panel] = field(default_factory=list)
    cover_image: str | None = None
    cover_failed: bool = False
    analysis: AnalysisResult | None = None

    @classmethod
    def from_story(cls, story: Story, panels: list[Panel]) -> "EbookProject":
        return cls(
            story=story,
            title=story.title,
            author=f"Source: {story.source or 'Internet'}",
            panels=list(panels),
        )

    @property
    def layout_style(self) -> LayoutStyle:
        return self.story.layout_style

    def panel(self, panel_id: int) -> Panel:
        for panel in self.panels:
            if panel.id == panel_id:
                return panel
        raise KeyError(f"No panel with id {panel_id}.")

    def captions_sample(self, limit: int = 3) -> str:
        return " | ".join(panel.caption for panel in self.panels[:limit])

    def comic_pages(self, size: int = COMIC_PANELS_PER_PAGE) -> list[list[Panel]]:
        """Chunk panels into pages of ``size`` for the comic-strip layout."""
        if size < 1:
            raise ValueError("size must be at least 1.")
        return [self.panels[index : index + size] for index in range(0, len(self.panels), size)]

    def image_for(self, target: ImageTarget) -> str | None:
        if target == COVER:
            return self.cover_image
        return self.panel(int(target)).image_url

    def to_dict(self) -> dict[str, Any]:
        return {
            "story": self.story.as_dict(),
            "title": self.title,
            "author": self.author,
            "cover_image": self.cover_image,
            "cover_failed": self.cover_failed,
            "panels": [panel.as_dict() for panel in self.panels],
            "analysis": self.analysis.as_dict() if self.analysis else None,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "EbookProject":
        if "story" not in payload:
            raise ValueError("Ebook project payload must include 'story'.")
        if "panels" not in payload:
            raise ValueError("Ebook project payload must include 'panels'.")

        story = Story.from_mapping(payload["story"])
        panels = [Panel.from_mapping(entry) for entry in payload.get("panels") or []]
        ids = [panel.id for panel in panels]
        if len(ids) != len(set(ids)):
            raise ValueError("Panel ids must be unique within one story.")

        analysis_payload = payload.get("analysis")
        return cls(
            story=story,
            title=str(payload.get("title") or story.title).strip(),
            author=str(payload.get("author") or f"Source: {story.source or 'Internet'}").strip(),
            panels=panels,
            cover_image=payload.get("cover_image") or None,
            cover_failed=bool(payload.get("cover_failed", False)),
            analysis=AnalysisResult.from_mapping(analysis_payload) if analysis_payload else None,
        )

    @classmethod
    def from_yaml(cls, source: str | Path) -> "EbookProject":
        path = Path(source)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(data, Mapping):
            raise ValueError("Ebook project YAML must deserialize to a mapping.")
        return cls.from_dict(data)

    def save(self, destination: str | Path) -> Path:
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_yaml(), encoding="utf-8")
        return path


def apply_refinement(project: EbookProject, refined: RefinedContent) -> EbookProject:
    """
    Apply an accepted refinement: new title, and new captions only for the
    panels named in ``refined.refined_panels``.
    """
    if refined.new_title:
        project.title = refined.new_title
    for panel in project.panels:
        caption = refined.caption_for(panel.id)
        if caption is not None:
            panel.caption = caption
    return project


class EbookOrchestrator:
    """
    High-level coordinator that chains discovery, scripting, illustration, and critique.

    Image requests are issued one at a time, in panel order, with a fixed pause
    between consecutive requests so the rate-limited image endpoint is never hit
    in parallel.
    """

    def __init__(
        self,
        *,
        scout: StoryScout | None = None,
        script_writer: ScriptWriter | None = None,
        publisher: PublisherAgent | None = None,
        image_generator: ReplicateImageGenerator | None = None,
        api_key: str | None = None,
        text_model: str | None = None,
        analysis_model: str | None = None,
        completion_fn: CompletionCallable | None = None,
        panel_delay: float | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self._scout = scout or StoryScout(
            api_key=api_key,
            model=text_model,
            completion_fn=completion_fn,
        )
        self._script_writer = script_writer or ScriptWriter(
            api_key=api_key,
            model=text_model,
            completion_fn=completion_fn,
        )
        self._publisher = publisher or PublisherAgent(
            api_key=api_key,
            analysis_model=analysis_model,
            text_model=text_model,
            completion_fn=completion_fn,
        )
        self._image_generator = image_generator or ReplicateImageGenerator()
        self._panel_delay = (
            panel_delay
            if panel_delay is not None
            else float(os.getenv("TOONSTUDIO_PANEL_DELAY") or DEFAULT_PANEL_DELAY)
        )
        self._sleep = sleep

    @property
    def panel_delay(self) -> float:
        return self._panel_delay

    # ------------------------------------------------------------------ discovery

    def find_stories(
        self,
        topic: str,
        target_audience: str,
        *,
        panel_count: int | None = None,
        visual_style: str | None = None,
        layout_style: LayoutStyle | str | None = None,
    ) -> list[Story]:
        """Search trending stories and stamp the user's selections on each result."""
        stories = self._scout.find_trending_stories(topic, target_audience)
        return [
            story.with_preferences(
                panel_count=panel_count,
                visual_style=visual_style,
                layout_style=layout_style,
                target_audience=target_audience,
            )
            for story in stories
        ]

    def create_story(
        self,
        user_prompt: str,
        target_audience: str,
        *,
        panel_count: int,
        visual_style: str | None = None,
        layout_style: LayoutStyle | str | None = None,
    ) -> Story:
        story = self._scout.create_story_from_prompt(user_prompt, panel_count, target_audience)
        return story.with_preferences(
            visual_style=visual_style,
            layout_style=layout_style,
            target_audience=target_audience,
        )

    # ------------------------------------------------------------------ scripting & illustration

    def start_project(
        self,
        story: Story,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> EbookProject:
        """Draft the script for ``story`` and wrap it in a new project."""
        self._notify(progress_callback, "script:drafting", story_id=story.id, title=story.title)
        panels = self._script_writer.generate_script(story)
        self._notify(progress_callback, "script:ready", total_panels=len(panels))
        return EbookProject.from_story(story, panels)

    def run_from_story(
        self,
        story: Story,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> EbookProject:
        """Complete flow: script, then cover, then panel images in order."""
        project = self.start_project(story, progress_callback=progress_callback)
        return self.illustrate(project, progress_callback=progress_callback)

    def illustrate(
        self,
        project: EbookProject,
        *,
        include_cover: bool = True,
        progress_callback: ProgressCallback | None = None,
    ) -> EbookProject:
        """
        Generate the missing cover and panel images sequentially.

        Safe to re-invoke after a partial failure: the cover and panels that
        already hold an image, or are mid-generation, are skipped. A failed panel
        is flagged and the batch moves on to the next one.
        """
        pending = sorted(
            (panel for panel in project.panels if not panel.has_image and not panel.is_generating),
            key=lambda panel: panel.id,
        )
        needs_cover = include_cover and not project.cover_image
        total_requests = len(pending) + int(needs_cover)
        self._notify(
            progress_callback,
            "illustration:starting",
            total_requests=total_requests,
            total_panels=len(project.panels),
        )

        issued = 0
        if needs_cover:
            self._generate_cover(project, progress_callback=progress_callback)
            issued += 1

        for index, panel in enumerate(pending, start=1):
            if issued:
                self._sleep(self._panel_delay)
            self._notify(
                progress_callback,
                "panel:processing",
                panel_id=panel.id,
                panel_index=index,
                total_panels=len(pending),
            )
            self._generate_panel(panel, progress_callback=progress_callback)
            issued += 1

        self._notify(
            progress_callback,
            "illustration:complete",
            failed_panels=[panel.id for panel in project.panels if panel.generation_failed],
            cover_ready=bool(project.cover_image),
        )
        return project

    def regenerate_panel(
        self,
        project: EbookProject,
        panel_id: int,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> Panel:
        """Replace one panel's image with a freshly generated one."""
        panel = project.panel(panel_id)
        if panel.is_generating:
            return panel
        self._generate_panel(panel, progress_callback=progress_callback)
        return panel

    def regenerate_cover(
        self,
        project: EbookProject,
        *,
        style: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> str | None:
        self._generate_cover(project, style=style, progress_callback=progress_callback)
        return project.cover_image

    # ------------------------------------------------------------------ manual editing

    def update_caption(self, project: EbookProject, panel_id: int, caption: str) -> Panel:
        panel = project.panel(panel_id)
        panel.caption = caption
        return panel

    def replace_image(self, project: EbookProject, target: ImageTarget, image_url: str) -> None:
        """Store ``image_url`` as the single image of the cover or a panel."""
        if target == COVER:
            project.cover_image = image_url
            project.cover_failed = False
            return

        panel = project.panel(int(target))
        panel.image_url = image_url
        panel.generation_failed = False

    def edit_image(self, project: EbookProject, target: ImageTarget, instruction: str) -> str:
        """
        Apply a text edit instruction to the current cover/panel image and keep the result.
        """
        current = project.image_for(target)
        if not current:
            raise ValueError(f"No image to edit for target {target!r}.")

        edited = self._image_generator.edit_image(current, instruction)
        self.replace_image(project, target, edited)
        return edited

    # ------------------------------------------------------------------ critique & refinement

    def analyze(self, project: EbookProject) -> AnalysisResult:
        """Run the publisher critique and keep it as the project's latest analysis."""
        story = project.story
        project.analysis = self._publisher.analyze_story_potential(
            project.title,
            story.summary,
            story.target_audience or "General",
            story.visual_style or "Cartoon",
            cover_image=project.cover_image,
            captions_sample=project.captions_sample(),
        )
        return project.analysis

    def refine(self, project: EbookProject) -> RefinedContent:
        """
        Rewrite title and captions from the latest critique and apply the result.
        """
        if project.analysis is None:
            raise ValueError("Analyze the project before refining it.")

        analysis = project.analysis
        refined = self._publisher.refine_story_content(
            project.title,
            project.story.summary,
            project.panels,
            f"{analysis.critique} {analysis.text_quality}",
            project.story.target_audience or "General",
        )
        apply_refinement(project, refined)
        project.analysis = replace(
            analysis,
            text_quality="Optimized by Agent!",
            critique="Text updated based on feedback.",
        )
        return refined

    def regenerate_cover_with_suggestions(
        self,
        project: EbookProject,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> str | None:
        """Regenerate the cover with the critique's suggestions folded into the style."""
        if project.analysis is None:
            raise ValueError("Analyze the project before applying visual suggestions.")

        style = build_improved_style(project.story.visual_style, project.analysis.suggestions)
        self._generate_cover(project, style=style, progress_callback=progress_callback)
        if project.cover_image and not project.cover_failed:
            project.analysis = replace(
                project.analysis,
                visual_quality="Cover regenerated with suggestions!",
            )
        return project.cover_image

    # ------------------------------------------------------------------ helpers

    def _generate_cover(
        self,
        project: EbookProject,
        *,
        style: str | None = None,
        progress_callback: ProgressCallback | None,
    ) -> None:
        self._notify(progress_callback, "cover:generating", title=project.title)
        try:
            project.cover_image = self._image_generator.generate_cover_image(
                project.title,
                project.story.summary,
                style or project.story.visual_style,
            )
            project.cover_failed = False
        except Exception as exc:
            logger.error("Cover generation failed: %s", exc, exc_info=True)
            project.cover_failed = True
            self._notify(progress_callback, "cover:failed", error=str(exc))
            return
        self._notify(progress_callback, "cover:done")

    def _generate_panel(
        self,
        panel: Panel,
        *,
        progress_callback: ProgressCallback | None,
    ) -> None:
        panel.is_generating = True
        panel.generation_failed = False
        try:
            panel.image_url = self._image_generator.generate_panel_image(panel.description)
        except Exception as exc:
            logger.error("Failed to generate image for panel %s: %s", panel.id, exc, exc_info=True)
            panel.generation_failed = True
            self._notify(progress_callback, "panel:failed", panel_id=panel.id, error=str(exc))
            return
        finally:
            panel.is_generating = False
        self._notify(progress_callback, "panel:done", panel_id=panel.id)

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        stage: str,
        **payload: Any,
    ) -> None:
        if callback is not None:
            callback(stage, payload)
