"""
CLI example to run the complete ToonStudio pipeline end-to-end.

Usage:
    python scripts/run_full_pipeline.py \
        --topic "Space Exploration" \
        --audience "Kids (5-8)" \
        --layout COMIC_STRIP \
        --analyze --refine \
        --output toonstudio_project.yaml

    python scripts/run_full_pipeline.py \
        --prompt "A lighthouse keeper befriends a lost whale" \
        --panels 8
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from toonstudio import AppContext, EbookOrchestrator  # noqa: E402
from toonstudio.common import StoryServiceError  # noqa: E402
from toonstudio.story_generation import LayoutStyle, Story  # noqa: E402
from toonstudio.story_generation.models import (  # noqa: E402
    DEFAULT_AUDIENCE,
    DEFAULT_PANEL_COUNT,
    DEFAULT_VISUAL_STYLE,
)


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for the ToonStudio pipeline.
    """

    def __init__(self) -> None:
        self._image_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "script:drafting":
                self._write(f"[1/3] Drafting the script for '{payload.get('title', 'your story')}'...")
            case "script:ready":
                self._write(f"[1/3] Script ready with {payload.get('total_panels', 0)} panels.")
            case "illustration:starting":
                total = payload.get("total_requests", 0)
                self._write(f"[2/3] Illustrating {total} images, one at a time...")
                self._image_bar = tqdm(total=total, desc="Illustrations", unit="image")
            case "cover:generating":
                self._describe("Cover")
            case "panel:processing":
                self._describe(f"Panel {payload.get('panel_id')}")
            case "cover:done" | "panel:done":
                self._advance()
            case "cover:failed":
                self._write("  Cover generation failed; it can be retried later.")
                self._advance()
            case "panel:failed":
                self._write(f"  Panel {payload.get('panel_id')} failed; it can be retried later.")
                self._advance()
            case "illustration:complete":
                failed = payload.get("failed_panels") or []
                suffix = f" ({len(failed)} panels failed)." if failed else "."
                self.close()
                self._write(f"[3/3] Illustration complete{suffix}")

    def close(self) -> None:
        if self._image_bar is not None:
            self._image_bar.close()
            self._image_bar = None

    def _describe(self, label: str) -> None:
        if self._image_bar is not None:
            self._image_bar.set_description(label)

    def _advance(self) -> None:
        if self._image_bar is not None:
            self._image_bar.update(1)

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the full ToonStudio ebook pipeline.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--topic",
        help="Search trending stories about this topic and pick one.",
    )
    source.add_argument(
        "--prompt",
        help="Write an original story from this idea instead of searching.",
    )
    parser.add_argument(
        "--audience",
        default=DEFAULT_AUDIENCE,
        help=f"Target audience (default: {DEFAULT_AUDIENCE}).",
    )
    parser.add_argument(
        "--style",
        default=DEFAULT_VISUAL_STYLE,
        help=f"Visual style for every illustration (default: {DEFAULT_VISUAL_STYLE}).",
    )
    parser.add_argument(
        "--layout",
        choices=[style.value for style in LayoutStyle],
        default=LayoutStyle.STORYBOOK.value,
        help="Ebook layout (default: STORYBOOK).",
    )
    parser.add_argument(
        "--panels",
        type=int,
        default=DEFAULT_PANEL_COUNT,
        help=f"Number of panels to script (default: {DEFAULT_PANEL_COUNT}).",
    )
    parser.add_argument(
        "--pick",
        type=int,
        default=1,
        help="Which search result to build, 1-based (default: 1).",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Run the publisher critique after illustration.",
    )
    parser.add_argument(
        "--refine",
        action="store_true",
        help="Apply the critique to the title and captions (implies --analyze).",
    )
    parser.add_argument(
        "--improve-cover",
        action="store_true",
        help="Regenerate the cover using the critique's visual suggestions (implies --analyze).",
    )
    parser.add_argument(
        "--output",
        default="toonstudio_project.yaml",
        help="Output YAML file to store the ebook project.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args()


def choose_story(orchestrator: EbookOrchestrator, args: argparse.Namespace) -> Story:
    if args.prompt:
        tqdm.write("Writing an original story from your idea...")
        return orchestrator.create_story(
            args.prompt,
            args.audience,
            panel_count=args.panels,
            visual_style=args.style,
            layout_style=args.layout,
        )

    tqdm.write(f"Searching trending stories about '{args.topic}'...")
    stories = orchestrator.find_stories(
        args.topic,
        args.audience,
        panel_count=args.panels,
        visual_style=args.style,
        layout_style=args.layout,
    )
    for index, story in enumerate(stories, start=1):
        tqdm.write(f"  {index}. {story.title} ({story.source})")
        tqdm.write(f"     {story.summary}")

    if not 1 <= args.pick <= len(stories):
        raise ValueError(f"--pick must be between 1 and {len(stories)}.")
    return stories[args.pick - 1]


def main() -> int:
    load_dotenv()
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    context = AppContext.from_env()
    if not context.has_api_key:
        tqdm.write(f"Missing credentials: {', '.join(context.missing_credentials())}.")
        return 2

    orchestrator = EbookOrchestrator(api_key=context.text_api_key)
    tracker = ProgressTracker()

    try:
        story = choose_story(orchestrator, args)
        context.select_story(story)
        context.begin_scripting()
        project = orchestrator.start_project(story, progress_callback=tracker)
        context.attach_project(project)
        orchestrator.illustrate(project, progress_callback=tracker)

        if args.analyze or args.refine or args.improve_cover:
            tqdm.write("Asking the publisher agent for a critique...")
            analysis = orchestrator.analyze(project)
            tqdm.write(f"  Score: {analysis.score}/10 ({analysis.viral_potential})")
            tqdm.write(f"  Critique: {analysis.critique}")
            for suggestion in analysis.suggestions:
                tqdm.write(f"  - {suggestion}")

        if args.refine:
            tqdm.write("Refining title and captions...")
            refined = orchestrator.refine(project)
            tqdm.write(f"  New title: {project.title} ({len(refined.refined_panels)} captions updated)")

        if args.improve_cover:
            tqdm.write("Regenerating the cover with the suggestions...")
            orchestrator.regenerate_cover_with_suggestions(project)
    except StoryServiceError as exc:
        tqdm.write(f"{exc} Please try again in a moment.")
        return 1
    finally:
        tracker.close()

    output_path = project.save(args.output)
    print(f"Saved ebook project to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
