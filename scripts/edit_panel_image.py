"""
Apply a natural-language edit to the cover or one panel of a saved ebook project.

Usage:
    python scripts/edit_panel_image.py \
        --project toonstudio_project.yaml \
        --target 3 \
        --instruction "Add a retro filter and make the sky stormy"

    python scripts/edit_panel_image.py --project toonstudio_project.yaml --target cover \
        --regenerate

Environment variables:
    REPLICATE_API_TOKEN     - required unless you pass --api-token
    TOONSTUDIO_IMAGE_MODEL  - optional image model override
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from toonstudio import EbookOrchestrator, EbookProject  # noqa: E402
from toonstudio.ai_generation import ReplicateImageGenerator  # noqa: E402
from toonstudio.pipeline import COVER  # noqa: E402


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Edit or regenerate one illustration of a ToonStudio ebook project."
    )
    parser.add_argument(
        "--project",
        required=True,
        help="Path to the ebook project YAML to update in place.",
    )
    parser.add_argument(
        "--target",
        required=True,
        help="Panel id to edit, or 'cover'.",
    )
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument(
        "--instruction",
        help="Edit instruction applied to the current image.",
    )
    action.add_argument(
        "--regenerate",
        action="store_true",
        help="Discard the current image and generate a fresh one.",
    )
    parser.add_argument(
        "--api-token",
        default=None,
        help="Optional Replicate API token override (otherwise uses environment variable).",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Optional Replicate model identifier override (owner/model[:version]).",
    )
    return parser.parse_args(argv)


def parse_target(raw: str) -> int | str:
    if raw.strip().lower() == COVER:
        return COVER
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"--target must be a panel id or '{COVER}', got '{raw}'.") from exc


def main(argv: list[str]) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    target = parse_target(args.target)
    project = EbookProject.from_yaml(args.project)

    generator = ReplicateImageGenerator(
        api_token=args.api_token,
        model_identifier=args.model,
    )
    orchestrator = EbookOrchestrator(image_generator=generator)

    print("Running image update with the following parameters:")
    print(f"  Project : {args.project}")
    print(f"  Target  : {target}")
    print(f"  Model   : {generator.model_identifier}")

    if args.regenerate:
        if target == COVER:
            orchestrator.regenerate_cover(project)
            failed = project.cover_failed
        else:
            failed = orchestrator.regenerate_panel(project, int(target)).generation_failed
        if failed:
            print("Generation failed; the previous image was kept.")
            return 1
    else:
        orchestrator.edit_image(project, target, args.instruction)

    project.save(args.project)
    print(f"Updated {target} in {args.project}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
