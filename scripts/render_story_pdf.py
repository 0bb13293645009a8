"""
Render a ToonStudio ebook project YAML into a printable PDF.

Usage:
    python scripts/render_story_pdf.py \
        --project toonstudio_project.yaml \
        --output toonstudio_ebook.pdf \
        --images-dir exported_images
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on the Python path.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from toonstudio import EbookPDFBuilder, EbookProject  # noqa: E402
from toonstudio.ai_generation import save_data_uri  # noqa: E402
from toonstudio.ai_generation.images import is_data_uri  # noqa: E402
from toonstudio.pdf_generation import PAGE_SIZES  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert a ToonStudio ebook project YAML into a PDF."
    )
    parser.add_argument(
        "--project",
        required=True,
        help="Path to the ebook project YAML (output of run_full_pipeline.py).",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Destination PDF file path.",
    )
    parser.add_argument(
        "--page-size",
        choices=sorted(PAGE_SIZES.keys()),
        default="a4",
        help="Page size to render (default: a4).",
    )
    parser.add_argument(
        "--margin-mm",
        type=float,
        default=15.0,
        help="Page margin in millimetres (default: 15).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Timeout in seconds for downloading illustration assets (default: 30).",
    )
    parser.add_argument(
        "--images-dir",
        default=None,
        help="Also save the cover and every embedded panel image into this directory.",
    )
    return parser.parse_args()


def export_images(project: EbookProject, directory: Path) -> list[Path]:
    saved: list[Path] = []
    if project.cover_image and is_data_uri(project.cover_image):
        saved.append(save_data_uri(project.cover_image, directory / "cover"))
    for panel in project.panels:
        if panel.image_url and is_data_uri(panel.image_url):
            saved.append(save_data_uri(panel.image_url, directory / f"panel_{panel.id:02d}"))
    return saved


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    page_size: tuple[float, float] = PAGE_SIZES[args.page_size]
    project = EbookProject.from_yaml(args.project)

    builder = EbookPDFBuilder(
        page_size=page_size,
        margin_mm=args.margin_mm,
        request_timeout=args.timeout,
    )
    builder.build(project, args.output)
    print(f"Rendered ebook PDF to {args.output}")

    if args.images_dir:
        saved = export_images(project, Path(args.images_dir))
        print(f"Saved {len(saved)} images to {args.images_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
