"""
High-level utilities for rendering ToonStudio ebook projects into printable PDFs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence

import requests
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch, mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Frame, Paragraph

from toonstudio.ai_generation import decode_data_uri
from toonstudio.ai_generation.images import is_data_uri
from toonstudio.pipeline import EbookProject
from toonstudio.story_generation import LayoutStyle, Panel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageLayoutConfig:
    page_background: colors.Color
    image_background: colors.Color
    cover_background: colors.Color
    accent_color: colors.Color
    text_color: colors.Color
    caption_color: colors.Color
    failed_color: colors.Color


DEFAULT_LAYOUT = PageLayoutConfig(
    page_background=colors.white,
    image_background=colors.HexColor("#F1F5F9"),
    cover_background=colors.HexColor("#4F46E5"),
    accent_color=colors.HexColor("#818CF8"),
    text_color=colors.HexColor("#1E293B"),
    caption_color=colors.HexColor("#334155"),
    failed_color=colors.HexColor("#EF4444"),
)


PAGE_SIZES = {
    "a4": A4,
    "letter": LETTER,
    "square": (8 * inch, 8 * inch),
}


class EbookPDFBuilder:
    """
    Render ToonStudio ebook projects into printable PDFs.

    The builder creates:
      * A cover page with the cover illustration, the title, and the source line.
      * For ``STORYBOOK`` stories, one page per panel with the illustration on top
        and the caption below.
      * For ``COMIC_STRIP`` stories, pages carrying a 2x2 grid of captioned panels.

    Panels without an image are drawn as a "generation failed" placeholder.
    """

    COVER_IMAGE_SHARE = 0.7
    STORYBOOK_IMAGE_SHARE = 0.65
    GRID_COLUMNS = 2
    GRID_ROWS = 2

    def __init__(
        self,
        *,
        page_size: tuple[float, float] = PAGE_SIZES["a4"],
        margin_mm: float = 15.0,
        layout: PageLayoutConfig = DEFAULT_LAYOUT,
        request_timeout: float = 30.0,
    ) -> None:
        self.page_size = page_size
        self.margin = margin_mm * mm
        self.layout = layout
        self.request_timeout = request_timeout

        self.body_font, self.body_bold_font = self._configure_comic_fonts()

        self.title_style = ParagraphStyle(
            name="EbookTitle",
            fontName="Helvetica-Bold",
            fontSize=30,
            leading=36,
            alignment=TA_CENTER,
            textColor=self.layout.text_color,
            spaceAfter=10,
        )
        self.author_style = ParagraphStyle(
            name="EbookAuthor",
            fontName="Helvetica",
            fontSize=14,
            leading=18,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )
        self.caption_style = ParagraphStyle(
            name="PanelCaption",
            fontName=self.body_font,
            fontSize=20,
            leading=28,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )
        self.grid_caption_style = ParagraphStyle(
            name="GridCaption",
            parent=self.caption_style,
            fontSize=10,
            leading=13,
        )
        self.placeholder_style = ParagraphStyle(
            name="Placeholder",
            fontName="Helvetica-Bold",
            fontSize=12,
            leading=15,
            alignment=TA_CENTER,
            textColor=self.layout.failed_color,
        )
        self.footer_style = ParagraphStyle(
            name="Footer",
            fontName=self.body_bold_font,
            fontSize=9,
            leading=11,
            alignment=TA_CENTER,
            textColor=self._lighten(self.layout.caption_color, 0.55),
        )

    def build_from_yaml(self, project_path: Path | str, output_path: Path | str) -> None:
        project = EbookProject.from_yaml(project_path)
        self.build(project, output_path)

    def build(self, project: EbookProject, output_path: Path | str) -> None:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        pdf = canvas.Canvas(str(output_file), pagesize=self.page_size)
        pdf.setTitle(project.title)
        pdf.setAuthor(project.author)
        width, height = self.page_size

        self._draw_cover_page(pdf, project, width, height)

        if project.layout_style is LayoutStyle.COMIC_STRIP:
            per_page = self.GRID_COLUMNS * self.GRID_ROWS
            for page_number, page_panels in enumerate(project.comic_pages(per_page), start=1):
                self._draw_comic_page(pdf, page_panels, page_number, width, height)
        else:
            for page_number, panel in enumerate(project.panels, start=1):
                self._draw_storybook_page(pdf, panel, page_number, width, height)

        pdf.save()

    # ------------------------------------------------------------------ cover rendering

    def _draw_cover_page(
        self,
        pdf: canvas.Canvas,
        project: EbookProject,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.page_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        image_height = height * self.COVER_IMAGE_SHARE
        image_box = (0.0, height - image_height, width, image_height)
        if not project.cover_image or not self._draw_image_box(pdf, project.cover_image, *image_box):
            pdf.setFillColor(self.layout.cover_background)
            pdf.rect(*image_box, stroke=0, fill=1)
            if project.cover_failed or project.cover_image:
                self._draw_centered_text(pdf, "Cover generation failed", *image_box)

        pdf.setFillColor(self.layout.accent_color)
        pdf.rect(0, height - image_height - 4, width, 4, stroke=0, fill=1)

        frame = Frame(
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height - image_height - 2 * self.margin,
            showBoundary=0,
        )
        frame.addFromList(
            [
                Paragraph(_escape(project.title), self.title_style),
                Paragraph(_escape(project.author), self.author_style),
            ],
            pdf,
        )
        pdf.showPage()

    # ------------------------------------------------------------------ storybook pages

    def _draw_storybook_page(
        self,
        pdf: canvas.Canvas,
        panel: Panel,
        page_number: int,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.page_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        image_height = height * self.STORYBOOK_IMAGE_SHARE
        self._draw_panel_image(pdf, panel, 0.0, height - image_height, width, image_height)

        caption_frame = Frame(
            self.margin,
            self.margin + 20,
            width - 2 * self.margin,
            height - image_height - 2 * self.margin - 20,
            showBoundary=0,
        )
        caption_frame.addFromList([Paragraph(_escape(panel.caption), self.caption_style)], pdf)

        self._draw_footer(pdf, f"PAGE {page_number}", width)
        pdf.showPage()

    # ------------------------------------------------------------------ comic grid pages

    def _draw_comic_page(
        self,
        pdf: canvas.Canvas,
        panels: Sequence[Panel],
        page_number: int,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.page_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        gutter = 4 * mm
        grid_bottom = self.margin + 24
        grid_width = width - 2 * self.margin
        grid_height = height - self.margin - grid_bottom
        cell_width = (grid_width - gutter * (self.GRID_COLUMNS - 1)) / self.GRID_COLUMNS
        cell_height = (grid_height - gutter * (self.GRID_ROWS - 1)) / self.GRID_ROWS

        for index, panel in enumerate(panels):
            row, column = divmod(index, self.GRID_COLUMNS)
            x = self.margin + column * (cell_width + gutter)
            y = height - self.margin - (row + 1) * cell_height - row * gutter
            self._draw_grid_cell(pdf, panel, x, y, cell_width, cell_height)

        self._draw_footer(pdf, f"PAGE {page_number}", width)
        pdf.showPage()

    def _draw_grid_cell(
        self,
        pdf: canvas.Canvas,
        panel: Panel,
        x: float,
        y: float,
        cell_width: float,
        cell_height: float,
    ) -> None:
        caption_height = min(cell_height * 0.25, 60)
        image_height = cell_height - caption_height
        self._draw_panel_image(pdf, panel, x, y + caption_height, cell_width, image_height)

        caption_frame = Frame(x, y, cell_width, caption_height, showBoundary=0, leftPadding=4, rightPadding=4)
        caption_frame.addFromList([Paragraph(_escape(panel.caption), self.grid_caption_style)], pdf)

        pdf.saveState()
        pdf.setStrokeColor(self._lighten(self.layout.caption_color, 0.7))
        pdf.setLineWidth(1)
        pdf.rect(x, y, cell_width, cell_height, stroke=1, fill=0)
        pdf.restoreState()

    # ------------------------------------------------------------------ images

    def _draw_panel_image(
        self,
        pdf: canvas.Canvas,
        panel: Panel,
        x: float,
        y: float,
        box_width: float,
        box_height: float,
    ) -> None:
        if panel.image_url and self._draw_image_box(pdf, panel.image_url, x, y, box_width, box_height):
            return

        pdf.setFillColor(self.layout.image_background)
        pdf.rect(x, y, box_width, box_height, stroke=0, fill=1)
        message = "Image generation failed" if panel.generation_failed or panel.image_url else "No illustration yet"
        self._draw_centered_text(pdf, message, x, y, box_width, box_height)

    def _draw_image_box(
        self,
        pdf: canvas.Canvas,
        source: str,
        x: float,
        y: float,
        box_width: float,
        box_height: float,
    ) -> bool:
        image_reader = self._load_image(source)
        if image_reader is None:
            return False

        img_width, img_height = image_reader.getSize()
        scale = max(box_width / img_width, box_height / img_height)
        draw_width = img_width * scale
        draw_height = img_height * scale

        pdf.saveState()
        clip = pdf.beginPath()
        clip.rect(x, y, box_width, box_height)
        pdf.clipPath(clip, stroke=0, fill=0)
        pdf.drawImage(
            image_reader,
            x + (box_width - draw_width) / 2,
            y + (box_height - draw_height) / 2,
            draw_width,
            draw_height,
            preserveAspectRatio=True,
            mask="auto",
        )
        pdf.restoreState()
        return True

    def _load_image(self, source: str) -> Optional[ImageReader]:
        if is_data_uri(source):
            try:
                data = decode_data_uri(source).data
            except ValueError:
                logger.warning("Skipping undecodable embedded image.")
                return None
            return self._open_image(BytesIO(data), "embedded image")

        if source.lower().startswith(("http://", "https://")):
            return self._fetch_image(source)

        path = Path(source).expanduser()
        if path.exists():
            return self._open_image(str(path), str(path))
        logger.warning("Image source %s could not be resolved.", source[:80])
        return None

    def _fetch_image(self, url: str) -> Optional[ImageReader]:
        try:
            response = requests.get(url, timeout=self.request_timeout)
            response.raise_for_status()
        except requests.RequestException:
            logger.warning("Failed to download image from %s", url, exc_info=True)
            return None
        return self._open_image(BytesIO(response.content), url)

    @staticmethod
    def _open_image(source: BytesIO | str, label: str) -> Optional[ImageReader]:
        """Open ``source`` for drawing, or return None when it is not a readable image."""
        try:
            reader = ImageReader(source)
            reader.getSize()
        except Exception:
            logger.warning("Skipping unreadable image %s", label[:80], exc_info=True)
            return None
        return reader

    # ------------------------------------------------------------------ helpers

    def _draw_centered_text(
        self,
        pdf: canvas.Canvas,
        text: str,
        x: float,
        y: float,
        box_width: float,
        box_height: float,
    ) -> None:
        frame = Frame(x, y + box_height / 2 - 20, box_width, 40, showBoundary=0)
        frame.addFromList([Paragraph(text, self.placeholder_style)], pdf)

    def _draw_footer(self, pdf: canvas.Canvas, text: str, width: float) -> None:
        footer_frame = Frame(
            self.margin,
            10,
            width - 2 * self.margin,
            24,
            showBoundary=0,
        )
        footer_frame.addFromList([Paragraph(text, self.footer_style)], pdf)

    @staticmethod
    def _lighten(color: colors.Color, amount: float = 0.5) -> colors.Color:
        amount = max(0.0, min(amount, 1.0))
        r = color.red + (1 - color.red) * amount
        g = color.green + (1 - color.green) * amount
        b = color.blue + (1 - color.blue) * amount
        return colors.Color(r, g, b)

    def _configure_comic_fonts(self) -> tuple[str, str]:
        comic_options = [
            (
                "ComicNeue",
                "ComicNeue-Bold",
                ["ComicNeue-Regular.ttf", "ComicNeue.ttf"],
                ["ComicNeue-Bold.ttf"],
            ),
            (
                "ComicSansMS",
                "ComicSansMS-Bold",
                ["Comic Sans MS.ttf", "ComicSansMS.ttf"],
                ["Comic Sans MS Bold.ttf", "ComicSansMS-Bold.ttf"],
            ),
        ]

        search_roots = [
            Path("/Library/Fonts"),
            Path("/System/Library/Fonts"),
            Path.home() / "Library" / "Fonts",
            Path("C:/Windows/Fonts"),
            Path("/usr/share/fonts"),
            Path("/usr/local/share/fonts"),
        ]

        for regular_name, bold_name, regular_candidates, bold_candidates in comic_options:
            regular_ready = self._register_font_if_available(regular_name, regular_candidates, search_roots)
            bold_ready = self._register_font_if_available(bold_name, bold_candidates, search_roots)
            if regular_ready and bold_ready:
                return regular_name, bold_name

        return "Helvetica", "Helvetica-Bold"

    @staticmethod
    def _register_font_if_available(
        font_name: str,
        candidate_filenames: Sequence[str],
        search_roots: Sequence[Path],
    ) -> bool:
        if font_name in pdfmetrics.getRegisteredFontNames():
            return True

        for root in search_roots:
            for candidate in candidate_filenames:
                font_path = root / candidate
                if font_path.exists():
                    try:
                        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
                        return True
                    except Exception:
                        logger.debug("Could not register font %s", font_path, exc_info=True)
                        continue
        return False


def _escape(text: str) -> str:
    return (text or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace("\n", "<br/>")
