import pytest
from conftest import make_png

from toonstudio.ai_generation import encode_data_uri
from toonstudio.pdf_generation import EbookPDFBuilder
from toonstudio.pdf_generation import builder as builder_module
from toonstudio.pipeline import EbookProject
from toonstudio.story_generation import LayoutStyle, Panel, Story


def _project(layout: LayoutStyle, panel_count: int) -> EbookProject:
    story = Story(
        id="story-abc-0",
        title="Moon Cat & Friends",
        summary="A cat on the moon.",
        source="Reddit r/aww",
        panel_count=panel_count,
        layout_style=layout,
    )
    panels = [
        Panel(
            id=index,
            description=f"beat {index}",
            caption=f"Caption <{index}>",
            image_url=encode_data_uri(make_png((index * 40, 100, 200))) if index % 2 == 0 else None,
            generation_failed=index % 2 == 1,
        )
        for index in range(panel_count)
    ]
    project = EbookProject.from_story(story, panels)
    project.cover_image = encode_data_uri(make_png())
    return project


@pytest.mark.parametrize(
    ("layout", "panel_count", "expected_pages"),
    [
        (LayoutStyle.STORYBOOK, 3, 4),
        (LayoutStyle.COMIC_STRIP, 6, 3),
    ],
)
def test_builds_cover_plus_layout_pages(tmp_path, layout, panel_count, expected_pages):
    output = tmp_path / "ebook.pdf"

    EbookPDFBuilder().build(_project(layout, panel_count), output)

    data = output.read_bytes()
    assert data.startswith(b"%PDF")
    assert f"/Count {expected_pages}".encode() in data


def test_build_from_yaml(tmp_path):
    project_path = _project(LayoutStyle.STORYBOOK, 2).save(tmp_path / "project.yaml")
    output = tmp_path / "out" / "ebook.pdf"

    EbookPDFBuilder().build_from_yaml(project_path, output)

    assert output.exists()
    assert output.read_bytes().startswith(b"%PDF")


def test_undecodable_image_falls_back_to_placeholder(tmp_path):
    project = _project(LayoutStyle.STORYBOOK, 1)
    project.panels[0].image_url = "data:image/png;base64,@@@"

    EbookPDFBuilder().build(project, tmp_path / "ebook.pdf")

    assert (tmp_path / "ebook.pdf").exists()


def test_non_image_bytes_render_failed_placeholder(tmp_path):
    project = _project(LayoutStyle.STORYBOOK, 2)
    project.cover_image = encode_data_uri(b"not really a png", "image/png")
    project.panels[0].image_url = encode_data_uri(b"not really a png", "image/png")
    output = tmp_path / "ebook.pdf"

    EbookPDFBuilder().build(project, output)

    data = output.read_bytes()
    assert data.startswith(b"%PDF")
    assert b"/Count 3" in data


def test_downloaded_non_image_renders_failed_placeholder(tmp_path, monkeypatch):
    class _Response:
        content = b"<html>not an image</html>"

        def raise_for_status(self):
            return None

    monkeypatch.setattr(builder_module.requests, "get", lambda url, timeout: _Response())
    project = _project(LayoutStyle.COMIC_STRIP, 2)
    project.panels[0].image_url = "https://example.com/panel.png"

    EbookPDFBuilder().build(project, tmp_path / "ebook.pdf")

    assert (tmp_path / "ebook.pdf").read_bytes().startswith(b"%PDF")
