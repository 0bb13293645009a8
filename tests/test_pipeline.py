import json

import pytest
from conftest import FakeCompletion, FakeImageGenerator, FakeReplicateClient

from toonstudio.ai_generation import ReplicateImageGenerator
from toonstudio.pipeline import COVER, EbookOrchestrator, EbookProject, apply_refinement
from toonstudio.story_generation import (
    AnalysisResult,
    LayoutStyle,
    Panel,
    RefinedContent,
    RefinedPanel,
    Story,
)

STORY = Story(
    id="story-abc-0",
    title="The Raccoon Heist",
    summary="A raccoon steals pizza.",
    source="Reddit r/TIFU",
    panel_count=3,
    visual_style="Ink wash",
    target_audience="Kids (5-8)",
)

SCRIPT_REPLY = json.dumps(
    {
        "visualStyle": "Ink wash",
        "characterDesign": "Rocky the raccoon",
        "panels": [
            {"actionDescription": f"beat {index}", "caption": f"Caption {index}"}
            for index in range(3)
        ],
    }
)

ANALYSIS = AnalysisResult(
    score=6,
    viral_potential="Medium",
    coherence_check="ok",
    critique="Needs punch.",
    text_quality="Flat captions.",
    visual_quality="Fine",
    suggestions=("warmer palette", "bigger eyes"),
)


def _project(panel_count=3):
    panels = [Panel(id=index, description=f"beat {index}", caption=f"Caption {index}") for index in range(panel_count)]
    return EbookProject.from_story(STORY, panels)


def _orchestrator(images, recorded_sleep, *responses, panel_delay=4.0):
    return EbookOrchestrator(
        completion_fn=FakeCompletion(*responses),
        image_generator=images,
        panel_delay=panel_delay,
        sleep=recorded_sleep.append,
    )


def test_run_from_story_illustrates_cover_then_panels_in_order(recorded_sleep):
    images = FakeImageGenerator()
    orchestrator = _orchestrator(images, recorded_sleep, SCRIPT_REPLY)
    stages = []

    project = orchestrator.run_from_story(STORY, progress_callback=lambda stage, payload: stages.append(stage))

    assert [kind for kind, _ in images.calls] == ["cover", "panel", "panel", "panel"]
    assert [detail for kind, detail in images.calls if kind == "panel"] == [
        "Style: Ink wash. Characters: Rocky the raccoon. Scene: beat 0",
        "Style: Ink wash. Characters: Rocky the raccoon. Scene: beat 1",
        "Style: Ink wash. Characters: Rocky the raccoon. Scene: beat 2",
    ]
    assert recorded_sleep == [4.0, 4.0, 4.0]
    assert project.cover_image == "data:image/png;base64,cover"
    assert all(panel.has_image for panel in project.panels)
    assert project.author == "Source: Reddit r/TIFU"
    assert stages[0] == "script:drafting"
    assert stages[-1] == "illustration:complete"


def test_panels_are_illustrated_in_ascending_id_order(recorded_sleep):
    project = _project()
    project.panels.reverse()
    images = FakeImageGenerator()

    _orchestrator(images, recorded_sleep).illustrate(project, include_cover=False)

    assert [detail for _, detail in images.calls] == ["beat 0", "beat 1", "beat 2"]
    assert recorded_sleep == [4.0, 4.0]


def test_panels_with_images_or_in_flight_are_skipped(recorded_sleep):
    project = _project()
    project.cover_image = "data:image/png;base64,existing"
    project.panels[0].image_url = "data:image/png;base64,done"
    project.panels[1].is_generating = True
    images = FakeImageGenerator()

    _orchestrator(images, recorded_sleep).illustrate(project)

    assert images.calls == [("panel", "beat 2")]
    assert recorded_sleep == []
    assert project.panels[0].image_url == "data:image/png;base64,done"


def test_failed_panel_is_flagged_and_batch_continues(recorded_sleep):
    project = _project()
    images = FakeImageGenerator(fail_on=("beat 1",))
    stages = []

    _orchestrator(images, recorded_sleep).illustrate(
        project,
        include_cover=False,
        progress_callback=lambda stage, payload: stages.append((stage, payload)),
    )

    failed = project.panel(1)
    assert failed.generation_failed
    assert not failed.is_generating
    assert failed.image_url is None
    assert project.panel(2).has_image
    assert ("panel:failed", {"panel_id": 1, "error": "No image data returned."}) in stages
    assert stages[-1][1]["failed_panels"] == [1]


def test_reinvoking_illustrate_only_retries_missing_images(recorded_sleep):
    project = _project()
    _orchestrator(FakeImageGenerator(fail_on=("beat 1",)), recorded_sleep).illustrate(project, include_cover=False)

    retry_images = FakeImageGenerator()
    _orchestrator(retry_images, recorded_sleep).illustrate(project, include_cover=False)

    assert retry_images.calls == [("panel", "beat 1")]
    assert not project.panel(1).generation_failed


def test_failed_cover_sets_flag_without_blocking_panels(recorded_sleep):
    project = _project()
    images = FakeImageGenerator(fail_cover=True)

    _orchestrator(images, recorded_sleep).illustrate(project)

    assert project.cover_failed
    assert project.cover_image is None
    assert all(panel.has_image for panel in project.panels)


def test_panel_delay_is_read_from_environment(monkeypatch):
    monkeypatch.setenv("TOONSTUDIO_PANEL_DELAY", "1.5")
    orchestrator = EbookOrchestrator(completion_fn=FakeCompletion(), image_generator=FakeImageGenerator())

    assert orchestrator.panel_delay == 1.5


def test_orchestrator_drives_replicate_generator(recorded_sleep):
    client = FakeReplicateClient()
    generator = ReplicateImageGenerator(client=client, sleep=recorded_sleep.append)
    project = _project(panel_count=2)

    _orchestrator(generator, recorded_sleep, panel_delay=0.5).illustrate(project)

    assert [payload["aspect_ratio"] for _, payload in client.calls] == ["3:4", "1:1", "1:1"]
    assert recorded_sleep == [0.5, 0.5]
    assert all(panel.image_url.startswith("data:image/png;base64,") for panel in project.panels)


def test_apply_refinement_touches_only_listed_panels():
    project = _project()
    refined = RefinedContent(
        new_title="Raccoon Heist: The Viral Cut",
        new_summary="Ignored summary.",
        refined_panels=(RefinedPanel(id=2, caption="A cheesy victory!"),),
    )

    apply_refinement(project, refined)

    assert project.title == "Raccoon Heist: The Viral Cut"
    assert [panel.caption for panel in project.panels] == ["Caption 0", "Caption 1", "A cheesy victory!"]
    assert project.story.summary == "A raccoon steals pizza."


def test_edit_image_replaces_target(recorded_sleep):
    project = _project()
    project.panels[0].image_url = "data:image/png;base64,old"
    images = FakeImageGenerator()
    orchestrator = _orchestrator(images, recorded_sleep)

    orchestrator.edit_image(project, 0, "make it sunset")

    assert images.calls == [("edit", ("data:image/png;base64,old", "make it sunset"))]
    assert project.panels[0].image_url == "data:image/png;base64,edited"


def test_edit_image_without_current_image_is_rejected(recorded_sleep):
    orchestrator = _orchestrator(FakeImageGenerator(), recorded_sleep)

    with pytest.raises(ValueError):
        orchestrator.edit_image(_project(), COVER, "brighter")


def test_replace_image_and_update_caption(recorded_sleep):
    project = _project()
    project.cover_failed = True
    orchestrator = _orchestrator(FakeImageGenerator(), recorded_sleep)

    orchestrator.replace_image(project, COVER, "data:image/png;base64,upload")
    orchestrator.update_caption(project, 1, "Edited by hand.")

    assert project.cover_image == "data:image/png;base64,upload"
    assert not project.cover_failed
    assert project.panel(1).caption == "Edited by hand."


def test_regenerate_panel_overwrites_image(recorded_sleep):
    project = _project()
    project.panels[2].image_url = "data:image/png;base64,old"
    images = FakeImageGenerator()

    panel = _orchestrator(images, recorded_sleep).regenerate_panel(project, 2)

    assert images.calls == [("panel", "beat 2")]
    assert panel.image_url != "data:image/png;base64,old"


def test_analyze_sends_cover_and_caption_sample(recorded_sleep):
    reply = json.dumps({"score": 7, "viralPotential": "High", "suggestions": ["a"]})
    fake = FakeCompletion(reply)
    orchestrator = EbookOrchestrator(completion_fn=fake, image_generator=FakeImageGenerator(), sleep=recorded_sleep.append)
    project = _project()
    project.cover_image = "data:image/png;base64,cover"

    analysis = orchestrator.analyze(project)

    assert project.analysis is analysis
    assert analysis.score == 7
    call = fake.calls[0]
    content = call["messages"][0]["content"]
    assert content[0]["image_url"]["url"] == "data:image/png;base64,cover"
    assert "Caption 0 | Caption 1 | Caption 2" in content[1]["text"]


def test_refine_applies_result_and_marks_analysis(recorded_sleep):
    reply = json.dumps(
        {
            "newTitle": "Heist!",
            "newSummary": "New summary",
            "refinedPanels": [{"id": 0, "caption": "Punchier start."}],
        }
    )
    fake = FakeCompletion(reply)
    orchestrator = EbookOrchestrator(completion_fn=fake, image_generator=FakeImageGenerator(), sleep=recorded_sleep.append)
    project = _project()
    project.analysis = ANALYSIS

    orchestrator.refine(project)

    assert project.title == "Heist!"
    assert project.panel(0).caption == "Punchier start."
    assert project.panel(1).caption == "Caption 1"
    assert project.analysis.text_quality == "Optimized by Agent!"
    prompt = fake.calls[0]["messages"][0]["content"]
    assert "Needs punch. Flat captions." in prompt


def test_refine_requires_analysis(recorded_sleep):
    with pytest.raises(ValueError):
        _orchestrator(FakeImageGenerator(), recorded_sleep).refine(_project())


def test_regenerate_cover_with_suggestions_extends_style(recorded_sleep):
    images = FakeImageGenerator()
    project = _project()
    project.analysis = ANALYSIS

    _orchestrator(images, recorded_sleep).regenerate_cover_with_suggestions(project)

    assert images.calls == [("cover", "Ink wash. IMPROVEMENTS: warmer palette, bigger eyes")]
    assert project.analysis.visual_quality == "Cover regenerated with suggestions!"


def test_find_stories_applies_user_preferences(recorded_sleep):
    reply = json.dumps([{"title": "A", "summary": "a", "source": "r/a"}])
    orchestrator = _orchestrator(FakeImageGenerator(), recorded_sleep, reply)

    stories = orchestrator.find_stories(
        "funny",
        "Teens",
        panel_count=8,
        visual_style="Anime",
        layout_style="COMIC_STRIP",
    )

    assert stories[0].panel_count == 8
    assert stories[0].visual_style == "Anime"
    assert stories[0].layout_style is LayoutStyle.COMIC_STRIP
    assert stories[0].target_audience == "Teens"


def test_project_yaml_round_trip(tmp_path):
    project = _project()
    project.cover_image = "data:image/png;base64,cover"
    project.panels[1].generation_failed = True
    project.analysis = ANALYSIS

    path = project.save(tmp_path / "project.yaml")
    restored = EbookProject.from_yaml(path)

    assert restored.story == project.story
    assert restored.title == project.title
    assert restored.cover_image == project.cover_image
    assert restored.panel(1).generation_failed
    assert restored.analysis == ANALYSIS


def test_comic_pages_chunk_panels_by_four():
    project = _project(panel_count=6)

    pages = project.comic_pages()

    assert [[panel.id for panel in page] for page in pages] == [[0, 1, 2, 3], [4, 5]]
