"""
Prompt and output-schema construction for the ToonStudio story services.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Sequence

from .models import VIRAL_POTENTIAL_LEVELS, Panel, captions_payload

SEARCH_SOURCES_GUIDANCE = """1. REDDIT (The "Master List"):
   - Best for Kids: r/KidsAreFuckingStupid, r/TalesFromRetail, r/WholesomeMemes, r/FeelGood, r/Parenting.
   - Best for Adults: r/AmItheAsshole, r/TrueOffMyChest, r/Relationship_Advice, r/EntitledParents, r/TIFU, r/MaliciousCompliance, r/PettyRevenge.

2. SOCIAL MEDIA PLATFORMS:
   - TikTok "Storytime" Trends (multi-part sagas)
   - Instagram Reels (viral voiceover narratives)
   - YouTube (Trending Animation Storytime, True Crime)
   - Twitter/X Threads (Viral storytelling threads)

3. GLOBAL VIRAL NEWS:
   - Uplifting News, Weird News, Tech Drama, Real-life Viral Events."""


@dataclass(frozen=True)
class PlaceholderTexts:
    """
    Labels used when a model reply cannot be turned into usable content.

    The defaults are presentation choices; pass a customised instance to the
    services to change what the user sees.
    """

    search_id: str = "fallback-1"
    search_title: str = "Viral Story Search Result"
    search_summary: str = (
        "We found stories but couldn't structure them perfectly. Try refining your search topic."
    )
    search_source: str = "Search System"
    default_search_source: str = "Viral Source"
    custom_source: str = "User Imagination"
    untitled_story: str = "Untitled Story"
    custom_story_title: str = "My Custom Story"
    script_caption: str = "Story processing..."
    analysis_not_run: str = "Not analyzed"
    analysis_no_feedback: str = "No feedback provided"
    analysis_standard: str = "Standard"
    analysis_default_suggestion: str = "Try again"
    analysis_error: str = "Error"
    analysis_error_critique: str = "Failed to contact the publisher agent."
    analysis_unknown: str = "Unknown"
    analysis_error_suggestions: tuple[str, ...] = ("Check internet connection", "Try again")


DEFAULT_PLACEHOLDERS = PlaceholderTexts()


# ------------------------------------------------------------------ schemas

STORY_SUMMARY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "summary": {"type": "string"},
    },
    "required": ["title", "summary"],
}


def build_script_schema(audience: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "visualStyle": {
                "type": "string",
                "description": (
                    "Detailed description of the art style, color palette, and lighting "
                    "based on the user's preference."
                ),
            },
            "characterDesign": {
                "type": "string",
                "description": (
                    "Detailed visual description of main characters (e.g., 'Jack: tall, trench coat, "
                    "fedora. Jill: short, red dress'). This will be used in every image prompt for "
                    "consistency."
                ),
            },
            "panels": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "actionDescription": {
                            "type": "string",
                            "description": (
                                "Detailed visual prompt for the image model. Focus on visual elements, "
                                "setting, action, and lighting. Do NOT include dialogue."
                            ),
                        },
                        "caption": {
                            "type": "string",
                            "description": (
                                "Narrative text for the bottom of the page. Tone must be appropriate "
                                f"for {audience}."
                            ),
                        },
                    },
                    "required": ["actionDescription", "caption"],
                },
            },
        },
        "required": ["visualStyle", "characterDesign", "panels"],
    }


ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "score": {"type": "integer", "minimum": 0, "maximum": 10},
        "viralPotential": {"type": "string", "enum": list(VIRAL_POTENTIAL_LEVELS)},
        "coherenceCheck": {"type": "string"},
        "critique": {"type": "string"},
        "textQuality": {"type": "string"},
        "visualQuality": {"type": "string"},
        "suggestions": {"type": "array", "items": {"type": "string"}},
    },
    "required": [
        "score",
        "viralPotential",
        "coherenceCheck",
        "critique",
        "textQuality",
        "visualQuality",
        "suggestions",
    ],
}

REFINEMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "newTitle": {"type": "string"},
        "newSummary": {"type": "string"},
        "refinedPanels": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "caption": {"type": "string"},
                },
                "required": ["id", "caption"],
            },
        },
    },
}


# ------------------------------------------------------------------ prompts


def build_search_prompt(topic: str, target_audience: str, *, result_count: int = 5) -> str:
    """
    Build the instruction for the search-grounded trending story scout.
    """
    return f"""Act as a specialized Viral Content Scout.
Your goal is to find the most engaging, trending, and viral stories related to "{topic}" by searching across ALL of the following major inspiration sources:

{SEARCH_SOURCES_GUIDANCE}

Target Audience: {target_audience}.

Instructions:
- Search specifically for content that is currently trending or has high historical engagement (top of all time).
- If the topic is specific (e.g. "scary"), prioritize the relevant sources (e.g. r/NoSleep).
- If the topic is generic, find the best stories across ALL categories.
- Extract the core narrative/plot (ignore meta-commentary).
- Ensure stories are suitable for the Target Audience (filter out extreme violence/NSFW if for Kids).

Return a raw JSON array (no markdown block) of {result_count} distinct story objects with these properties:
- "title": A catchy, viral-style title.
- "summary": A compelling 2-sentence summary of the plot.
- "source": The specific platform and subreddit/account (e.g. "Reddit r/NoSleep" or "TikTok Trend")."""


def build_story_from_prompt_prompt(user_prompt: str, panel_count: int, target_audience: str) -> str:
    return f"""You are a professional author for best-selling KDP and Etsy ebooks.
Target Audience: {target_audience}
Task: Turn the following idea into a structured story summary for a {panel_count}-part picture book.
User Prompt: "{user_prompt}"

Return a JSON object with:
- "title": A catchy title optimized for sales.
- "summary": A compelling 2-3 sentence summary of the plot."""


def build_script_prompt(
    *,
    title: str,
    summary: str,
    panel_count: int,
    visual_style: str,
    audience: str,
) -> str:
    """
    Ask for the character design first so it can be injected into every panel prompt.
    """
    return f"""Write a {panel_count}-part story script based on: "{title}: {summary}".
Target Audience: {audience}.

CRITICAL INSTRUCTIONS FOR CONSISTENCY:
1. The visual style MUST be based on: "{visual_style}". Elaborate on this style to ensure high-quality generation (e.g. lighting, texture, medium).
2. Define "characterDesign" that fits this style.
3. Create {panel_count} panels.
4. Ensure the story flows logically from start to finish with a clear beginning, middle, and end.
5. The 'caption' text must be engaging and suitable for {audience}."""


def compose_panel_description(style: str, characters: str, action: str) -> str:
    """Bake style and character design into a panel's image prompt."""
    return f"Style: {style}. Characters: {characters}. Scene: {action}"


def placeholder_panel_description(style: str, title: str) -> str:
    return f"Style: {style}. A scene from the story {title}"


def build_analysis_prompt(
    *,
    title: str,
    summary: str,
    audience: str,
    style: str,
    captions_sample: str | None,
    has_cover: bool,
) -> str:
    cover_line = (
        "I have attached the generated Cover Art." if has_cover else "No cover art generated yet."
    )
    return f"""Act as a highly critical and successful Ebook Publisher for Etsy and Amazon KDP.
Analyze this story project:
- Title: "{title}"
- Summary: "{summary}"
- Intended Audience: "{audience}"
- Intended Style: "{style}"
- Story Captions Sample: "{captions_sample or 'Not provided'}"

{cover_line}

Evaluate the following STRICTLY:
1. Marketability & SEO: Will this sell? Is the title catchy and keyword-rich for Etsy?
2. Text Quality: Is the storytelling engaging? Is the vocabulary right for the age group?
3. Visual Quality: Does the art style (if visible) look professional and match the audience?
4. Viral Potential: Does it have a strong emotional hook (funny, scary, or heartwarming)?

Return a JSON object with:
- "score": number (0-10)
- "viralPotential": one of {json.dumps(list(VIRAL_POTENTIAL_LEVELS))}
- "coherenceCheck": string (Comment on if style fits audience)
- "critique": string (Overall critique focusing on SEO and Content)
- "textQuality": string (Specific feedback on writing style and tone)
- "visualQuality": string (Specific feedback on art style)
- "suggestions": string[] (3 specific actionable bullet points)"""


def build_refinement_prompt(
    *,
    title: str,
    summary: str,
    panels: Sequence[Panel],
    critique: str,
    audience: str,
) -> str:
    return f"""You are a professional editor.
Task: Rewrite the following story content to address this critique: "{critique}".
Target Audience: {audience}.

Current Title: "{title}"
Current Summary: "{summary}"
Current Captions: {json.dumps(captions_payload(panels), ensure_ascii=False)}

Instructions:
- Make the title more viral/catchy and SEO friendly.
- Improve the summary.
- Rewrite the captions to be more engaging and fix any tone issues.

Return JSON with:
- newTitle
- newSummary
- refinedPanels: array of objects {{id, caption}}"""
