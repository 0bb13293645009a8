"""
Story discovery, scripting, and critique services for ToonStudio ebooks.
"""

from .critique import PublisherAgent
from .discovery import StoryScout
from .models import (
    AnalysisResult,
    LayoutStyle,
    Panel,
    RefinedContent,
    RefinedPanel,
    Story,
)
from .prompting import DEFAULT_PLACEHOLDERS, PlaceholderTexts
from .script_writer import ScriptWriter

__all__ = [
    "AnalysisResult",
    "DEFAULT_PLACEHOLDERS",
    "LayoutStyle",
    "Panel",
    "PlaceholderTexts",
    "PublisherAgent",
    "RefinedContent",
    "RefinedPanel",
    "ScriptWriter",
    "Story",
    "StoryScout",
]
