"""
End-to-end orchestration for ToonStudio ebook creation.
"""

from .context import AppContext, AppState
from .pipeline import COVER, EbookOrchestrator, EbookProject, apply_refinement

__all__ = [
    "AppContext",
    "AppState",
    "COVER",
    "EbookOrchestrator",
    "EbookProject",
    "apply_refinement",
]
