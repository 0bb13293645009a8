"""
ToonStudio package exposing story discovery, illustration pipeline, and PDF tooling.
"""

from .pdf_generation import EbookPDFBuilder
from .pipeline import (
    AppContext,
    AppState,
    EbookOrchestrator,
    EbookProject,
    apply_refinement,
)

__all__ = [
    "AppContext",
    "AppState",
    "EbookOrchestrator",
    "EbookProject",
    "EbookPDFBuilder",
    "apply_refinement",
]
