"""
PDF export for ToonStudio ebooks.
"""

from .builder import PAGE_SIZES, EbookPDFBuilder, PageLayoutConfig

__all__ = ["EbookPDFBuilder", "PAGE_SIZES", "PageLayoutConfig"]
