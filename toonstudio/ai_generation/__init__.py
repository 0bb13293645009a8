"""
AI image generation package for ToonStudio.
"""

from .images import (
    DecodedImage,
    decode_data_uri,
    encode_data_uri,
    guess_image_mime_type,
    save_data_uri,
    strip_data_uri_prefix,
)
from .prompting import ImagePrompt, build_cover_prompt, build_improved_style, build_panel_prompt
from .replicate_service import ReplicateImageGenerator

__all__ = [
    "DecodedImage",
    "ImagePrompt",
    "ReplicateImageGenerator",
    "build_cover_prompt",
    "build_improved_style",
    "build_panel_prompt",
    "decode_data_uri",
    "encode_data_uri",
    "guess_image_mime_type",
    "save_data_uri",
    "strip_data_uri_prefix",
]
