"""
Data URI helpers for generated images.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MIME_TYPE = "image/png"

_DATA_URI_PATTERN = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w.+-]+=[\w.+-]+)*);base64,(?P<data>.*)$",
    re.DOTALL,
)
_IMAGE_PREFIX_PATTERN = re.compile(r"^data:image/[\w.+-]+;base64,")

_MAGIC_NUMBERS: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class DecodedImage:
    """Binary image content together with its MIME type."""

    data: bytes
    mime_type: str

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self.mime_type, ".bin")


def encode_data_uri(data: bytes, mime_type: str | None = None) -> str:
    """Encode ``data`` as ``data:<mime>;base64,<payload>``."""
    resolved = mime_type or guess_image_mime_type(data)
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{resolved};base64,{payload}"


def decode_data_uri(uri: str) -> DecodedImage:
    """
    Decode a base64 data URI into bytes and MIME type.

    A missing MIME type defaults to ``image/png``. Anything that is not a valid
    base64 data URI raises ``ValueError("Invalid image data")``.
    """
    match = _DATA_URI_PATTERN.match(uri.strip()) if isinstance(uri, str) else None
    if match is None:
        raise ValueError("Invalid image data")

    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid image data") from exc

    return DecodedImage(data=data, mime_type=match.group("mime") or DEFAULT_MIME_TYPE)


def is_data_uri(value: str | None) -> bool:
    return bool(value) and str(value).startswith("data:")


def strip_data_uri_prefix(value: str) -> str:
    """Return only the base64 payload of an image data URI."""
    return _IMAGE_PREFIX_PATTERN.sub("", value, count=1)


def guess_image_mime_type(data: bytes) -> str:
    for magic, mime_type in _MAGIC_NUMBERS:
        if data.startswith(magic):
            return mime_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MIME_TYPE


def save_data_uri(uri: str, destination: str | Path) -> Path:
    """
    Write the image held in ``uri`` to ``destination``.

    When ``destination`` has no suffix, one matching the MIME type is added.
    """
    image = decode_data_uri(uri)
    path = Path(destination).expanduser()
    if not path.suffix:
        path = path.with_suffix(image.extension)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(image.data)
    return path
