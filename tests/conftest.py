from __future__ import annotations

import struct
import zlib
from typing import Any

import pytest

from toonstudio.common import ChatResult

_CLEARED_ENV = (
    "GEMINI_API_KEY",
    "LITELLM_API_KEY",
    "LITELLM_MODEL",
    "REPLICATE_API_TOKEN",
    "REPLICATE_MODEL",
    "TOONSTUDIO_TEXT_MODEL",
    "TOONSTUDIO_SCRIPT_MODEL",
    "TOONSTUDIO_ANALYSIS_MODEL",
    "TOONSTUDIO_IMAGE_MODEL",
    "TOONSTUDIO_PANEL_DELAY",
)


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    return (
        struct.pack(">I", len(data))
        + kind
        + data
        + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)
    )


def make_png(rgb: tuple[int, int, int] = (255, 0, 0)) -> bytes:
    """Return a valid 1x1 RGB PNG."""
    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(bytes([0, *rgb]))
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", pixels)
        + _png_chunk(b"IEND", b"")
    )


class FakeCompletion:
    """Stands in for ``call_chat_completion``; replays canned replies or raises them."""

    def __init__(self, *responses: str | BaseException) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> ChatResult:
        self.calls.append(kwargs)
        outcome = self.responses.pop(0) if self.responses else ""
        if isinstance(outcome, BaseException):
            raise outcome
        return ChatResult(text=outcome, raw=None)


class FakeReplicateClient:
    """Minimal ``replicate.Client`` double recording every ``run`` call."""

    def __init__(self, *outputs: Any) -> None:
        self.outputs = list(outputs)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def run(self, model: str, input: dict[str, Any]) -> Any:  # noqa: A002
        self.calls.append((model, dict(input)))
        outcome = self.outputs.pop(0) if self.outputs else make_png()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ThrottleError(Exception):
    status_code = 429


class FakeImageGenerator:
    """Records image requests in order; descriptions listed in ``fail_on`` raise."""

    def __init__(self, *, fail_on: tuple[str, ...] = (), fail_cover: bool = False) -> None:
        self.fail_on = fail_on
        self.fail_cover = fail_cover
        self.calls: list[tuple[str, Any]] = []

    def generate_panel_image(self, description: str) -> str:
        self.calls.append(("panel", description))
        if any(marker in description for marker in self.fail_on):
            raise RuntimeError("No image data returned.")
        return f"data:image/png;base64,{len(self.calls)}"

    def generate_cover_image(self, title: str, summary: str, style: str | None = None) -> str:
        self.calls.append(("cover", style))
        if self.fail_cover:
            raise RuntimeError("No image data returned.")
        return "data:image/png;base64,cover"

    def edit_image(self, image: str, instruction: str) -> str:
        self.calls.append(("edit", (image, instruction)))
        return "data:image/png;base64,edited"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _CLEARED_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def recorded_sleep() -> list[float]:
    return []
