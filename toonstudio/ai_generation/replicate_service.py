"""
Integration with Replicate for cover, panel, and edited image generation.
"""

from __future__ import annotations

import io
import logging
import os
from contextlib import ExitStack
from pathlib import Path
from typing import Any, BinaryIO, Callable, Sequence

import replicate
import requests

from toonstudio.common import retry_on_throttle

from .images import decode_data_uri, encode_data_uri, guess_image_mime_type, is_data_uri
from .prompting import (
    ImagePrompt,
    build_cover_prompt,
    build_edit_prompt,
    build_panel_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "google/nano-banana"

ImageSource = str | Path | BinaryIO


def _build_nano_banana_input(
    *,
    prompt: ImagePrompt,
    reference_images: Sequence[str | BinaryIO],
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "prompt": prompt.text,
        "output_format": "png",
    }
    if reference_images:
        payload["image_input"] = list(reference_images)
    payload["aspect_ratio"] = prompt.aspect_ratio or (
        "match_input_image" if reference_images else "1:1"
    )
    return payload


def _build_flux_kontext_input(
    *,
    prompt: ImagePrompt,
    reference_images: Sequence[str | BinaryIO],
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "prompt": prompt.text,
        "output_format": "png",
        "safety_tolerance": 2,
        "prompt_upsampling": False,
    }
    if reference_images:
        payload["input_image"] = reference_images[0]
    payload["aspect_ratio"] = prompt.aspect_ratio or (
        "match_input_image" if reference_images else "1:1"
    )
    return payload


_MODEL_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "google/nano-banana": _build_nano_banana_input,
    "black-forest-labs/flux-kontext-pro": _build_flux_kontext_input,
}


def _resolve_input_builder(model_identifier: str) -> Callable[..., dict[str, Any]]:
    normalized_identifier = model_identifier.strip().lower()
    builder = _MODEL_INPUT_BUILDERS.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = _MODEL_INPUT_BUILDERS.get(base_identifier)
    if builder is None:
        supported_models = ", ".join(sorted(_MODEL_INPUT_BUILDERS))
        raise ValueError(
            "Model identifier "
            f"'{model_identifier}' is not configured with a default input payload. "
            f"Supported models: {supported_models}."
        )
    return builder


def _build_replicate_input_payload(
    *,
    model_identifier: str,
    prompt: ImagePrompt,
    reference_images: Sequence[str | BinaryIO] = (),
) -> dict[str, Any]:
    builder = _resolve_input_builder(model_identifier)
    return builder(prompt=prompt, reference_images=reference_images)


class ReplicateImageGenerator:
    """
    Convenience wrapper around the Replicate client for ebook illustrations.

    Every request is retried on throttling (HTTP 429) with exponential backoff;
    other failures propagate immediately. Results are returned as
    ``data:image/png;base64,...`` strings.

    Parameters
    ----------
    api_token:
        Replicate API token. Falls back to ``REPLICATE_API_TOKEN`` environment variable.
    model_identifier:
        Model string in the ``owner/model[:version]`` format. Falls back to
        ``TOONSTUDIO_IMAGE_MODEL``, then ``REPLICATE_MODEL``, then ``google/nano-banana``.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    retries, initial_delay, sleep:
        Throttling retry budget, first backoff delay in seconds, and the sleep
        function used between attempts.
    """

    def __init__(
        self,
        *,
        api_token: str | None = None,
        model_identifier: str | None = None,
        client: replicate.Client | None = None,
        retries: int = 3,
        initial_delay: float = 2.0,
        sleep: Callable[[float], Any] | None = None,
        request_timeout: float = 60.0,
    ) -> None:
        self._api_token = api_token or os.getenv("REPLICATE_API_TOKEN")
        if not self._api_token and not client:
            raise ValueError(
                "Replicate API token is required. Set REPLICATE_API_TOKEN or pass api_token."
            )

        self._model_identifier = (
            model_identifier
            or os.getenv("TOONSTUDIO_IMAGE_MODEL")
            or os.getenv("REPLICATE_MODEL")
            or DEFAULT_IMAGE_MODEL
        )
        _resolve_input_builder(self._model_identifier)

        self._client = client or replicate.Client(api_token=self._api_token)
        self._retries = retries
        self._initial_delay = initial_delay
        self._sleep = sleep
        self._request_timeout = request_timeout

    @property
    def model_identifier(self) -> str:
        """Return the model identifier currently used."""
        return self._model_identifier

    def generate_panel_image(self, description: str, **model_kwargs: Any) -> str:
        """Render one panel from its style-and-character-laden description."""
        prompt = build_panel_prompt(description)
        return self._generate(prompt, label="panel", model_kwargs=model_kwargs)

    def generate_cover_image(
        self,
        title: str,
        summary: str,
        style: str | None = None,
        **model_kwargs: Any,
    ) -> str:
        """Render a portrait cover illustration without any lettering."""
        prompt = build_cover_prompt(title, summary, style)
        return self._generate(prompt, label="cover", model_kwargs=model_kwargs)

    def edit_image(self, image: ImageSource, instruction: str, **model_kwargs: Any) -> str:
        """
        Apply a natural-language edit (e.g. "turn the lighting to sunset") to ``image``.

        ``image`` may be a data URI, an http(s) URL, a local path, or a binary file object.
        """
        prompt = build_edit_prompt(instruction)
        return self._generate(
            prompt,
            label="edit",
            reference_images=[image],
            model_kwargs=model_kwargs,
        )

    def _generate(
        self,
        prompt: ImagePrompt,
        *,
        label: str,
        reference_images: Sequence[ImageSource] = (),
        model_kwargs: dict[str, Any],
    ) -> str:
        def _attempt() -> str:
            with ExitStack() as stack:
                prepared = [_prepare_image_input(item, stack=stack) for item in reference_images]
                replicate_input = _build_replicate_input_payload(
                    model_identifier=self._model_identifier,
                    prompt=prompt,
                    reference_images=prepared,
                )
                replicate_input.update(model_kwargs)
                try:
                    output = self._client.run(self._model_identifier, input=replicate_input)
                    return self._output_to_data_uri(output)
                except Exception as exc:
                    logger.error("Error generating %s image: %s", label, exc)
                    raise

        retry_kwargs: dict[str, Any] = {
            "retries": self._retries,
            "initial_delay": self._initial_delay,
        }
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep
        return retry_on_throttle(_attempt, **retry_kwargs)

    def _output_to_data_uri(self, output: Any) -> str:
        image_bytes = self._first_image_bytes(output)
        if not image_bytes:
            raise RuntimeError("No image data returned.")
        return encode_data_uri(image_bytes, guess_image_mime_type(image_bytes))

    def _first_image_bytes(self, output: Any) -> bytes | None:
        if output is None:
            return None

        if isinstance(output, (bytes, bytearray)):
            return bytes(output)

        if isinstance(output, str):
            if is_data_uri(output):
                return decode_data_uri(output).data
            if output.lower().startswith(("http://", "https://")):
                return self._download(output)
            return None

        if hasattr(output, "read"):
            return output.read()

        if isinstance(output, (list, tuple)) or hasattr(output, "__iter__"):
            for item in output:
                data = self._first_image_bytes(item)
                if data:
                    return data
            return None

        return None

    def _download(self, url: str) -> bytes:
        response = requests.get(url, timeout=self._request_timeout)
        response.raise_for_status()
        return response.content


def _prepare_image_input(
    image: ImageSource,
    *,
    stack: ExitStack,
) -> str | BinaryIO:
    """
    Normalize an image reference so Replicate can consume it, keeping files open via ExitStack.
    """
    if hasattr(image, "read"):
        # Caller owns the stream; rewind so a retried attempt uploads it in full.
        if hasattr(image, "seek"):
            image.seek(0)
        return image  # type: ignore[return-value]

    if isinstance(image, str):
        if is_data_uri(image):
            decoded = decode_data_uri(image)
            buffer = io.BytesIO(decoded.data)
            buffer.name = f"reference{decoded.extension}"
            return buffer
        if image.lower().startswith(("http://", "https://")):
            return image

    input_path = Path(image).expanduser()
    if not input_path.exists():
        raise FileNotFoundError(f"Input image not found at '{input_path}'.")

    return stack.enter_context(input_path.open("rb"))
