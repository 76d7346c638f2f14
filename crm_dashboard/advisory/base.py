"""Capability interface for AI-generated sales advice."""
from __future__ import annotations

import base64
import binascii
from typing import Protocol, Tuple, Union

from ..models import Lead

ImageInput = Union[bytes, bytearray, str]

# Fallback texts returned instead of raising when the provider fails
CHAT_ANALYSIS_FAILED = "Error processing the chat screenshot."
CHAT_ANALYSIS_EMPTY = "The image could not be analysed."
STRATEGY_FAILED = "There was an error connecting to the AI service."
STRATEGY_EMPTY = "A strategy could not be generated."
SUMMARY_FAILED = "Error generating the analysis."
SUMMARY_EMPTY = "Analysis not available."


class AdvisoryService(Protocol):
    """Protocol implemented by every advisory backend. Implementations never raise."""

    def analyze_chat_screenshot(self, image: ImageInput, lead: Lead) -> str:  # pragma: no cover - runtime protocol
        """Return a structured bullet-point reading of a chat screenshot."""

    def generate_lead_strategy(self, lead: Lead) -> str:  # pragma: no cover - runtime protocol
        """Return a closing strategy for the lead."""

    def summarize_lead(self, lead: Lead) -> str:  # pragma: no cover - runtime protocol
        """Return a one-sentence assessment of the lead."""


def decode_image(image: ImageInput, default_mime_type: str = "image/png") -> Tuple[str, bytes]:
    """Return ``(mime_type, data)`` for raw bytes, a data URL, or a base64 string."""

    if isinstance(image, (bytes, bytearray)):
        return default_mime_type, bytes(image)

    text = image.strip()
    mime_type = default_mime_type
    if text.startswith("data:"):
        header, _, text = text.partition(",")
        declared = header[len("data:"):].split(";", 1)[0]
        if declared:
            mime_type = declared
    try:
        return mime_type, base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image data is not valid base64") from exc
