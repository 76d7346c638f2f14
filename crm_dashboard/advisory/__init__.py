"""AI advisory adapters producing chat analyses and closing strategies."""

from .base import AdvisoryService, decode_image  # noqa: F401
from .gemini import GeminiAdvisor, GeminiConfig  # noqa: F401
from .sample import StaticAdvisor  # noqa: F401

__all__ = [
    "AdvisoryService",
    "GeminiAdvisor",
    "GeminiConfig",
    "StaticAdvisor",
    "decode_image",
]
