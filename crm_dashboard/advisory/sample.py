"""Advisory implementation returning canned text without any network access."""
from __future__ import annotations

from typing import List, Tuple

from ..models import Lead
from .base import CHAT_ANALYSIS_FAILED, ImageInput, decode_image


class StaticAdvisor:
    """Echoes lead context back in the advisory formats; records every call."""

    name = "static"

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix
        self.calls: List[Tuple[str, str]] = []

    def analyze_chat_screenshot(self, image: ImageInput, lead: Lead) -> str:
        self.calls.append(("chat", lead.id))
        try:
            _, data = decode_image(image)
        except ValueError:
            return CHAT_ANALYSIS_FAILED
        return f"{self._prefix}📌 QUICK SUMMARY\n• Screenshot for {lead.name} ({len(data)} bytes)"

    def generate_lead_strategy(self, lead: Lead) -> str:
        self.calls.append(("strategy", lead.id))
        return f"{self._prefix}👤 BUYER PROFILE\n• {lead.name} (${lead.value:,.0f})"

    def summarize_lead(self, lead: Lead) -> str:
        self.calls.append(("summary", lead.id))
        return f"{self._prefix}{lead.name}: {lead.status.name.title()}"
