"""Advisory service backed by Google's Gemini models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import google.generativeai as genai

from ..models import Lead
from . import base
from .prompts import chat_analysis_prompt, strategy_prompt, summary_prompt

LOGGER = logging.getLogger(__name__)


@dataclass
class GeminiConfig:
    """Model selection and sampling parameters for :class:`GeminiAdvisor`."""

    chat_model: str = "gemini-3-flash-preview"
    strategy_model: str = "gemini-3-pro-preview"
    summary_model: str = "gemini-3-flash-preview"
    chat_temperature: float = 0.4
    strategy_temperature: float = 0.7
    strategy_top_p: float = 0.95
    summary_temperature: float = 0.7
    summary_max_output_tokens: int = 100


class GeminiAdvisor:
    """Send lead context to Gemini and return its text, or a fallback string."""

    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, *, config: Optional[GeminiConfig] = None, **overrides: Any) -> None:
        self.config = config or GeminiConfig(**overrides)
        self.enabled = bool(api_key)
        if self.enabled:
            genai.configure(api_key=api_key)
        else:
            LOGGER.warning("No Gemini API key configured - advisory requests will return fallback text")

    def analyze_chat_screenshot(self, image: base.ImageInput, lead: Lead) -> str:
        try:
            mime_type, data = base.decode_image(image)
        except ValueError:
            LOGGER.exception("Rejected chat screenshot for lead %s", lead.id)
            return base.CHAT_ANALYSIS_FAILED
        contents = [{"mime_type": mime_type, "data": data}, chat_analysis_prompt(lead)]
        return self._generate(
            self.config.chat_model,
            contents,
            {"temperature": self.config.chat_temperature},
            failed=base.CHAT_ANALYSIS_FAILED,
            empty=base.CHAT_ANALYSIS_EMPTY,
        )

    def generate_lead_strategy(self, lead: Lead) -> str:
        return self._generate(
            self.config.strategy_model,
            strategy_prompt(lead),
            {"temperature": self.config.strategy_temperature, "top_p": self.config.strategy_top_p},
            failed=base.STRATEGY_FAILED,
            empty=base.STRATEGY_EMPTY,
        )

    def summarize_lead(self, lead: Lead) -> str:
        return self._generate(
            self.config.summary_model,
            summary_prompt(lead),
            {
                "temperature": self.config.summary_temperature,
                "max_output_tokens": self.config.summary_max_output_tokens,
            },
            failed=base.SUMMARY_FAILED,
            empty=base.SUMMARY_EMPTY,
        )

    def _generate(self, model_name: str, contents: Any, generation_config: Dict[str, Any], *, failed: str, empty: str) -> str:
        if not self.enabled:
            return failed
        try:
            model = genai.GenerativeModel(model_name)
            response = model.generate_content(contents, generation_config=generation_config)
            text = (response.text or "").strip()
        except Exception:  # provider and transport errors stay inside the adapter
            LOGGER.exception("Gemini request to %s failed", model_name)
            return failed
        return text or empty
