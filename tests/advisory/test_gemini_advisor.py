from __future__ import annotations

import base64
from unittest import mock

import pytest

from crm_dashboard.advisory import GeminiAdvisor, StaticAdvisor, decode_image
from crm_dashboard.advisory import base
from crm_dashboard.models import Lead


@pytest.fixture()
def lead() -> Lead:
    return Lead.from_record({"id": "L-1", "name": "Ana Gomez", "value": 2500, "status": "Contactado", "notes": "Wants a payment plan"})


@pytest.fixture()
def genai():
    with mock.patch("crm_dashboard.advisory.gemini.genai") as patched:
        yield patched


def _reply(genai, text):
    genai.GenerativeModel.return_value.generate_content.return_value = mock.Mock(text=text)


def test_advisor_configures_client_with_api_key(genai) -> None:
    GeminiAdvisor(api_key="secret")

    genai.configure.assert_called_once_with(api_key="secret")


def test_strategy_prompt_and_sampling(genai, lead) -> None:
    _reply(genai, "  👤 BUYER PROFILE\n• Decisive owner  ")
    advisor = GeminiAdvisor(api_key="secret")

    text = advisor.generate_lead_strategy(lead)

    assert text == "👤 BUYER PROFILE\n• Decisive owner"
    genai.GenerativeModel.assert_called_with("gemini-3-pro-preview")
    args, kwargs = genai.GenerativeModel.return_value.generate_content.call_args
    assert "Ana Gomez ($2,500)" in args[0]
    assert kwargs["generation_config"] == {"temperature": 0.7, "top_p": 0.95}


def test_summary_limits_output_tokens(genai, lead) -> None:
    _reply(genai, "Warm lead ready to close.")
    advisor = GeminiAdvisor(api_key="secret")

    assert advisor.summarize_lead(lead) == "Warm lead ready to close."
    args, kwargs = genai.GenerativeModel.return_value.generate_content.call_args
    assert "Status: Contacted" in args[0]
    assert "Wants a payment plan" in args[0]
    assert kwargs["generation_config"]["max_output_tokens"] == 100


def test_chat_analysis_sends_image_part(genai, lead) -> None:
    _reply(genai, "📌 QUICK SUMMARY")
    advisor = GeminiAdvisor(api_key="secret")
    data_url = "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode("ascii")

    assert advisor.analyze_chat_screenshot(data_url, lead) == "📌 QUICK SUMMARY"
    args, kwargs = genai.GenerativeModel.return_value.generate_content.call_args
    image_part, prompt = args[0]
    assert image_part == {"mime_type": "image/jpeg", "data": b"jpeg-bytes"}
    assert "Ana Gomez" in prompt
    assert kwargs["generation_config"] == {"temperature": 0.4}


def test_provider_errors_become_fallback_text(genai, lead) -> None:
    genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError("quota exceeded")
    advisor = GeminiAdvisor(api_key="secret")

    assert advisor.generate_lead_strategy(lead) == base.STRATEGY_FAILED
    assert advisor.summarize_lead(lead) == base.SUMMARY_FAILED
    assert advisor.analyze_chat_screenshot(b"png", lead) == base.CHAT_ANALYSIS_FAILED


def test_empty_replies_use_placeholder_text(genai, lead) -> None:
    _reply(genai, "")
    advisor = GeminiAdvisor(api_key="secret")

    assert advisor.generate_lead_strategy(lead) == base.STRATEGY_EMPTY
    assert advisor.summarize_lead(lead) == base.SUMMARY_EMPTY
    assert advisor.analyze_chat_screenshot(b"png", lead) == base.CHAT_ANALYSIS_EMPTY


def test_invalid_image_is_rejected_without_calling_the_model(genai, lead) -> None:
    advisor = GeminiAdvisor(api_key="secret")

    assert advisor.analyze_chat_screenshot("not base64!", lead) == base.CHAT_ANALYSIS_FAILED
    genai.GenerativeModel.assert_not_called()


def test_missing_api_key_disables_requests(genai, lead) -> None:
    advisor = GeminiAdvisor()

    assert advisor.enabled is False
    assert advisor.summarize_lead(lead) == base.SUMMARY_FAILED
    genai.configure.assert_not_called()
    genai.GenerativeModel.assert_not_called()


def test_decode_image_variants() -> None:
    raw = b"\x89PNG"
    encoded = base64.b64encode(raw).decode("ascii")

    assert decode_image(raw) == ("image/png", raw)
    assert decode_image(encoded) == ("image/png", raw)
    assert decode_image("data:image/webp;base64," + encoded) == ("image/webp", raw)


def test_static_advisor_records_calls(lead) -> None:
    advisor = StaticAdvisor(prefix="[demo] ")

    assert advisor.summarize_lead(lead) == "[demo] Ana Gomez: Contacted"
    advisor.generate_lead_strategy(lead)

    assert advisor.calls == [("summary", "L-1"), ("strategy", "L-1")]


def test_static_advisor_returns_fallback_for_invalid_image(lead) -> None:
    advisor = StaticAdvisor()

    assert advisor.analyze_chat_screenshot("not base64!", lead) == base.CHAT_ANALYSIS_FAILED
    assert advisor.calls == [("chat", lead.id)]
