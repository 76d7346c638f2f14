"""Prompt templates sent to the generative model."""
from __future__ import annotations

from ..models import Lead

CHAT_ANALYSIS_TEMPLATE = """Analyse this chat screenshot for the prospect {name}.
PROVIDE A CLEAN, STRUCTURED REPORT USING EXACTLY THIS FORMAT:

📌 QUICK SUMMARY
• [Short sentence on the current context]

💡 PAIN POINTS
• [Point 1]
• [Point 2]

🎯 INTEREST LEVEL
• [Low/Medium/High] - [Short reason]

🚀 ACTIONS FOR THE CALL
• [Concrete action 1]
• [Concrete action 2]
• [Concrete action 3]

IMPORTANT: Use only bullet points (•), no long paragraphs. Leave a blank line between sections. Be extremely concise."""

STRATEGY_TEMPLATE = """Act as a Senior Sales Consultant.
Generate a closing strategy for: {name} (${value:,.0f}).

REQUIRED FORMAT:

👤 BUYER PROFILE
• [One-sentence description]

🛠 NEXT STEPS
• [Step 1]
• [Step 2]
• [Step 3]

📞 SUGGESTED SCRIPT
"[Write a short, punchy script here]"

Keep the bullet point format (•) and avoid dense blocks of text."""

SUMMARY_TEMPLATE = """Briefly analyse this CRM lead in a single professional, direct sentence:
Name: {name}
Status: {status}
Notes: {notes}
Estimated value: ${value:,.0f}"""


def chat_analysis_prompt(lead: Lead) -> str:
    return CHAT_ANALYSIS_TEMPLATE.format(name=lead.name)


def strategy_prompt(lead: Lead) -> str:
    return STRATEGY_TEMPLATE.format(name=lead.name, value=lead.value or 0.0)


def summary_prompt(lead: Lead) -> str:
    return SUMMARY_TEMPLATE.format(
        name=lead.name,
        status=lead.status.name.title(),
        notes=lead.notes or "No notes",
        value=lead.value or 0.0,
    )
