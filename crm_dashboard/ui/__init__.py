"""User interface components for the sales pipeline dashboard.

The tkinter window lives in :mod:`crm_dashboard.ui.app` and is imported on
demand so the presentation helpers stay usable without a display.
"""

from .logic import format_money, format_percent, lead_row, report_lines, summary_cards  # noqa: F401

__all__ = ["format_money", "format_percent", "lead_row", "report_lines", "summary_cards"]
