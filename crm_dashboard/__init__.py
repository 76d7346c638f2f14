"""Top-level package for the sales pipeline CRM dashboard."""

from . import models  # noqa: F401
from .daterange import DateRange, RangeKind
from .metrics import DashboardMetrics, compute_metrics, filter_leads
from .models import (
    Confirmation,
    FollowUp,
    Lead,
    LeadOrigin,
    LeadStatus,
    PaymentMethod,
    Qualification,
)

__all__ = [
    "Confirmation",
    "DashboardMetrics",
    "DateRange",
    "FollowUp",
    "Lead",
    "LeadOrigin",
    "LeadStatus",
    "PaymentMethod",
    "Qualification",
    "RangeKind",
    "compute_metrics",
    "filter_leads",
    "advisory",
    "data",
    "stores",
    "ui",
]
