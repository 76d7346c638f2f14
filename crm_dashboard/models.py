"""Lead record and the closed enumerations used across the dashboard."""

from __future__ import annotations

import dataclasses
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from .daterange import parse_timestamp

E = TypeVar("E", bound="WireEnum")

_ID_ALPHABET = string.ascii_lowercase + string.digits


class WireEnum(str, Enum):
    """String enum whose value is the representation stored remotely."""

    @classmethod
    def coerce(cls: Type[E], value: Any) -> E:
        """Return the member for a wire value or a member name."""

        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.lower() == member.name.lower():
                return member
        raise ValueError(f"{text!r} is not a valid {cls.__name__}")

    def __str__(self) -> str:
        return self.value


# --- Classification ---

class Qualification(WireEnum):
    LEVEL1 = "1"
    LEVEL2 = "2"
    LEVEL3 = "3"
    NOT_QUALIFIED = "NoCalif"


class LeadOrigin(WireEnum):
    SETTING = "Setting"
    DIRECT_BOOKING = "Agenda Directa"
    TIKTOK = "TikTok"
    REFERRAL = "Referral"
    INSTAGRAM = "Instagram"
    YOUTUBE = "YouTube"


class LeadStatus(WireEnum):
    NEW = "Nuevo"
    CONTACTED = "Contactado"
    CLOSED = "Cerrado"


# --- Tracking ---

class Confirmation(WireEnum):
    """Tri-state answer used for WhatsApp confirmation and attendance."""

    YES = "Si"
    NO = "No"
    PENDING = "Pendiente"


class FollowUp(WireEnum):
    YES = "Si"
    NO = "No"
    NOT_APPLICABLE = "N/A"


class PaymentMethod(WireEnum):
    CASH = "Contado"
    INSTALLMENTS = "Cuotas"
    NONE = "No"


_ENUM_FIELDS: Dict[str, Type[WireEnum]] = {
    "qualification": Qualification,
    "origin": LeadOrigin,
    "status": LeadStatus,
    "whatsapp_confirmed": Confirmation,
    "attended": Confirmation,
    "follow_up": FollowUp,
    "payment_method": PaymentMethod,
}
_MONEY_FIELDS = ("collected_amount", "revenue", "setter_commission", "closer_commission", "value")
_BOOL_FIELDS = ("offer_made", "second_call", "bought")
_TIMESTAMP_FIELDS = ("created_at", "call_date", "first_payment_date")
_TRUE_STRINGS = {"1", "true", "yes", "y", "si", "on"}


@dataclass(slots=True)
class Lead:
    """A prospect moving through the scheduling to close funnel."""

    id: str
    name: str
    created_at: Optional[datetime] = None

    # Contact / intake profile
    email: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    decision_maker: Optional[str] = None
    ad_spend: Optional[str] = None
    monthly_revenue: Optional[str] = None
    main_problem: Optional[str] = None

    # Classification
    qualification: Optional[Qualification] = None
    origin: Optional[LeadOrigin] = None
    status: LeadStatus = LeadStatus.NEW

    # Scheduling / tracking
    call_date: Optional[datetime] = None
    whatsapp_confirmed: Confirmation = Confirmation.PENDING
    attended: Confirmation = Confirmation.PENDING
    no_attend_reason: Optional[str] = None
    follow_up: FollowUp = FollowUp.NOT_APPLICABLE
    offer_made: bool = False
    second_call: bool = False

    # Financials
    bought: bool = False
    payment_method: PaymentMethod = PaymentMethod.NONE
    collected_amount: float = 0.0
    revenue: float = 0.0
    setter_commission: float = 0.0
    closer_commission: float = 0.0
    first_payment_date: Optional[datetime] = None

    # Personnel
    setter: Optional[str] = None
    closer: Optional[str] = None
    triager: Optional[str] = None

    # Notes / AI
    notes: str = ""
    chat_analysis: Optional[str] = None
    value: float = 0.0

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ValueError("Leads require a non-empty name.")

    @classmethod
    def from_record(cls, record: Mapping[str, Any], *, tz: Optional[tzinfo] = None) -> "Lead":
        """Build a lead from a store row, ignoring columns the model does not know."""

        known = {f.name for f in dataclasses.fields(cls)}
        values: Dict[str, Any] = {}
        for key, raw in record.items():
            if key not in known:
                continue
            values[key] = _coerce_field(key, raw, tz=tz)
        if not values.get("id"):
            raise ValueError("Lead records require an 'id'.")
        if not values.get("name"):
            raise ValueError(f"Lead record {values['id']!r} requires a non-empty name.")
        return cls(**values)

    def to_record(self) -> Dict[str, Any]:
        """Serialise the lead into the row shape used by the store."""

        record: Dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, WireEnum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            record[f.name] = value
        return record

    def with_changes(self, *, tz: Optional[tzinfo] = None, **changes: Any) -> "Lead":
        """Return a copy with ``changes`` applied, coercing raw form values."""

        coerced = {key: _coerce_field(key, value, tz=tz) for key, value in changes.items()}
        if "id" in coerced and coerced["id"] != self.id:
            raise ValueError("The id of an existing lead cannot be changed.")
        return dataclasses.replace(self, **coerced)


def _coerce_field(name: str, value: Any, *, tz: Optional[tzinfo] = None) -> Any:
    if name in _ENUM_FIELDS:
        if value is None or value == "":
            return None if name in {"qualification", "origin"} else _field_default(name)
        return _ENUM_FIELDS[name].coerce(value)
    if name in _MONEY_FIELDS:
        if value is None or value == "":
            return 0.0
        return float(value)
    if name in _BOOL_FIELDS:
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)
    if name in _TIMESTAMP_FIELDS:
        return parse_timestamp(value, tz=tz)
    if name == "notes":
        return "" if value is None else str(value)
    if name in {"id", "name"}:
        return "" if value is None else str(value).strip()
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _field_default(name: str) -> Any:
    return {f.name: f.default for f in dataclasses.fields(Lead)}[name]


def new_lead_id() -> str:
    """Return a temporary client-side id such as ``L-k3j9x0a2q``."""

    return "L-" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))


INTAKE_DEFAULTS: Dict[str, Any] = {
    "status": LeadStatus.NEW,
    "attended": Confirmation.PENDING,
    "whatsapp_confirmed": Confirmation.PENDING,
    "follow_up": FollowUp.NOT_APPLICABLE,
    "payment_method": PaymentMethod.NONE,
    "offer_made": False,
    "bought": False,
}


def lead_from_draft(
    draft: Mapping[str, Any],
    *,
    lead_id: str,
    created_at: datetime,
    tz: Optional[tzinfo] = None,
) -> Lead:
    """Create a new lead from intake form values."""

    record: Dict[str, Any] = dict(INTAKE_DEFAULTS)
    record.update({key: value for key, value in draft.items() if key not in {"id", "created_at"}})
    record["id"] = lead_id
    record["created_at"] = created_at
    return Lead.from_record(record, tz=tz)


__all__ = [
    "Confirmation",
    "FollowUp",
    "INTAKE_DEFAULTS",
    "Lead",
    "LeadOrigin",
    "LeadStatus",
    "PaymentMethod",
    "Qualification",
    "WireEnum",
    "lead_from_draft",
    "new_lead_id",
]
