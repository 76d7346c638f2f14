"""Resolve free-text setter/closer names onto stable staff members."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

UNASSIGNED_LABEL = "Unassigned"


@dataclass(frozen=True)
class StaffMember:
    """A salesperson referenced by a normalised key and a display name."""

    key: str
    display_name: str

    @property
    def initials(self) -> str:
        return self.display_name[:2].upper()


UNASSIGNED = StaffMember(key="", display_name=UNASSIGNED_LABEL)


def _normalise_name(value: str) -> str:
    return " ".join(value.split()).casefold()


_UNASSIGNED_KEY = _normalise_name(UNASSIGNED_LABEL)


class StaffDirectory:
    """Maps name variants to one member so typos do not split aggregates.

    ``aliases`` maps a variant (``"juan p"``) to its canonical display name
    (``"Juan Perez"``). Names without an alias are grouped case-insensitively
    with collapsed whitespace. Resolution never mutates the directory: only
    alias targets are stored, other members are built per call.
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None) -> None:
        self._aliases: Dict[str, str] = {}
        self._members: Dict[str, StaffMember] = {}
        for variant, canonical in (aliases or {}).items():
            canonical_name = " ".join(str(canonical).split())
            if not canonical_name:
                continue
            key = _normalise_name(canonical_name)
            member = self._members.setdefault(key, StaffMember(key=key, display_name=canonical_name))
            self._aliases[_normalise_name(str(variant))] = member.key

    def resolve(self, name: Optional[str]) -> StaffMember:
        """Return the member for ``name``; blank names map to :data:`UNASSIGNED`."""

        if name is None or not str(name).strip():
            return UNASSIGNED
        key = _normalise_name(str(name))
        aliased = self._aliases.get(key)
        if aliased is not None:
            return self._members[aliased]
        if key == _UNASSIGNED_KEY:
            return UNASSIGNED
        member = self._members.get(key)
        if member is not None:
            return member
        return StaffMember(key=key, display_name=" ".join(str(name).split()))

    def members(self) -> list[StaffMember]:
        """Configured members, i.e. the canonical names aliases point to."""

        return sorted(self._members.values(), key=lambda member: member.key)


__all__ = ["StaffDirectory", "StaffMember", "UNASSIGNED", "UNASSIGNED_LABEL"]
