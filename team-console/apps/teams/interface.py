from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .models import TeamCategory


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of a team operation."""
    id: Any
    company_id: Optional[Any]
    role: str

    @classmethod
    def from_user(cls, user) -> 'Actor':
        return cls(id=user.pk, company_id=user.company_id, role=user.role)


@dataclass(frozen=True)
class TeamSpec:
    """Payload for creating a team.

    `company_id` is only honoured for platform staff; tenant actors are
    pinned to their own company.
    """
    name: str
    owner_id: Any
    member_ids: Sequence[Any] = ()
    category: str = TeamCategory.STANDARD
    description: str = ''
    company_id: Optional[Any] = None
    is_active: bool = True


@dataclass(frozen=True)
class TeamPatch:
    """Partial update of a team. `None` leaves a field unchanged."""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    owner_id: Optional[Any] = None
    member_ids: Optional[Sequence[Any]] = None
    is_active: Optional[bool] = None
    company_id: Optional[Any] = None


@dataclass
class UpdatePlan:
    """Writes that a validated update resolves to."""
    fields: dict = field(default_factory=dict)
    add_member_ids: List[uuid.UUID] = field(default_factory=list)
    remove_member_ids: List[uuid.UUID] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.fields or self.add_member_ids or self.remove_member_ids)


def parse_id(value: Any) -> Optional[uuid.UUID]:
    """Return `value` as a UUID, or None when it is not a valid identifier."""
    if isinstance(value, uuid.UUID):
        return value
    if value is None:
        return None
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return None


def unique_ids(values: Optional[Iterable[Any]]) -> List[Any]:
    """De-duplicate ids while keeping the caller's order."""
    seen = set()
    result = []
    for value in values or ():
        key = parse_id(value) or value
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result


def split_ids(values: Iterable[Any]) -> Tuple[List[uuid.UUID], List[str]]:
    """Split raw ids into parsed UUIDs and the malformed leftovers."""
    valid, invalid = [], []
    for value in values:
        parsed = parse_id(value)
        if parsed is None:
            invalid.append(str(value))
        else:
            valid.append(parsed)
    return valid, invalid
