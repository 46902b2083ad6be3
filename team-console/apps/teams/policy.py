"""
Role and category policy for team operations.

Every rule that depends on a role, a team category or an operation lives
here. Each lookup is exhaustive over its enumeration. An unknown category or
operation is a programming error and raises ValueError; an actor carrying an
unknown role is refused with Forbidden. Nothing falls through to a default.
"""

from enum import Enum
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from apps.tenancy.models import Role

from .exceptions import Forbidden, InvalidState
from .interface import Actor, parse_id
from .models import TeamCategory, TeamOperation


class RoleScope(str, Enum):
    PLATFORM = 'platform'
    COMPANY = 'company'


class OwnerChangePolicy(str, Enum):
    """What happens when the new owner is currently a regular member."""

    PROMOTE = 'promote'
    REJECT = 'reject'


_ROLE_SCOPES = {
    Role.PLATFORM_ADMIN: RoleScope.PLATFORM,
    Role.PLATFORM_MANAGER: RoleScope.PLATFORM,
    Role.PLATFORM_EMPLOYEE: RoleScope.PLATFORM,
    Role.COMPANY_ADMIN: RoleScope.COMPANY,
    Role.COMPANY_MANAGER: RoleScope.COMPANY,
    Role.COMPANY_MEMBER: RoleScope.COMPANY,
}

_QUALIFICATION_REQUIRED = {
    TeamCategory.STANDARD: False,
    TeamCategory.REGULATED: True,
}

# Operations that act on an existing team and are open to its managers
_TEAM_MANAGEMENT_OPERATIONS = frozenset({
    TeamOperation.UPDATE,
    TeamOperation.DELETE,
    TeamOperation.ADD_MEMBERS,
    TeamOperation.REMOVE_MEMBER,
    TeamOperation.REMOVE_MEMBERS,
    TeamOperation.REPLACE_MEMBERS,
    TeamOperation.CHANGE_OWNER,
})

if set(Role) - set(_ROLE_SCOPES):
    raise ImproperlyConfigured(f"Roles without a scope: {sorted(set(Role) - set(_ROLE_SCOPES))}")
if set(TeamCategory) - set(_QUALIFICATION_REQUIRED):
    raise ImproperlyConfigured("Every team category needs a qualification rule")
if set(TeamOperation) - _TEAM_MANAGEMENT_OPERATIONS != {TeamOperation.CREATE}:
    raise ImproperlyConfigured("Every team operation needs a permission rule")


def role_scope(role: str) -> RoleScope:
    """Scope of `role`. An actor carrying a role outside Role is refused."""
    try:
        return _ROLE_SCOPES[Role(role)]
    except ValueError:
        raise Forbidden(f"Unknown role: {role!r}", details={'role': str(role)}) from None


def is_platform_staff(actor: Actor) -> bool:
    return role_scope(actor.role) is RoleScope.PLATFORM


def requires_qualified_member(category: str) -> bool:
    """True when teams of `category` must keep a qualified individual."""
    try:
        return _QUALIFICATION_REQUIRED[TeamCategory(category)]
    except ValueError:
        raise ValueError(f"Unknown team category: {category!r}") from None


def is_known_category(category: Any) -> bool:
    return category in TeamCategory.values


def visible_company_id(actor: Actor):
    """
    Company the actor's reads and writes are restricted to.

    Returns None for platform staff, who see every company.
    """
    if is_platform_staff(actor):
        return None
    company_id = parse_id(actor.company_id)
    if company_id is None:
        raise Forbidden("Actor is not affiliated with a company")
    return company_id


def effective_company_id(actor: Actor, requested_company_id: Optional[Any]):
    """
    Company a new team is created in.

    Tenant actors are pinned to their own company whatever the payload says.
    Platform staff must name the target company explicitly.
    """
    scope = visible_company_id(actor)
    if scope is not None:
        return scope
    company_id = parse_id(requested_company_id)
    if company_id is None:
        raise InvalidState(
            "A company must be specified when platform staff create a team",
            details={'company_id': requested_company_id}
        )
    return company_id


def is_company_administrator(actor: Actor, company) -> bool:
    if company.administrator_id is not None and company.administrator_id == parse_id(actor.id):
        return True
    return (
        Role(actor.role) == Role.COMPANY_ADMIN
        and parse_id(actor.company_id) == company.id
    )


def can_create_team(actor: Actor, company_id) -> bool:
    if is_platform_staff(actor):
        return True
    return parse_id(actor.company_id) == company_id


def can_manage_team(actor: Actor, team, company, operation: str) -> bool:
    """
    Whether `actor` may run `operation` against an existing `team`.

    Allowed: the team owner, the company administrator, platform staff.
    """
    operation = TeamOperation(operation)
    if operation == TeamOperation.CREATE:
        raise ValueError("Team creation is authorised with can_create_team()")
    if operation not in _TEAM_MANAGEMENT_OPERATIONS:
        raise ValueError(f"No permission rule for operation: {operation!r}")

    if is_platform_staff(actor):
        return True
    if team.owner_id == parse_id(actor.id):
        return True
    return is_company_administrator(actor, company)


def owner_change_policy() -> OwnerChangePolicy:
    value = getattr(settings, 'TEAMS_OWNER_CHANGE_POLICY', OwnerChangePolicy.PROMOTE.value)
    try:
        return OwnerChangePolicy(value)
    except ValueError:
        raise ImproperlyConfigured(
            f"TEAMS_OWNER_CHANGE_POLICY must be one of "
            f"{[p.value for p in OwnerChangePolicy]}, got {value!r}"
        ) from None
