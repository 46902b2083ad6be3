"""
Team composition validators.

Validators never write. They read through the repository and the directory
using the caller's unit of work, and raise a TeamServiceError subclass on
the first violated rule. Returning normally means the operation may proceed.
"""

from typing import Any, Dict, Iterable, List, Optional

from .directory import Directory, directory as default_directory
from .exceptions import Conflict, Forbidden, InvalidState, NotFound
from .interface import Actor, TeamPatch, UpdatePlan, parse_id, unique_ids
from .models import Team
from .policy import OwnerChangePolicy
from . import policy
from .repositories import TeamRepository, team_repository as default_repository


NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

REGULATED_TEAM_MESSAGE = (
    "Regulated teams must include at least one qualified individual "
    "as either the owner or a team member"
)
REGULATED_REMOVAL_MESSAGE = (
    "Cannot remove all qualified members from a regulated team. At least one "
    "qualified individual must remain as either the owner or a team member"
)


class _CompositionValidator:
    """Shared lookups for the team and membership validators."""

    def __init__(
        self,
        directory: Optional[Directory] = None,
        repository: Optional[TeamRepository] = None
    ):
        self.directory = directory or default_directory
        self.repository = repository or default_repository

    def _company_users(self, uow, user_ids: Iterable[Any], company_id) -> Dict:
        """Resolve users and require all of them to belong to `company_id`."""
        users = self.directory.get_users(user_ids, using=uow.using)
        outsiders = [str(pk) for pk, user in users.items() if user.company_id != company_id]
        if outsiders:
            raise InvalidState(
                "All team members must belong to the same company as the team. "
                f"Invalid members: {', '.join(outsiders)}",
                details={'user_ids': outsiders}
            )
        return users

    def _require_qualified(self, category: str, owner, members: Iterable, message: str):
        if not policy.requires_qualified_member(category):
            return
        if owner.is_qualified or any(member.is_qualified for member in members):
            return
        raise InvalidState(message, details={'category': category})

    def _validate_name(self, uow, company_id, name: Any, exclude_team_id=None):
        if not isinstance(name, str) or not name.strip():
            raise InvalidState("Team name is required")
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            raise InvalidState(
                f"Team name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
                details={'name': name}
            )
        if self.repository.find_team_by_name(uow, company_id, name, exclude_team_id=exclude_team_id):
            raise Conflict(
                f"A team named '{name}' already exists in this company",
                details={'name': name}
            )

    def _validate_category(self, category: Any):
        if not policy.is_known_category(category):
            raise InvalidState(f"Unknown team category: {category!r}", details={'category': category})

    def _owner(self, uow, team: Team):
        return self.directory.get_user(team.owner_id, using=uow.using)


class TeamValidator(_CompositionValidator):
    """Validates team creation, updates and ownership changes."""

    def validate_creation(
        self,
        uow,
        name: str,
        company_id,
        owner_id: Any,
        member_ids: Iterable[Any] = (),
        category: str = 'STANDARD'
    ):
        """
        Check a new team against every composition rule.

        Rules are checked in order: company, name, owner, members, owner
        overlap, regulated qualification.
        """
        if not self.directory.company_exists(company_id, using=uow.using):
            raise NotFound(f"Company with ID '{company_id}' not found", details={'company_id': str(company_id)})

        self._validate_category(category)
        self._validate_name(uow, company_id, name)

        owner = self.directory.get_user(owner_id, using=uow.using)
        if owner.company_id != company_id:
            raise InvalidState(
                "Team owner must belong to the same company as the team",
                details={'owner_id': str(owner.pk)}
            )

        member_ids = unique_ids(member_ids)
        members = self._company_users(uow, member_ids, company_id) if member_ids else {}

        if owner.pk in members:
            raise InvalidState(
                "Team owner cannot also be listed as a team member",
                details={'owner_id': str(owner.pk)}
            )

        self._require_qualified(category, owner, members.values(), REGULATED_TEAM_MESSAGE)

    def validate_update(
        self,
        uow,
        team: Team,
        patch: TeamPatch,
        owner_change_policy: OwnerChangePolicy = OwnerChangePolicy.PROMOTE
    ) -> UpdatePlan:
        """
        Validate a partial update and resolve it into concrete writes.

        Rules are evaluated against the team as it would look after the
        update. Fields equal to their current value are not written.
        """
        if patch.company_id is not None and parse_id(patch.company_id) != team.company_id:
            raise InvalidState(
                "A team cannot be moved to another company",
                details={'company_id': str(patch.company_id)}
            )

        plan = UpdatePlan()

        if patch.name is not None and patch.name != team.name:
            self._validate_name(uow, team.company_id, patch.name, exclude_team_id=team.pk)
            plan.fields['name'] = patch.name

        if patch.description is not None and patch.description != team.description:
            plan.fields['description'] = patch.description

        if patch.category is not None:
            self._validate_category(patch.category)
            if patch.category != team.category:
                plan.fields['category'] = patch.category

        if patch.is_active is not None and patch.is_active != team.is_active:
            plan.fields['is_active'] = patch.is_active

        owner = self._owner(uow, team)
        owner_changed = False
        if patch.owner_id is not None and parse_id(patch.owner_id) != team.owner_id:
            owner = self.directory.get_user(patch.owner_id, using=uow.using)
            if owner.company_id != team.company_id:
                raise InvalidState(
                    "Team owner must belong to the same company as the team",
                    details={'owner_id': str(owner.pk)}
                )
            plan.fields['owner_id'] = owner.pk
            owner_changed = True

        current_ids = self.repository.member_ids(uow, team)

        if patch.member_ids is not None:
            requested = unique_ids(patch.member_ids)
            members = self._company_users(uow, requested, team.company_id) if requested else {}
            if owner.pk in members:
                raise InvalidState(
                    "Team owner cannot also be listed as a team member",
                    details={'owner_id': str(owner.pk)}
                )
            plan.add_member_ids = [pk for pk in members if pk not in current_ids]
            plan.remove_member_ids = [pk for pk in current_ids if pk not in members]
            final_members = list(members.values())
        else:
            if owner_changed and owner.pk in current_ids:
                if owner_change_policy is OwnerChangePolicy.REJECT:
                    raise InvalidState(
                        "The new owner is currently a team member. "
                        "Remove the membership before making them owner",
                        details={'owner_id': str(owner.pk)}
                    )
                plan.remove_member_ids = [owner.pk]
            remaining = [pk for pk in current_ids if pk != owner.pk]
            final_members = (
                list(self.directory.get_users(remaining, using=uow.using).values())
                if remaining else []
            )

        category = plan.fields.get('category', team.category)
        self._require_qualified(category, owner, final_members, REGULATED_TEAM_MESSAGE)

        return plan

    def validate_owner_change(
        self,
        uow,
        team: Team,
        new_owner_id: Any,
        allow_member_promotion: bool = False
    ) -> bool:
        """
        Check that `new_owner_id` may take over `team`.

        Returns True when the new owner currently holds a membership that
        the caller has to remove in the same transaction.
        """
        new_owner = self.directory.get_user(new_owner_id, using=uow.using)

        if new_owner.company_id != team.company_id:
            raise InvalidState(
                "New owner must belong to the same company as the team",
                details={'owner_id': str(new_owner.pk)}
            )

        if new_owner.pk == team.owner_id:
            raise InvalidState(
                "User is already the owner of this team",
                details={'owner_id': str(new_owner.pk)}
            )

        current_ids = self.repository.member_ids(uow, team)
        is_member = new_owner.pk in current_ids
        if is_member and not allow_member_promotion:
            raise InvalidState(
                "The new owner is currently a team member. "
                "Remove the membership before making them owner",
                details={'owner_id': str(new_owner.pk)}
            )

        if policy.requires_qualified_member(team.category):
            remaining = [pk for pk in current_ids if pk != new_owner.pk]
            members = self.directory.get_users(remaining, using=uow.using).values() if remaining else []
            self._require_qualified(team.category, new_owner, members, REGULATED_TEAM_MESSAGE)

        return is_member


class MembershipValidator(_CompositionValidator):
    """Validates membership changes and operation permissions."""

    def validate_join(self, uow, user_id: Any, team: Team):
        user = self.directory.get_user(user_id, using=uow.using)

        if user.company_id != team.company_id:
            raise InvalidState(
                "User must belong to the same company as the team",
                details={'user_id': str(user.pk)}
            )

        if self.repository.has_membership(uow, team, user.pk):
            raise Conflict(
                "User is already a member of this team",
                details={'user_id': str(user.pk)}
            )

        if user.pk == team.owner_id:
            raise InvalidState(
                "Team owner cannot be added as a regular team member",
                details={'user_id': str(user.pk)}
            )

    def validate_bulk_join(self, uow, user_ids: Iterable[Any], team: Team) -> List:
        """
        Validate a batch of new members.

        Users who already belong to the team are skipped. Returns the ids
        that still have to be inserted; Conflict when none remain.
        """
        requested = unique_ids(user_ids)
        if not requested:
            raise InvalidState("At least one user must be specified")

        users = self._company_users(uow, requested, team.company_id)

        if team.owner_id in users:
            raise InvalidState(
                "Team owner cannot be added as a regular team member",
                details={'user_id': str(team.owner_id)}
            )

        existing = self.repository.member_ids(uow, team, users.keys())
        new_ids = [pk for pk in users if pk not in existing]
        if not new_ids:
            raise Conflict(
                "All specified users are already members of this team",
                details={'user_ids': [str(pk) for pk in users]}
            )
        return new_ids

    def validate_leave(self, uow, user_id: Any, team: Team):
        pk = parse_id(user_id)

        if pk is not None and pk == team.owner_id:
            raise InvalidState(
                "Cannot remove the team owner. Transfer ownership first",
                details={'user_id': str(pk)}
            )

        if pk is None or not self.repository.has_membership(uow, team, pk):
            raise InvalidState(
                "User is not a member of this team",
                details={'user_id': str(user_id)}
            )

        self._check_remaining_after_removal(uow, team, {pk})

    def validate_bulk_leave(self, uow, user_ids: Iterable[Any], team: Team) -> List:
        """Validate removing several members at once. Returns the parsed ids."""
        requested = unique_ids(user_ids)
        if not requested:
            raise InvalidState("At least one user must be specified")

        parsed = [parse_id(value) for value in requested]
        if team.owner_id in parsed:
            raise InvalidState(
                "Cannot remove the team owner. Transfer ownership first",
                details={'user_id': str(team.owner_id)}
            )

        current_ids = self.repository.member_ids(uow, team)
        not_members = [str(raw) for raw, pk in zip(requested, parsed) if pk not in current_ids]
        if not_members:
            raise InvalidState(
                f"Users are not members of this team: {', '.join(not_members)}",
                details={'user_ids': not_members}
            )

        self._check_remaining_after_removal(uow, team, set(parsed), current_ids)
        return parsed

    def validate_replace(self, uow, team: Team, new_member_ids: Iterable[Any]) -> List:
        """Validate a full replacement member list. Returns the parsed ids."""
        requested = unique_ids(new_member_ids)
        users = self._company_users(uow, requested, team.company_id) if requested else {}

        if team.owner_id in users:
            raise InvalidState(
                "Team owner cannot also be listed as a team member",
                details={'owner_id': str(team.owner_id)}
            )

        if policy.requires_qualified_member(team.category):
            owner = self._owner(uow, team)
            if not users and not owner.is_qualified:
                raise InvalidState(
                    "Regulated teams must have at least one qualified individual. "
                    "Cannot have an empty member list when the owner is not qualified",
                    details={'category': team.category}
                )
            self._require_qualified(team.category, owner, users.values(), REGULATED_TEAM_MESSAGE)

        return list(users)

    def validate_operation_permission(self, uow, actor: Actor, team: Team, operation: str):
        company = self.directory.get_company(team.company_id, using=uow.using)
        if not policy.can_manage_team(actor, team, company, operation):
            raise Forbidden(
                "Insufficient permissions to modify this team. Only the team owner, "
                "the company administrator or platform staff can do this",
                details={'operation': str(operation), 'team_id': str(team.pk)}
            )

    def _check_remaining_after_removal(self, uow, team: Team, removed: set, current_ids=None):
        if not policy.requires_qualified_member(team.category):
            return
        if current_ids is None:
            current_ids = self.repository.member_ids(uow, team)
        remaining = [pk for pk in current_ids if pk not in removed]
        owner = self._owner(uow, team)
        members = self.directory.get_users(remaining, using=uow.using).values() if remaining else []
        self._require_qualified(team.category, owner, members, REGULATED_REMOVAL_MESSAGE)
