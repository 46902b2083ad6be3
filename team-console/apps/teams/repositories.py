"""
Repository pattern for team data access.

Every method takes the active UnitOfWork so it runs on the transaction's
connection. Nothing here validates; callers are expected to have run the
validators first.
"""

from typing import Any, Iterable, List, Optional, Set

from django.db.models import Count, QuerySet

from apps.tenancy.models import Company

from .interface import parse_id, split_ids
from .logging_config import get_logger
from .models import Membership, Team

logger = get_logger(__name__)


class TeamRepository:
    """Repository for Team and Membership data access."""

    # Teams

    def find_team(
        self,
        uow,
        team_id: Any,
        company_id=None,
        for_update: bool = False
    ) -> Optional[Team]:
        """
        Get a team by id, optionally restricted to a company.

        With `for_update` the team row is locked until the unit of work ends.
        Related rows are not joined then, so only the team row is locked.
        """
        pk = parse_id(team_id)
        if pk is None:
            return None

        queryset = Team.objects.using(uow.using).filter(pk=pk)
        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)

        if for_update:
            queryset = queryset.select_for_update()
        else:
            queryset = queryset.select_related('company', 'owner')

        return queryset.first()

    def find_team_by_name(self, uow, company_id, name: str, exclude_team_id=None) -> Optional[Team]:
        queryset = Team.objects.using(uow.using).filter(company_id=company_id, name=name)
        if exclude_team_id is not None:
            queryset = queryset.exclude(pk=exclude_team_id)
        return queryset.first()

    def list_teams(self, uow, company_id=None, include_inactive: bool = True) -> QuerySet:
        """Teams with owner, company and member totals, newest first."""
        queryset = Team.objects.using(uow.using).select_related('company', 'owner')

        if company_id is not None:
            queryset = queryset.filter(company_id=company_id)

        if not include_inactive:
            queryset = queryset.filter(is_active=True)

        return queryset.annotate(member_total=Count('memberships')).order_by('-created_at', 'name')

    def create_team(self, uow, **fields) -> Team:
        team = Team.objects.using(uow.using).create(**fields)
        logger.debug('Team row created', team_id=str(team.pk), company_id=str(team.company_id))
        return team

    def update_team(self, uow, team: Team, fields: dict) -> Team:
        for name, value in fields.items():
            setattr(team, name, value)
        team.save(using=uow.using, update_fields=[*fields, 'updated_at'])
        return team

    def delete_team(self, uow, team: Team):
        team_id = team.pk
        team.delete(using=uow.using)
        logger.debug('Team row deleted', team_id=str(team_id))

    def lock_company(self, uow, company_id) -> Optional[Company]:
        """Lock the company row so concurrent team creation serialises."""
        return Company.objects.using(uow.using).select_for_update().filter(pk=company_id).first()

    # Memberships

    def member_ids(self, uow, team: Team, user_ids: Optional[Iterable[Any]] = None) -> Set:
        """Ids of the team's members, optionally limited to `user_ids`."""
        queryset = Membership.objects.using(uow.using).filter(team=team)
        if user_ids is not None:
            valid, _ = split_ids(user_ids)
            queryset = queryset.filter(user_id__in=valid)
        return set(queryset.values_list('user_id', flat=True))

    def has_membership(self, uow, team: Team, user_id) -> bool:
        pk = parse_id(user_id)
        if pk is None:
            return False
        return Membership.objects.using(uow.using).filter(team=team, user_id=pk).exists()

    def find_memberships(self, uow, team: Team) -> List[Membership]:
        return list(
            Membership.objects.using(uow.using)
            .filter(team=team)
            .select_related('user', 'added_by')
            .order_by('added_at', 'user__username')
        )

    def create_memberships(self, uow, team: Team, user_ids: Iterable, added_by_id=None) -> List[Membership]:
        memberships = [
            Membership(team=team, user_id=user_id, added_by_id=added_by_id)
            for user_id in user_ids
        ]
        if not memberships:
            return []
        return Membership.objects.using(uow.using).bulk_create(memberships)

    def delete_memberships(self, uow, team: Team, user_ids: Optional[Iterable] = None) -> int:
        """Delete the given memberships of `team`, or all of them."""
        queryset = Membership.objects.using(uow.using).filter(team=team)
        if user_ids is not None:
            valid, _ = split_ids(user_ids)
            queryset = queryset.filter(user_id__in=valid)
        deleted, _ = queryset.delete()
        return deleted


team_repository = TeamRepository()
