"""
Service layer for team composition.

Every mutating operation runs in one UnitOfWork: lock, validate, write,
commit, then hand one audit event to the configured sink. Business errors
from the validators propagate unchanged after the rollback. Database
failures are mapped to Conflict (unique constraints) or Internal.
"""

import random
import time
from functools import partial
from typing import Any, Callable, Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.paginator import Page, Paginator
from django.db import DatabaseError, IntegrityError, OperationalError
from django.utils import timezone

from . import policy
from .audit import AuditEvent, AuditSink, get_audit_sink
from .directory import Directory, directory as default_directory
from .exceptions import Conflict, Forbidden, Internal, InvalidState, NotFound
from .interface import Actor, TeamPatch, TeamSpec, parse_id, unique_ids
from .logging_config import CorrelationIDManager, get_logger, log_operation_context
from .models import Membership, Team, TeamOperation
from .repositories import TeamRepository, team_repository
from .unit_of_work import UnitOfWork
from .validators import MembershipValidator, TeamValidator

logger = get_logger(__name__)


_TEAM_NAME_CONSTRAINT_MARKERS = ('teams_unique_name_per_company', 'teams.company_id, teams.name')
_MEMBERSHIP_CONSTRAINT_MARKERS = (
    'team_memberships_unique_pair',
    'team_memberships.team_id, team_memberships.user_id',
)


def translate_integrity_error(exc: IntegrityError):
    """Map a unique constraint violation to Conflict; anything else to Internal."""
    message = str(exc)
    if any(marker in message for marker in _TEAM_NAME_CONSTRAINT_MARKERS):
        return Conflict("A team with this name already exists in this company")
    if any(marker in message for marker in _MEMBERSHIP_CONSTRAINT_MARKERS):
        return Conflict("User is already a member of this team")
    return Internal(details={'error': type(exc).__name__})


_CONTENTION_MARKERS = (
    'database is locked',
    'database table is locked',
    'deadlock detected',
    'could not serialize access',
)


def is_contention_error(exc: DatabaseError) -> bool:
    """True for lock and serialization failures that a fresh attempt can clear."""
    return isinstance(exc, OperationalError) and any(marker in str(exc) for marker in _CONTENTION_MARKERS)


class TeamOrchestrator:
    """Transactional entry point for every team operation."""

    def __init__(
        self,
        repository: Optional[TeamRepository] = None,
        directory: Optional[Directory] = None,
        team_validator: Optional[TeamValidator] = None,
        membership_validator: Optional[MembershipValidator] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.repository = repository or team_repository
        self.directory = directory or default_directory
        self.team_validator = team_validator or TeamValidator(self.directory, self.repository)
        self.membership_validator = membership_validator or MembershipValidator(
            self.directory, self.repository
        )
        self._audit_sink = audit_sink

    @property
    def audit_sink(self) -> AuditSink:
        return self._audit_sink or get_audit_sink()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, spec: TeamSpec, actor: Actor) -> Team:
        """
        Create a team with its initial members.

        Tenant actors always create in their own company; platform staff
        must name the company in `spec.company_id`.
        """
        def work(uow):
            company_id = policy.effective_company_id(actor, spec.company_id)
            if not policy.can_create_team(actor, company_id):
                raise Forbidden("Actor may not create teams in this company")

            self.repository.lock_company(uow, company_id)

            member_ids = unique_ids(spec.member_ids)
            self.team_validator.validate_creation(
                uow, spec.name, company_id, spec.owner_id, member_ids, spec.category
            )

            team = self.repository.create_team(
                uow,
                company_id=company_id,
                name=spec.name,
                description=spec.description or '',
                category=spec.category,
                owner_id=parse_id(spec.owner_id),
                is_active=spec.is_active,
                created_by_id=parse_id(actor.id),
            )
            parsed_members = [parse_id(value) for value in member_ids]
            self.repository.create_memberships(uow, team, parsed_members, added_by_id=parse_id(actor.id))

            event = self._event(
                TeamOperation.CREATE, team, actor, [team.owner_id, *parsed_members],
                name=team.name, category=team.category
            )
            return team, event

        return self._execute(TeamOperation.CREATE, actor, work, team_name=spec.name)

    def update(self, team_id: Any, patch: TeamPatch, actor: Actor) -> Team:
        """Apply a partial update. A patch that changes nothing writes nothing."""
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(uow, actor, team, TeamOperation.UPDATE)

            previous_owner_id = team.owner_id
            plan = self.team_validator.validate_update(uow, team, patch, policy.owner_change_policy())
            if not plan.has_changes:
                return team, None

            if plan.fields:
                self.repository.update_team(uow, team, plan.fields)
            if plan.remove_member_ids:
                self.repository.delete_memberships(uow, team, plan.remove_member_ids)
            if plan.add_member_ids:
                self.repository.create_memberships(
                    uow, team, plan.add_member_ids, added_by_id=parse_id(actor.id)
                )

            affected = [*plan.add_member_ids, *plan.remove_member_ids]
            if team.owner_id != previous_owner_id:
                affected = [previous_owner_id, team.owner_id, *affected]
            event = self._event(
                TeamOperation.UPDATE, team, actor, affected,
                fields=sorted(plan.fields)
            )
            return team, event

        return self._execute(TeamOperation.UPDATE, actor, work, team_id=str(team_id))

    def remove(self, team_id: Any, actor: Actor) -> None:
        """Delete a team and all of its memberships."""
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(uow, actor, team, TeamOperation.DELETE)

            member_ids = self.repository.member_ids(uow, team)
            event = self._event(
                TeamOperation.DELETE, team, actor, [team.owner_id, *member_ids],
                name=team.name
            )
            self.repository.delete_memberships(uow, team)
            self.repository.delete_team(uow, team)
            return None, event

        return self._execute(TeamOperation.DELETE, actor, work, team_id=str(team_id))

    def add_members(self, team_id: Any, user_ids: Iterable[Any], actor: Actor) -> Team:
        """Add users to a team, skipping those who already belong to it."""
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(
                uow, actor, team, TeamOperation.ADD_MEMBERS
            )
            new_ids = self.membership_validator.validate_bulk_join(uow, user_ids, team)
            self.repository.create_memberships(uow, team, new_ids, added_by_id=parse_id(actor.id))
            return team, self._event(TeamOperation.ADD_MEMBERS, team, actor, new_ids)

        return self._execute(TeamOperation.ADD_MEMBERS, actor, work, team_id=str(team_id))

    def remove_member(self, team_id: Any, user_id: Any, actor: Actor) -> Team:
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(
                uow, actor, team, TeamOperation.REMOVE_MEMBER
            )
            self.membership_validator.validate_leave(uow, user_id, team)
            pk = parse_id(user_id)
            self.repository.delete_memberships(uow, team, [pk])
            return team, self._event(TeamOperation.REMOVE_MEMBER, team, actor, [pk])

        return self._execute(
            TeamOperation.REMOVE_MEMBER, actor, work, team_id=str(team_id), user_id=str(user_id)
        )

    def remove_members(self, team_id: Any, user_ids: Iterable[Any], actor: Actor) -> Team:
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(
                uow, actor, team, TeamOperation.REMOVE_MEMBERS
            )
            removed = self.membership_validator.validate_bulk_leave(uow, user_ids, team)
            self.repository.delete_memberships(uow, team, removed)
            return team, self._event(TeamOperation.REMOVE_MEMBERS, team, actor, removed)

        return self._execute(TeamOperation.REMOVE_MEMBERS, actor, work, team_id=str(team_id))

    def replace_members(self, team_id: Any, new_user_ids: Iterable[Any], actor: Actor) -> Team:
        """Replace the whole member list. An empty list clears it."""
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(
                uow, actor, team, TeamOperation.REPLACE_MEMBERS
            )
            new_ids = self.membership_validator.validate_replace(uow, team, new_user_ids)

            previous_ids = self.repository.member_ids(uow, team)
            self.repository.delete_memberships(uow, team)
            self.repository.create_memberships(uow, team, new_ids, added_by_id=parse_id(actor.id))

            affected = [*previous_ids, *(pk for pk in new_ids if pk not in previous_ids)]
            return team, self._event(TeamOperation.REPLACE_MEMBERS, team, actor, affected)

        return self._execute(TeamOperation.REPLACE_MEMBERS, actor, work, team_id=str(team_id))

    def change_owner(self, team_id: Any, new_owner_id: Any, actor: Actor) -> Team:
        """
        Hand the team over to `new_owner_id`.

        Under the `promote` policy a new owner who is currently a member
        loses that membership in the same transaction.
        """
        def work(uow):
            team = self._lock_team(uow, team_id, actor)
            self.membership_validator.validate_operation_permission(
                uow, actor, team, TeamOperation.CHANGE_OWNER
            )
            promote = policy.owner_change_policy() is policy.OwnerChangePolicy.PROMOTE
            was_member = self.team_validator.validate_owner_change(
                uow, team, new_owner_id, allow_member_promotion=promote
            )

            previous_owner_id = team.owner_id
            new_owner_pk = parse_id(new_owner_id)
            if was_member:
                self.repository.delete_memberships(uow, team, [new_owner_pk])
            self.repository.update_team(uow, team, {'owner_id': new_owner_pk})

            event = self._event(
                TeamOperation.CHANGE_OWNER, team, actor, [previous_owner_id, new_owner_pk],
                promoted_member=was_member
            )
            return team, event

        return self._execute(TeamOperation.CHANGE_OWNER, actor, work, team_id=str(team_id))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_team(self, team_id: Any, actor: Actor) -> Team:
        with UnitOfWork(actor) as uow:
            return self._find_team(uow, team_id, actor)

    def list_teams(
        self,
        actor: Actor,
        page: Any = 1,
        page_size: Optional[int] = None,
        company_id: Optional[Any] = None,
        include_inactive: bool = True,
    ) -> Page:
        """
        Page through the teams visible to `actor`.

        `company_id` narrows the listing for platform staff; tenant actors
        only ever see their own company.
        """
        scope = policy.visible_company_id(actor)
        if scope is None and company_id is not None:
            scope = parse_id(company_id)
            if scope is None:
                raise NotFound(f"Company with ID '{company_id}' not found")

        max_size = settings.TEAMS_MAX_PAGE_SIZE
        size = page_size or settings.TEAMS_DEFAULT_PAGE_SIZE
        try:
            size = max(1, min(int(size), max_size))
        except (TypeError, ValueError):
            raise InvalidState(
                f"Invalid page size: {page_size!r}", details={'page_size': str(page_size)}
            ) from None

        with UnitOfWork(actor) as uow:
            queryset = self.repository.list_teams(uow, company_id=scope, include_inactive=include_inactive)
            result = Paginator(queryset, size).get_page(page)
            # Evaluate inside the transaction
            result.object_list = list(result.object_list)
            return result

    def list_members(self, team_id: Any, actor: Actor) -> List[Membership]:
        with UnitOfWork(actor) as uow:
            team = self._find_team(uow, team_id, actor)
            return self.repository.find_memberships(uow, team)

    def search_candidates(self, team_id: Any, actor: Actor, query: str = '') -> List:
        """Users of the team's company who are neither members nor the owner."""
        with UnitOfWork(actor) as uow:
            team = self._find_team(uow, team_id, actor)
            excluded = [team.owner_id, *self.repository.member_ids(uow, team)]
            return self.directory.search_company_users(
                team.company_id,
                query,
                exclude_ids=excluded,
                limit=settings.TEAMS_SEARCH_LIMIT,
                using=uow.using,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation: TeamOperation,
        actor: Actor,
        work: Callable[[UnitOfWork], Tuple[Any, Optional[AuditEvent]]],
        **log_context: Any,
    ):
        """
        Run `work` in a fresh UnitOfWork.

        A lock or serialization failure rolls the attempt back and reruns
        `work` from the start, up to TEAMS_CONTENTION_RETRIES times, so the
        next attempt validates against whatever the competing operation
        committed.
        """
        retries = max(0, int(getattr(settings, 'TEAMS_CONTENTION_RETRIES', 0) or 0))
        with log_operation_context(operation.value, logger=logger, actor_id=str(actor.id), **log_context):
            attempt = 0
            while True:
                try:
                    with UnitOfWork(actor, operation) as uow:
                        result, event = work(uow)
                        if event is not None:
                            uow.on_commit(partial(self._publish, event))
                    return result
                except IntegrityError as exc:
                    raise translate_integrity_error(exc) from exc
                except DatabaseError as exc:
                    if attempt < retries and is_contention_error(exc):
                        attempt += 1
                        self._back_off(operation, attempt, exc)
                        continue
                    raise Internal(
                        details={'operation': operation.value, 'error': type(exc).__name__}
                    ) from exc

    def _back_off(self, operation: TeamOperation, attempt: int, exc: DatabaseError):
        """Sleep with exponential backoff and jitter before the next attempt."""
        base_delay = max(0, int(getattr(settings, 'TEAMS_CONTENTION_BACKOFF_MS', 0) or 0)) / 1000
        delay = base_delay * (2 ** (attempt - 1))
        jitter = random.uniform(0, delay)
        logger.warning(
            'Retrying after lock contention',
            operation=operation.value,
            attempt=attempt,
            error=str(exc),
        )
        time.sleep(delay + jitter)

    def _find_team(self, uow, team_id: Any, actor: Actor, for_update: bool = False) -> Team:
        team = self.repository.find_team(
            uow, team_id, company_id=policy.visible_company_id(actor), for_update=for_update
        )
        if team is None:
            raise NotFound(f"Team with ID '{team_id}' not found", details={'team_id': str(team_id)})
        return team

    def _lock_team(self, uow, team_id: Any, actor: Actor) -> Team:
        return self._find_team(uow, team_id, actor, for_update=True)

    def _event(self, operation, team: Team, actor: Actor, affected_ids, **metadata) -> AuditEvent:
        affected = []
        for pk in affected_ids:
            if pk is not None and str(pk) not in affected:
                affected.append(str(pk))
        return AuditEvent(
            team_id=str(team.pk),
            operation=TeamOperation(operation).value,
            affected_user_ids=tuple(affected),
            actor_id=str(actor.id),
            timestamp=timezone.now(),
            company_id=str(team.company_id),
            correlation_id=CorrelationIDManager.get_correlation_id(),
            metadata=metadata,
        )

    def _publish(self, event: AuditEvent):
        """Hand a committed event to the sink. Failures are logged, never raised."""
        try:
            self.audit_sink.record(event)
        except Exception as exc:
            logger.error(
                'Failed to record audit event',
                exc_info=exc,
                team_id=event.team_id,
                operation=event.operation,
                correlation_id=event.correlation_id,
            )


team_orchestrator = TeamOrchestrator()
