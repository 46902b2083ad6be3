"""
Team models - Teams, memberships and the team audit trail.

Architecture:
- Team: Named group within a company, with exactly one owner
- Membership: A non-owner user on a team, with provenance
- TeamAuditLog: Immutable record of committed team mutations
"""

import uuid

from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models


class TeamCategory(models.TextChoices):
    """
    Team categories.

    Regulated teams must always keep at least one qualified individual
    among the owner and the members.
    """

    STANDARD = 'STANDARD', 'Standard'
    REGULATED = 'REGULATED', 'Regulated'


class TeamOperation(models.TextChoices):
    """Mutating operations on a team. Also the audit operation vocabulary."""

    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'
    ADD_MEMBERS = 'add_members', 'Add Members'
    REMOVE_MEMBER = 'remove_member', 'Remove Member'
    REMOVE_MEMBERS = 'remove_members', 'Remove Members'
    REPLACE_MEMBERS = 'replace_members', 'Replace Members'
    CHANGE_OWNER = 'change_owner', 'Change Owner'


class Team(models.Model):
    """
    Group within a company.

    The owner is not stored as a membership; `members` only holds the
    additional users.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'tenancy.Company',
        on_delete=models.CASCADE,
        related_name='teams'
    )

    name = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    description = models.TextField(blank=True)
    category = models.CharField(
        max_length=20,
        choices=TeamCategory.choices,
        default=TeamCategory.STANDARD,
        db_index=True
    )

    # Ownership
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='owned_teams'
    )

    # Settings
    is_active = models.BooleanField(default=True, db_index=True)

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_teams'
    )

    class Meta:
        db_table = 'teams'
        ordering = ['company', 'name']
        constraints = [
            models.UniqueConstraint(fields=['company', 'name'], name='teams_unique_name_per_company'),
        ]
        indexes = [
            models.Index(fields=['company', 'is_active'], name='teams_company_active_idx'),
            models.Index(fields=['owner'], name='teams_owner_idx'),
        ]

    def __str__(self):
        return f"{self.company.name} / {self.name}"

    @property
    def is_regulated(self):
        return self.category == TeamCategory.REGULATED

    def member_count(self):
        """Get current member count, owner excluded."""
        return self.memberships.count()


class Membership(models.Model):
    """
    User membership in a team.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team = models.ForeignKey(
        Team,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='team_memberships'
    )

    # Provenance
    added_at = models.DateTimeField(auto_now_add=True, db_index=True)
    added_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='added_team_memberships'
    )

    class Meta:
        db_table = 'team_memberships'
        ordering = ['added_at']
        constraints = [
            models.UniqueConstraint(fields=['team', 'user'], name='team_memberships_unique_pair'),
        ]
        indexes = [
            models.Index(fields=['user'], name='team_memberships_user_idx'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.team.name}"


class TeamAuditLog(models.Model):
    """
    Immutable audit log for committed team mutations.

    Ids are stored as plain values so entries survive deletion of the team
    or of the users involved.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # What
    team_id = models.UUIDField(db_index=True)
    company_id = models.UUIDField(null=True, blank=True, db_index=True)
    operation = models.CharField(max_length=50, choices=TeamOperation.choices, db_index=True)
    affected_user_ids = models.JSONField(default=list, blank=True)

    # Who
    actor_id = models.UUIDField(null=True, blank=True, db_index=True)

    # Context
    correlation_id = models.CharField(max_length=64, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    # Timestamp of the committed operation
    timestamp = models.DateTimeField(db_index=True)
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'team_audit_logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['team_id', 'timestamp'], name='team_audit_team_ts_idx'),
            models.Index(fields=['actor_id', 'timestamp'], name='team_audit_actor_ts_idx'),
        ]

    def __str__(self):
        return f"{self.actor_id} {self.operation} team:{self.team_id} at {self.timestamp}"

    def save(self, *args, **kwargs):
        # Only allow creation, no updates
        if not self._state.adding:
            raise ValueError("Audit logs are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit logs cannot be deleted")
