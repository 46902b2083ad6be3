"""
Tenancy models - Companies and the users that belong to them.

Architecture:
- Company: Top-level tenant (complete isolation)
- User: Platform account, affiliated with at most one company

Users and companies are provisioned by the onboarding flows; the team
console only reads them.
"""

import uuid

from django.contrib.auth.models import AbstractUser
from django.core.validators import MinLengthValidator
from django.db import models


class Role(models.TextChoices):
    """
    Closed set of account roles.

    Platform roles belong to staff who are not bound to a single company.
    Company roles are scoped to the user's own company.
    """

    PLATFORM_ADMIN = 'platform_admin', 'Platform Admin'
    PLATFORM_MANAGER = 'platform_manager', 'Platform Manager'
    PLATFORM_EMPLOYEE = 'platform_employee', 'Platform Employee'
    COMPANY_ADMIN = 'company_admin', 'Company Admin'
    COMPANY_MANAGER = 'company_manager', 'Company Manager'
    COMPANY_MEMBER = 'company_member', 'Company Member'


class Company(models.Model):
    """
    Tenant boundary. Owns teams and users.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        SUSPENDED = 'suspended', 'Suspended'
        ARCHIVED = 'archived', 'Archived'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(
        max_length=255,
        unique=True,
        validators=[MinLengthValidator(2)]
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True
    )

    # Designated administrator
    administrator = models.ForeignKey(
        'tenancy.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='administered_companies'
    )

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'companies'
        ordering = ['name']
        verbose_name_plural = 'companies'
        indexes = [
            models.Index(fields=['status', 'created_at'], name='companies_status_created_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE


class User(AbstractUser):
    """
    Platform account.

    `company` is null for platform staff. `is_qualified` is the professional
    flag required on regulated teams.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='users'
    )
    role = models.CharField(
        max_length=32,
        choices=Role.choices,
        default=Role.COMPANY_MEMBER,
        db_index=True
    )
    is_qualified = models.BooleanField(default=False, db_index=True)

    class Meta:
        db_table = 'users'
        ordering = ['last_name', 'first_name', 'username']
        indexes = [
            models.Index(fields=['company', 'role'], name='users_company_role_idx'),
            models.Index(fields=['company', 'is_qualified'], name='users_company_qualified_idx'),
        ]

    def __str__(self):
        full_name = self.get_full_name()
        return full_name or self.username
