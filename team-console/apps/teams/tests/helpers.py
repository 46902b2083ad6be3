"""
Shared fixtures for team service tests.
"""

from django.contrib.auth import get_user_model

from apps.tenancy.models import Company, Role

from ..audit import InMemoryAuditSink
from ..interface import Actor
from ..models import Membership, Team, TeamCategory
from ..services import TeamOrchestrator

User = get_user_model()


class TeamFixturesMixin:
    """Companies, users and teams built directly through the ORM."""

    def create_company(self, name='Acme'):
        return Company.objects.create(name=name)

    def create_user(self, username, company, role=Role.COMPANY_MEMBER, is_qualified=False):
        return User.objects.create_user(
            username=username,
            email=f'{username}@test.com',
            password='testpass123',
            company=company,
            role=role,
            is_qualified=is_qualified
        )

    def create_team(self, company, owner, name='Engineering', category=TeamCategory.STANDARD, members=()):
        team = Team.objects.create(company=company, owner=owner, name=name, category=category)
        for member in members:
            Membership.objects.create(team=team, user=member, added_by=owner)
        return team

    def member_ids(self, team):
        return set(Membership.objects.filter(team=team).values_list('user_id', flat=True))

    def actor(self, user):
        return Actor.from_user(user)

    def build_orchestrator(self):
        self.audit_sink = InMemoryAuditSink()
        return TeamOrchestrator(audit_sink=self.audit_sink)

    def setUpCompanies(self):
        """Two tenants plus a platform admin."""
        self.acme = self.create_company('Acme')
        self.globex = self.create_company('Globex')

        self.owner = self.create_user('owner', self.acme)
        self.qualified_owner = self.create_user('qowner', self.acme, is_qualified=True)
        self.alice = self.create_user('alice', self.acme)
        self.bob = self.create_user('bob', self.acme)
        self.carol = self.create_user('carol', self.acme, is_qualified=True)
        self.dave = self.create_user('dave', self.acme, is_qualified=True)
        self.admin = self.create_user('acme_admin', self.acme, role=Role.COMPANY_ADMIN)

        self.outsider = self.create_user('outsider', self.globex)
        self.globex_admin = self.create_user('globex_admin', self.globex, role=Role.COMPANY_ADMIN)

        self.staff = self.create_user('staff', None, role=Role.PLATFORM_ADMIN)
