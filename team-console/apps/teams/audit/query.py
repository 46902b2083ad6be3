from datetime import timedelta

from django.utils import timezone


class AuditLogQuery:
    """
    Query interface for team audit logs.

    Usage:
        logs = AuditLogQuery.for_team(team_id)
        logs = AuditLogQuery.for_actor(user.pk, days=7)
    """

    @staticmethod
    def _recent(days):
        from ..models import TeamAuditLog

        cutoff = timezone.now() - timedelta(days=days)
        return TeamAuditLog.objects.filter(timestamp__gte=cutoff)

    @staticmethod
    def for_team(team_id, days=30):
        return AuditLogQuery._recent(days).filter(team_id=team_id)

    @staticmethod
    def for_actor(actor_id, days=30):
        return AuditLogQuery._recent(days).filter(actor_id=actor_id)

    @staticmethod
    def for_company(company_id, days=30):
        return AuditLogQuery._recent(days).filter(company_id=company_id)

    @staticmethod
    def for_correlation(correlation_id):
        from ..models import TeamAuditLog

        return TeamAuditLog.objects.filter(correlation_id=correlation_id)
