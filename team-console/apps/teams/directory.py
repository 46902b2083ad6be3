"""
Read-only view of users and companies used by the team service.
"""

from typing import Any, Dict, Iterable, List

from django.contrib.auth import get_user_model
from django.db import DEFAULT_DB_ALIAS
from django.db.models import Q

from apps.tenancy.models import Company

from .exceptions import NotFound
from .interface import parse_id, split_ids, unique_ids


class Directory:
    """Resolves user and company references."""

    def get_user(self, user_id: Any, using: str = DEFAULT_DB_ALIAS):
        """Return the user, raising NotFound when it does not exist."""
        User = get_user_model()
        pk = parse_id(user_id)
        user = User.objects.using(using).filter(pk=pk).first() if pk else None
        if user is None:
            raise NotFound(f"User with ID '{user_id}' not found", details={'user_id': str(user_id)})
        return user

    def get_users(self, user_ids: Iterable[Any], using: str = DEFAULT_DB_ALIAS) -> Dict:
        """
        Resolve users in bulk, keyed by primary key in the requested order.

        Raises NotFound listing every id that could not be resolved.
        """
        User = get_user_model()
        ids = unique_ids(user_ids)
        valid, invalid = split_ids(ids)

        found = {user.pk: user for user in User.objects.using(using).filter(pk__in=valid)}
        missing = invalid + [str(pk) for pk in valid if pk not in found]
        if missing:
            raise NotFound(
                f"Users not found: {', '.join(missing)}",
                details={'user_ids': missing}
            )
        return {pk: found[pk] for pk in valid}

    def company_exists(self, company_id: Any, using: str = DEFAULT_DB_ALIAS) -> bool:
        pk = parse_id(company_id)
        return pk is not None and Company.objects.using(using).filter(pk=pk).exists()

    def get_company(self, company_id: Any, using: str = DEFAULT_DB_ALIAS) -> Company:
        pk = parse_id(company_id)
        company = Company.objects.using(using).filter(pk=pk).first() if pk else None
        if company is None:
            raise NotFound(f"Company with ID '{company_id}' not found", details={'company_id': str(company_id)})
        return company

    def search_company_users(
        self,
        company_id: Any,
        query: str = '',
        exclude_ids: Iterable[Any] = (),
        limit: int = 10,
        using: str = DEFAULT_DB_ALIAS,
    ) -> List:
        """
        Active users of a company matching `query` on name, username or email.
        """
        User = get_user_model()
        queryset = User.objects.using(using).filter(company_id=parse_id(company_id), is_active=True)

        excluded, _ = split_ids(exclude_ids)
        if excluded:
            queryset = queryset.exclude(pk__in=excluded)

        query = (query or '').strip()
        if query:
            queryset = queryset.filter(
                Q(first_name__icontains=query)
                | Q(last_name__icontains=query)
                | Q(username__icontains=query)
                | Q(email__icontains=query)
            )
        return list(queryset.order_by('last_name', 'first_name', 'username')[:limit])


directory = Directory()
