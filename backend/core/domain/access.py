"""
core.domain.access — Role guards and role-scoped queryset selectors.

This module provides shared utilities that each app's service layer
calls to check the acting user's role and to obtain querysets filtered
by it.

╔══════════════════════════════════════════════════════════════════╗
║  IMPORTANT — Per-app scoping logic does NOT live here.           ║
║  Each app's ``services.py`` owns its own scope-rules list.       ║
║  This module provides:                                           ║
║    1) ``apply_role_scope`` — ordered role dispatch.              ║
║    2) ``require_role`` — guard that checks the user's role.      ║
║    3) ``get_user_role_name`` — role value for a user.            ║
╚══════════════════════════════════════════════════════════════════╝

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    APPLICATION_SCOPE_RULES = [
        (("admin",),     lambda qs, u: qs),
        (("applicant",), lambda qs, u: qs.filter(applicant=u)),
    ]

    qs = apply_role_scope(Application.objects.all(), user,
                          scope_rules=APPLICATION_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable

from django.db.models import QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# A single scope rule: (role values the rule applies to, filter_fn).
ScopeRule = tuple[Iterable[str], ScopeFilter]


def get_user_role_name(user: User) -> str | None:
    """
    Return the role value for a user, or ``None`` if it has none.

    Superusers always count as ``"admin"`` so that the Django
    ``createsuperuser`` account can operate the workflow.
    """
    if getattr(user, "is_superuser", False):
        return "admin"
    role = getattr(user, "role", None)
    return str(role) if role else None


def apply_role_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: list[ScopeRule],
) -> QuerySet:
    """
    Apply the first scope rule whose roles include the user's role.

    Users whose role matches no rule see nothing.
    """
    role_name = get_user_role_name(user)
    for roles, filter_fn in scope_rules:
        if role_name in roles:
            return filter_fn(queryset, user)
    return queryset.none()


def require_role(user: User, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user's role is not
    among ``allowed_roles``.

    Example::

        require_role(user, *workflow_setting("SUPERVISORY_ROLES"))
    """
    role_name = get_user_role_name(user)
    if role_name not in allowed_roles:
        raise PermissionDenied(
            message
            or f"Role '{role_name}' is not permitted for this operation. "
            f"Required: {', '.join(allowed_roles)}."
        )
