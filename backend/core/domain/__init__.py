"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain exceptions that map cleanly to HTTP responses.
exception_handler  DRF exception handler for those exceptions.
notifications      Notification persistence and the workflow notifier.
transactions       Row locking and post-commit side effects.
access             Role guards and role-scoped queryset selectors.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import get_notifier
    from core.domain.transactions import lock_for_update, on_commit_safely
    from core.domain.access import apply_role_scope, require_role
"""
