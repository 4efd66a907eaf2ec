"""
core.domain.transactions — Helpers for lock-first, commit-then-notify units.

Provides utilities that wrap ``select_for_update`` and
``transaction.on_commit`` into reusable patterns so that every app's
service layer follows the same concurrency-safe approach.

Design goals
------------
* State-changing reads always lock the row first (``select_for_update``)
  so that concurrent writers on the same row serialise.
* Side effects towards collaborators (notifications) run only after the
  surrounding transaction commits, and a failing collaborator never
  rolls back committed state.

Usage::

    from core.domain.transactions import lock_for_update, on_commit_safely

    with transaction.atomic():
        application = lock_for_update(
            Application, application_id,
            not_found=lambda: ApplicationNotFound(application_id),
        )
        ...
        on_commit_safely(notifier.notify_applicant, application.pk, "Submitted")
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from django.db import models, transaction

from core.domain.exceptions import NotFound

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


def lock_for_update(
    model_class: type[M],
    pk: Any,
    *,
    not_found: Callable[[], Exception] | None = None,
) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.
        not_found:   Optional factory for the exception raised when the
                     row is missing; defaults to a generic ``NotFound``.

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no row with that PK exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        if not_found is not None:
            raise not_found()
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")


def on_commit_safely(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """
    Schedule ``fn(*args, **kwargs)`` to run after the current transaction
    commits.  Exceptions raised by ``fn`` are logged, never propagated.

    Outside an atomic block Django runs the callback immediately.
    """

    def _run() -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception(
                "Post-commit callback %s failed",
                getattr(fn, "__qualname__", repr(fn)),
            )

    transaction.on_commit(_run)
