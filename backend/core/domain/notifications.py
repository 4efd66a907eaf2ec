"""
core.domain.notifications — Inbox writes and the workflow notifier.

Two layers live here:

* ``NotificationService`` persists ``core.models.Notification`` rows.
* ``WorkflowNotifier`` is the collaborator the workflow services talk
  to.  It speaks in ids and a one-line summary and turns them into
  ``NotificationService`` calls.  Deployments that deliver through
  email or SMS swap it out via ``settings.WORKFLOW["NOTIFIER"]``.

Callers never invoke the notifier inline: they schedule it with
``core.domain.transactions.on_commit_safely`` so that delivery happens
after the workflow change is committed and a failed delivery is only
logged.

Usage::

    from core.domain.notifications import get_notifier

    on_commit_safely(get_notifier().notify_applicant, application.pk, "Submitted.")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils.module_loading import import_string

from core.constants import workflow_setting

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event type → message body ───────────────────────────────────────
# The title is the event's label on ``NotificationEvent``.
_EVENT_MESSAGES: dict[str, str] = {
    "application_assigned": "A licence application has been assigned to you.",
    "application_status": "Your licence application has changed status.",
    "escalation_blocked": "A stalled application could not be escalated and needs operator attention.",
}


class NotificationService:
    """Creates inbox entries.  Stateless."""

    @classmethod
    def create(
        cls,
        *,
        recipients: User | Iterable[User],
        event_type: str,
        summary: str = "",
        subject: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            recipients: A single ``User`` or an iterable of them.  An
                        empty iterable is logged and creates nothing.
            event_type: A ``NotificationEvent`` value.
            summary:    Appended to the event's standard message.
            subject:    Optional instance the event is about, stored
                        through the generic relation.

        Returns:
            The created ``Notification`` instances.
        """
        from core.models import Notification, NotificationEvent  # lazy import, circular deps

        event = NotificationEvent(event_type)
        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning("No recipients for %s notification", event)
            return []

        message = _EVENT_MESSAGES[event]
        if summary:
            message = f"{message} {summary}"

        subject_type = subject_id = None
        if subject is not None:
            subject_type = ContentType.objects.get_for_model(subject)
            subject_id = subject.pk

        notifications = Notification.objects.bulk_create([
            Notification(
                recipient=recipient,
                event_type=event,
                title=event.label,
                message=message,
                subject_type=subject_type,
                subject_id=subject_id,
            )
            for recipient in recipients
        ])
        logger.info("Created %d %s notification(s)", len(notifications), event)
        return notifications


class WorkflowNotifier:
    """
    Default notification collaborator for the workflow services.

    Methods may raise; callers run them through ``on_commit_safely``.
    """

    def notify_assignment(self, officer_id: int, application_id: int, summary: str) -> None:
        NotificationService.create(
            recipients=get_user_model().objects.get(pk=officer_id),
            event_type="application_assigned",
            summary=summary,
            subject=self._application(application_id),
        )

    def notify_applicant(self, application_id: int, summary: str) -> None:
        application = self._application(application_id)
        NotificationService.create(
            recipients=application.applicant,
            event_type="application_status",
            summary=summary,
            subject=application,
        )

    def notify_operators(self, application_id: int, summary: str) -> None:
        from accounts.models import OfficerRole

        operators = get_user_model().objects.filter(role=OfficerRole.ADMIN, is_active=True)
        NotificationService.create(
            recipients=operators,
            event_type="escalation_blocked",
            summary=summary,
            subject=self._application(application_id),
        )

    @staticmethod
    def _application(application_id: int):
        from applications.models import Application  # lazy import, circular deps

        return Application.objects.select_related("applicant").get(pk=application_id)


def get_notifier():
    """Instantiate the notifier configured in ``WORKFLOW["NOTIFIER"]``."""
    return import_string(workflow_setting("NOTIFIER"))()
