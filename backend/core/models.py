"""
Core app models.

``TimeStampedModel`` is the base of every workflow table.
``Notification`` is the in-app inbox the default workflow notifier
writes to.
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base adding ``created_at`` / ``updated_at``."""

    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        abstract = True


class NotificationEvent(models.TextChoices):
    APPLICATION_ASSIGNED = "application_assigned", "Application Assigned"
    APPLICATION_STATUS = "application_status", "Application Status Updated"
    ESCALATION_BLOCKED = "escalation_blocked", "Escalation Blocked"


class Notification(TimeStampedModel):
    """
    One inbox entry for an officer, applicant or operator.

    ``subject`` points at the object the event is about, normally an
    ``applications.Application``.  ``read_at`` stays empty until the
    recipient opens it.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    event_type = models.CharField(
        max_length=40,
        choices=NotificationEvent.choices,
        verbose_name="Event Type",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    read_at = models.DateTimeField(null=True, blank=True, verbose_name="Read At")

    subject_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        verbose_name="Subject Type",
    )
    subject_id = models.PositiveBigIntegerField(null=True, blank=True, verbose_name="Subject ID")
    subject = GenericForeignKey("subject_type", "subject_id")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "read_at"], name="notification_inbox_idx"),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.get_event_type_display()}"
