"""
Assignments app models.

The assignment history ledger: one append-only row per ownership change
of an application, and the per-tier lock rows that serialise workload
reads against assignment writes.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounts.models import OfficerRole


class AssignmentAction(models.TextChoices):
    """How the officer came to own the application."""

    ASSIGN = "assign", "Auto-Assigned"
    REASSIGN = "reassign", "Reassigned"
    ESCALATE = "escalate", "Escalated"


class AssignmentRecord(models.Model):
    """
    One ownership change of an application.

    * Rows are never deleted.  After insert only ``is_active`` /
      ``inactivated_at``, ``accepted_at`` and ``notification_sent_at``
      change.
    * At most one active row per application (partial unique constraint).
    * An officer's workload is the number of active rows pointing at them.
    * ``workload_at_assignment`` is the officer's workload just before
      this row was written.
    """

    LATERAL_STEP = "lateral"

    application = models.ForeignKey(
        "applications.Application",
        on_delete=models.PROTECT,
        related_name="assignment_records",
        verbose_name="Application",
    )
    previous_officer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Previous Officer",
        help_text="Empty for the first assignment of an application.",
    )
    officer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assignment_records",
        verbose_name="Assigned Officer",
    )
    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Initiated By",
        help_text="Supervisor behind a manual reassignment; empty for automatic changes.",
    )
    action = models.CharField(
        max_length=10,
        choices=AssignmentAction.choices,
        verbose_name="Action",
    )
    role_tier = models.CharField(
        max_length=30,
        choices=OfficerRole.choices,
        verbose_name="Role Tier",
    )
    status_at_assignment = models.CharField(
        max_length=40,
        verbose_name="Application Status at Assignment",
    )
    workload_at_assignment = models.PositiveIntegerField(
        default=0,
        verbose_name="Workload at Assignment",
    )
    reason = models.TextField(
        blank=True,
        default="",
        verbose_name="Reason",
    )
    ladder_step = models.CharField(
        max_length=80,
        blank=True,
        default="",
        verbose_name="Escalation Step",
        help_text="'lateral' for a same-tier hand-off, '<from>-><to>' for a ladder climb.",
    )
    assigned_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        verbose_name="Assigned At",
    )
    accepted_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Accepted At",
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name="Active",
    )
    inactivated_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Inactivated At",
    )
    notification_sent_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Notification Sent At",
    )

    class Meta:
        verbose_name = "Assignment Record"
        verbose_name_plural = "Assignment Records"
        ordering = ["-assigned_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["application"],
                condition=Q(is_active=True),
                name="one_active_assignment_per_application",
            ),
            models.CheckConstraint(
                condition=Q(action=AssignmentAction.ASSIGN) | ~Q(reason=""),
                name="assignment_change_requires_reason",
            ),
        ]
        indexes = [
            models.Index(fields=["officer", "is_active"], name="assignment_workload_idx"),
        ]

    def __str__(self):
        return (
            f"Application #{self.application_id} → officer #{self.officer_id} "
            f"[{self.action}{'' if self.is_active else ', closed'}]"
        )

    @property
    def duration_hours(self) -> float | None:
        """Hours the officer held the application, once the record is closed."""
        if self.inactivated_at is None:
            return None
        return round((self.inactivated_at - self.assigned_at).total_seconds() / 3600, 2)


class TierLock(models.Model):
    """
    One row per role tier.  ``SELECT ... FOR UPDATE`` on it serialises
    every read-decide-write of an assignment into that tier.
    """

    role = models.CharField(
        max_length=30,
        choices=OfficerRole.choices,
        primary_key=True,
    )

    class Meta:
        verbose_name = "Tier Lock"
        verbose_name_plural = "Tier Locks"

    def __str__(self):
        return self.role
