"""
Applications app models.

Covers the licence application itself and its status audit trail, from
the applicant's draft through engineer review, payment, clerk
processing and digital signatures to the issued certificate.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone

from accounts.models import OfficerRole
from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ApplicationStatus(models.TextChoices):
    """
    Every status an application can hold.  Which role may move it where
    is decided by ``applications.transitions``.
    """

    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"

    # ── Technical review chain ───────────────────────────────────────
    UNDER_REVIEW_BY_JE = "under_review_by_je", "Under Review by Junior Engineer"
    APPROVED_BY_JE = "approved_by_je", "Approved by Junior Engineer"
    REJECTED_BY_JE = "rejected_by_je", "Rejected by Junior Engineer"
    UNDER_REVIEW_BY_AE = "under_review_by_ae", "Under Review by Assistant Engineer"
    APPROVED_BY_AE = "approved_by_ae", "Approved by Assistant Engineer"
    REJECTED_BY_AE = "rejected_by_ae", "Rejected by Assistant Engineer"
    UNDER_REVIEW_BY_EE1 = "under_review_by_ee1", "Under Review by Executive Engineer"
    APPROVED_BY_EE1 = "approved_by_ee1", "Approved by Executive Engineer"
    REJECTED_BY_EE1 = "rejected_by_ee1", "Rejected by Executive Engineer"
    UNDER_REVIEW_BY_CE1 = "under_review_by_ce1", "Under Review by City Engineer"
    APPROVED_BY_CE1 = "approved_by_ce1", "Approved by City Engineer"
    REJECTED_BY_CE1 = "rejected_by_ce1", "Rejected by City Engineer"

    # ── Payment ──────────────────────────────────────────────────────
    PAYMENT_PENDING = "payment_pending", "Payment Pending"
    PAYMENT_COMPLETED = "payment_completed", "Payment Completed"

    # ── Clerk processing ─────────────────────────────────────────────
    UNDER_PROCESSING_BY_CLERK = "under_processing_by_clerk", "Under Processing by Clerk"
    PROCESSED_BY_CLERK = "processed_by_clerk", "Processed by Clerk"
    REJECTED_BY_CLERK = "rejected_by_clerk", "Rejected by Clerk"

    # ── Signatures and certificate ───────────────────────────────────
    UNDER_DIGITAL_SIGNATURE_BY_EE2 = "under_digital_signature_by_ee2", "Under Digital Signature by Executive Engineer"
    DIGITAL_SIGNATURE_COMPLETED_BY_EE2 = "digital_signature_completed_by_ee2", "Digital Signature Completed by Executive Engineer"
    REJECTED_BY_EE2 = "rejected_by_ee2", "Rejected at Executive Engineer Signature"
    UNDER_FINAL_APPROVAL_BY_CE2 = "under_final_approval_by_ce2", "Under Final Approval by City Engineer"
    REJECTED_BY_CE2 = "rejected_by_ce2", "Rejected at City Engineer Final Approval"
    CERTIFICATE_ISSUED = "certificate_issued", "Certificate Issued"
    COMPLETED = "completed", "Completed"


class LicenceType(models.TextChoices):
    """Professional licence being applied for."""

    ARCHITECT = "architect", "Architect"
    LICENCE_ENGINEER = "licence_engineer", "Licence Engineer"
    STRUCTURAL_ENGINEER = "structural_engineer", "Structural Engineer"
    SUPERVISOR1 = "supervisor1", "Supervisor Grade 1"
    SUPERVISOR2 = "supervisor2", "Supervisor Grade 2"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Application(TimeStampedModel):
    """
    A licence application moving through the review workflow.

    * ``status`` is the workflow position; only
      ``applications.services.WorkflowService`` changes it.
    * ``responsible_tier`` is the role tier currently accountable.  It
      normally follows the status, but escalation can move it up the
      ladder without a status change.
    * ``current_officer`` mirrors the officer of the active
      ``assignments.AssignmentRecord`` (``None`` while ownerless).
    """

    application_number = models.CharField(
        max_length=30,
        unique=True,
        null=True,
        blank=True,
        verbose_name="Application Number",
    )
    applicant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="applications",
        verbose_name="Applicant",
    )
    licence_type = models.CharField(
        max_length=30,
        choices=LicenceType.choices,
        verbose_name="Licence Type",
    )
    title = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Title",
    )
    status = models.CharField(
        max_length=40,
        choices=ApplicationStatus.choices,
        default=ApplicationStatus.DRAFT,
        verbose_name="Current Status",
        db_index=True,
    )
    responsible_tier = models.CharField(
        max_length=30,
        choices=OfficerRole.choices,
        blank=True,
        default="",
        verbose_name="Responsible Tier",
    )
    current_officer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="owned_applications",
        verbose_name="Current Officer",
    )
    submitted_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Submitted At",
    )
    status_changed_at = models.DateTimeField(
        default=timezone.now,
        verbose_name="Status Changed At",
    )
    needs_operator_attention = models.BooleanField(
        default=False,
        verbose_name="Needs Operator Attention",
        help_text="Set when escalation found no officer; cleared on the next assignment.",
    )

    class Meta:
        verbose_name = "Application"
        verbose_name_plural = "Applications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "status_changed_at"], name="application_status_idx"),
        ]

    def __str__(self):
        return f"Application {self.application_number or self.pk} [{self.status}]"


class ApplicationStatusLog(TimeStampedModel):
    """
    Immutable audit trail of every status transition of an application.
    """

    application = models.ForeignKey(
        Application,
        on_delete=models.CASCADE,
        related_name="status_logs",
        verbose_name="Application",
    )
    from_status = models.CharField(
        max_length=40,
        choices=ApplicationStatus.choices,
        verbose_name="Previous Status",
    )
    to_status = models.CharField(
        max_length=40,
        choices=ApplicationStatus.choices,
        verbose_name="New Status",
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="application_status_changes",
        verbose_name="Changed By",
    )
    remarks = models.TextField(
        blank=True,
        default="",
        verbose_name="Remarks",
    )

    class Meta:
        verbose_name = "Application Status Log"
        verbose_name_plural = "Application Status Logs"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return (
            f"Application #{self.application_id}: "
            f"{self.from_status} → {self.to_status}"
        )
