import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("draft", "Draft"),
    ("submitted", "Submitted"),
    ("under_review_by_je", "Under Review by Junior Engineer"),
    ("approved_by_je", "Approved by Junior Engineer"),
    ("rejected_by_je", "Rejected by Junior Engineer"),
    ("under_review_by_ae", "Under Review by Assistant Engineer"),
    ("approved_by_ae", "Approved by Assistant Engineer"),
    ("rejected_by_ae", "Rejected by Assistant Engineer"),
    ("under_review_by_ee1", "Under Review by Executive Engineer"),
    ("approved_by_ee1", "Approved by Executive Engineer"),
    ("rejected_by_ee1", "Rejected by Executive Engineer"),
    ("under_review_by_ce1", "Under Review by City Engineer"),
    ("approved_by_ce1", "Approved by City Engineer"),
    ("rejected_by_ce1", "Rejected by City Engineer"),
    ("payment_pending", "Payment Pending"),
    ("payment_completed", "Payment Completed"),
    ("under_processing_by_clerk", "Under Processing by Clerk"),
    ("processed_by_clerk", "Processed by Clerk"),
    ("rejected_by_clerk", "Rejected by Clerk"),
    ("under_digital_signature_by_ee2", "Under Digital Signature by Executive Engineer"),
    ("digital_signature_completed_by_ee2", "Digital Signature Completed by Executive Engineer"),
    ("rejected_by_ee2", "Rejected at Executive Engineer Signature"),
    ("under_final_approval_by_ce2", "Under Final Approval by City Engineer"),
    ("rejected_by_ce2", "Rejected at City Engineer Final Approval"),
    ("certificate_issued", "Certificate Issued"),
    ("completed", "Completed"),
]

ROLE_CHOICES = [
    ("applicant", "Applicant"),
    ("junior_engineer", "Junior Engineer"),
    ("assistant_engineer", "Assistant Engineer"),
    ("executive_engineer", "Executive Engineer"),
    ("city_engineer", "City Engineer"),
    ("clerk", "Clerk"),
    ("admin", "Administrator"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                (
                    "application_number",
                    models.CharField(blank=True, max_length=30, null=True, unique=True, verbose_name="Application Number"),
                ),
                (
                    "licence_type",
                    models.CharField(
                        choices=[
                            ("architect", "Architect"),
                            ("licence_engineer", "Licence Engineer"),
                            ("structural_engineer", "Structural Engineer"),
                            ("supervisor1", "Supervisor Grade 1"),
                            ("supervisor2", "Supervisor Grade 2"),
                        ],
                        max_length=30,
                        verbose_name="Licence Type",
                    ),
                ),
                ("title", models.CharField(blank=True, default="", max_length=255, verbose_name="Title")),
                (
                    "status",
                    models.CharField(
                        choices=STATUS_CHOICES,
                        db_index=True,
                        default="draft",
                        max_length=40,
                        verbose_name="Current Status",
                    ),
                ),
                (
                    "responsible_tier",
                    models.CharField(
                        blank=True, choices=ROLE_CHOICES, default="", max_length=30, verbose_name="Responsible Tier",
                    ),
                ),
                ("submitted_at", models.DateTimeField(blank=True, null=True, verbose_name="Submitted At")),
                (
                    "status_changed_at",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="Status Changed At"),
                ),
                (
                    "needs_operator_attention",
                    models.BooleanField(
                        default=False,
                        help_text="Set when escalation found no officer; cleared on the next assignment.",
                        verbose_name="Needs Operator Attention",
                    ),
                ),
                (
                    "applicant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="applications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Applicant",
                    ),
                ),
                (
                    "current_officer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="owned_applications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Current Officer",
                    ),
                ),
            ],
            options={
                "verbose_name": "Application",
                "verbose_name_plural": "Applications",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "status_changed_at"], name="application_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApplicationStatusLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("from_status", models.CharField(choices=STATUS_CHOICES, max_length=40, verbose_name="Previous Status")),
                ("to_status", models.CharField(choices=STATUS_CHOICES, max_length=40, verbose_name="New Status")),
                ("remarks", models.TextField(blank=True, default="", verbose_name="Remarks")),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_logs",
                        to="applications.application",
                        verbose_name="Application",
                    ),
                ),
                (
                    "changed_by",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="application_status_changes",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Changed By",
                    ),
                ),
            ],
            options={
                "verbose_name": "Application Status Log",
                "verbose_name_plural": "Application Status Logs",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
