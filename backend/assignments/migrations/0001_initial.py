import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

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
        ("applications", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="TierLock",
            fields=[
                ("role", models.CharField(choices=ROLE_CHOICES, max_length=30, primary_key=True, serialize=False)),
            ],
            options={
                "verbose_name": "Tier Lock",
                "verbose_name_plural": "Tier Locks",
            },
        ),
        migrations.CreateModel(
            name="AssignmentRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "action",
                    models.CharField(
                        choices=[("assign", "Auto-Assigned"), ("reassign", "Reassigned"), ("escalate", "Escalated")],
                        max_length=10,
                        verbose_name="Action",
                    ),
                ),
                ("role_tier", models.CharField(choices=ROLE_CHOICES, max_length=30, verbose_name="Role Tier")),
                (
                    "status_at_assignment",
                    models.CharField(max_length=40, verbose_name="Application Status at Assignment"),
                ),
                ("workload_at_assignment", models.PositiveIntegerField(default=0, verbose_name="Workload at Assignment")),
                ("reason", models.TextField(blank=True, default="", verbose_name="Reason")),
                (
                    "ladder_step",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="'lateral' for a same-tier hand-off, '<from>-><to>' for a ladder climb.",
                        max_length=80,
                        verbose_name="Escalation Step",
                    ),
                ),
                (
                    "assigned_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="Assigned At"),
                ),
                ("accepted_at", models.DateTimeField(blank=True, null=True, verbose_name="Accepted At")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("inactivated_at", models.DateTimeField(blank=True, null=True, verbose_name="Inactivated At")),
                ("notification_sent_at", models.DateTimeField(blank=True, null=True, verbose_name="Notification Sent At")),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignment_records",
                        to="applications.application",
                        verbose_name="Application",
                    ),
                ),
                (
                    "initiated_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Supervisor behind a manual reassignment; empty for automatic changes.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Initiated By",
                    ),
                ),
                (
                    "officer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignment_records",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Assigned Officer",
                    ),
                ),
                (
                    "previous_officer",
                    models.ForeignKey(
                        blank=True,
                        help_text="Empty for the first assignment of an application.",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Previous Officer",
                    ),
                ),
            ],
            options={
                "verbose_name": "Assignment Record",
                "verbose_name_plural": "Assignment Records",
                "ordering": ["-assigned_at", "-id"],
                "indexes": [models.Index(fields=["officer", "is_active"], name="assignment_workload_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("application",),
                        name="one_active_assignment_per_application",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("action", "assign"), models.Q(("reason", ""), _negated=True), _connector="OR"),
                        name="assignment_change_requires_reason",
                    ),
                ],
            },
        ),
    ]
