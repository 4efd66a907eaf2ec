"""
Accounts app models.

Defines the closed set of workflow roles and a custom User model that
extends Django's ``AbstractUser``.  The same table holds applicants,
reviewing officers and administrators; the ``role`` field tells them
apart.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class OfficerRole(models.TextChoices):
    """
    Workflow roles.  The officer tiers are the ones an application can be
    assigned to; ``APPLICANT`` and ``ADMIN`` never own an application.

    Values are stored verbatim, so an unknown value is rejected by the
    field's choices (and by ``OfficerRole(value)`` in Python code).
    """

    APPLICANT = "applicant", "Applicant"
    JUNIOR_ENGINEER = "junior_engineer", "Junior Engineer"
    ASSISTANT_ENGINEER = "assistant_engineer", "Assistant Engineer"
    EXECUTIVE_ENGINEER = "executive_engineer", "Executive Engineer"
    CITY_ENGINEER = "city_engineer", "City Engineer"
    CLERK = "clerk", "Clerk"
    ADMIN = "admin", "Administrator"


# Roles that can be the responsible tier of an application.
OFFICER_TIERS = frozenset({
    OfficerRole.JUNIOR_ENGINEER,
    OfficerRole.ASSISTANT_ENGINEER,
    OfficerRole.EXECUTIVE_ENGINEER,
    OfficerRole.CITY_ENGINEER,
    OfficerRole.CLERK,
})


class User(AbstractUser):
    """
    Custom user model for the licensing system.

    Each user holds exactly **one** role at a time.  Officers also carry
    an ``employee_id``; ``is_active`` (inherited) decides whether an
    officer can receive new assignments.
    """

    role = models.CharField(
        max_length=30,
        choices=OfficerRole.choices,
        default=OfficerRole.APPLICANT,
        verbose_name="Role",
        db_index=True,
    )
    employee_id = models.CharField(
        max_length=30,
        blank=True,
        default="",
        verbose_name="Employee ID",
        help_text="Municipal employee number; empty for applicants.",
    )
    phone_number = models.CharField(
        max_length=15,
        blank=True,
        default="",
        verbose_name="Phone Number",
    )

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=["role", "is_active"], name="user_role_active_idx"),
        ]

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def has_role(self, role: str) -> bool:
        """Check if the user's current role matches the given value."""
        return self.role == role

    @property
    def is_officer(self) -> bool:
        return self.role in OFFICER_TIERS
