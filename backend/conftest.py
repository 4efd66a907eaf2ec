"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating applicants / officers.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``make_application`` factory for applications in any status.
  - ``give_workload`` helper that loads an officer with active assignments.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            applicant = create_user()
            je = create_user(role="junior_engineer")
            retired = create_user(role="clerk", is_active=False)
    """
    from accounts.models import OfficerRole, User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        role: str = OfficerRole.APPLICANT,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"{role}{_counter}"
        kwargs.setdefault("email", f"{username}@test.local")
        if role != OfficerRole.APPLICANT:
            kwargs.setdefault("employee_id", f"EMP{_counter:05d}")

        return User.objects.create_user(
            username=username,
            password=password,
            role=role,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(role="admin")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(*, user=None, **user_kwargs) -> dict[str, str]:
        if user is None:
            user = create_user(**user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def make_application(create_user):
    """
    Factory for applications placed directly in a given status, bypassing
    the workflow.  The responsible tier follows the status.
    """
    from accounts.models import OfficerRole
    from applications.models import Application, ApplicationStatus, LicenceType
    from applications.transitions import tier_for_status

    def _factory(status: str = ApplicationStatus.SUBMITTED, *, applicant=None, **kwargs) -> Application:
        if applicant is None:
            applicant = create_user(role=OfficerRole.APPLICANT)
        tier = tier_for_status(status)
        kwargs.setdefault("responsible_tier", tier or "")
        kwargs.setdefault("licence_type", LicenceType.ARCHITECT)
        return Application.objects.create(applicant=applicant, status=status, **kwargs)

    return _factory


@pytest.fixture()
def give_workload(make_application):
    """
    Give ``officer`` ``count`` extra active assignments, each on a fresh
    application.  Returns the created records.
    """
    from assignments.models import AssignmentAction, AssignmentRecord

    def _give(officer, count: int, *, assigned_at=None):
        records = []
        for _ in range(count):
            application = make_application(current_officer=officer, responsible_tier=officer.role)
            extra = {"assigned_at": assigned_at} if assigned_at is not None else {}
            records.append(AssignmentRecord.objects.create(
                application=application,
                officer=officer,
                action=AssignmentAction.ASSIGN,
                role_tier=officer.role,
                status_at_assignment=application.status,
                **extra,
            ))
        return records

    return _give
