from __future__ import annotations

import pytest
from rest_framework.exceptions import ValidationError

from core.domain.exception_handler import domain_exception_handler
from core.domain.exceptions import (
    ApplicationNotFound,
    DirectoryUnavailable,
    DomainError,
    InvalidOfficer,
    InvalidTransition,
    NoEscalationPath,
    NoOfficerAvailable,
    PermissionDenied,
)


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (PermissionDenied(), 403, "permission_denied"),
        (ApplicationNotFound(7), 404, "application_not_found"),
        (InvalidTransition(current="draft", target="completed", role="clerk"), 409, "invalid_transition"),
        (NoOfficerAvailable("clerk"), 409, "no_officer_available"),
        (NoEscalationPath(7, "clerk"), 409, "no_escalation_path"),
        (DirectoryUnavailable(), 503, "directory_unavailable"),
        (InvalidOfficer(), 400, "invalid_officer"),
        (DomainError("Reason required."), 400, "domain_error"),
    ],
)
def test_domain_exceptions_map_to_http(exc, status_code, code):
    response = domain_exception_handler(exc, {"view": None})

    assert response.status_code == status_code
    assert response.data == {"detail": str(exc), "code": code}


def test_drf_exceptions_use_default_handling():
    response = domain_exception_handler(ValidationError({"status": ["bad"]}), {})
    assert response.status_code == 400
    assert response.data == {"status": ["bad"]}


def test_unrelated_exceptions_propagate():
    assert domain_exception_handler(RuntimeError("boom"), {}) is None


def test_not_found_message_names_application():
    assert "42" in str(ApplicationNotFound(42))
