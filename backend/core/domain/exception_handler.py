"""
core.domain.exception_handler — DRF exception handler for domain errors.

Services raise ``core.domain.exceptions``; views never catch them.  This
handler turns them into ``{"detail": ..., "code": ...}`` responses.

Registered in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        "EXCEPTION_HANDLER": "core.domain.exception_handler.domain_exception_handler",
    }
"""

from __future__ import annotations

import logging
import re

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    DirectoryUnavailable,
    DomainError,
    NotFound,
    PermissionDenied,
)

logger = logging.getLogger(__name__)

# Looked up along the exception's MRO, so subclasses (``InvalidTransition``,
# ``ApplicationNotFound`` ...) inherit their base's status.
_STATUS_MAP: dict[type[DomainError], int] = {
    DomainError:          status.HTTP_400_BAD_REQUEST,
    PermissionDenied:     status.HTTP_403_FORBIDDEN,
    NotFound:             status.HTTP_404_NOT_FOUND,
    Conflict:             status.HTTP_409_CONFLICT,
    DirectoryUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _status_for(exc: DomainError) -> int:
    for klass in type(exc).__mro__:
        if klass in _STATUS_MAP:
            return _STATUS_MAP[klass]
    return status.HTTP_400_BAD_REQUEST


def _error_code(exc: Exception) -> str:
    """``NoOfficerAvailable`` → ``no_officer_available``."""
    return _CAMEL_BOUNDARY.sub("_", type(exc).__name__).lower()


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Let DRF answer for its own exceptions, then map ``DomainError``
    subclasses.  Anything else returns ``None`` and propagates as a 500.
    """
    response = drf_default_handler(exc, context)
    if response is not None or not isinstance(exc, DomainError):
        return response

    status_code = _status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Domain exception [%s] in %s: %s",
        type(exc).__name__,
        context.get("view", "unknown"),
        exc,
    )
    return Response({"detail": str(exc), "code": _error_code(exc)}, status=status_code)
