"""
core.domain.exceptions — Workflow exception hierarchy.

Raised by the service layers, never by views.  They are plain Python
exceptions, not DRF ones; ``core.domain.exception_handler`` maps them to
HTTP statuses by base class:

    DomainError ............................ 400
    ├── InvalidOfficer ..................... 400
    ├── PermissionDenied ................... 403
    ├── NotFound ........................... 404
    │   └── ApplicationNotFound
    ├── Conflict ........................... 409
    │   ├── InvalidTransition
    │   ├── NoOfficerAvailable
    │   └── NoEscalationPath
    └── DirectoryUnavailable ............... 503

``NoOfficerAvailable`` only reaches a client from the explicit
assignment endpoints; ``WorkflowService.transition`` reports it on the
returned outcome instead.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class of every workflow rule violation."""

    default_message = "A business rule was violated."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(DomainError):
    """The acting user's role does not allow this operation."""

    default_message = "You do not have permission to perform this action."


class NotFound(DomainError):
    default_message = "The requested resource was not found."


class ApplicationNotFound(NotFound):

    def __init__(self, application_id=None) -> None:
        self.application_id = application_id
        super().__init__(
            f"Application with id {application_id} not found."
            if application_id is not None else "Application not found."
        )


class InvalidOfficer(DomainError):
    """
    The officer named in a request cannot take or act on the application:
    unknown, inactive, holding the wrong role, or already the owner.
    """

    default_message = "The officer is not valid for this assignment."


class Conflict(DomainError):
    """The request is incompatible with the application's current state."""

    default_message = "The operation conflicts with the current state."


class InvalidTransition(Conflict):
    """
    The transition table does not allow ``current → target`` for ``role``.

    Example::

        raise InvalidTransition(
            current="submitted",
            target="approved_by_ae",
            role="junior_engineer",
        )
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        role: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.current = current
        self.target = target
        self.role = role
        self.reason = reason
        if message is None:
            message = "Invalid state transition"
            if current and target:
                message += f" from '{current}' to '{target}'"
            if role:
                message += f" for role '{role}'"
            if reason:
                message += f" ({reason})"
            message += "."
        super().__init__(message)


class NoOfficerAvailable(Conflict):
    """No active officer of ``role`` can take the application."""

    def __init__(self, role: str | None = None, message: str | None = None) -> None:
        self.role = role
        if message is None and role:
            message = f"No active officer available for role '{role}'."
        super().__init__(message or "No active officer available.")


class NoEscalationPath(Conflict):
    """
    Neither a same-tier peer nor any tier up the ladder has an officer
    who can take the application.  Needs operator attention.
    """

    def __init__(self, application_id=None, role: str | None = None) -> None:
        self.application_id = application_id
        self.role = role
        super().__init__(
            f"No escalation path for application {application_id} from role '{role}'."
        )


class DirectoryUnavailable(DomainError):
    """
    The role directory timed out or is down.  Auto-assignment degrades it
    to ``NoOfficerAvailable``.
    """

    default_message = "The officer directory is unavailable."
