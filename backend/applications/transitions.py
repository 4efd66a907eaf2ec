"""
applications.transitions — The status transition table.

Pure lookups over static configuration: no database access, no side
effects.  ``WorkflowService`` is the only caller that acts on the
answers.

Rules
-----
* ``admin`` may move an application from any status to any *other*
  status (manual override).
* Every other role is restricted to ``_ROLE_TRANSITIONS``, plus the
  transitions of every tier whose escalation ladder leads up to it: an
  assistant engineer who receives an escalated junior-engineer
  application can act on it.
* Terminal statuses have no outgoing transitions for non-admin roles.
* Requesting the current status is never legal.

Transition map (non-admin)::

    applicant           draft → submitted
                        payment_pending → payment_completed
    junior_engineer     submitted → under_review_by_je | rejected_by_je
                        under_review_by_je → approved_by_je | rejected_by_je
    assistant_engineer  approved_by_je → under_review_by_ae
                        under_review_by_ae → approved_by_ae | rejected_by_ae
    executive_engineer  approved_by_ae → under_review_by_ee1
                        under_review_by_ee1 → approved_by_ee1 | rejected_by_ee1
                        processed_by_clerk → under_digital_signature_by_ee2
                        under_digital_signature_by_ee2 → digital_signature_completed_by_ee2 | rejected_by_ee2
    city_engineer       approved_by_ee1 → under_review_by_ce1
                        under_review_by_ce1 → approved_by_ce1 | rejected_by_ce1
                        approved_by_ce1 → payment_pending
                        digital_signature_completed_by_ee2 → under_final_approval_by_ce2
                        under_final_approval_by_ce2 → certificate_issued | rejected_by_ce2
    clerk               payment_completed → under_processing_by_clerk
                        under_processing_by_clerk → processed_by_clerk | rejected_by_clerk
                        certificate_issued → completed
"""

from __future__ import annotations

from typing import Mapping

from accounts.models import OfficerRole
from core.constants import workflow_setting
from core.domain.exceptions import InvalidTransition

from .models import ApplicationStatus

_S = ApplicationStatus
_R = OfficerRole

_ROLE_TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    _R.APPLICANT: {
        _S.DRAFT: frozenset({_S.SUBMITTED}),
        _S.PAYMENT_PENDING: frozenset({_S.PAYMENT_COMPLETED}),
    },
    _R.JUNIOR_ENGINEER: {
        _S.SUBMITTED: frozenset({_S.UNDER_REVIEW_BY_JE, _S.REJECTED_BY_JE}),
        _S.UNDER_REVIEW_BY_JE: frozenset({_S.APPROVED_BY_JE, _S.REJECTED_BY_JE}),
    },
    _R.ASSISTANT_ENGINEER: {
        _S.APPROVED_BY_JE: frozenset({_S.UNDER_REVIEW_BY_AE}),
        _S.UNDER_REVIEW_BY_AE: frozenset({_S.APPROVED_BY_AE, _S.REJECTED_BY_AE}),
    },
    _R.EXECUTIVE_ENGINEER: {
        _S.APPROVED_BY_AE: frozenset({_S.UNDER_REVIEW_BY_EE1}),
        _S.UNDER_REVIEW_BY_EE1: frozenset({_S.APPROVED_BY_EE1, _S.REJECTED_BY_EE1}),
        _S.PROCESSED_BY_CLERK: frozenset({_S.UNDER_DIGITAL_SIGNATURE_BY_EE2}),
        _S.UNDER_DIGITAL_SIGNATURE_BY_EE2: frozenset({
            _S.DIGITAL_SIGNATURE_COMPLETED_BY_EE2, _S.REJECTED_BY_EE2,
        }),
    },
    _R.CITY_ENGINEER: {
        _S.APPROVED_BY_EE1: frozenset({_S.UNDER_REVIEW_BY_CE1}),
        _S.UNDER_REVIEW_BY_CE1: frozenset({_S.APPROVED_BY_CE1, _S.REJECTED_BY_CE1}),
        _S.APPROVED_BY_CE1: frozenset({_S.PAYMENT_PENDING}),
        _S.DIGITAL_SIGNATURE_COMPLETED_BY_EE2: frozenset({_S.UNDER_FINAL_APPROVAL_BY_CE2}),
        _S.UNDER_FINAL_APPROVAL_BY_CE2: frozenset({
            _S.CERTIFICATE_ISSUED, _S.REJECTED_BY_CE2,
        }),
    },
    _R.CLERK: {
        _S.PAYMENT_COMPLETED: frozenset({_S.UNDER_PROCESSING_BY_CLERK}),
        _S.UNDER_PROCESSING_BY_CLERK: frozenset({
            _S.PROCESSED_BY_CLERK, _S.REJECTED_BY_CLERK,
        }),
        _S.CERTIFICATE_ISSUED: frozenset({_S.COMPLETED}),
    },
}

TERMINAL_STATUSES: frozenset[str] = frozenset({
    _S.COMPLETED,
    _S.REJECTED_BY_JE,
    _S.REJECTED_BY_AE,
    _S.REJECTED_BY_EE1,
    _S.REJECTED_BY_CE1,
    _S.REJECTED_BY_CLERK,
    _S.REJECTED_BY_EE2,
    _S.REJECTED_BY_CE2,
})

# Officer tier responsible for an application sitting in each status.
# Statuses missing here are handled by the applicant or are terminal.
_STATUS_TIER: dict[str, OfficerRole] = {
    _S.SUBMITTED: _R.JUNIOR_ENGINEER,
    _S.UNDER_REVIEW_BY_JE: _R.JUNIOR_ENGINEER,
    _S.APPROVED_BY_JE: _R.ASSISTANT_ENGINEER,
    _S.UNDER_REVIEW_BY_AE: _R.ASSISTANT_ENGINEER,
    _S.APPROVED_BY_AE: _R.EXECUTIVE_ENGINEER,
    _S.UNDER_REVIEW_BY_EE1: _R.EXECUTIVE_ENGINEER,
    _S.APPROVED_BY_EE1: _R.CITY_ENGINEER,
    _S.UNDER_REVIEW_BY_CE1: _R.CITY_ENGINEER,
    _S.APPROVED_BY_CE1: _R.CITY_ENGINEER,
    _S.PAYMENT_COMPLETED: _R.CLERK,
    _S.UNDER_PROCESSING_BY_CLERK: _R.CLERK,
    _S.PROCESSED_BY_CLERK: _R.EXECUTIVE_ENGINEER,
    _S.UNDER_DIGITAL_SIGNATURE_BY_EE2: _R.EXECUTIVE_ENGINEER,
    _S.DIGITAL_SIGNATURE_COMPLETED_BY_EE2: _R.CITY_ENGINEER,
    _S.UNDER_FINAL_APPROVAL_BY_CE2: _R.CITY_ENGINEER,
    _S.CERTIFICATE_ISSUED: _R.CLERK,
}


def is_terminal(status: str) -> bool:
    return ApplicationStatus(status) in TERMINAL_STATUSES


def tier_for_status(status: str) -> OfficerRole | None:
    """
    Return the officer tier that owns an application in ``status``, or
    ``None`` for applicant-held and terminal statuses.
    """
    return _STATUS_TIER.get(ApplicationStatus(status))


def _escalation_ladder() -> Mapping[str, str]:
    return workflow_setting("ESCALATION_LADDER")


def roles_acting_as(role: str, ladder: Mapping[str, str] | None = None) -> list[OfficerRole]:
    """
    Return ``role`` followed by every tier whose escalation chain reaches
    it, nearest first.

    With the default ladder ``roles_acting_as("executive_engineer")`` is
    ``[executive_engineer, assistant_engineer, junior_engineer]``.
    """
    if ladder is None:
        ladder = _escalation_ladder()
    role = OfficerRole(role)
    result = [role]
    frontier = [role]
    while frontier:
        target = frontier.pop(0)
        for lower, upper in ladder.items():
            lower = OfficerRole(lower)
            if upper == target and lower not in result:
                result.append(lower)
                frontier.append(lower)
    return result


def legal_next_states(
    current: str,
    acting_role: str,
    *,
    ladder: Mapping[str, str] | None = None,
) -> frozenset[ApplicationStatus]:
    """
    Return every status ``acting_role`` may move an application to from
    ``current``.

    Raises ``ValueError`` when ``current`` or ``acting_role`` is not a
    known value.
    """
    current = ApplicationStatus(current)
    acting_role = OfficerRole(acting_role)

    if acting_role == OfficerRole.ADMIN:
        return frozenset(s for s in ApplicationStatus if s != current)

    if current in TERMINAL_STATUSES:
        return frozenset()

    targets: set[str] = set()
    for role in roles_acting_as(acting_role, ladder):
        targets |= _ROLE_TRANSITIONS.get(role, {}).get(current, frozenset())
    targets.discard(current)
    return frozenset(ApplicationStatus(t) for t in targets)


def can_transition(
    current: str,
    requested: str,
    acting_role: str,
    *,
    ladder: Mapping[str, str] | None = None,
) -> bool:
    return requested in legal_next_states(current, acting_role, ladder=ladder)


def require_transition(
    current: str,
    requested: str,
    acting_role: str,
    *,
    ladder: Mapping[str, str] | None = None,
) -> None:
    """
    Raise ``InvalidTransition`` unless ``acting_role`` may move the
    application from ``current`` to ``requested``.
    """
    if not can_transition(current, requested, acting_role, ladder=ladder):
        raise InvalidTransition(
            current=str(current),
            target=str(requested),
            role=str(acting_role),
        )
