"""
Applications Service Layer.

Views remain *thin*: they validate input through serializers, call a
service method, and return the result wrapped in a DRF ``Response``.

Architecture
------------
- ``WorkflowService``          — the single entry-point for status
                                 changes.  Checks the transition table,
                                 writes the status log and keeps the
                                 application owned by the right tier.
- ``ApplicationIntakeService`` — draft creation.
- ``ApplicationQueryService``  — role-scoped reads, stall and operator
                                 queues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from accounts.models import OFFICER_TIERS, OfficerRole
from accounts.services import get_role_directory
from assignments.models import AssignmentRecord
from assignments.services import (
    AssignmentLedger,
    AutoAssignmentService,
    EscalationService,
)
from core.constants import workflow_setting
from core.domain.access import apply_role_scope, get_user_role_name, require_role
from core.domain.exceptions import (
    ApplicationNotFound,
    DomainError,
    InvalidOfficer,
    NoOfficerAvailable,
    PermissionDenied,
)
from core.domain.notifications import get_notifier
from core.domain.transactions import lock_for_update, on_commit_safely

from .models import Application, ApplicationStatus, ApplicationStatusLog
from .transitions import (
    can_transition,
    is_terminal,
    legal_next_states,
    require_transition,
    tier_for_status,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Workflow orchestration
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TransitionOutcome:
    """
    Result of ``WorkflowService.transition``.

    ``staffing_gap`` is set when the new tier had no active officer: the
    status change is committed anyway and the application waits ownerless
    for the stall detector.
    """

    application: Application
    previous_status: str
    status: str
    owner_id: int | None
    assignment: AssignmentRecord | None
    staffing_gap: NoOfficerAvailable | None = None


class WorkflowService:
    """
    Façade over the transition table and the assignment engines.
    """

    @classmethod
    def transition(
        cls,
        application_id: int,
        requested_status: str,
        acting_officer_id: int,
        remarks: str = "",
    ) -> TransitionOutcome:
        """
        Move an application to ``requested_status`` on behalf of an
        officer (or the applicant, or an admin).

        Parameters
        ----------
        application_id : int
            PK of the application.
        requested_status : str
            Target ``ApplicationStatus`` value.
        acting_officer_id : int
            PK of the user performing the change.
        remarks : str
            Free text stored on the status log.

        Returns
        -------
        TransitionOutcome

        Raises
        ------
        Failures are delivered as typed ``core.domain.exceptions`` raised
        before anything is written; the DRF exception handler maps each
        one to its HTTP status and ``code``.  A missing officer for the
        new tier is not a failure and comes back on the outcome.

        DomainError
            ``requested_status`` is not a known status.
        ApplicationNotFound
            No application with that id.
        InvalidOfficer
            The actor is unknown or inactive.
        InvalidTransition
            The transition table forbids the change for the actor's role.
        PermissionDenied
            The actor is not the applicant / current owner, or uses a
            lower tier's transition without owning the application.

        Implementation Contract
        -----------------------
        All of the following happen in one transaction, with the
        application row locked first:

        1. Resolve the actor's role through the role directory.
        2. Check the transition table, then ownership.
        3. Update status, write ``ApplicationStatusLog``.
        4. Route ownership for the new status:
           * terminal / applicant-held status → close the active record;
           * the owner keeps it while the new status stays in the tier
             that holds it or in the tier of the previous status (an
             escalated owner working the lower tier's statuses);
           * otherwise, or when nobody owns it → auto-assign; a
             missing officer leaves it ownerless (``staffing_gap``);
           * admin override with ``ADMIN_OVERRIDE_TRIGGERS_ASSIGNMENT``
             off → close the record, no auto-assignment.
        5. After commit, notify the applicant.
        """
        try:
            requested = ApplicationStatus(requested_status)
        except ValueError:
            raise DomainError(f"Unknown status '{requested_status}'.")

        directory = get_role_directory()

        with transaction.atomic():
            application = lock_for_update(
                Application,
                application_id,
                not_found=lambda: ApplicationNotFound(application_id),
            )

            role = directory.officer_role(acting_officer_id)
            if not directory.is_active(acting_officer_id):
                raise InvalidOfficer(f"Officer {acting_officer_id} is not active.")

            previous = application.status
            require_transition(previous, requested, role)
            cls._check_ownership(application, acting_officer_id, role)
            cls._check_inherited_authority(application, acting_officer_id, role, requested)

            now = timezone.now()
            application.status = requested
            application.status_changed_at = now
            update_fields = ["status", "status_changed_at", "updated_at"]
            if requested == ApplicationStatus.SUBMITTED and application.submitted_at is None:
                application.submitted_at = now
                update_fields.append("submitted_at")
            application.save(update_fields=update_fields)

            ApplicationStatusLog.objects.create(
                application=application,
                from_status=previous,
                to_status=requested,
                changed_by_id=acting_officer_id,
                remarks=remarks,
            )

            assignment, gap = cls._route(application, role, previous)

            on_commit_safely(
                get_notifier().notify_applicant,
                application.pk,
                f"Application {application.application_number or application.pk} moved from "
                f"'{ApplicationStatus(previous).label}' to '{requested.label}'.",
            )

        logger.info(
            "Application %s: %s → %s by %s (%s); owner=%s",
            application.pk, previous, requested, acting_officer_id, role,
            application.current_officer_id,
        )
        return TransitionOutcome(
            application=application,
            previous_status=previous,
            status=requested,
            owner_id=application.current_officer_id,
            assignment=assignment,
            staffing_gap=gap,
        )

    @staticmethod
    def _check_ownership(application: Application, actor_id: int, role: str) -> None:
        if role == OfficerRole.ADMIN or not workflow_setting("ENFORCE_OWNERSHIP"):
            return
        if role == OfficerRole.APPLICANT:
            if application.applicant_id != actor_id:
                raise PermissionDenied("Only the applicant may act on this application.")
            return
        owner_id = application.current_officer_id
        if owner_id is not None and owner_id != actor_id:
            raise PermissionDenied(
                f"Application {application.pk} is assigned to another officer."
            )

    @staticmethod
    def _check_inherited_authority(
        application: Application,
        actor_id: int,
        role: str,
        requested: str,
    ) -> None:
        """
        Transitions a role only gets through the escalation ladder are
        reserved for the officer who owns the application.
        """
        if role in (OfficerRole.ADMIN, OfficerRole.APPLICANT):
            return
        if can_transition(application.status, requested, role, ladder={}):
            return
        if application.current_officer_id != actor_id:
            raise PermissionDenied(
                f"Only the officer holding application {application.pk} may act "
                f"for a lower tier on it."
            )

    @staticmethod
    def _route(
        application: Application,
        role: str,
        previous_status: str,
    ) -> tuple[AssignmentRecord | None, NoOfficerAvailable | None]:
        new_tier = tier_for_status(application.status)
        # An escalated owner holds a tier above the one its status implies;
        # it keeps the application until the status leaves that lower tier.
        stays_with_holder = new_tier in (
            application.responsible_tier,
            tier_for_status(previous_status),
        )
        tier_changed = not stays_with_holder
        has_owner = application.current_officer_id is not None

        if new_tier is None:
            AssignmentLedger.close_active(application)
            application.responsible_tier = (
                "" if is_terminal(application.status) else OfficerRole.APPLICANT
            )
            application.save(update_fields=["responsible_tier", "updated_at"])
            return None, None

        if role == OfficerRole.ADMIN and not workflow_setting("ADMIN_OVERRIDE_TRIGGERS_ASSIGNMENT"):
            if tier_changed or not has_owner:
                AssignmentLedger.close_active(application)
                application.responsible_tier = new_tier
                application.save(update_fields=["responsible_tier", "updated_at"])
            return None, None

        if has_owner and not tier_changed:
            return None, None

        try:
            record = AutoAssignmentService.assign_locked(
                application,
                new_tier,
                reason=f"Status changed to {application.status}.",
            )
        except NoOfficerAvailable as gap:
            AssignmentLedger.close_active(application)
            application.responsible_tier = new_tier
            application.save(update_fields=["responsible_tier", "updated_at"])
            logger.warning(
                "Application %s left unassigned at %s: %s",
                application.pk, new_tier, gap,
            )
            return None, gap
        return record, None

    @staticmethod
    def assign_current_tier(application_id: int, user: Any) -> AssignmentRecord:
        """
        Supervisor-triggered auto-assignment to the tier the application's
        status calls for.  Used to pick up applications left ownerless by
        a staffing gap once officers are available again.
        """
        require_role(user, *workflow_setting("SUPERVISORY_ROLES"))
        application = Application.objects.filter(pk=application_id).first()
        if application is None:
            raise ApplicationNotFound(application_id)
        tier = tier_for_status(application.status)
        if tier is None:
            raise DomainError(
                f"Application {application_id} is not waiting on an officer "
                f"(status '{application.status}')."
            )
        return AutoAssignmentService.assign(
            application_id, tier, reason=f"Manual assignment by {user.username}.",
        )

    @staticmethod
    def escalate(application_id: int, user: Any, reason: str) -> AssignmentRecord:
        """Supervisor-triggered escalation, regardless of stall age."""
        require_role(user, *workflow_setting("SUPERVISORY_ROLES"))
        return EscalationService.escalate(application_id, reason)

    @staticmethod
    def legal_next_states_for(application: Application, user: Any) -> list[str]:
        """Statuses ``user`` may move ``application`` to, sorted."""
        role = get_user_role_name(user)
        if role is None:
            return []
        return sorted(legal_next_states(application.status, role))


# ═══════════════════════════════════════════════════════════════════
#  Intake
# ═══════════════════════════════════════════════════════════════════


class ApplicationIntakeService:

    @staticmethod
    @transaction.atomic
    def create_draft(applicant: Any, licence_type: str, title: str = "") -> Application:
        """
        Create a new application in ``draft`` for ``applicant``.

        The application number (``LIC-<year>-<id>``) is assigned once the
        row has a primary key.
        """
        require_role(applicant, OfficerRole.APPLICANT, OfficerRole.ADMIN)
        application = Application.objects.create(
            applicant=applicant,
            licence_type=licence_type,
            title=title,
            responsible_tier=OfficerRole.APPLICANT,
        )
        application.application_number = (
            f"LIC-{application.created_at:%Y}-{application.pk:06d}"
        )
        application.save(update_fields=["application_number"])
        logger.info("Draft application %s created by %s", application.pk, applicant.pk)
        return application


# ═══════════════════════════════════════════════════════════════════
#  Queries
# ═══════════════════════════════════════════════════════════════════

def _handled_by(qs: QuerySet, user: Any) -> QuerySet:
    return qs.filter(
        Q(current_officer=user) | Q(assignment_records__officer=user)
    ).distinct()


APPLICATION_SCOPE_RULES = [
    ((OfficerRole.ADMIN,), lambda qs, u: qs),
    (tuple(OFFICER_TIERS), _handled_by),
    ((OfficerRole.APPLICANT,), lambda qs, u: qs.filter(applicant=u)),
]


class ApplicationQueryService:

    @staticmethod
    def visible_to(user: Any) -> QuerySet[Application]:
        """
        Applications ``user`` may see: everything for admins, owned or
        previously handled ones for officers, their own for applicants.
        """
        qs = Application.objects.select_related("applicant", "current_officer")
        return apply_role_scope(qs, user, scope_rules=APPLICATION_SCOPE_RULES)

    @classmethod
    def get_visible(cls, user: Any, application_id: int) -> Application:
        try:
            return cls.visible_to(user).get(pk=application_id)
        except Application.DoesNotExist:
            raise ApplicationNotFound(application_id)

    @staticmethod
    def status_log(application: Application) -> QuerySet[ApplicationStatusLog]:
        return application.status_logs.select_related("changed_by")

    @staticmethod
    def stalled(user: Any, threshold: timedelta | None = None) -> QuerySet[Application]:
        require_role(user, *workflow_setting("SUPERVISORY_ROLES"))
        ids = EscalationService.find_stalled(threshold)
        return Application.objects.filter(pk__in=ids).order_by("status_changed_at")

    @staticmethod
    def attention_queue(user: Any) -> QuerySet[Application]:
        require_role(user, *workflow_setting("SUPERVISORY_ROLES"))
        return Application.objects.filter(
            needs_operator_attention=True,
        ).order_by("updated_at")
