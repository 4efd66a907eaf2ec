"""
Assignments Service Layer.

This module is the **single source of truth** for who owns a licence
application.  Views and the workflow orchestrator call into it; nothing
else writes ``AssignmentRecord`` rows.

Architecture
------------
- ``WorkloadService``               — live workload counts and statistics.
- ``AssignmentLedger``              — opens / closes ledger records and
                                      keeps ``Application.current_officer``
                                      in step.
- ``AutoAssignmentService``         — least-loaded officer selection.
- ``ReassignmentService``           — supervisor-driven manual hand-off.
- ``EscalationService``             — stall detection, lateral hand-off,
                                      ladder climb, periodic sweep.
- ``AssignmentService``             — officer acceptance.
- ``AssignmentNotificationService`` — post-commit officer notification
                                      and retry of missed ones.

Concurrency
-----------
Every public write runs in one ``transaction.atomic()`` block that locks
the application row first and then the ``TierLock`` row of each tier it
reads workloads for, in ladder order.  Two concurrent assignments into
the same tier therefore see each other's records, and a transition
racing a reassignment on the same application serialises on the
application row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import Any, Iterable

from django.db import transaction
from django.db.models import Count, Exists, Max, OuterRef, Q, QuerySet
from django.utils import timezone

from accounts.models import OFFICER_TIERS, OfficerRole
from accounts.services import get_role_directory
from applications.models import Application, ApplicationStatus
from applications.transitions import tier_for_status
from core.constants import workflow_setting
from core.domain.access import require_role
from core.domain.exceptions import (
    ApplicationNotFound,
    DirectoryUnavailable,
    DomainError,
    InvalidOfficer,
    NoEscalationPath,
    NoOfficerAvailable,
    PermissionDenied,
)
from core.domain.notifications import get_notifier
from core.domain.transactions import lock_for_update, on_commit_safely

from .models import AssignmentAction, AssignmentRecord, TierLock

logger = logging.getLogger(__name__)

# Sorts never-assigned officers ahead of everyone else in the tie-break.
_NEVER_ASSIGNED = datetime.min.replace(tzinfo=dt_timezone.utc)


def _lock_application(application_id: int) -> Application:
    return lock_for_update(
        Application,
        application_id,
        not_found=lambda: ApplicationNotFound(application_id),
    )


def _lock_tier(role: str) -> None:
    TierLock.objects.select_for_update().get_or_create(role=role)


def _active_officers(role: str) -> list[int]:
    """
    Ask the role directory for active officers of ``role``.

    A directory outage is logged and reported as "nobody available" so
    the caller's transaction can still commit.
    """
    try:
        return list(get_role_directory().list_active_officers(role))
    except DirectoryUnavailable as exc:
        logger.warning("Role directory unavailable while listing %s: %s", role, exc)
        raise NoOfficerAvailable(
            role, message=f"Officer directory unavailable for role '{role}'.",
        ) from exc


def _stall_threshold() -> timedelta:
    return timedelta(hours=workflow_setting("STALL_THRESHOLD_HOURS"))


def _officer_tier_statuses() -> list[str]:
    return [s for s in ApplicationStatus if tier_for_status(s) is not None]


# ═══════════════════════════════════════════════════════════════════
#  Workload
# ═══════════════════════════════════════════════════════════════════


class WorkloadService:
    """
    Workload = number of active assignment records pointing at an
    officer.  Always computed from the ledger, never cached.
    """

    @staticmethod
    def current_workload(officer_id: int) -> int:
        return AssignmentRecord.objects.filter(
            officer_id=officer_id, is_active=True,
        ).count()

    @staticmethod
    def workloads_for(officer_ids: Iterable[int]) -> dict[int, int]:
        """Return ``{officer_id: workload}`` with one aggregate query."""
        officer_ids = list(officer_ids)
        counts = dict(
            AssignmentRecord.objects.filter(
                officer_id__in=officer_ids, is_active=True,
            )
            .order_by()
            .values("officer_id")
            .annotate(total=Count("id"))
            .values_list("officer_id", "total")
        )
        return {officer_id: counts.get(officer_id, 0) for officer_id in officer_ids}

    @staticmethod
    def last_assigned_at(officer_ids: Iterable[int]) -> dict[int, datetime | None]:
        """Most recent ``assigned_at`` per officer, ``None`` if never assigned."""
        officer_ids = list(officer_ids)
        latest = dict(
            AssignmentRecord.objects.filter(officer_id__in=officer_ids)
            .order_by()
            .values("officer_id")
            .annotate(latest=Max("assigned_at"))
            .values_list("officer_id", "latest")
        )
        return {officer_id: latest.get(officer_id) for officer_id in officer_ids}

    @classmethod
    def workload_statistics(cls, role: str) -> dict[int, int]:
        """
        Workload of every active officer of ``role``.

        Raises ``DirectoryUnavailable`` if the directory cannot be reached.
        """
        return cls.workloads_for(get_role_directory().list_active_officers(role))

    @classmethod
    def workload_for_user(cls, officer_id: int, requested_by: Any) -> int:
        """
        Workload of one officer, readable by the officer and supervisors.

        Raises ``InvalidOfficer`` for an unknown id.
        """
        if requested_by.pk != officer_id:
            require_role(requested_by, *workflow_setting("SUPERVISORY_ROLES"))
        get_role_directory().officer_role(officer_id)
        return cls.current_workload(officer_id)

    @classmethod
    def statistics_for_user(cls, role: str, requested_by: Any) -> dict[int, int]:
        require_role(requested_by, *workflow_setting("SUPERVISORY_ROLES"))
        return cls.workload_statistics(role)

    @classmethod
    def pick_least_loaded(
        cls,
        candidate_ids: Iterable[int],
        *,
        below: int | None = None,
    ) -> tuple[int, int] | None:
        """
        Choose the officer to receive the next application.

        Minimum workload wins.  Ties go to the officer idle longest
        (never assigned counts as idle longest), then to the lowest id.
        Officers at ``MAX_WORKLOAD_PER_OFFICER`` are skipped, and with
        ``below`` only officers with a workload strictly under it qualify.

        Returns ``(officer_id, workload)`` or ``None`` if nobody qualifies.
        """
        candidate_ids = list(candidate_ids)
        if not candidate_ids:
            return None

        workloads = cls.workloads_for(candidate_ids)
        cap = workflow_setting("MAX_WORKLOAD_PER_OFFICER")
        eligible = [
            officer_id for officer_id in candidate_ids
            if (cap is None or workloads[officer_id] < cap)
            and (below is None or workloads[officer_id] < below)
        ]
        if not eligible:
            return None

        last = cls.last_assigned_at(eligible)
        chosen = min(
            eligible,
            key=lambda officer_id: (
                workloads[officer_id],
                last[officer_id] or _NEVER_ASSIGNED,
                officer_id,
            ),
        )
        return chosen, workloads[chosen]


# ═══════════════════════════════════════════════════════════════════
#  Ledger
# ═══════════════════════════════════════════════════════════════════


class AssignmentLedger:
    """
    Append-only writes to ``AssignmentRecord``.

    Callers must hold the application row lock.
    """

    @staticmethod
    def close_active(application: Application, *, now: datetime | None = None) -> int | None:
        """
        Deactivate the application's active record, if any, and clear its
        owner.  Returns the id of the officer who held it.
        """
        now = now or timezone.now()
        record = (
            AssignmentRecord.objects.select_for_update()
            .filter(application=application, is_active=True)
            .first()
        )
        previous_officer_id = None
        if record is not None:
            previous_officer_id = record.officer_id
            record.is_active = False
            record.inactivated_at = now
            record.save(update_fields=["is_active", "inactivated_at"])
            logger.info(
                "Closed assignment #%s of application %s (officer %s, %.2fh)",
                record.pk, application.pk, record.officer_id, record.duration_hours,
            )

        if application.current_officer_id is not None:
            application.current_officer = None
            application.save(update_fields=["current_officer", "updated_at"])
        return previous_officer_id

    @classmethod
    def open_record(
        cls,
        application: Application,
        officer_id: int,
        *,
        action: str,
        tier: str,
        workload: int,
        reason: str = "",
        ladder_step: str = "",
        initiated_by: Any = None,
    ) -> AssignmentRecord:
        """
        Close the current record and make ``officer_id`` the owner.

        The officer is notified after the transaction commits.
        """
        now = timezone.now()
        previous_officer_id = cls.close_active(application, now=now)

        record = AssignmentRecord.objects.create(
            application=application,
            previous_officer_id=previous_officer_id,
            officer_id=officer_id,
            initiated_by=initiated_by,
            action=action,
            role_tier=tier,
            status_at_assignment=application.status,
            workload_at_assignment=workload,
            reason=reason,
            ladder_step=ladder_step,
            assigned_at=now,
        )

        application.current_officer_id = officer_id
        application.responsible_tier = tier
        application.needs_operator_attention = False
        application.save(update_fields=[
            "current_officer", "responsible_tier",
            "needs_operator_attention", "updated_at",
        ])

        logger.info(
            "Application %s %s to officer %s (tier=%s, workload=%d, previous=%s)",
            application.pk, action, officer_id, tier, workload, previous_officer_id,
        )
        on_commit_safely(AssignmentNotificationService.deliver, record.pk)
        return record

    @staticmethod
    def history(application_id: int) -> QuerySet[AssignmentRecord]:
        """All records of an application, oldest first."""
        if not Application.objects.filter(pk=application_id).exists():
            raise ApplicationNotFound(application_id)
        return (
            AssignmentRecord.objects.filter(application_id=application_id)
            .select_related("officer", "previous_officer", "initiated_by")
            .order_by("assigned_at", "id")
        )


# ═══════════════════════════════════════════════════════════════════
#  Auto-assignment
# ═══════════════════════════════════════════════════════════════════


class AutoAssignmentService:
    """
    Selects the least-loaded active officer of a role tier and records
    the assignment.
    """

    @classmethod
    def assign(cls, application_id: int, required_role: str, *, reason: str = "") -> AssignmentRecord:
        """
        Assign an application to the least-loaded active officer of
        ``required_role``.

        Parameters
        ----------
        application_id : int
            PK of the application.
        required_role : str
            ``OfficerRole`` tier that must own the application.
        reason : str
            Optional note stored on the record.

        Returns
        -------
        AssignmentRecord
            The new active record.

        Raises
        ------
        ApplicationNotFound
            No application with that id.
        NoOfficerAvailable
            The tier has no active officer (or all are at capacity).
            Nothing is written.
        """
        with transaction.atomic():
            application = _lock_application(application_id)
            return cls.assign_locked(application, required_role, reason=reason)

    @staticmethod
    def assign_locked(
        application: Application,
        required_role: str,
        *,
        action: str = AssignmentAction.ASSIGN,
        reason: str = "",
        ladder_step: str = "",
    ) -> AssignmentRecord:
        """
        ``assign`` for callers that already hold the application lock
        inside their own transaction.
        """
        role = OfficerRole(required_role)
        if role not in OFFICER_TIERS:
            raise DomainError(f"Role '{role}' cannot own an application.")

        candidates = _active_officers(role)
        if not candidates:
            raise NoOfficerAvailable(role)

        _lock_tier(role)
        picked = WorkloadService.pick_least_loaded(candidates)
        if picked is None:
            raise NoOfficerAvailable(
                role, message=f"Every active officer of role '{role}' is at capacity.",
            )

        officer_id, workload = picked
        return AssignmentLedger.open_record(
            application,
            officer_id,
            action=action,
            tier=role,
            workload=workload,
            reason=reason,
            ladder_step=ladder_step,
        )


# ═══════════════════════════════════════════════════════════════════
#  Manual reassignment
# ═══════════════════════════════════════════════════════════════════


class ReassignmentService:

    @staticmethod
    def reassign(
        application_id: int,
        new_officer_id: int,
        reason: str,
        initiated_by: Any,
    ) -> AssignmentRecord:
        """
        Hand an application to a specific officer of its current tier.

        Raises
        ------
        PermissionDenied
            ``initiated_by`` does not hold a supervisory role.
        DomainError
            ``reason`` is blank.
        ApplicationNotFound
            No application with that id.
        InvalidOfficer
            The application is not waiting on an officer tier, or the
            target is unknown, inactive, of another role, or already the
            owner.
        """
        require_role(initiated_by, *workflow_setting("SUPERVISORY_ROLES"))
        reason = (reason or "").strip()
        if not reason:
            raise DomainError("A reason is required to reassign an application.")

        with transaction.atomic():
            application = _lock_application(application_id)
            tier = application.responsible_tier
            if tier not in OFFICER_TIERS:
                raise InvalidOfficer(
                    f"Application {application_id} is not waiting on an officer tier."
                )

            directory = get_role_directory()
            if directory.officer_role(new_officer_id) != tier:
                raise InvalidOfficer(
                    f"Officer {new_officer_id} does not hold the required role '{tier}'."
                )
            if not directory.is_active(new_officer_id):
                raise InvalidOfficer(f"Officer {new_officer_id} is not active.")
            if application.current_officer_id == new_officer_id:
                raise InvalidOfficer(
                    f"Officer {new_officer_id} already owns application {application_id}."
                )

            _lock_tier(tier)
            return AssignmentLedger.open_record(
                application,
                new_officer_id,
                action=AssignmentAction.REASSIGN,
                tier=tier,
                workload=WorkloadService.current_workload(new_officer_id),
                reason=reason,
                initiated_by=initiated_by,
            )


# ═══════════════════════════════════════════════════════════════════
#  Escalation
# ═══════════════════════════════════════════════════════════════════


@dataclass
class SweepReport:
    """Outcome of one ``EscalationService.sweep`` run, by application id."""

    escalated: list[int] = field(default_factory=list)
    blocked: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


class EscalationService:
    """
    Detects stalled applications and moves them to someone who can act:
    first a less-loaded peer in the same tier, then up the escalation
    ladder.
    """

    @staticmethod
    def find_stalled(threshold: timedelta | None = None) -> list[int]:
        """
        Ids of applications waiting on an officer tier that either have
        no owner, or whose owner and status have both been unchanged for
        longer than ``threshold`` (default ``STALL_THRESHOLD_HOURS``).

        Applications already flagged for operator attention are left out.
        """
        cutoff = timezone.now() - (threshold or _stall_threshold())
        active = AssignmentRecord.objects.filter(
            application=OuterRef("pk"), is_active=True,
        )
        return list(
            Application.objects.filter(
                status__in=_officer_tier_statuses(),
                needs_operator_attention=False,
            )
            .filter(
                ~Exists(active)
                | (Exists(active.filter(assigned_at__lt=cutoff)) & Q(status_changed_at__lt=cutoff))
            )
            .order_by("pk")
            .values_list("pk", flat=True)
        )

    @staticmethod
    def _is_stalled(application: Application, cutoff: datetime) -> bool:
        if tier_for_status(application.status) is None:
            return False
        if application.needs_operator_attention:
            return False
        record = AssignmentRecord.objects.filter(
            application=application, is_active=True,
        ).first()
        if record is None:
            return True
        return record.assigned_at < cutoff and application.status_changed_at < cutoff

    @classmethod
    def escalate(
        cls,
        application_id: int,
        reason: str,
        *,
        threshold: timedelta | None = None,
    ) -> AssignmentRecord | None:
        """
        Move an application to an officer who can act on it.

        Parameters
        ----------
        application_id : int
            PK of the application.
        reason : str
            Stored verbatim on the new record.
        threshold : timedelta, optional
            When given, the stall is re-checked under the lock and
            ``None`` is returned if the application is no longer stalled.
            Sweeps pass it so that reruns are harmless.

        Returns
        -------
        AssignmentRecord | None

        Raises
        ------
        ApplicationNotFound
            No application with that id.
        DomainError
            Blank reason, or the application is not waiting on an officer.
        NoEscalationPath
            Nobody in the tier or above can take it.  The application is
            flagged for operator attention and operators are notified.
        """
        reason = (reason or "").strip()
        if not reason:
            raise DomainError("A reason is required to escalate an application.")

        try:
            with transaction.atomic():
                return cls._escalate_locked(application_id, reason, threshold)
        except NoEscalationPath as exc:
            cls._flag_for_operators(application_id, exc, reason)
            raise

    @classmethod
    def _escalate_locked(
        cls,
        application_id: int,
        reason: str,
        threshold: timedelta | None,
    ) -> AssignmentRecord | None:
        application = _lock_application(application_id)

        if threshold is not None:
            if not cls._is_stalled(application, timezone.now() - threshold):
                logger.info("Application %s no longer stalled; skipping", application_id)
                return None
        elif tier_for_status(application.status) is None:
            raise DomainError(
                f"Application {application_id} is not waiting on an officer "
                f"(status '{application.status}')."
            )

        tier = OfficerRole(application.responsible_tier or tier_for_status(application.status))

        record = cls._try_lateral(application, tier, reason)
        if record is not None:
            return record
        return cls._climb_ladder(application, tier, reason)

    @staticmethod
    def _lateral_attempts(application: Application, tier: str) -> int:
        return AssignmentRecord.objects.filter(
            application=application,
            role_tier=tier,
            ladder_step=AssignmentRecord.LATERAL_STEP,
            assigned_at__gte=application.status_changed_at,
        ).count()

    @classmethod
    def _try_lateral(
        cls,
        application: Application,
        tier: OfficerRole,
        reason: str,
    ) -> AssignmentRecord | None:
        if tier not in OFFICER_TIERS:
            return None
        if cls._lateral_attempts(application, tier) >= workflow_setting("MAX_LATERAL_REASSIGNMENTS"):
            return None

        owner_id = application.current_officer_id
        try:
            peers = [
                officer_id for officer_id in _active_officers(tier)
                if officer_id != owner_id
            ]
        except NoOfficerAvailable:
            return None
        if not peers:
            return None

        _lock_tier(tier)
        below = None
        if owner_id is not None and get_role_directory().is_active(owner_id):
            below = WorkloadService.current_workload(owner_id)

        picked = WorkloadService.pick_least_loaded(peers, below=below)
        if picked is None:
            return None

        officer_id, workload = picked
        return AssignmentLedger.open_record(
            application,
            officer_id,
            action=AssignmentAction.REASSIGN if owner_id else AssignmentAction.ASSIGN,
            tier=tier,
            workload=workload,
            reason=reason,
            ladder_step=AssignmentRecord.LATERAL_STEP,
        )

    @staticmethod
    def _climb_ladder(
        application: Application,
        tier: OfficerRole,
        reason: str,
    ) -> AssignmentRecord:
        ladder = workflow_setting("ESCALATION_LADDER")
        visited = {tier}
        current = ladder.get(tier)
        while current and current not in visited:
            target = OfficerRole(current)
            visited.add(target)
            try:
                return AutoAssignmentService.assign_locked(
                    application,
                    target,
                    action=AssignmentAction.ESCALATE,
                    reason=reason,
                    ladder_step=f"{tier}->{target}",
                )
            except NoOfficerAvailable:
                logger.info(
                    "No active %s for application %s; climbing further",
                    target, application.pk,
                )
                current = ladder.get(target)

        raise NoEscalationPath(application.pk, tier)

    @staticmethod
    def _flag_for_operators(application_id: int, exc: NoEscalationPath, reason: str) -> None:
        Application.objects.filter(pk=application_id).update(
            needs_operator_attention=True, updated_at=timezone.now(),
        )
        logger.error("Escalation blocked: %s (reason: %s)", exc, reason)
        on_commit_safely(
            get_notifier().notify_operators,
            application_id,
            f"Application {application_id} is stuck at tier '{exc.role}': {reason}",
        )

    @classmethod
    def sweep(cls, threshold: timedelta | None = None) -> SweepReport:
        """
        Escalate every stalled application once.  Safe to run repeatedly
        or from several workers at the same time.
        """
        threshold = threshold or _stall_threshold()
        hours = threshold.total_seconds() / 3600
        report = SweepReport()
        for application_id in cls.find_stalled(threshold):
            try:
                record = cls.escalate(
                    application_id,
                    f"No progress for {hours:g} hours.",
                    threshold=threshold,
                )
            except NoEscalationPath:
                report.blocked.append(application_id)
                continue
            if record is None:
                report.skipped.append(application_id)
            else:
                report.escalated.append(application_id)

        logger.info(
            "Escalation sweep: %d escalated, %d blocked, %d skipped",
            len(report.escalated), len(report.blocked), len(report.skipped),
        )
        return report


# ═══════════════════════════════════════════════════════════════════
#  Acceptance and notification
# ═══════════════════════════════════════════════════════════════════


class AssignmentService:

    @staticmethod
    def accept(application_id: int, officer: Any) -> AssignmentRecord:
        """
        Record that the owning officer has picked the application up.
        Accepting twice keeps the first timestamp.

        Raises ``PermissionDenied`` unless ``officer`` is the current owner.
        """
        with transaction.atomic():
            application = _lock_application(application_id)
            record = AssignmentRecord.objects.filter(
                application=application, is_active=True,
            ).first()
            if record is None or record.officer_id != officer.pk:
                raise PermissionDenied(
                    "Only the officer currently assigned can accept this application."
                )
            if record.accepted_at is None:
                record.accepted_at = timezone.now()
                record.save(update_fields=["accepted_at"])
                logger.info(
                    "Officer %s accepted application %s", officer.pk, application_id,
                )
            return record


class AssignmentNotificationService:

    @staticmethod
    def deliver(record_id: int) -> None:
        """
        Notify the officer of a record and stamp ``notification_sent_at``.
        Exceptions from the notifier propagate to the caller.
        """
        record = AssignmentRecord.objects.select_related("application").get(pk=record_id)
        application = record.application
        summary = (
            f"Application {application.application_number or application.pk} "
            f"({application.get_status_display()}) was {record.get_action_display().lower()} to you."
        )
        get_notifier().notify_assignment(record.officer_id, application.pk, summary)
        AssignmentRecord.objects.filter(
            pk=record_id, notification_sent_at__isnull=True,
        ).update(notification_sent_at=timezone.now())

    @classmethod
    def retry_pending(cls, older_than: timedelta | None = None) -> tuple[int, int]:
        """
        Resend notifications for active records that were never confirmed
        sent.  Returns ``(sent, failed)``.
        """
        if older_than is None:
            older_than = timedelta(minutes=workflow_setting("NOTIFICATION_RETRY_MINUTES"))
        cutoff = timezone.now() - older_than
        pending = AssignmentRecord.objects.filter(
            is_active=True,
            notification_sent_at__isnull=True,
            assigned_at__lt=cutoff,
        ).order_by("assigned_at").values_list("pk", flat=True)

        sent = failed = 0
        for record_id in pending:
            try:
                cls.deliver(record_id)
            except Exception:
                logger.exception("Retrying notification for assignment #%s failed", record_id)
                failed += 1
            else:
                sent += 1
        return sent, failed
