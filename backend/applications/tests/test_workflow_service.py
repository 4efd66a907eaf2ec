"""
Tests for ``WorkflowService.transition`` and draft intake.
"""

from __future__ import annotations

import re
from datetime import timedelta

import pytest

from accounts.models import OfficerRole
from applications.models import Application, ApplicationStatus, ApplicationStatusLog, LicenceType
from applications.services import ApplicationIntakeService, WorkflowService
from assignments.models import AssignmentAction, AssignmentRecord
from assignments.services import AutoAssignmentService, EscalationService, WorkloadService
from core.domain.exceptions import (
    ApplicationNotFound,
    DomainError,
    InvalidOfficer,
    InvalidTransition,
    NoOfficerAvailable,
    PermissionDenied,
)
from core.models import Notification

S = ApplicationStatus
JE = OfficerRole.JUNIOR_ENGINEER
AE = OfficerRole.ASSISTANT_ENGINEER


class ExplodingNotifier:
    """Notifier whose every delivery fails."""

    def notify_assignment(self, officer_id, application_id, summary):
        raise ConnectionError("SMTP down")

    def notify_applicant(self, application_id, summary):
        raise ConnectionError("SMTP down")

    def notify_operators(self, application_id, summary):
        raise ConnectionError("SMTP down")


@pytest.fixture()
def owned_application(create_user, make_application):
    """An application under JE review, owned by a junior engineer."""
    owner = create_user(role=JE)
    application = make_application(S.UNDER_REVIEW_BY_JE)
    AutoAssignmentService.assign(application.pk, JE)
    application.refresh_from_db()
    return application, owner


@pytest.mark.django_db
class TestIntake:

    def test_draft_gets_number_and_applicant_tier(self, create_user):
        applicant = create_user()
        application = ApplicationIntakeService.create_draft(applicant, LicenceType.ARCHITECT, "Studio")

        assert application.status == S.DRAFT
        assert application.responsible_tier == OfficerRole.APPLICANT
        assert application.current_officer_id is None
        assert re.fullmatch(r"LIC-\d{4}-\d{6}", application.application_number)

    def test_officers_cannot_open_drafts(self, create_user):
        with pytest.raises(PermissionDenied):
            ApplicationIntakeService.create_draft(create_user(role=JE), LicenceType.ARCHITECT)


@pytest.mark.django_db
class TestTransitionRouting:

    def test_submission_assigns_junior_engineer(self, create_user):
        applicant = create_user()
        je = create_user(role=JE)
        draft = ApplicationIntakeService.create_draft(applicant, LicenceType.STRUCTURAL_ENGINEER)

        outcome = WorkflowService.transition(draft.pk, S.SUBMITTED, applicant.pk, remarks="Ready")

        assert outcome.previous_status == S.DRAFT
        assert outcome.status == S.SUBMITTED
        assert outcome.owner_id == je.pk
        assert outcome.staffing_gap is None
        assert outcome.assignment.action == AssignmentAction.ASSIGN
        application = Application.objects.get(pk=draft.pk)
        assert application.submitted_at is not None
        assert application.responsible_tier == JE
        log = ApplicationStatusLog.objects.get(application=application)
        assert (log.from_status, log.to_status, log.changed_by_id, log.remarks) == (
            S.DRAFT, S.SUBMITTED, applicant.pk, "Ready",
        )

    def test_staffing_gap_commits_status_without_owner(self, create_user):
        applicant = create_user()
        draft = ApplicationIntakeService.create_draft(applicant, LicenceType.ARCHITECT)

        outcome = WorkflowService.transition(draft.pk, S.SUBMITTED, applicant.pk)

        assert isinstance(outcome.staffing_gap, NoOfficerAvailable)
        assert outcome.owner_id is None
        application = Application.objects.get(pk=draft.pk)
        assert application.status == S.SUBMITTED
        assert application.responsible_tier == JE
        assert EscalationService.find_stalled(timedelta(hours=72)) == [application.pk]

    def test_same_tier_keeps_owner(self, create_user, make_application):
        owner = create_user(role=JE)
        application = make_application(S.SUBMITTED)
        AutoAssignmentService.assign(application.pk, JE)

        outcome = WorkflowService.transition(application.pk, S.UNDER_REVIEW_BY_JE, owner.pk)

        assert outcome.owner_id == owner.pk
        assert outcome.assignment is None
        assert AssignmentRecord.objects.filter(application=application).count() == 1

    def test_entering_new_tier_moves_ownership(self, create_user, owned_application):
        application, owner = owned_application
        ae = create_user(role=AE)

        outcome = WorkflowService.transition(application.pk, S.APPROVED_BY_JE, owner.pk)

        assert outcome.owner_id == ae.pk
        assert outcome.assignment.previous_officer_id == owner.pk
        assert outcome.assignment.role_tier == AE
        assert WorkloadService.current_workload(owner.pk) == 0
        assert WorkloadService.current_workload(ae.pk) == 1

    def test_terminal_status_closes_assignment(self, owned_application):
        application, owner = owned_application

        outcome = WorkflowService.transition(application.pk, S.REJECTED_BY_JE, owner.pk, "Incomplete")

        assert outcome.owner_id is None
        application.refresh_from_db()
        assert application.responsible_tier == ""
        assert WorkloadService.current_workload(owner.pk) == 0
        assert not AssignmentRecord.objects.filter(application=application, is_active=True).exists()

    def test_payment_round_trip_through_applicant(self, create_user, make_application):
        ce = create_user(role=OfficerRole.CITY_ENGINEER)
        clerk = create_user(role=OfficerRole.CLERK)
        application = make_application(S.APPROVED_BY_CE1)
        AutoAssignmentService.assign(application.pk, OfficerRole.CITY_ENGINEER)

        WorkflowService.transition(application.pk, S.PAYMENT_PENDING, ce.pk)
        application.refresh_from_db()
        assert application.current_officer_id is None
        assert application.responsible_tier == OfficerRole.APPLICANT

        outcome = WorkflowService.transition(application.pk, S.PAYMENT_COMPLETED, application.applicant_id)
        assert outcome.owner_id == clerk.pk

    def test_escalated_owner_acts_on_lower_tier_status(self, create_user, owned_application):
        application, _ = owned_application
        ae = create_user(role=AE)
        EscalationService.escalate(application.pk, "Owner on leave")

        outcome = WorkflowService.transition(application.pk, S.APPROVED_BY_JE, ae.pk)

        assert outcome.owner_id == ae.pk
        assert outcome.assignment is None

    def test_escalated_owner_keeps_application_within_lower_tier(self, create_user, make_application):
        je = create_user(role=JE)
        application = make_application(S.SUBMITTED)
        AutoAssignmentService.assign(application.pk, JE)
        je.is_active = False
        je.save(update_fields=["is_active"])
        ae = create_user(role=AE)
        EscalationService.escalate(application.pk, "Junior engineer left")

        outcome = WorkflowService.transition(application.pk, S.UNDER_REVIEW_BY_JE, ae.pk)

        assert outcome.owner_id == ae.pk
        assert outcome.staffing_gap is None
        assert outcome.assignment is None
        application.refresh_from_db()
        assert application.responsible_tier == AE
        assert AssignmentRecord.objects.get(application=application, is_active=True).officer_id == ae.pk
        assert EscalationService.find_stalled(timedelta(hours=72)) == []


@pytest.mark.django_db
class TestTransitionRejections:

    def test_higher_tier_cannot_act_for_ownerless_lower_tier(self, create_user, make_application):
        ae = create_user(role=AE)
        application = make_application(S.SUBMITTED)

        with pytest.raises(PermissionDenied):
            WorkflowService.transition(application.pk, S.UNDER_REVIEW_BY_JE, ae.pk)

        application.refresh_from_db()
        assert application.status == S.SUBMITTED

    def test_other_officer_is_not_the_owner(self, create_user, owned_application):
        application, _ = owned_application
        stranger = create_user(role=JE)

        with pytest.raises(PermissionDenied):
            WorkflowService.transition(application.pk, S.APPROVED_BY_JE, stranger.pk)

        application.refresh_from_db()
        assert application.status == S.UNDER_REVIEW_BY_JE
        assert not ApplicationStatusLog.objects.filter(application=application).exists()

    def test_applicant_acts_only_on_own_application(self, create_user, make_application):
        application = make_application(S.DRAFT)
        other = create_user()

        with pytest.raises(PermissionDenied):
            WorkflowService.transition(application.pk, S.SUBMITTED, other.pk)

    def test_illegal_move_for_role(self, owned_application):
        application, owner = owned_application

        with pytest.raises(InvalidTransition) as excinfo:
            WorkflowService.transition(application.pk, S.COMPLETED, owner.pk)

        assert excinfo.value.role == JE
        application.refresh_from_db()
        assert application.status == S.UNDER_REVIEW_BY_JE

    def test_inactive_actor(self, owned_application):
        application, owner = owned_application
        owner.is_active = False
        owner.save(update_fields=["is_active"])

        with pytest.raises(InvalidOfficer):
            WorkflowService.transition(application.pk, S.APPROVED_BY_JE, owner.pk)

    def test_unknown_actor(self, owned_application):
        application, _ = owned_application
        with pytest.raises(InvalidOfficer):
            WorkflowService.transition(application.pk, S.APPROVED_BY_JE, 999_999)

    def test_unknown_status(self, owned_application):
        application, owner = owned_application
        with pytest.raises(DomainError):
            WorkflowService.transition(application.pk, "teleported", owner.pk)

    def test_unknown_application(self, create_user):
        with pytest.raises(ApplicationNotFound):
            WorkflowService.transition(999_999, S.SUBMITTED, create_user().pk)


@pytest.mark.django_db
class TestAdminOverride:

    def test_override_assigns_new_tier_by_default(self, create_user, owned_application):
        application, owner = owned_application
        admin = create_user(role=OfficerRole.ADMIN)
        ae = create_user(role=AE)

        outcome = WorkflowService.transition(application.pk, S.UNDER_REVIEW_BY_AE, admin.pk)

        assert outcome.owner_id == ae.pk

    def test_override_without_auto_assignment(self, settings, create_user, owned_application):
        settings.WORKFLOW = {"ADMIN_OVERRIDE_TRIGGERS_ASSIGNMENT": False}
        application, owner = owned_application
        admin = create_user(role=OfficerRole.ADMIN)
        create_user(role=AE)

        outcome = WorkflowService.transition(application.pk, S.UNDER_REVIEW_BY_AE, admin.pk)

        assert outcome.owner_id is None
        assert outcome.assignment is None
        application.refresh_from_db()
        assert application.responsible_tier == AE
        assert WorkloadService.current_workload(owner.pk) == 0

    def test_admin_reopens_terminal_application(self, create_user, make_application):
        admin = create_user(role=OfficerRole.ADMIN)
        je = create_user(role=JE)
        application = make_application(S.REJECTED_BY_JE)

        outcome = WorkflowService.transition(application.pk, S.SUBMITTED, admin.pk, "Rejected in error")
        assert outcome.owner_id == je.pk


@pytest.mark.django_db
class TestNotifications:

    def test_applicant_and_officer_are_notified_after_commit(
        self, create_user, django_capture_on_commit_callbacks,
    ):
        applicant = create_user()
        je = create_user(role=JE)
        draft = ApplicationIntakeService.create_draft(applicant, LicenceType.ARCHITECT)

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            outcome = WorkflowService.transition(draft.pk, S.SUBMITTED, applicant.pk)

        assert len(callbacks) == 2
        assert Notification.objects.filter(recipient=applicant, title="Application Status Updated").exists()
        assert Notification.objects.filter(recipient=je, title="Application Assigned").exists()
        outcome.assignment.refresh_from_db()
        assert outcome.assignment.notification_sent_at is not None

    def test_failing_notifier_never_undoes_the_transition(
        self, settings, create_user, django_capture_on_commit_callbacks,
    ):
        settings.WORKFLOW = {
            "NOTIFIER": "applications.tests.test_workflow_service.ExplodingNotifier",
        }
        applicant = create_user()
        create_user(role=JE)
        draft = ApplicationIntakeService.create_draft(applicant, LicenceType.ARCHITECT)

        with django_capture_on_commit_callbacks(execute=True):
            outcome = WorkflowService.transition(draft.pk, S.SUBMITTED, applicant.pk)

        application = Application.objects.get(pk=draft.pk)
        assert application.status == S.SUBMITTED
        assert application.current_officer_id == outcome.owner_id
        record = AssignmentRecord.objects.get(application=application, is_active=True)
        assert record.notification_sent_at is None
