"""
Tests for stall detection, lateral hand-off, ladder escalation and sweeps.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from accounts.models import OfficerRole
from applications.models import Application, ApplicationStatus
from assignments.models import AssignmentAction, AssignmentRecord
from assignments.services import AutoAssignmentService, EscalationService
from core.domain.exceptions import DomainError, NoEscalationPath
from core.models import Notification

JE = OfficerRole.JUNIOR_ENGINEER
AE = OfficerRole.ASSISTANT_ENGINEER
EE = OfficerRole.EXECUTIVE_ENGINEER

THRESHOLD = timedelta(hours=72)


def _age(application, hours: float = 100) -> None:
    """Pretend the application and its active record are ``hours`` old."""
    past = timezone.now() - timedelta(hours=hours)
    Application.objects.filter(pk=application.pk).update(status_changed_at=past)
    AssignmentRecord.objects.filter(application=application, is_active=True).update(assigned_at=past)
    application.refresh_from_db()


@pytest.fixture()
def stalled_application(create_user, make_application):
    owner = create_user(role=JE)
    application = make_application(ApplicationStatus.UNDER_REVIEW_BY_JE)
    AutoAssignmentService.assign(application.pk, JE)
    _age(application)
    return application, owner


@pytest.mark.django_db
class TestFindStalled:

    def test_old_assignment_is_stalled(self, stalled_application):
        application, _ = stalled_application
        assert EscalationService.find_stalled(THRESHOLD) == [application.pk]

    def test_fresh_assignment_is_not_stalled(self, create_user, make_application):
        create_user(role=JE)
        application = make_application()
        AutoAssignmentService.assign(application.pk, JE)

        assert EscalationService.find_stalled(THRESHOLD) == []

    def test_recent_status_change_is_progress(self, stalled_application):
        application, _ = stalled_application
        Application.objects.filter(pk=application.pk).update(status_changed_at=timezone.now())

        assert EscalationService.find_stalled(THRESHOLD) == []

    def test_ownerless_application_is_stalled_immediately(self, make_application):
        application = make_application(ApplicationStatus.SUBMITTED)
        assert EscalationService.find_stalled(THRESHOLD) == [application.pk]

    def test_applicant_and_terminal_statuses_are_ignored(self, make_application):
        make_application(ApplicationStatus.DRAFT)
        make_application(ApplicationStatus.PAYMENT_PENDING)
        make_application(ApplicationStatus.COMPLETED)
        make_application(ApplicationStatus.REJECTED_BY_AE)

        assert EscalationService.find_stalled(THRESHOLD) == []

    def test_flagged_application_is_left_to_operators(self, make_application):
        make_application(ApplicationStatus.SUBMITTED, needs_operator_attention=True)
        assert EscalationService.find_stalled(THRESHOLD) == []


@pytest.mark.django_db
class TestEscalate:

    def test_lateral_handoff_to_less_loaded_peer(self, create_user, stalled_application, give_workload):
        application, owner = stalled_application
        give_workload(owner, 2)
        peer = create_user(role=JE)

        record = EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)

        assert record.officer_id == peer.pk
        assert record.previous_officer_id == owner.pk
        assert record.action == AssignmentAction.REASSIGN
        assert record.ladder_step == AssignmentRecord.LATERAL_STEP
        application.refresh_from_db()
        assert application.responsible_tier == JE

    def test_equally_loaded_peer_means_climbing(self, create_user, stalled_application, give_workload):
        application, owner = stalled_application
        peer = create_user(role=JE)
        give_workload(peer, 1)
        senior = create_user(role=AE)

        record = EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)

        assert record.officer_id == senior.pk
        assert record.action == AssignmentAction.ESCALATE
        assert record.ladder_step == "junior_engineer->assistant_engineer"
        assert record.reason == "Stalled"
        application.refresh_from_db()
        assert application.responsible_tier == AE
        assert application.current_officer_id == senior.pk
        assert application.status == ApplicationStatus.UNDER_REVIEW_BY_JE

    def test_inactive_owner_is_handed_to_any_peer(self, create_user, stalled_application, give_workload):
        application, owner = stalled_application
        owner.is_active = False
        owner.save(update_fields=["is_active"])
        peer = create_user(role=JE)
        give_workload(peer, 5)

        record = EscalationService.escalate(application.pk, "Owner left", threshold=THRESHOLD)
        assert record.officer_id == peer.pk
        assert record.ladder_step == AssignmentRecord.LATERAL_STEP

    def test_lateral_limit_forces_climb(self, settings, create_user, stalled_application, give_workload):
        settings.WORKFLOW = {"MAX_LATERAL_REASSIGNMENTS": 0}
        application, owner = stalled_application
        give_workload(owner, 2)
        create_user(role=JE)
        senior = create_user(role=AE)

        record = EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)
        assert record.officer_id == senior.pk

    def test_empty_tier_is_skipped(self, create_user, stalled_application):
        application, _ = stalled_application
        executive = create_user(role=EE)

        record = EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)

        assert record.officer_id == executive.pk
        assert record.ladder_step == "junior_engineer->executive_engineer"

    def test_no_path_flags_application_and_alerts_operators(
        self, settings, create_user, stalled_application, django_capture_on_commit_callbacks,
    ):
        settings.WORKFLOW = {"ESCALATION_LADDER": {}}
        application, owner = stalled_application
        admin = create_user(role=OfficerRole.ADMIN)

        with django_capture_on_commit_callbacks(execute=True):
            with pytest.raises(NoEscalationPath):
                EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)

        application.refresh_from_db()
        assert application.needs_operator_attention
        assert application.current_officer_id == owner.pk
        assert EscalationService.find_stalled(THRESHOLD) == []
        assert Notification.objects.filter(recipient=admin, title="Escalation Blocked").exists()

    def test_new_assignment_clears_attention_flag(self, settings, create_user, stalled_application):
        settings.WORKFLOW = {"ESCALATION_LADDER": {}}
        application, _ = stalled_application
        with pytest.raises(NoEscalationPath):
            EscalationService.escalate(application.pk, "Stalled")

        create_user(role=JE)
        EscalationService.escalate(application.pk, "Staff arrived")
        application.refresh_from_db()
        assert not application.needs_operator_attention

    def test_rerun_after_escalation_is_a_no_op(self, create_user, stalled_application):
        application, _ = stalled_application
        create_user(role=AE)

        first = EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)
        second = EscalationService.escalate(application.pk, "Stalled", threshold=THRESHOLD)

        assert first is not None
        assert second is None
        assert AssignmentRecord.objects.filter(application=application).count() == 2

    def test_blank_reason_is_rejected(self, stalled_application):
        application, _ = stalled_application
        with pytest.raises(DomainError):
            EscalationService.escalate(application.pk, "")

    def test_manual_escalation_of_applicant_stage_is_rejected(self, make_application):
        application = make_application(ApplicationStatus.DRAFT)
        with pytest.raises(DomainError):
            EscalationService.escalate(application.pk, "Hurry")


@pytest.mark.django_db
class TestSweep:

    def test_sweep_escalates_and_reports(self, settings, create_user, stalled_application, make_application):
        application, _ = stalled_application
        create_user(role=AE)
        settings.WORKFLOW = {"ESCALATION_LADDER": {"junior_engineer": "assistant_engineer"}}
        stuck = make_application(ApplicationStatus.PAYMENT_COMPLETED)

        report = EscalationService.sweep(THRESHOLD)

        assert report.escalated == [application.pk]
        assert report.blocked == [stuck.pk]

    def test_second_sweep_changes_nothing(self, create_user, stalled_application):
        application, _ = stalled_application
        create_user(role=AE)

        EscalationService.sweep(THRESHOLD)
        records_after_first = AssignmentRecord.objects.count()
        report = EscalationService.sweep(THRESHOLD)

        assert report.escalated == []
        assert AssignmentRecord.objects.count() == records_after_first
