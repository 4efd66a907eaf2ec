"""
Tests for supervisor-driven reassignment and officer acceptance.
"""

from __future__ import annotations

import pytest

from accounts.models import OfficerRole
from applications.models import ApplicationStatus
from assignments.models import AssignmentAction, AssignmentRecord
from assignments.services import (
    AssignmentService,
    AutoAssignmentService,
    ReassignmentService,
    WorkloadService,
)
from core.domain.exceptions import (
    ApplicationNotFound,
    DomainError,
    InvalidOfficer,
    PermissionDenied,
)

JE = OfficerRole.JUNIOR_ENGINEER


@pytest.fixture()
def assigned_application(create_user, make_application):
    owner = create_user(role=JE)
    application = make_application(ApplicationStatus.UNDER_REVIEW_BY_JE)
    AutoAssignmentService.assign(application.pk, JE)
    application.refresh_from_db()
    assert application.current_officer_id == owner.pk
    return application, owner


@pytest.mark.django_db
class TestReassign:

    def test_admin_reassigns_to_peer(self, create_user, assigned_application):
        application, owner = assigned_application
        admin = create_user(role=OfficerRole.ADMIN)
        peer = create_user(role=JE)

        record = ReassignmentService.reassign(application.pk, peer.pk, "Owner on leave", admin)

        assert record.action == AssignmentAction.REASSIGN
        assert record.previous_officer_id == owner.pk
        assert record.officer_id == peer.pk
        assert record.reason == "Owner on leave"
        assert record.initiated_by_id == admin.pk
        assert WorkloadService.current_workload(owner.pk) == 0
        assert WorkloadService.current_workload(peer.pk) == 1
        application.refresh_from_db()
        assert application.current_officer_id == peer.pk
        assert application.status == ApplicationStatus.UNDER_REVIEW_BY_JE

    def test_city_engineer_is_supervisory(self, create_user, assigned_application):
        application, _ = assigned_application
        supervisor = create_user(role=OfficerRole.CITY_ENGINEER)
        peer = create_user(role=JE)

        record = ReassignmentService.reassign(application.pk, peer.pk, "Balancing", supervisor)
        assert record.officer_id == peer.pk

    def test_junior_engineer_cannot_reassign(self, create_user, assigned_application):
        application, owner = assigned_application
        peer = create_user(role=JE)

        with pytest.raises(PermissionDenied):
            ReassignmentService.reassign(application.pk, peer.pk, "Swap", owner)

    def test_target_of_wrong_role_is_rejected(self, create_user, assigned_application):
        application, _ = assigned_application
        admin = create_user(role=OfficerRole.ADMIN)
        clerk = create_user(role=OfficerRole.CLERK)

        with pytest.raises(InvalidOfficer):
            ReassignmentService.reassign(application.pk, clerk.pk, "Wrong desk", admin)

    def test_inactive_target_is_rejected(self, create_user, assigned_application):
        application, _ = assigned_application
        admin = create_user(role=OfficerRole.ADMIN)
        retired = create_user(role=JE, is_active=False)

        with pytest.raises(InvalidOfficer):
            ReassignmentService.reassign(application.pk, retired.pk, "Retired", admin)

    def test_unknown_target_is_rejected(self, create_user, assigned_application):
        application, _ = assigned_application
        admin = create_user(role=OfficerRole.ADMIN)

        with pytest.raises(InvalidOfficer):
            ReassignmentService.reassign(application.pk, 999_999, "Ghost", admin)

    def test_current_owner_is_rejected(self, create_user, assigned_application):
        application, owner = assigned_application
        admin = create_user(role=OfficerRole.ADMIN)

        with pytest.raises(InvalidOfficer):
            ReassignmentService.reassign(application.pk, owner.pk, "Same", admin)

    def test_blank_reason_is_rejected(self, create_user, assigned_application):
        application, _ = assigned_application
        admin = create_user(role=OfficerRole.ADMIN)
        peer = create_user(role=JE)

        with pytest.raises(DomainError):
            ReassignmentService.reassign(application.pk, peer.pk, "   ", admin)
        assert AssignmentRecord.objects.filter(application=application).count() == 1

    def test_unknown_application(self, create_user):
        admin = create_user(role=OfficerRole.ADMIN)
        peer = create_user(role=JE)

        with pytest.raises(ApplicationNotFound):
            ReassignmentService.reassign(999_999, peer.pk, "Nothing there", admin)

    def test_application_waiting_on_applicant_cannot_be_reassigned(
        self, create_user, make_application,
    ):
        application = make_application(ApplicationStatus.PAYMENT_PENDING, responsible_tier=OfficerRole.APPLICANT)
        admin = create_user(role=OfficerRole.ADMIN)
        clerk = create_user(role=OfficerRole.CLERK)

        with pytest.raises(InvalidOfficer):
            ReassignmentService.reassign(application.pk, clerk.pk, "Early", admin)


@pytest.mark.django_db
class TestAccept:

    def test_owner_accepts_once(self, assigned_application):
        application, owner = assigned_application

        first = AssignmentService.accept(application.pk, owner)
        accepted_at = first.accepted_at
        second = AssignmentService.accept(application.pk, owner)

        assert accepted_at is not None
        assert second.accepted_at == accepted_at

    def test_other_officer_cannot_accept(self, create_user, assigned_application):
        application, _ = assigned_application
        stranger = create_user(role=JE)

        with pytest.raises(PermissionDenied):
            AssignmentService.accept(application.pk, stranger)
