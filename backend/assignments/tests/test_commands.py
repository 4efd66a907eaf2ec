"""
Tests for the ``escalate_stalled`` and ``retry_assignment_notifications``
management commands and the notification retry they drive.
"""

from __future__ import annotations

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from accounts.models import OfficerRole
from applications.models import Application, ApplicationStatus
from assignments.models import AssignmentRecord
from assignments.services import AssignmentNotificationService, AutoAssignmentService
from core.models import Notification

JE = OfficerRole.JUNIOR_ENGINEER


def _run(*args) -> str:
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestEscalateStalledCommand:

    def test_dry_run_lists_without_changing(self, make_application):
        application = make_application(ApplicationStatus.SUBMITTED)

        output = _run("escalate_stalled", "--dry-run")

        assert f"application {application.pk}" in output
        assert "1 stalled application(s)." in output
        assert not AssignmentRecord.objects.exists()

    def test_sweep_picks_up_ownerless_application(self, create_user, make_application):
        application = make_application(ApplicationStatus.SUBMITTED)
        officer = create_user(role=JE)

        output = _run("escalate_stalled", "--hours", "1")

        assert "Escalated 1, blocked 0, skipped 0." in output
        application.refresh_from_db()
        assert application.current_officer_id == officer.pk

    def test_blocked_application_is_reported(self, make_application):
        application = make_application(ApplicationStatus.CERTIFICATE_ISSUED)

        output = _run("escalate_stalled")

        assert f"application {application.pk}: no escalation path" in output
        assert "blocked 1" in output
        assert Application.objects.get(pk=application.pk).needs_operator_attention

    def test_negative_hours_rejected(self):
        with pytest.raises(CommandError):
            call_command("escalate_stalled", "--hours", "-1")


@pytest.mark.django_db
class TestNotificationRetry:

    def _unsent_record(self, create_user, make_application):
        officer = create_user(role=JE)
        application = make_application()
        record = AutoAssignmentService.assign(application.pk, JE)
        AssignmentRecord.objects.filter(pk=record.pk).update(
            assigned_at=timezone.now() - timedelta(hours=1),
        )
        return record, officer

    def test_retry_delivers_missed_notification(self, create_user, make_application):
        record, officer = self._unsent_record(create_user, make_application)

        sent, failed = AssignmentNotificationService.retry_pending(timedelta(minutes=15))

        assert (sent, failed) == (1, 0)
        record.refresh_from_db()
        assert record.notification_sent_at is not None
        assert Notification.objects.filter(recipient=officer, title="Application Assigned").count() == 1
        assert AssignmentNotificationService.retry_pending(timedelta(minutes=15)) == (0, 0)

    def test_recent_records_are_left_alone(self, create_user, make_application):
        create_user(role=JE)
        AutoAssignmentService.assign(make_application().pk, JE)

        assert AssignmentNotificationService.retry_pending(timedelta(minutes=15)) == (0, 0)

    def test_failures_are_counted(self, settings, create_user, make_application):
        settings.WORKFLOW = {
            "NOTIFIER": "applications.tests.test_workflow_service.ExplodingNotifier",
        }
        record, _ = self._unsent_record(create_user, make_application)

        assert AssignmentNotificationService.retry_pending(timedelta(minutes=15)) == (0, 1)
        record.refresh_from_db()
        assert record.notification_sent_at is None

    def test_command_reports_counts(self, create_user, make_application):
        self._unsent_record(create_user, make_application)

        output = _run("retry_assignment_notifications", "--minutes", "5")

        assert "Sent 1, failed 0." in output
