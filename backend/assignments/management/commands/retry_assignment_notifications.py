"""
Management command: retry_assignment_notifications
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Resends officer notifications for active assignments whose first
delivery attempt failed (``notification_sent_at`` still empty).

Usage::

    python manage.py retry_assignment_notifications
    python manage.py retry_assignment_notifications --minutes 5
"""

from datetime import timedelta

from django.core.management.base import BaseCommand

from assignments.services import AssignmentNotificationService


class Command(BaseCommand):
    help = "Retry assignment notifications that were never delivered."

    def add_arguments(self, parser):
        parser.add_argument(
            "--minutes",
            type=int,
            default=None,
            help="Only retry records older than this (defaults to WORKFLOW['NOTIFICATION_RETRY_MINUTES']).",
        )

    def handle(self, *args, **options):
        minutes = options["minutes"]
        older_than = timedelta(minutes=minutes) if minutes is not None else None
        sent, failed = AssignmentNotificationService.retry_pending(older_than)
        style = self.style.SUCCESS if failed == 0 else self.style.WARNING
        self.stdout.write(style(f"Sent {sent}, failed {failed}."))
