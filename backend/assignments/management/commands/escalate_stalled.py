"""
Management command: escalate_stalled
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Runs one escalation sweep: every application that has sat with the same
owner and status for longer than the stall threshold (or has no owner at
all) is handed to a less-loaded peer or escalated up the ladder.

The command is **idempotent** — safe to run from cron every few minutes,
and safe to run on several hosts at once.

Usage::

    python manage.py escalate_stalled
    python manage.py escalate_stalled --hours 48
    python manage.py escalate_stalled --dry-run
"""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError

from assignments.services import EscalationService


class Command(BaseCommand):
    help = "Escalate applications that have stalled at their current tier."

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=float,
            default=None,
            help="Stall threshold in hours (defaults to WORKFLOW['STALL_THRESHOLD_HOURS']).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List stalled applications without escalating them.",
        )

    def handle(self, *args, **options):
        hours = options["hours"]
        if hours is not None and hours < 0:
            raise CommandError("--hours must not be negative.")
        threshold = timedelta(hours=hours) if hours is not None else None

        if options["dry_run"]:
            stalled = EscalationService.find_stalled(threshold)
            for application_id in stalled:
                self.stdout.write(f"  stalled: application {application_id}")
            self.stdout.write(self.style.SUCCESS(f"{len(stalled)} stalled application(s)."))
            return

        report = EscalationService.sweep(threshold)
        for application_id in report.blocked:
            self.stdout.write(self.style.ERROR(
                f"  ✗ application {application_id}: no escalation path"
            ))
        self.stdout.write(self.style.SUCCESS(
            f"Escalated {len(report.escalated)}, "
            f"blocked {len(report.blocked)}, "
            f"skipped {len(report.skipped)}."
        ))
