"""Management command to print the local registration journal.

Support staff use it to reconcile payments whose registration never reached
the backend.

Usage::

    # Everything
    manage.py show_journal

    # Only submissions that failed after payment, as JSON
    manage.py show_journal --failed --json
"""

import json
from typing import TYPE_CHECKING

from django.core.management.base import BaseCommand

from django_regdesk.registration.journal import RegistrationJournal

if TYPE_CHECKING:
    import argparse


class Command(BaseCommand):
    """Print journaled registrations, payments and failed submissions."""

    help = "Print the local registration journal"

    def add_arguments(self, parser: "argparse.ArgumentParser") -> None:
        """Register command-line arguments.

        Args:
            parser: The argument parser to add arguments to.
        """
        parser.add_argument(
            "--registrations",
            action="store_true",
            default=False,
            help="Show registrations only.",
        )
        parser.add_argument(
            "--payments",
            action="store_true",
            default=False,
            help="Show payments only.",
        )
        parser.add_argument(
            "--failed",
            action="store_true",
            default=False,
            help="Show failed submissions only.",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            default=False,
            dest="as_json",
            help="Print machine-readable JSON.",
        )

    def handle(self, **options: object) -> None:
        """Print the requested journal collections.

        When no collection flag is given, all three are shown.
        """
        journal = RegistrationJournal()
        show_all = not (options["registrations"] or options["payments"] or options["failed"])

        sections: dict[str, list[dict[str, object]]] = {}
        if show_all or options["registrations"]:
            sections["registrations"] = [r.to_dict() for r in journal.list_registrations()]
        if show_all or options["payments"]:
            sections["payments"] = [p.to_dict() for p in journal.list_payments()]
        if show_all or options["failed"]:
            sections["failed_submissions"] = [f.to_dict() for f in journal.list_failed_submissions()]

        if options["as_json"]:
            self.stdout.write(json.dumps(sections, indent=2))
            return

        for name, records in sections.items():
            self.stdout.write(self.style.MIGRATE_HEADING(f"{name.replace('_', ' ').title()} ({len(records)})"))
            if not records:
                self.stdout.write("  (none)")
                continue
            for record in records:
                self.stdout.write(f"  {self._summarize(name, record)}")

        failed = len(sections.get("failed_submissions", []))
        if failed:
            self.stdout.write(self.style.WARNING(f"{failed} failed submission(s) need manual reconciliation."))
        else:
            self.stdout.write(self.style.SUCCESS("Journal OK."))

    @staticmethod
    def _summarize(section: str, record: dict[str, object]) -> str:
        if section == "registrations":
            return (
                f"{record['id']}  {record['event']}  participants={record['participants_count']}  "
                f"amount={record['amount_paid']}  status={record['payment_status']}  {record['created_at']}"
            )
        if section == "payments":
            return (
                f"{record['payment_id']}  order={record['order_id']}  amount={record['amount']} {record['currency']}  "
                f"registration={record['registration_id']}  {record['created_at']}"
            )
        payload = record["payload"]
        payment_id = payload.get("razorpay_payment_id", "") if isinstance(payload, dict) else ""
        return f"{record['timestamp']}  stage={record['stage']}  payment={payment_id}  error={record['error']}"
