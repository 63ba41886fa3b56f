import datetime

from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError, ValidationError
from ledger_core.services.periods import reopen_period
from ledger_core.services.recalculation import recalculate_account


class Command(BaseCommand):
    help = (
        "Roll an account's last_closed_date back so later months can be edited; "
        "optionally recalculate the reopened months straight away."
    )

    def add_arguments(self, parser):
        parser.add_argument("--account", type=int, required=True, help="Account id")
        parser.add_argument("--date", required=True, help="New closing date (YYYY-MM-DD)")
        parser.add_argument(
            "--recalculate",
            action="store_true",
            help="Rebuild snapshots of every head from the first reopened month",
        )

    def handle(self, *args, **options):
        try:
            old, new = reopen_period(options["account"], options["date"])
            self.stdout.write(f"last_closed_date: {old} -> {new}")
            if options["recalculate"]:
                # first reopened month starts the day after the new closing date
                start = new + datetime.timedelta(days=1)
                results = recalculate_account(options["account"], start)
                self.stdout.write(f"recalculated {len(results)} ledger heads from {start}")
        except (ValidationError, LedgerError) as e:
            raise CommandError(str(e))
        self.stdout.write(self.style.SUCCESS("Period reopened"))
