from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError, ValidationError
from ledger_core.services.recalculation import recalculate, recalculate_account


class Command(BaseCommand):
    help = "Rebuild monthly snapshots from a date through the current month."

    def add_arguments(self, parser):
        parser.add_argument("--account", type=int, required=True, help="Account id")
        parser.add_argument("--ledger-head", type=int, default=None,
                            help="Ledger head id (default: every head of the account)")
        parser.add_argument("--from", dest="from_date", required=True, help="YYYY-MM-DD")

    def handle(self, *args, **options):
        try:
            if options["ledger_head"]:
                results = [recalculate(options["account"], options["ledger_head"], options["from_date"])]
            else:
                results = recalculate_account(options["account"], options["from_date"])
        except (ValidationError, LedgerError) as e:
            raise CommandError(str(e))

        for r in results:
            self.stdout.write(
                f"head {r.ledger_head_id}: {len(r.months)} months, "
                f"{r.old_balance} -> {r.new_balance} (delta {r.delta})"
            )
        self.stdout.write(self.style.SUCCESS("Recalculation complete"))
