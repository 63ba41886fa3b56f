from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError, ValidationError
from ledger_core.services.periods import close_accounting_period


class Command(BaseCommand):
    help = "Close an accounting month for one account, or for every account."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument("month", type=int, help="Month to close (1-12)")
        parser.add_argument("year", type=int, help="Year of the month to close")
        parser.add_argument(
            "--account",  # Define flag
            type=int,
            default=None,
            help="Account id (default: all accounts)",
        )

    def handle(self, *args, **options):
        try:
            result = close_accounting_period(options["month"], options["year"], options["account"])
        except (ValidationError, LedgerError) as e:
            raise CommandError(str(e))

        for key, value in result.as_dict().items():
            self.stdout.write(f"{key}: {value}")
        self.stdout.write(self.style.SUCCESS(
            f"Closed {options['month']:02d}/{options['year']}"))
