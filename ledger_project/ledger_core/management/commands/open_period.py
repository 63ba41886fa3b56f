from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError, ValidationError
from ledger_core.services.periods import open_accounting_period


class Command(BaseCommand):
    help = "Make a month the open (writable) period of an account."

    def add_arguments(self, parser):
        parser.add_argument("month", type=int)
        parser.add_argument("year", type=int)
        parser.add_argument("--account", type=int, required=True, help="Account id")

    def handle(self, *args, **options):
        try:
            month, year = open_accounting_period(options["month"], options["year"], options["account"])
        except (ValidationError, LedgerError) as e:
            raise CommandError(str(e))
        self.stdout.write(self.style.SUCCESS(
            f"Opened {month:02d}/{year} for account {options['account']}"))
