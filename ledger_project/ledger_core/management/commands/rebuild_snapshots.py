from django.core.management.base import BaseCommand

from ledger_core.models import Account, Transaction
from ledger_core.services.recalculation import recalculate_account


class Command(BaseCommand):
    help = (
        "Rebuild every account's monthly snapshots from the earliest completed "
        "transaction through the current month."
    )

    def add_arguments(self, parser):
        parser.add_argument("--account", type=int, default=None, help="Only this account id")

    def handle(self, *args, **options):
        accounts = Account.objects.order_by("pk")
        if options["account"]:
            accounts = accounts.filter(pk=options["account"])

        for account in accounts:
            earliest = (
                Transaction.objects.for_account(account)
                .filter(status="completed")
                .order_by("tx_date")
                .values_list("tx_date", flat=True)
                .first()
            )
            if earliest is None:
                self.stdout.write(f"{account.name}: no transactions, skipped")
                continue
            results = recalculate_account(account.pk, earliest.replace(day=1))
            months = max((len(r.months) for r in results), default=0)
            self.stdout.write(f"{account.name}: {len(results)} heads, {months} months from {earliest:%Y-%m}")

        self.stdout.write(self.style.SUCCESS("Historical snapshot rebuild completed"))
