from django.core.management.base import BaseCommand

from ledger_core.services.reconciliation import reconcile_balances


class Command(BaseCommand):
    help = "Compare every ledger head with its latest snapshot and fix drift."

    def handle(self, *args, **options):
        result = reconcile_balances()
        for d in result.discrepancies:
            self.stdout.write(
                f"{d['ledger_head']} ({d['month']:02d}/{d['year']}): "
                f"{d['old_balance']} -> {d['new_balance']}"
            )
        style = self.style.SUCCESS if result.error_count == 0 else self.style.WARNING
        self.stdout.write(style(
            f"Fixed {result.fix_count}, errors {result.error_count}, skipped {result.skipped}"))
