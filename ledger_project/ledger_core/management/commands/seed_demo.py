import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from ledger_core.models import Account, Booklet, Donor, LedgerHead
from ledger_core.services.booklets import create_booklet
from ledger_core.services.periods import open_accounting_period
from ledger_core.services.posting import post_credit, post_debit

User = get_user_model()


class Command(BaseCommand):
    help = "Create a demo account with ledger heads, a receipt booklet and a few postings."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--account",  # Define flag
            type=str,
            default="Demo Fund",
            help="Name of the demo account (default: Demo Fund)",
        )
        parser.add_argument("--username", default="demo", help="Username for the demo user.")
        parser.add_argument("--password", default="demo123", help="Password for the demo user.")

    @transaction.atomic
    def handle(self, *args, **options):
        name = options["account"]
        self.stdout.write(self.style.NOTICE(f"Seeding demo data for {name}..."))

        user, created = User.objects.get_or_create(username=options["username"])
        if created:
            user.set_password(options["password"])
            user.save()

        account, _ = Account.objects.get_or_create(name=name)
        general, _ = LedgerHead.objects.get_or_create(
            account=account, name="General Donations", defaults={"head_type": "credit"}
        )
        zakat, _ = LedgerHead.objects.get_or_create(
            account=account, name="Zakat", defaults={"head_type": "credit"}
        )
        utilities, _ = LedgerHead.objects.get_or_create(
            account=account, name="Utilities", defaults={"head_type": "debit"}
        )

        booklet = Booklet.objects.filter(booklet_no=f"{name}-001").first()
        if booklet is None:
            booklet = create_booklet(f"{name}-001", 1000 + account.pk * 100, 1049 + account.pk * 100)
        donor, _ = Donor.objects.get_or_create(name="Anonymous")

        today = timezone.localdate()
        open_accounting_period(today.month, today.year, account.pk, user=user)
        day = today.replace(day=1)

        post_credit({
            "account_id": account.pk,
            "ledger_head_id": general.pk,
            "amount": Decimal("1500.00"),
            "cash_type": "multiple",
            "cash_amount": Decimal("1000.00"),
            "bank_amount": Decimal("500.00"),
            "tx_date": day,
            "booklet_id": booklet.pk,
            "donor_id": donor.pk,
            "description": "Opening collection",
            "splits": [
                {"ledger_head_id": general.pk, "amount": Decimal("1000.00")},
                {"ledger_head_id": zakat.pk, "amount": Decimal("500.00")},
            ],
            "user": user,
        })
        post_debit({
            "account_id": account.pk,
            "ledger_head_id": utilities.pk,
            "amount": Decimal("120.00"),
            "cash_type": "cash",
            "tx_date": day + datetime.timedelta(days=min(4, today.day - 1)),
            "description": "Electricity bill",
            "sources": [{"ledger_head_id": general.pk, "amount": Decimal("120.00")}],
            "user": user,
        })

        account.refresh_from_db()
        self.stdout.write(f"{account.name}: cash {account.cash_balance}, bank {account.bank_balance}")
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
