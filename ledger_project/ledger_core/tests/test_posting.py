from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import (ConflictError, InsufficientBalanceError,
                          InvariantViolationError, NotFoundError)
from ..models import AuditLog, Cheque, Donor, Transaction, TransactionItem
from ..services.posting import post
from .base import D, LedgerFixtureMixin


class PostCreditTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)

    def test_scenario_march_credit(self):
        """Head opens March at 1000; a 500 cash credit on the 10th closes the month at 1500."""
        self.donations.current_balance = D("1000.00")
        self.donations.cash_balance = D("1000.00")
        self.donations.save()
        # reseed March from the carried-in balance
        self.snap(self.donations, 3, 2025).delete()
        self.open(3, 2025)

        self.credit("500", self.day(3, 10))

        snap = self.snap(self.donations, 3, 2025)
        self.assertEqual(snap.opening_balance, D("1000.00"))
        self.assertEqual(snap.receipts, D("500.00"))
        self.assertEqual(snap.payments, D("0.00"))
        self.assertEqual(snap.closing_balance, D("1500.00"))
        self.assertEqual(self.reload(self.donations).current_balance, D("1500.00"))

    def test_credit_moves_head_account_and_receipt(self):
        tx = self.credit("250", self.day(3, 4))
        self.assertEqual(tx.receipt_no, 100)
        self.assertEqual(tx.status, "completed")
        head = self.reload(self.donations)
        self.assertEqual((head.cash_balance, head.bank_balance), (D("250.00"), D("0.00")))
        account = self.reload(self.account)
        self.assertEqual(account.closing_balance, D("250.00"))
        self.assertNotIn(100, self.reload(self.booklet).pages_left)

    def test_split_credit_with_multiple_cash_type(self):
        tx = self.credit(
            "1500", self.day(3, 4), cash_type="multiple",
            cash_amount="1000", bank_amount="500",
            splits=[
                {"ledger_head_id": self.donations.pk, "amount": "1000"},
                {"ledger_head_id": self.zakat.pk, "amount": "500"},
            ],
        )
        self.assertEqual(tx.items.count(), 2)
        donations = self.reload(self.donations)
        zakat = self.reload(self.zakat)
        self.assertEqual((donations.cash_balance, donations.bank_balance), (D("666.67"), D("333.33")))
        self.assertEqual((zakat.cash_balance, zakat.bank_balance), (D("333.33"), D("166.67")))
        account = self.reload(self.account)
        self.assertEqual(account.cash_balance, D("1000.00"))
        self.assertEqual(account.bank_balance, D("500.00"))

    def test_splits_not_adding_up_are_rejected(self):
        with self.assertRaises(InvariantViolationError):
            self.credit(
                "1000", self.day(3, 4),
                splits=[
                    {"ledger_head_id": self.donations.pk, "amount": "600"},
                    {"ledger_head_id": self.zakat.pk, "amount": "300"},
                ],
            )
        self.assertEqual(Transaction.objects.count(), 0)
        self.assertEqual(self.reload(self.booklet).pages_left[0], 100)

    def test_multiple_cash_and_bank_must_make_the_amount(self):
        with self.assertRaises(InvariantViolationError):
            self.credit("100", self.day(3, 4), cash_type="multiple", cash_amount="60", bank_amount="30")

    def test_booklet_required(self):
        with self.assertRaises(ValidationError):
            self.credit("100", self.day(3, 4), booklet_id=None)

    def test_bad_input_rejected_before_any_write(self):
        with self.assertRaises(ValidationError):
            self.credit("0", self.day(3, 4))
        with self.assertRaises(ValidationError):
            self.credit("10", self.day(3, 4), cash_type="crypto")
        with self.assertRaises(ValidationError):
            self.credit("10", None)
        for bad in ("abc", "", "Infinity", "NaN"):
            with self.assertRaises(ValidationError):
                self.credit("10", self.day(3, 4), amount=bad)
        with self.assertRaises(ValidationError):
            self.credit("10", self.day(3, 4), receipt_no="x1")
        with self.assertRaises(ValidationError):
            self.credit("10", self.day(3, 4), booklet_id="B-001")
        with self.assertRaises(ValidationError):
            self.credit("10", self.day(3, 4), cash_type="multiple", cash_amount="ten", bank_amount="0")
        with self.assertRaises(ValidationError):
            self.credit("10", self.day(3, 4), splits=[{"ledger_head_id": self.zakat.pk, "amount": "ten"}])
        with self.assertRaises(ValidationError):
            self.credit("10", self.day(3, 4), ledger_head_id="zakat")
        with self.assertRaises(ValidationError):
            self.debit("10", self.day(3, 4), sources=[{"ledger_head_id": self.donations.pk, "amount": "x"}])
        self.assertEqual(Transaction.objects.count(), 0)
        self.assertEqual(len(self.reload(self.booklet).pages_left), 50)

    def test_unknown_references(self):
        with self.assertRaises(NotFoundError):
            self.credit("10", self.day(3, 4), account_id=999999)
        with self.assertRaises(NotFoundError):
            self.credit("10", self.day(3, 4), donor_id=999999)

    def test_donor_is_recorded(self):
        donor = Donor.objects.create(name="A. Donor", phone="+92 300 1234567")
        tx = self.credit("10", self.day(3, 4), donor_id=donor.pk)
        self.assertEqual(tx.donor, donor)

    def test_audit_entry_written_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            tx = self.credit("75", self.day(3, 4))
        entry = AuditLog.objects.get(action="create_transaction")
        self.assertEqual(entry.object_type, "Transaction")
        self.assertEqual(entry.object_id, str(tx.pk))
        self.assertEqual(entry.changes["amount"], "75.00")

    def test_post_dispatches_on_tx_type(self):
        tx = post({
            "tx_type": "credit", "account_id": self.account.pk,
            "ledger_head_id": self.zakat.pk, "amount": "40", "tx_date": "2025-03-05",
            "booklet_id": self.booklet.pk,
        })
        self.assertEqual(tx.tx_type, "credit")
        with self.assertRaises(ValidationError):
            post({"tx_type": "transfer"})


class PostDebitTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)
        self.credit("1500", self.day(3, 1))
        self.credit("800", self.day(3, 1), cash_type="bank")

    def test_debit_moves_money_from_source_to_target(self):
        tx = self.debit("300", self.day(3, 5))
        donations = self.reload(self.donations)
        utilities = self.reload(self.utilities)
        self.assertEqual(donations.cash_balance, D("1200.00"))
        self.assertEqual(utilities.cash_balance, D("300.00"))
        # money changes heads, not the account total
        self.assertEqual(self.reload(self.account).closing_balance, D("2300.00"))
        self.assertEqual(self.snap(self.donations, 3, 2025).payments, D("300.00"))
        self.assertEqual(self.snap(self.utilities, 3, 2025).receipts, D("300.00"))
        self.assertEqual(tx.side_total("+"), tx.side_total("-"))

    def test_scenario_insufficient_cash(self):
        """A 1600 cash debit from a head holding 1500 cash is refused and nothing changes."""
        before = self.snap(self.donations, 3, 2025).closing_balance
        with self.assertRaises(InsufficientBalanceError):
            self.debit("1600", self.day(3, 5))
        donations = self.reload(self.donations)
        self.assertEqual(donations.cash_balance, D("1500.00"))
        self.assertEqual(self.reload(self.utilities).current_balance, D("0.00"))
        self.assertEqual(self.snap(self.donations, 3, 2025).closing_balance, before)
        self.assertEqual(Transaction.objects.filter(tx_type="debit").count(), 0)

    def test_bank_debit_checks_bank_bucket(self):
        with self.assertRaises(InsufficientBalanceError):
            self.debit("900", self.day(3, 5), cash_type="bank")
        self.debit("800", self.day(3, 5), cash_type="bank")
        self.assertEqual(self.reload(self.donations).bank_balance, D("0.00"))

    def test_sources_required_and_target_not_a_source(self):
        with self.assertRaises(ValidationError):
            self.debit("10", self.day(3, 5), sources=[])
        with self.assertRaises(ValidationError):
            self.debit("10", self.day(3, 5), source=self.utilities)

    def test_several_sources_must_sum_to_amount(self):
        self.credit("100", self.day(3, 2), head=self.zakat)
        tx = self.debit("400", self.day(3, 5), sources=[
            {"ledger_head_id": self.donations.pk, "amount": "350"},
            {"ledger_head_id": self.zakat.pk, "amount": "50"},
        ])
        self.assertEqual(tx.items.filter(side="-").count(), 2)
        with self.assertRaises(InvariantViolationError):
            self.debit("400", self.day(3, 5), sources=[
                {"ledger_head_id": self.donations.pk, "amount": "350"},
            ])

    def test_cheque_debit_is_pending_and_posts_nothing(self):
        tx = self.debit(
            "500", self.day(3, 5), cash_type="cheque",
            cheque_number="778899", bank_name="City Bank",
            issue_date="2025-03-05", due_date="2025-03-25",
        )
        self.assertEqual(tx.status, "pending")
        cheque = Cheque.objects.get(transaction=tx)
        self.assertEqual(cheque.status, "pending")
        self.assertEqual(self.reload(self.donations).bank_balance, D("800.00"))
        self.assertEqual(self.reload(self.utilities).current_balance, D("0.00"))

    def test_cheque_fields_required(self):
        with self.assertRaises(ValidationError):
            self.debit("100", self.day(3, 5), cash_type="cheque", cheque_number="1")

    def test_cheque_number_unique_per_account(self):
        cheque = {
            "cash_type": "cheque", "cheque_number": "555", "bank_name": "City Bank",
            "issue_date": "2025-03-05", "due_date": "2025-03-25",
        }
        self.debit("100", self.day(3, 5), **cheque)
        with self.assertRaises(ConflictError):
            self.debit("100", self.day(3, 6), **cheque)

    def test_item_sums_match_amount_for_every_transaction(self):
        self.debit("250", self.day(3, 5))
        self.credit("90", self.day(3, 6), splits=[
            {"ledger_head_id": self.donations.pk, "amount": "40"},
            {"ledger_head_id": self.zakat.pk, "amount": "50"},
        ])
        for tx in Transaction.objects.all():
            plus = tx.side_total("+")
            self.assertEqual(plus, tx.amount)
            if tx.tx_type == "debit":
                self.assertEqual(tx.side_total("-"), tx.amount)
        self.assertFalse(TransactionItem.objects.filter(amount__lte=0).exists())
