import datetime

from django.test import TestCase

from ..exceptions import ConflictError, InsufficientBalanceError, NotFoundError
from ..models import AuditLog, LedgerHead
from ..services.cheques import cancel_cheque, clear_cheque
from .base import D, LedgerFixtureMixin


class ChequeLifecycleTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)
        self.credit("1000", self.day(3, 1), cash_type="bank")
        self.tx = self.debit(
            "400", self.day(3, 5), cash_type="cheque",
            cheque_number="100200", bank_name="City Bank",
            issue_date="2025-03-05", due_date="2025-03-20",
            description="Roof repair",
        )
        self.cheque = self.tx.cheque

    def test_clearing_moves_bank_balances(self):
        clear_cheque(self.cheque.pk, "2025-03-21")

        cheque = self.reload(self.cheque)
        self.assertEqual(cheque.status, "cleared")
        self.assertEqual(cheque.clearing_date, datetime.date(2025, 3, 21))
        tx = self.reload(self.tx)
        self.assertEqual(tx.status, "completed")
        self.assertEqual((tx.cash_amount, tx.bank_amount), (D("0.00"), D("400.00")))

        self.assertEqual(self.reload(self.donations).bank_balance, D("600.00"))
        self.assertEqual(self.reload(self.utilities).bank_balance, D("400.00"))
        self.assertEqual(self.snap(self.donations, 3, 2025).payments, D("400.00"))
        self.assertEqual(self.snap(self.utilities, 3, 2025).receipts, D("400.00"))

    def test_clearing_twice_conflicts(self):
        clear_cheque(self.cheque.pk)
        with self.assertRaises(ConflictError):
            clear_cheque(self.cheque.pk)

    def test_clearing_needs_bank_funds_at_clearing_time(self):
        # funds moved out of bank after the cheque was written
        self.debit("700", self.day(3, 6), cash_type="bank", target=self.zakat)
        with self.assertRaises(InsufficientBalanceError):
            clear_cheque(self.cheque.pk)
        self.assertEqual(self.reload(self.cheque).status, "pending")
        self.assertEqual(self.reload(self.tx).status, "pending")

    def test_cancel_posts_nothing(self):
        cancel_cheque(self.cheque.pk, reason="lost in post")
        cheque = self.reload(self.cheque)
        self.assertEqual(cheque.status, "cancelled")
        self.assertEqual(cheque.description, "Roof repair | Cancelled: lost in post")
        tx = self.reload(self.tx)
        self.assertEqual(tx.status, "cancelled")
        self.assertEqual(self.reload(self.donations).bank_balance, D("1000.00"))
        with self.assertRaises(ConflictError):
            clear_cheque(self.cheque.pk)

    def test_unknown_cheque(self):
        with self.assertRaises(NotFoundError):
            clear_cheque(999999)
        with self.assertRaises(NotFoundError):
            cancel_cheque(999999)

    def test_clearing_is_audited(self):
        with self.captureOnCommitCallbacks(execute=True):
            clear_cheque(self.cheque.pk, datetime.date(2025, 3, 22))
        entry = AuditLog.objects.get(action="cheque_cleared")
        self.assertEqual(entry.changes["clearing_date"], "2025-03-22")
        self.assertEqual(LedgerHead.objects.get(pk=self.utilities.pk).current_balance, D("400.00"))
