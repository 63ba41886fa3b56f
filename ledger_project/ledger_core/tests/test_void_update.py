import datetime

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import ConflictError, InsufficientBalanceError, NotFoundError
from ..models import AuditLog, Cheque, Transaction, TransactionItem
from ..services.cheques import cancel_cheque, clear_cheque
from ..services.periods import close_accounting_period
from ..services.posting import update_transaction, void_transaction
from .base import D, LedgerFixtureMixin


def _state(test):
    """Balances and March snapshots of every head, for before/after comparison."""
    rows = []
    for head in (test.donations, test.zakat, test.utilities):
        head.refresh_from_db()
        snap = test.snap(head, 3, 2025)
        rows.append((
            head.current_balance, head.cash_balance, head.bank_balance,
            snap.receipts, snap.payments, snap.closing_balance, snap.cash_in_hand,
        ))
    return rows


class VoidTransactionTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)
        self.credit("1000", self.day(3, 1))

    def test_credit_round_trip(self):
        before = _state(self)
        pages_before = list(self.reload(self.booklet).pages_left)

        tx = self.credit(
            "600", self.day(3, 8), cash_type="multiple", cash_amount="200", bank_amount="400",
            splits=[
                {"ledger_head_id": self.donations.pk, "amount": "350"},
                {"ledger_head_id": self.zakat.pk, "amount": "250"},
            ],
        )
        self.assertNotEqual(_state(self), before)
        void_transaction(tx.pk)

        self.assertEqual(_state(self), before)
        self.assertEqual(self.reload(self.booklet).pages_left, pages_before)
        self.assertFalse(Transaction.objects.filter(pk=tx.pk).exists())
        self.assertFalse(TransactionItem.objects.filter(transaction_id=tx.pk).exists())

    def test_debit_round_trip(self):
        before = _state(self)
        tx = self.debit("400", self.day(3, 9))
        void_transaction(tx.pk)
        self.assertEqual(_state(self), before)

    def test_pending_cheque_void_reverses_nothing(self):
        self.credit("500", self.day(3, 2), cash_type="bank")
        before = _state(self)
        tx = self.debit(
            "300", self.day(3, 9), cash_type="cheque", cheque_number="42",
            bank_name="City Bank", issue_date="2025-03-09", due_date="2025-03-20",
        )
        void_transaction(tx.pk)
        self.assertEqual(_state(self), before)
        self.assertFalse(Cheque.objects.exists())

    def test_void_in_closed_period_needs_override(self):
        tx = self.credit("100", self.day(3, 3))
        close_accounting_period(3, 2025, self.account.pk)
        with self.assertRaises(ConflictError):
            void_transaction(tx.pk)
        void_transaction(tx.pk, override=True)
        self.assertEqual(self.reload(self.donations).current_balance, D("1000.00"))

    def test_void_is_audited(self):
        tx = self.credit("100", self.day(3, 3))
        with self.captureOnCommitCallbacks(execute=True):
            void_transaction(tx.pk)
        entry = AuditLog.objects.get(action="void_transaction")
        self.assertEqual(entry.object_id, str(tx.pk))

    def test_unknown_transaction(self):
        with self.assertRaises(NotFoundError):
            void_transaction(999999)


class UpdateTransactionTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)
        self.income = self.credit("1000", self.day(3, 1))
        self.bill = self.debit("300", self.day(3, 4))

    def test_update_credit_amount(self):
        tx = update_transaction(self.income.pk, {"amount": "1200"})
        self.assertEqual(tx.amount, D("1200.00"))
        self.assertEqual(tx.receipt_no, self.income.receipt_no)
        donations = self.reload(self.donations)
        self.assertEqual(donations.current_balance, D("900.00"))
        snap = self.snap(self.donations, 3, 2025)
        self.assertEqual(snap.receipts, D("1200.00"))
        self.assertEqual(snap.closing_balance, D("900.00"))

    def test_update_credit_to_another_head(self):
        update_transaction(self.income.pk, {"ledger_head_id": self.zakat.pk, "amount": "300"})
        self.assertEqual(self.reload(self.zakat).current_balance, D("300.00"))
        # the 300 already paid out of Donations stays paid
        self.assertEqual(self.reload(self.donations).current_balance, D("-300.00"))
        self.assertEqual(self.snap(self.donations, 3, 2025).receipts, D("0.00"))

    def test_update_receipt_number_frees_the_old_one(self):
        old = self.income.receipt_no
        tx = update_transaction(self.income.pk, {"receipt_no": 140})
        self.assertEqual(tx.receipt_no, 140)
        pages = self.reload(self.booklet).pages_left
        self.assertIn(old, pages)
        self.assertNotIn(140, pages)

    def test_update_debit_amount_follows_single_source(self):
        tx = update_transaction(self.bill.pk, {"amount": "500"})
        self.assertEqual(tx.side_total("-"), D("500.00"))
        self.assertEqual(self.reload(self.donations).cash_balance, D("500.00"))
        self.assertEqual(self.reload(self.utilities).cash_balance, D("500.00"))

    def test_failed_update_leaves_original_untouched(self):
        before = _state(self)
        with self.assertRaises(InsufficientBalanceError):
            update_transaction(self.bill.pk, {"amount": "2000"})
        self.assertEqual(_state(self), before)
        bill = Transaction.objects.get(pk=self.bill.pk)
        self.assertEqual(bill.amount, D("300.00"))
        self.assertEqual(bill.items.count(), 2)

    def test_type_and_account_are_fixed(self):
        with self.assertRaises(ValidationError):
            update_transaction(self.bill.pk, {"tx_type": "credit"})
        with self.assertRaises(ValidationError):
            update_transaction(self.bill.pk, {"account_id": 999999})

    def test_update_is_audited_with_before_and_after(self):
        with self.captureOnCommitCallbacks(execute=True):
            update_transaction(self.income.pk, {"description": "corrected", "amount": "1100"})
        entry = AuditLog.objects.get(action="update_transaction")
        self.assertEqual(entry.changes["before"]["amount"], "1000.00")
        self.assertEqual(entry.changes["after"]["amount"], "1100.00")

    def test_string_booklet_id_keeps_the_receipt(self):
        tx = self.credit("80", self.day(3, 6), receipt_no=120)
        tx = update_transaction(tx.pk, {"booklet_id": str(self.booklet.pk), "description": "x"})
        self.assertEqual(tx.receipt_no, 120)
        self.assertEqual(tx.booklet_id, self.booklet.pk)
        self.assertNotIn(120, self.reload(self.booklet).pages_left)

    def test_account_id_as_string_is_the_same_account(self):
        tx = update_transaction(self.bill.pk, {"account_id": str(self.account.pk), "description": "x"})
        self.assertEqual(tx.account_id, self.account.pk)


class ChequeUpdateTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)
        self.credit("1000", self.day(3, 1), cash_type="bank")
        self.tx = self.debit(
            "300", self.day(3, 5), cash_type="cheque", cheque_number="555",
            bank_name="City Bank", issue_date="2025-03-05", due_date="2025-03-20",
        )
        self.cheque = self.tx.cheque

    def _clear(self):
        clear_cheque(self.cheque.pk, "2025-03-21")

    def test_editing_a_cleared_cheque_keeps_it_cleared(self):
        self._clear()
        before = _state(self)

        tx = update_transaction(self.tx.pk, {"description": "typo fix"})

        self.assertEqual(tx.status, "completed")
        self.assertEqual(tx.description, "typo fix")
        cheque = Cheque.objects.get(transaction=tx)
        self.assertEqual(cheque.pk, self.cheque.pk)
        self.assertEqual(cheque.status, "cleared")
        self.assertEqual(cheque.clearing_date, datetime.date(2025, 3, 21))
        self.assertEqual(_state(self), before)
        self.assertEqual(self.reload(self.utilities).bank_balance, D("300.00"))
        self.assertEqual(self.reload(self.donations).bank_balance, D("700.00"))

    def test_new_amount_on_a_cleared_cheque_moves_bank_money(self):
        self._clear()
        update_transaction(self.tx.pk, {"amount": "350"})
        self.assertEqual(self.reload(self.donations).bank_balance, D("650.00"))
        self.assertEqual(self.reload(self.utilities).bank_balance, D("350.00"))
        self.assertEqual(self.snap(self.donations, 3, 2025).payments, D("350.00"))
        self.assertEqual(self.reload(self.cheque).status, "cleared")

    def test_cleared_cheque_cannot_become_cash(self):
        self._clear()
        before = _state(self)
        with self.assertRaises(ValidationError):
            update_transaction(self.tx.pk, {"cash_type": "cash"})
        self.assertEqual(_state(self), before)
        self.assertEqual(self.reload(self.cheque).status, "cleared")

    def test_pending_cheque_edit_stays_pending(self):
        before = _state(self)
        tx = update_transaction(self.tx.pk, {"description": "roof"})
        self.assertEqual(tx.status, "pending")
        self.assertEqual(Cheque.objects.get(transaction=tx).status, "pending")
        self.assertEqual(_state(self), before)

    def test_cancelled_cheque_is_closed_to_edits(self):
        cancel_cheque(self.cheque.pk, "lost")
        with self.assertRaises(ConflictError):
            update_transaction(self.tx.pk, {"description": "found it"})
        self.assertEqual(self.reload(self.tx).status, "cancelled")
        self.assertEqual(self.reload(self.cheque).status, "cancelled")
