from unittest import mock

from django.test import TestCase

from ..models import AuditLog, LedgerHead
from ..services import snapshots
from ..services.periods import close_accounting_period
from ..services.reconciliation import reconcile_balances
from .base import D, LedgerFixtureMixin


class ReconcileBalancesTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.open(3, 2025)
        self.credit("900", self.day(3, 2))
        self.credit("100", self.day(3, 3), cash_type="bank")

    def _drift(self, head, amount):
        # bypass save()/clean(): simulate a balance that went astray
        LedgerHead.objects.filter(pk=head.pk).update(
            current_balance=D(amount), cash_balance=D(amount), bank_balance=D("0.00")
        )

    def test_nothing_to_fix_when_in_step(self):
        result = reconcile_balances()
        self.assertEqual(result.fix_count, 0)
        self.assertEqual(result.error_count, 0)

    def test_drifted_head_pulled_back_to_latest_snapshot(self):
        self._drift(self.donations, "123.45")
        result = reconcile_balances()

        self.assertEqual(result.fix_count, 1)
        discrepancy = result.discrepancies[0]
        self.assertEqual(discrepancy["old_balance"], "123.45")
        self.assertEqual(discrepancy["new_balance"], "1000.00")
        self.assertEqual((discrepancy["month"], discrepancy["year"]), (3, 2025))

        head = self.reload(self.donations)
        self.assertEqual(head.current_balance, D("1000.00"))
        self.assertEqual(head.cash_balance, D("900.00"))
        self.assertEqual(head.bank_balance, D("100.00"))
        self.assertEqual(self.reload(self.account).closing_balance, D("1000.00"))

    def test_every_head_matches_its_latest_snapshot_afterwards(self):
        self._drift(self.donations, "5.00")
        self._drift(self.zakat, "7.00")
        reconcile_balances()
        for head in LedgerHead.objects.all():
            latest = snapshots.latest_snapshot(head.pk)
            self.assertLessEqual(abs(head.current_balance - latest.closing_balance), D("0.01"))

    def test_one_cent_is_tolerated(self):
        self._drift(self.zakat, "0.01")
        self.assertEqual(reconcile_balances().fix_count, 0)

    def test_uses_most_recent_snapshot(self):
        close_accounting_period(3, 2025, self.account.pk)
        self.credit("50", self.day(4, 1))
        self._drift(self.donations, "0.00")
        reconcile_balances()
        self.assertEqual(self.reload(self.donations).current_balance, D("1050.00"))

    def test_head_without_snapshot_is_skipped(self):
        LedgerHead.objects.create(account=self.account, name="New Head")
        result = reconcile_balances()
        self.assertEqual(result.skipped, 1)
        self.assertEqual(result.error_count, 0)

    def test_failing_head_does_not_stop_the_sweep(self):
        self._drift(self.zakat, "9.00")
        real = "ledger_core.services.reconciliation.reconcile_head"
        from ..services.reconciliation import reconcile_head

        def flaky(head_id):
            if head_id == self.donations.pk:
                raise RuntimeError("lock timeout")
            return reconcile_head(head_id)

        with mock.patch(real, side_effect=flaky):
            result = reconcile_balances()
        self.assertEqual(result.error_count, 1)
        self.assertEqual(result.fix_count, 1)
        self.assertEqual(self.reload(self.zakat).current_balance, D("0.00"))

    def test_corrections_are_audited(self):
        self._drift(self.donations, "1.00")
        with self.captureOnCommitCallbacks(execute=True):
            reconcile_balances()
        entry = AuditLog.objects.get(action="reconcile_balance")
        self.assertIsNone(entry.user)
        self.assertEqual(entry.object_id, str(self.donations.pk))
