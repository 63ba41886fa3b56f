import logging
from dataclasses import dataclass, field

from django.db import transaction

from ..models import LedgerHead
from . import snapshots
from .audit_helper import log_action_on_commit
from .balance import EPSILON
from .periods import sync_account_totals

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    fix_count: int = 0
    error_count: int = 0
    skipped: int = 0  # heads with no snapshot yet
    discrepancies: list = field(default_factory=list)

    def as_dict(self):
        return {
            "fix_count": self.fix_count,
            "error_count": self.error_count,
            "skipped": self.skipped,
            "discrepancies": self.discrepancies,
        }


def reconcile_head(head_id):
    """
    Pull one head back onto its latest snapshot when they drift apart by
    more than a cent. Returns the discrepancy dict, or None when nothing changed.
    """
    with transaction.atomic():
        head = LedgerHead.objects.select_for_update().select_related("account").get(pk=head_id)
        snap = snapshots.latest_snapshot(head.pk)
        if snap is None:
            return None
        if abs(head.current_balance - snap.closing_balance) <= EPSILON:
            return None

        discrepancy = {
            "ledger_head_id": head.pk,
            "ledger_head": head.name,
            "account_id": head.account_id,
            "old_balance": str(head.current_balance),
            "new_balance": str(snap.closing_balance),
            "month": snap.month,
            "year": snap.year,
        }
        head.current_balance = snap.closing_balance
        head.cash_balance = snap.cash_in_hand
        head.bank_balance = snap.closing_balance - snap.cash_in_hand
        head.save(update_fields=["current_balance", "cash_balance", "bank_balance"])
        sync_account_totals(head.account)

        # scheduled job: no acting user
        log_action_on_commit(action="reconcile_balance", instance=head, changes=discrepancy)
    return discrepancy


def reconcile_balances() -> ReconciliationResult:
    """
    Sweep every ledger head against its most recent snapshot. Each head is
    its own unit of work; one failing head is logged and the sweep goes on.
    """
    result = ReconciliationResult()
    for head_id in LedgerHead.objects.order_by("pk").values_list("pk", flat=True):
        try:
            if snapshots.latest_snapshot(head_id) is None:
                result.skipped += 1
                continue
            discrepancy = reconcile_head(head_id)
        except Exception:
            logger.exception("reconciliation failed for ledger head %s", head_id)
            result.error_count += 1
            continue
        if discrepancy:
            result.fix_count += 1
            result.discrepancies.append(discrepancy)
            logger.warning(
                "ledger head %s drifted: %s -> %s (%s/%s)",
                head_id, discrepancy["old_balance"], discrepancy["new_balance"],
                discrepancy["month"], discrepancy["year"],
            )

    logger.info(
        "reconciliation done: %d fixed, %d errors, %d skipped",
        result.fix_count, result.error_count, result.skipped,
    )
    return result
