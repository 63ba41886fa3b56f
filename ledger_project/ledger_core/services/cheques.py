import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import ConflictError, InsufficientBalanceError, NotFoundError
from ..models import Account, Cheque, LedgerHead
from .audit_helper import log_action_on_commit
from .periods import coerce_date
from .posting import apply_transaction_effects

logger = logging.getLogger(__name__)


# ----------------------------
# Cheque workflows
# ----------------------------
def _locked_pending_cheque(cheque_id):
    try:
        cheque = Cheque.objects.select_for_update().select_related("transaction").get(pk=cheque_id)
    except Cheque.DoesNotExist:
        raise NotFoundError(f"Cheque {cheque_id} not found")
    if cheque.status != "pending":
        raise ConflictError(f"Cheque {cheque.cheque_number} is already {cheque.status}")
    return cheque


def clear_cheque(cheque_id, clearing_date=None, *, user=None) -> Cheque:
    """
    Cheque cleared by the bank: the debit finally moves money. Every source
    must still hold the amount in its bank bucket; the target gets '+' and
    the sources '-', all out of / into bank.
    """
    clearing_date = coerce_date(clearing_date, "clearing_date") if clearing_date else timezone.localdate()

    with transaction.atomic():
        cheque = _locked_pending_cheque(cheque_id)
        tx = cheque.transaction
        account = Account.objects.select_for_update().get(pk=tx.account_id)

        sources = list(tx.items.filter(side="-").order_by("ledger_head_id"))
        heads = LedgerHead.objects.select_for_update().in_bulk([i.ledger_head_id for i in sources])
        needed = {}
        for item in sources:
            needed[item.ledger_head_id] = needed.get(item.ledger_head_id, 0) + item.amount
        for head_id, amount in needed.items():
            head = heads[head_id]
            if head.bank_balance < amount:
                raise InsufficientBalanceError(
                    f"Insufficient bank balance in ledger head '{head.name}' to clear cheque. "
                    f"Available: {head.bank_balance}, Required: {amount}"
                )

        cheque.status = "cleared"
        cheque.clearing_date = clearing_date
        cheque.save(update_fields=["status", "clearing_date"])

        # cheque → bank bucket: zero cash, full bank
        tx.status = "completed"
        tx.cash_amount = 0
        tx.bank_amount = tx.amount
        tx.save(update_fields=["status", "cash_amount", "bank_amount", "updated_at"])
        apply_transaction_effects(account, tx)

        log_action_on_commit(
            action="cheque_cleared",
            instance=cheque,
            user=user,
            changes={"transaction_id": tx.pk, "amount": str(tx.amount),
                     "clearing_date": clearing_date.isoformat()},
        )
    logger.info("cheque %s cleared on %s", cheque.cheque_number, clearing_date)
    return cheque


def cancel_cheque(cheque_id, reason="", *, user=None) -> Cheque:
    """Cancel a pending cheque. Nothing was posted for it, so nothing is reversed."""
    with transaction.atomic():
        cheque = _locked_pending_cheque(cheque_id)
        tx = cheque.transaction
        note = f"Cancelled: {reason}" if reason else "Cancelled"

        cheque.status = "cancelled"
        cheque.description = f"{cheque.description} | {note}" if cheque.description else note
        cheque.save(update_fields=["status", "description"])

        tx.status = "cancelled"
        tx.description = f"{tx.description} | {note}" if tx.description else note
        tx.save(update_fields=["status", "description", "updated_at"])

        log_action_on_commit(action="cheque_cancelled", instance=cheque, user=user,
                             changes={"transaction_id": tx.pk, "reason": reason})
    logger.info("cheque %s cancelled", cheque.cheque_number)
    return cheque
