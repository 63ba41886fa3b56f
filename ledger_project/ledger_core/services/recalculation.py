import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from ..exceptions import NotFoundError
from ..models import Account, LedgerHead
from . import snapshots
from .audit_helper import log_action_on_commit
from .balance import (Position, carried_in, iter_months, month_index,
                      monthly_activity, opening_position, position_through)
from .periods import coerce_date, sync_account_totals

logger = logging.getLogger(__name__)


@dataclass
class RecalculationResult:
    account_id: int
    ledger_head_id: int
    old_balance: Decimal
    new_balance: Decimal
    months: list = field(default_factory=list)  # [(month, year), ...] in walk order

    @property
    def delta(self):
        return self.new_balance - self.old_balance


def recalculate(account_id, ledger_head_id, from_date, *, today=None, user=None) -> RecalculationResult:
    """
    Rebuild the head's monthly snapshots from from_date's month through the
    current month, oldest first.

    The first month opens from the prior month's snapshot (or history when
    there is none); every later month opens at the closing just computed for
    the month before it, so a backdated change ripples all the way forward.
    Receipts and payments are re-derived from history each time, and is_open
    is left as stored. The head ends on its full history through today,
    plus any balance it was opened with.

    Running it twice with the same arguments gives the same rows.
    """
    from_date = coerce_date(from_date, "from_date")
    today = today or timezone.localdate()
    start = (from_date.month, from_date.year)
    end = (today.month, today.year)
    if month_index(*end) < month_index(*start):
        end = start

    with transaction.atomic():
        account = Account.objects.select_for_update().filter(pk=account_id).first()
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        head = (
            LedgerHead.objects.for_account(account)
            .select_for_update()
            .filter(pk=ledger_head_id)
            .first()
        )
        if head is None:
            raise NotFoundError(f"Ledger head {ledger_head_id} not found in account '{account.name}'")

        result = RecalculationResult(
            account_id=account.pk,
            ledger_head_id=head.pk,
            old_balance=head.current_balance,
            new_balance=head.current_balance,
        )

        running = opening_position(head.pk, account.pk, *start)
        for month, year in iter_months(start, end):
            activity = monthly_activity(head.pk, account.pk, month, year)
            closing = running.total + activity.net
            cash = running.cash + activity.net_cash
            snapshots.upsert(
                account.pk, head.pk, month, year,
                opening_balance=running.total,   # forced from the previous month
                receipts=activity.receipts,
                payments=activity.payments,
                cash_in_hand=cash,
            )
            running = Position(total=closing, cash=cash, bank=closing - cash)
            result.months.append((month, year))

        # the live balance comes from full history, not from the walked chain
        seed = carried_in(head.pk, account.pk)
        live = position_through(head.pk, account.pk, today)
        head.cash_balance = live.cash + seed.cash
        head.bank_balance = live.bank + seed.bank
        head.current_balance = head.cash_balance + head.bank_balance
        head.save(update_fields=["current_balance", "cash_balance", "bank_balance"])
        sync_account_totals(account)
        result.new_balance = head.current_balance

        log_action_on_commit(
            action="period_recalculated",
            instance=head,
            user=user,
            changes={
                "from_date": from_date.isoformat(),
                "old_balance": str(result.old_balance),
                "new_balance": str(result.new_balance),
                "delta": str(result.delta),
                "recalculated_months": [f"{y}-{m:02d}" for m, y in result.months],
            },
        )

    logger.info(
        "recalculated head %s from %s: %d months, %s -> %s",
        head.pk, from_date, len(result.months), result.old_balance, result.new_balance,
    )
    return result


def recalculate_account(account_id, from_date, *, today=None, user=None):
    """Run the recalculation for every head of the account."""
    head_ids = list(
        LedgerHead.objects.for_account(account_id).order_by("pk").values_list("pk", flat=True)
    )
    return [
        recalculate(account_id, head_id, from_date, today=today, user=user)
        for head_id in head_ids
    ]
