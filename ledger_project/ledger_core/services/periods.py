import datetime
import logging
from dataclasses import asdict, dataclass, field

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.dateparse import parse_date

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Account, LedgerHead
from . import snapshots
from .audit_helper import log_action_on_commit
from .balance import (ZERO, month_bounds, month_index, monthly_activity,
                      next_month, opening_position, prior_snapshot)

logger = logging.getLogger(__name__)

"""
    Months are totally ordered by (year, month). Per account:
      - last_closed_date locks every month up to and including its month
      - at most one month is flagged is_open on the snapshots (the writable one)
"""


@dataclass
class ClosureResult:
    accounts_processed: int = 0
    ledger_heads_processed: int = 0
    snapshots_created: int = 0
    snapshots_updated: int = 0
    next_month_prepared: int = 0
    accounts_skipped: list = field(default_factory=list)  # out of sequence, all-accounts run only

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PeriodCheck:
    requires_recalculation: bool = False
    open_period: tuple | None = None


def validate_month_year(month, year):
    try:
        month, year = int(month), int(year)
    except (TypeError, ValueError):
        raise ValidationError("month and year must be integers")
    if not 1 <= month <= 12:
        raise ValidationError("Invalid month. Must be between 1 and 12.")
    if not 2000 <= year <= 2100:
        raise ValidationError("Invalid year. Must be between 2000 and 2100.")
    return month, year


def coerce_date(value, field="date"):
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    parsed = parse_date(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationError(f"Invalid {field}: {value!r}")
    return parsed


def _locked_account(account_id):
    try:
        return Account.objects.select_for_update().get(pk=account_id)
    except Account.DoesNotExist:
        raise NotFoundError(f"Account {account_id} not found")


def closed_through(account):
    """(month, year) of last_closed_date, or None."""
    d = account.last_closed_date
    return (d.month, d.year) if d else None


def sync_account_totals(account):
    """Roll the heads' cash/bank buckets up onto the account."""
    totals = LedgerHead.objects.for_account(account).aggregate(
        cash=Coalesce(Sum("cash_balance"), ZERO),
        bank=Coalesce(Sum("bank_balance"), ZERO),
    )
    account.cash_balance = totals["cash"]
    account.bank_balance = totals["bank"]
    account.closing_balance = account.cash_balance + account.bank_balance
    account.save(update_fields=["cash_balance", "bank_balance", "closing_balance", "updated_at"])


# ----------------------------
# Close
# ----------------------------
def _check_sequence(account, month, year):
    closed = closed_through(account)
    if closed is None:
        return
    if month_index(month, year) <= month_index(*closed):
        raise ConflictError(
            f"Period {month:02d}/{year} is already closed for account '{account.name}' "
            f"(closed through {account.last_closed_date})"
        )
    expected = next_month(*closed)
    if (month, year) != expected:
        raise ConflictError(
            f"Cannot close {month:02d}/{year} for account '{account.name}': "
            f"next period to close is {expected[0]:02d}/{expected[1]}"
        )


def _close_head(account, head, month, year, result):
    opening = opening_position(head.pk, account.pk, month, year)
    activity = monthly_activity(head.pk, account.pk, month, year)
    closing = opening.total + activity.net
    cash = opening.cash + activity.net_cash

    existing = snapshots.get_snapshot(account.pk, head.pk, month, year, lock=True)
    was_open = bool(existing and existing.is_open)

    _snap, created = snapshots.upsert(
        account.pk, head.pk, month, year,
        opening_balance=opening.total,
        receipts=activity.receipts,
        payments=activity.payments,
        cash_in_hand=cash,
        is_open=False,
    )
    if created:
        result.snapshots_created += 1
    else:
        result.snapshots_updated += 1

    head.current_balance = closing
    head.cash_balance = cash
    head.bank_balance = closing - cash
    head.save(update_fields=["current_balance", "cash_balance", "bank_balance"])

    # Seed next month: create if absent, or re-base its opening one step
    nm, ny = next_month(month, year)
    nxt = snapshots.get_snapshot(account.pk, head.pk, nm, ny, lock=True)
    if nxt is None:
        snapshots.upsert(
            account.pk, head.pk, nm, ny,
            opening_balance=closing,
            receipts=0,
            payments=0,
            cash_in_hand=cash,
            is_open=was_open,
        )
        result.next_month_prepared += 1
    else:
        fields = {"is_open": True} if was_open else {}
        if nxt.opening_balance != closing:
            next_activity = monthly_activity(head.pk, account.pk, nm, ny)
            fields.update(opening_balance=closing, cash_in_hand=cash + next_activity.net_cash)
        if fields:
            snapshots.upsert(account.pk, head.pk, nm, ny, **fields)


def close_accounting_period(month, year, account_id=None, *, user=None) -> ClosureResult:
    """
    Finalise (month, year) for one account, or for every account when
    account_id is None. Each account is one atomic unit; months must be
    closed in order with no gaps.

    A single account that is out of sequence raises ConflictError. In an
    all-accounts run such an account is logged and listed in
    accounts_skipped, and the run carries on with the rest.
    """
    month, year = validate_month_year(month, year)
    _, last_day = month_bounds(month, year)

    if account_id is not None:
        account_ids = [account_id]
        if not Account.objects.filter(pk=account_id).exists():
            raise NotFoundError(f"Account {account_id} not found")
    else:
        account_ids = list(Account.objects.order_by("pk").values_list("pk", flat=True))

    result = ClosureResult()
    for acct_id in account_ids:
        try:
            _close_account(acct_id, month, year, last_day, result, user)
        except ConflictError as e:
            if account_id is not None:
                raise
            logger.warning("close of %02d/%d skipped for account %s: %s", month, year, acct_id, e)
            result.accounts_skipped.append(acct_id)
            continue
        logger.info("closed %02d/%d for account %s", month, year, acct_id)
    return result


def _close_account(acct_id, month, year, last_day, result, user):
    with transaction.atomic():
        account = _locked_account(acct_id)
        _check_sequence(account, month, year)

        heads = LedgerHead.objects.for_account(account).select_for_update().order_by("pk")
        for head in heads:
            _close_head(account, head, month, year, result)
            result.ledger_heads_processed += 1

        sync_account_totals(account)
        account.last_closed_date = last_day
        account.save(update_fields=["last_closed_date", "updated_at"])
        result.accounts_processed += 1

        log_action_on_commit(
            action="period_closed",
            instance=account,
            user=user,
            changes={"month": month, "year": year, "last_closed_date": last_day.isoformat()},
        )


# ----------------------------
# Open / reopen
# ----------------------------
def _rebase_on_prior(account, head, month, year, snap) -> bool:
    prev = prior_snapshot(head.pk, account.pk, month, year)
    if prev is None or prev.closing_balance == snap.opening_balance:
        return False
    activity = monthly_activity(head.pk, account.pk, month, year)
    snapshots.upsert(
        account.pk, head.pk, month, year,
        opening_balance=prev.closing_balance,
        cash_in_hand=prev.cash_in_hand + activity.net_cash,
    )
    logger.info(
        "re-based %02d/%d for head %s: opening %s -> %s",
        month, year, head.pk, snap.opening_balance, prev.closing_balance,
    )
    return True


def open_accounting_period(month, year, account_id, *, user=None):
    """
    Make (month, year) the writable period of the account: every other
    snapshot loses is_open, and each head gets a flagged snapshot (created
    from the head's current balance when missing). A stored snapshot whose
    opening no longer matches the prior month's closing is re-based onto it,
    which happens when a later month was opened before an earlier one.
    """
    month, year = validate_month_year(month, year)
    with transaction.atomic():
        account = _locked_account(account_id)
        closed = closed_through(account)
        if closed and month_index(month, year) <= month_index(*closed):
            raise ConflictError(
                f"Cannot open {month:02d}/{year}: account '{account.name}' "
                f"is closed through {account.last_closed_date}"
            )

        snapshots.set_open_flags(account.pk, month, year)
        created = rebased = 0
        for head in LedgerHead.objects.for_account(account).select_for_update().order_by("pk"):
            existing = snapshots.get_snapshot(account.pk, head.pk, month, year, lock=True)
            if existing is not None:
                rebased += _rebase_on_prior(account, head, month, year, existing)
                continue
            snapshots.upsert(
                account.pk, head.pk, month, year,
                opening_balance=head.current_balance,
                receipts=0,
                payments=0,
                cash_in_hand=head.cash_balance,
                is_open=True,
            )
            created += 1

        log_action_on_commit(
            action="period_opened",
            instance=account,
            user=user,
            changes={"month": month, "year": year,
                     "snapshots_created": created, "snapshots_rebased": rebased},
        )
    logger.info("opened %02d/%d for account %s", month, year, account_id)
    return month, year


def get_open_period_for_account(account_id):
    return snapshots.open_period_of(account_id)


def ensure_current_period_open(account_id, today=None):
    """Open the current calendar month when the account has no open period."""
    period = get_open_period_for_account(account_id)
    if period is not None:
        return period
    today = today or timezone.localdate()
    account = Account.objects.filter(pk=account_id).first()
    if account is None:
        raise NotFoundError(f"Account {account_id} not found")
    closed = closed_through(account)
    if closed and month_index(today.month, today.year) <= month_index(*closed):
        return None
    return open_accounting_period(today.month, today.year, account_id)


def reopen_period(account_id, new_closing_date, *, user=None):
    """
    Roll last_closed_date back to the end of new_closing_date's month.
    Snapshots are left alone; run the recalculation afterwards.
    Returns (old_date, new_date).
    """
    new_date = coerce_date(new_closing_date, "new_closing_date")
    new_date = month_bounds(new_date.month, new_date.year)[1]

    with transaction.atomic():
        account = _locked_account(account_id)
        old_date = account.last_closed_date
        if old_date is None:
            raise ConflictError(f"Account '{account.name}' has no closed period to reopen")
        if new_date >= old_date:
            raise ConflictError(
                f"New closing date {new_date} must be earlier than current {old_date}"
            )
        account.last_closed_date = new_date
        account.save(update_fields=["last_closed_date", "updated_at"])

        log_action_on_commit(
            action="period_reopened",
            instance=account,
            user=user,
            changes={"old_closing_date": old_date.isoformat(), "new_closing_date": new_date.isoformat()},
        )
    logger.info("account %s reopened: %s -> %s", account_id, old_date, new_date)
    return old_date, new_date


# ----------------------------
# Transaction-period validation
# ----------------------------
def validate_transaction_period(account, tx_date, override=False) -> PeriodCheck:
    """
    Dated on/before last_closed_date → rejected unless override, then flagged
    for recalculation. Dated outside the open period → rejected unless
    override; an earlier month is flagged too.
    """
    tx_date = coerce_date(tx_date, "tx_date")

    if account.last_closed_date and tx_date <= account.last_closed_date:
        if not override:
            raise ConflictError(
                f"Transaction date {tx_date} falls in a closed period "
                f"(closed through {account.last_closed_date})"
            )
        return PeriodCheck(requires_recalculation=True, open_period=get_open_period_for_account(account.pk))

    period = get_open_period_for_account(account.pk)
    if period is None and getattr(settings, "LEDGER_AUTO_OPEN_CURRENT_PERIOD", True):
        period = ensure_current_period_open(account.pk)
    if period is None or period == (tx_date.month, tx_date.year):
        return PeriodCheck(open_period=period)

    if not override:
        raise ConflictError(
            f"Transaction date {tx_date} is outside the open period {period[0]:02d}/{period[1]}"
        )
    backdated = month_index(tx_date.month, tx_date.year) < month_index(*period)
    return PeriodCheck(requires_recalculation=backdated, open_period=period)
