"""
Snapshot store: the single entry point for reading and writing
MonthlyLedgerBalance rows. Posting, period closure and recalculation all go
through upsert() / adjust() so the find-or-create rules live in one place.
"""
from decimal import Decimal

from django.db import transaction

from ..models import MonthlyLedgerBalance
from .balance import ZERO, money, opening_position

# Fields upsert() accepts as absolute values
SNAPSHOT_FIELDS = (
    "opening_balance",
    "receipts",
    "payments",
    "closing_balance",
    "cash_in_hand",
    "cash_in_bank",
    "is_open",
)


def get_snapshot(account_id, ledger_head_id, month, year, *, lock=False):
    qs = MonthlyLedgerBalance.objects.filter(
        account_id=account_id, ledger_head_id=ledger_head_id, month=month, year=year
    )
    if lock:
        qs = qs.select_for_update()
    return qs.first()


def latest_snapshot(ledger_head_id):
    """Most recent snapshot by (year desc, month desc), or None."""
    return (
        MonthlyLedgerBalance.objects.filter(ledger_head_id=ledger_head_id)
        .latest_first()
        .first()
    )


def _seeded(account_id, ledger_head_id, month, year):
    # A fresh row starts at the calculated opening with no activity
    opening = opening_position(ledger_head_id, account_id, month, year)
    return MonthlyLedgerBalance(
        account_id=account_id,
        ledger_head_id=ledger_head_id,
        month=month,
        year=year,
        opening_balance=opening.total,
        receipts=ZERO,
        payments=ZERO,
        closing_balance=opening.total,
        cash_in_hand=opening.cash,
        cash_in_bank=opening.bank,
    )


def upsert(account_id, ledger_head_id, month, year, **fields):
    """
    Create-or-update the snapshot for (account, head, month, year).

    Given fields are written as absolute values. closing_balance is
    recomputed from opening + receipts - payments unless passed explicitly,
    and cash_in_bank follows closing - cash_in_hand unless passed. is_open
    keeps its stored value unless passed.

    Returns (snapshot, created).
    """
    unknown = set(fields) - set(SNAPSHOT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown snapshot fields: {sorted(unknown)}")

    with transaction.atomic():
        snap = get_snapshot(account_id, ledger_head_id, month, year, lock=True)
        created = snap is None
        if created:
            snap = _seeded(account_id, ledger_head_id, month, year)

        for name, value in fields.items():
            setattr(snap, name, value if name == "is_open" else money(value))

        if "closing_balance" not in fields:
            snap.closing_balance = snap.opening_balance + snap.receipts - snap.payments
        if "cash_in_bank" not in fields:
            snap.cash_in_bank = snap.closing_balance - snap.cash_in_hand

        snap.save()
    return snap, created


def adjust(account_id, ledger_head_id, month, year, *, receipts=ZERO, payments=ZERO,
           cash=ZERO, bank=ZERO):
    """
    Add posting deltas to a month's snapshot (find-or-create first) and
    recompute its closing from its own opening balance.
    """
    with transaction.atomic():
        snap = get_snapshot(account_id, ledger_head_id, month, year, lock=True)
        if snap is None:
            snap = _seeded(account_id, ledger_head_id, month, year)
        snap.receipts = money(snap.receipts + Decimal(receipts))
        snap.payments = money(snap.payments + Decimal(payments))
        snap.cash_in_hand = money(snap.cash_in_hand + Decimal(cash))
        snap.cash_in_bank = money(snap.cash_in_bank + Decimal(bank))
        snap.closing_balance = snap.opening_balance + snap.receipts - snap.payments
        snap.save()
    return snap


def open_period_of(account_id):
    """(month, year) flagged is_open for the account, latest first, or None."""
    snap = (
        MonthlyLedgerBalance.objects.for_account(account_id)
        .filter(is_open=True)
        .latest_first()
        .first()
    )
    return snap.period if snap else None


def set_open_flags(account_id, month, year):
    """Clear every is_open flag of the account, then flag (month, year)."""
    qs = MonthlyLedgerBalance.objects.for_account(account_id)
    qs.filter(is_open=True).update(is_open=False)
    return qs.filter(month=month, year=year).update(is_open=True)
