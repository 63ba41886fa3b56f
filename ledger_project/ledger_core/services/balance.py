"""
Balance calculator: read-only arithmetic over snapshots and transaction
history for one (account, ledger head, month, year).

Only completed transactions count. A pending cheque has no effect on
balances until it clears.
"""
import calendar
import datetime
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db.models import Q, Sum
from django.db.models.functions import Coalesce

from ..exceptions import ValidationError
from ..models import MonthlyLedgerBalance, TransactionItem

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
EPSILON = Decimal("0.01")

# cash_type → bucket the money sits in ("multiple" is split proportionally)
CASH_BUCKET = {
    "cash": "cash",
    "bank": "bank",
    "cheque": "bank",
    "other": "bank",
}


def money(value) -> Decimal:
    """Coerce to a 2dp Decimal (strings, ints, floats via str, Decimals)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value, label="amount") -> Decimal:
    """money() for caller input: anything that is not a finite number is a ValidationError."""
    try:
        parsed = money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number, got {value!r}")
    if not parsed.is_finite():
        raise ValidationError(f"{label} must be a number, got {value!r}")
    return parsed


def parse_id(value, label) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number, got {value!r}")


def amounts_equal(a, b) -> bool:
    return abs(money(a) - money(b)) <= EPSILON


# ----------------------------
# Calendar helpers
# ----------------------------
def month_bounds(month: int, year: int):
    """First and last calendar day of (month, year)."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, 1), datetime.date(year, month, last_day)


def previous_month(month: int, year: int):
    return (12, year - 1) if month == 1 else (month - 1, year)


def next_month(month: int, year: int):
    return (1, year + 1) if month == 12 else (month + 1, year)


def month_index(month: int, year: int) -> int:
    # total order over (year, month), handy for gap checks
    return year * 12 + (month - 1)


def iter_months(start, end):
    """Yield (month, year) from start through end inclusive; both are (month, year)."""
    month, year = start
    while month_index(month, year) <= month_index(*end):
        yield month, year
        month, year = next_month(month, year)


# ----------------------------
# Cash / bank split
# ----------------------------
def split_amount(amount, cash_type, tx_amount=None, tx_cash_amount=None):
    """
    Split one item amount into (cash, bank) using its transaction's cash_type.
    For "multiple" the cash share is cash_amount / amount of the transaction;
    bank takes the remainder so cash + bank == amount exactly.
    """
    amount = money(amount)
    if cash_type == "multiple":
        tx_amount = money(tx_amount)
        if tx_amount == ZERO:
            return ZERO, amount
        cash = money(amount * money(tx_cash_amount) / tx_amount)
        return cash, amount - cash
    if CASH_BUCKET.get(cash_type, "bank") == "cash":
        return amount, ZERO
    return ZERO, amount


@dataclass(frozen=True)
class Position:
    """A balance broken into its cash and bank buckets."""
    total: Decimal = ZERO
    cash: Decimal = ZERO
    bank: Decimal = ZERO


@dataclass(frozen=True)
class Activity:
    receipts: Decimal = ZERO
    payments: Decimal = ZERO
    cash_in: Decimal = ZERO
    cash_out: Decimal = ZERO
    bank_in: Decimal = ZERO
    bank_out: Decimal = ZERO

    @property
    def net(self):
        return self.receipts - self.payments

    @property
    def net_cash(self):
        return self.cash_in - self.cash_out

    @property
    def net_bank(self):
        return self.bank_in - self.bank_out


def _completed_items(ledger_head_id, account_id):
    return TransactionItem.objects.filter(
        ledger_head_id=ledger_head_id,
        transaction__account_id=account_id,
        transaction__status="completed",
    )


def _fold(items) -> Activity:
    # receipts / payments straight from the database
    agg = items.aggregate(
        receipts=Coalesce(Sum("amount", filter=Q(side="+")), ZERO),
        payments=Coalesce(Sum("amount", filter=Q(side="-")), ZERO),
    )
    # cash share needs the parent transaction's split, so walk the rows
    cash_in = cash_out = ZERO
    rows = items.values_list(
        "side", "amount", "transaction__cash_type",
        "transaction__amount", "transaction__cash_amount",
    )
    for side, amount, cash_type, tx_amount, tx_cash in rows:
        cash, _bank = split_amount(amount, cash_type, tx_amount, tx_cash)
        if side == "+":
            cash_in += cash
        else:
            cash_out += cash
    receipts = money(agg["receipts"])
    payments = money(agg["payments"])
    return Activity(
        receipts=receipts,
        payments=payments,
        cash_in=cash_in,
        cash_out=cash_out,
        bank_in=receipts - cash_in,
        bank_out=payments - cash_out,
    )


# ----------------------------
# History
# ----------------------------
def position_before(ledger_head_id, account_id, day) -> Position:
    """Signed sum of completed items dated strictly before `day`."""
    activity = _fold(_completed_items(ledger_head_id, account_id).filter(transaction__tx_date__lt=day))
    return Position(total=activity.net, cash=activity.net_cash, bank=activity.net_bank)


def position_through(ledger_head_id, account_id, day) -> Position:
    """Signed sum of completed items dated on or before `day`."""
    return position_before(ledger_head_id, account_id, day + datetime.timedelta(days=1))


def history_balance(ledger_head_id, account_id) -> Decimal:
    return _fold(_completed_items(ledger_head_id, account_id)).net


# ----------------------------
# Opening balance / activity
# ----------------------------
def prior_snapshot(ledger_head_id, account_id, month, year):
    pm, py = previous_month(month, year)
    return MonthlyLedgerBalance.objects.filter(
        account_id=account_id, ledger_head_id=ledger_head_id, month=pm, year=py
    ).first()


def opening_position(ledger_head_id, account_id, month, year) -> Position:
    """
    Prior month's closing (with its cash/bank positions) when that snapshot
    exists. Failing that, the month's own stored opening when the head's
    snapshots start here (a head opened with a carried-in balance), otherwise
    everything completed before the first day of the month.
    """
    prev = prior_snapshot(ledger_head_id, account_id, month, year)
    if prev is not None:
        return Position(
            total=prev.closing_balance,
            cash=prev.cash_in_hand,
            bank=prev.closing_balance - prev.cash_in_hand,
        )
    own = MonthlyLedgerBalance.objects.filter(
        account_id=account_id, ledger_head_id=ledger_head_id, month=month, year=year
    ).first()
    if own is not None:
        # cash_in_hand is month-end, so take this month's cash movement back out
        cash = own.cash_in_hand - monthly_activity(ledger_head_id, account_id, month, year).net_cash
        return Position(total=own.opening_balance, cash=cash, bank=own.opening_balance - cash)
    first_day, _ = month_bounds(month, year)
    return position_before(ledger_head_id, account_id, first_day)


def carried_in(ledger_head_id, account_id) -> Position:
    """
    The part of a head's balance that no transaction explains: its first
    snapshot's opening minus everything completed before that month.
    Zero for a head with no snapshots.
    """
    first = (
        MonthlyLedgerBalance.objects.filter(account_id=account_id, ledger_head_id=ledger_head_id)
        .chronological()
        .first()
    )
    if first is None:
        return Position()
    first_day, _ = month_bounds(first.month, first.year)
    before = position_before(ledger_head_id, account_id, first_day)
    own_cash = first.cash_in_hand - monthly_activity(
        ledger_head_id, account_id, first.month, first.year
    ).net_cash
    total = first.opening_balance - before.total
    cash = own_cash - before.cash
    return Position(total=total, cash=cash, bank=total - cash)


def opening_balance(ledger_head_id, account_id, month, year) -> Decimal:
    return opening_position(ledger_head_id, account_id, month, year).total


def monthly_activity(ledger_head_id, account_id, month, year) -> Activity:
    """Receipts (side +) and payments (side -) dated within the month."""
    first_day, last_day = month_bounds(month, year)
    items = _completed_items(ledger_head_id, account_id).filter(
        transaction__tx_date__gte=first_day,
        transaction__tx_date__lte=last_day,
    )
    return _fold(items)
