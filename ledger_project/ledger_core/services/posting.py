import logging
from dataclasses import dataclass, field

from django.db import transaction

from ..exceptions import (ConflictError, InsufficientBalanceError,
                          InvariantViolationError, NotFoundError,
                          ValidationError)
from ..models import Account, Cheque, Donor, LedgerHead, Transaction, TransactionItem
from . import booklets, snapshots
from .audit_helper import log_action_on_commit
from .balance import ZERO, amounts_equal, parse_id, parse_money, split_amount
from .periods import coerce_date, validate_transaction_period
from .recalculation import recalculate

logger = logging.getLogger(__name__)

CASH_TYPES = ("cash", "bank", "cheque", "multiple", "other")
CHEQUE_FIELDS = ("cheque_number", "bank_name", "issue_date", "due_date")

"""
    A draft is the validated payload handed over by the HTTP layer, e.g.

        {"account_id": 1, "ledger_head_id": 4, "amount": "500.00",
         "cash_type": "cash", "tx_date": "2025-03-10", "booklet_id": 2,
         "splits": [{"ledger_head_id": 4, "amount": "300"}, ...],   # credit
         "sources": [{"ledger_head_id": 7, "amount": "500"}],       # debit
         "override": False, "recalculate": False, "user": request.user}
"""


@dataclass
class Draft:
    account: Account
    ledger_head: LedgerHead
    tx_type: str
    amount: object
    cash_type: str
    cash_amount: object
    bank_amount: object
    tx_date: object
    description: str = ""
    donor: Donor | None = None
    legs: list = field(default_factory=list)   # [(LedgerHead, amount)]
    cheque: dict = field(default_factory=dict)
    override: bool = False
    user: object = None


# ----------------------------
# Draft parsing
# ----------------------------
def _locked_account(account_id):
    if account_id in (None, ""):
        raise ValidationError("account_id is required")
    try:
        return Account.objects.select_for_update().get(pk=parse_id(account_id, "account_id"))
    except Account.DoesNotExist:
        raise NotFoundError(f"Account {account_id} not found")


def _head_of(account, head_id, label="ledger_head_id"):
    if head_id in (None, ""):
        raise ValidationError(f"{label} is required")
    head = LedgerHead.objects.for_account(account).filter(pk=parse_id(head_id, label)).first()
    if head is None:
        raise NotFoundError(f"Ledger head {head_id} not found in account '{account.name}'")
    return head


def _cash_bank_amounts(cash_type, amount, raw):
    if cash_type == "cash":
        return amount, ZERO
    if cash_type == "multiple":
        cash = parse_money(raw.get("cash_amount"), "cash_amount")
        bank = parse_money(raw.get("bank_amount"), "bank_amount")
        if cash < 0 or bank < 0:
            raise ValidationError("cash_amount and bank_amount cannot be negative")
        if not amounts_equal(cash + bank, amount):
            raise InvariantViolationError(
                f"Cash amount {cash} + bank amount {bank} must equal total amount {amount}"
            )
        # bank absorbs any sub-cent difference so the header adds up exactly
        return cash, amount - cash
    return ZERO, amount


def _parse_legs(account, raw_legs, amount, label):
    legs = []
    for leg in raw_legs:
        head = _head_of(account, leg.get("ledger_head_id"), f"{label}.ledger_head_id")
        leg_amount = parse_money(leg.get("amount"), f"{label}.amount")
        if leg_amount <= 0:
            raise ValidationError(f"Each of {label} needs a positive amount")
        legs.append((head, leg_amount))
    total = sum((a for _, a in legs), ZERO)
    if legs and not amounts_equal(total, amount):
        raise InvariantViolationError(
            f"Total {label} amount ({total}) must equal transaction amount ({amount})"
        )
    return legs


def _parse_draft(raw, tx_type, account) -> Draft:
    amount = parse_money(raw.get("amount"))
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")

    cash_type = raw.get("cash_type") or "cash"
    if cash_type not in CASH_TYPES:
        raise ValidationError(f"Invalid cash_type {cash_type!r}")

    if raw.get("tx_date") in (None, ""):
        raise ValidationError("tx_date is required")

    head = _head_of(account, raw.get("ledger_head_id"))
    cash_amount, bank_amount = _cash_bank_amounts(cash_type, amount, raw)

    donor = None
    if raw.get("donor_id"):
        donor = Donor.objects.filter(pk=parse_id(raw["donor_id"], "donor_id")).first()
        if donor is None:
            raise NotFoundError(f"Donor {raw['donor_id']} not found")

    draft = Draft(
        account=account,
        ledger_head=head,
        tx_type=tx_type,
        amount=amount,
        cash_type=cash_type,
        cash_amount=cash_amount,
        bank_amount=bank_amount,
        tx_date=coerce_date(raw["tx_date"], "tx_date"),
        description=raw.get("description") or "",
        donor=donor,
        override=bool(raw.get("override")),
        user=raw.get("user"),
    )

    if tx_type == "credit":
        # '+' legs: explicit splits, or the whole amount on the primary head
        draft.legs = _parse_legs(account, raw.get("splits") or [], amount, "splits")
        if not draft.legs:
            draft.legs = [(head, amount)]
    else:
        # '-' legs: the source heads paying for the target
        if not raw.get("sources"):
            raise ValidationError("Source ledger heads are required for debit transactions")
        draft.legs = _parse_legs(account, raw["sources"], amount, "sources")
        if any(src.pk == head.pk for src, _ in draft.legs):
            raise ValidationError("A debit cannot use its target ledger head as a source")
        if cash_type == "cheque":
            missing = [f for f in CHEQUE_FIELDS if not raw.get(f)]
            if missing:
                raise ValidationError(
                    f"Cheque number, bank name, issue date and due date are required (missing: {', '.join(missing)})"
                )
            draft.cheque = {
                "cheque_number": str(raw["cheque_number"]),
                "bank_name": raw["bank_name"],
                "issue_date": coerce_date(raw["issue_date"], "issue_date"),
                "due_date": coerce_date(raw["due_date"], "due_date"),
            }
    return draft


# ----------------------------
# Balance effects
# ----------------------------
def check_sources_cover(cash_type, amount, cash_amount, legs):
    """
    Every source head must hold enough in the bucket the money leaves from.
    Locks the source heads (pk order) so the check holds until commit.
    """
    needed = {}
    for head, leg_amount in legs:
        cash, bank = split_amount(leg_amount, cash_type, amount, cash_amount)
        c, b = needed.get(head.pk, (ZERO, ZERO))
        needed[head.pk] = (c + cash, b + bank)

    locked = LedgerHead.objects.select_for_update().filter(pk__in=needed).order_by("pk")
    for head in locked:
        cash, bank = needed[head.pk]
        if cash > head.cash_balance:
            raise InsufficientBalanceError(
                f"Insufficient cash balance in ledger head '{head.name}'. "
                f"Available: {head.cash_balance}, Required: {cash}"
            )
        if bank > head.bank_balance:
            raise InsufficientBalanceError(
                f"Insufficient bank balance in ledger head '{head.name}'. "
                f"Available: {head.bank_balance}, Required: {bank}"
            )


def apply_item_effect(account, tx, item, *, reverse=False):
    """
    Post one item: move the head's running balances and the account roll-up,
    then add the same movement to the snapshot of the transaction's month.
    With reverse=True the exact opposite deltas are applied.
    """
    head = LedgerHead.objects.select_for_update().get(pk=item.ledger_head_id)
    cash, bank = split_amount(item.amount, tx.cash_type, tx.amount, tx.cash_amount)
    sign = -1 if item.side == "-" else 1
    if reverse:
        sign = -sign
    d_cash, d_bank = cash * sign, bank * sign

    head.cash_balance += d_cash
    head.bank_balance += d_bank
    head.current_balance = head.cash_balance + head.bank_balance
    head.save(update_fields=["current_balance", "cash_balance", "bank_balance"])

    account.cash_balance += d_cash
    account.bank_balance += d_bank
    account.closing_balance = account.cash_balance + account.bank_balance

    # receipts/payments move in their own column; reversal takes back, never swaps
    direction = -1 if reverse else 1
    receipts = item.amount * direction if item.side == "+" else ZERO
    payments = item.amount * direction if item.side == "-" else ZERO
    snapshots.adjust(
        tx.account_id, head.pk, tx.tx_date.month, tx.tx_date.year,
        receipts=receipts, payments=payments, cash=d_cash, bank=d_bank,
    )


def apply_transaction_effects(account, tx, *, reverse=False):
    for item in tx.items.order_by("ledger_head_id", "pk"):
        apply_item_effect(account, tx, item, reverse=reverse)
    account.save(update_fields=["cash_balance", "bank_balance", "closing_balance", "updated_at"])


def _write_items(tx, draft):
    if draft.tx_type == "credit":
        for head, amount in draft.legs:
            TransactionItem.objects.create(transaction=tx, ledger_head=head, amount=amount, side="+")
    else:
        TransactionItem.objects.create(transaction=tx, ledger_head=draft.ledger_head, amount=draft.amount, side="+")
        for head, amount in draft.legs:
            TransactionItem.objects.create(transaction=tx, ledger_head=head, amount=amount, side="-")


def _fill(tx, draft):
    tx.account = draft.account
    tx.ledger_head = draft.ledger_head
    tx.donor = draft.donor
    tx.amount = draft.amount
    tx.cash_amount = draft.cash_amount
    tx.bank_amount = draft.bank_amount
    tx.tx_type = draft.tx_type
    tx.cash_type = draft.cash_type
    tx.tx_date = draft.tx_date
    tx.description = draft.description
    is_cheque = draft.tx_type == "debit" and draft.cash_type == "cheque"
    tx.status = "pending" if is_cheque else "completed"
    tx.cheque_number = draft.cheque.get("cheque_number")
    tx.bank_name = draft.cheque.get("bank_name")
    tx.cheque_date = draft.cheque.get("issue_date")
    tx.due_date = draft.cheque.get("due_date")


def _post_new(tx, draft):
    """Validate-then-write the legs of a filled transaction; a pending cheque posts nothing yet."""
    if draft.tx_type == "debit":
        check_sources_cover(draft.cash_type, draft.amount, draft.cash_amount, draft.legs)
        if draft.cash_type == "cheque":
            taken = Cheque.objects.for_account(draft.account).filter(
                cheque_number=draft.cheque["cheque_number"]
            )
            if tx.pk:
                taken = taken.exclude(transaction_id=tx.pk)
            if taken.exists():
                raise ConflictError(
                    f"Cheque number {draft.cheque['cheque_number']} already exists for this account"
                )

    tx.save()
    _write_items(tx, draft)

    if tx.status == "pending":
        Cheque.objects.create(
            transaction=tx,
            account=draft.account,
            ledger_head=draft.ledger_head,
            description=draft.description,
            **draft.cheque,
        )
        return
    apply_transaction_effects(draft.account, tx)


def _touched_heads(tx):
    return sorted(set(tx.items.values_list("ledger_head_id", flat=True)))


def _recalculate_if_needed(raw, tx):
    # backdated postings ripple forward only when the caller asks for it
    if tx.requires_recalculation and raw.get("recalculate"):
        for head_id in tx.touched_head_ids:
            recalculate(tx.account_id, head_id, tx.tx_date, user=raw.get("user"))


def _audit_payload(tx):
    return {
        "tx_type": tx.tx_type,
        "amount": str(tx.amount),
        "cash_type": tx.cash_type,
        "tx_date": tx.tx_date.isoformat(),
        "receipt_no": tx.receipt_no,
        "status": tx.status,
    }


# ----------------------------
# Public operations
# ----------------------------
def post_credit(raw) -> Transaction:
    """
    Receive money onto one or more heads. Takes a receipt number from the
    booklet and posts every '+' leg in one unit of work.
    """
    with transaction.atomic():
        account = _locked_account(raw.get("account_id"))
        draft = _parse_draft(raw, "credit", account)
        check = validate_transaction_period(account, draft.tx_date, draft.override)

        if not raw.get("booklet_id"):
            raise ValidationError("booklet_id is required for credit transactions")
        booklet_id = parse_id(raw["booklet_id"], "booklet_id")
        receipt_no = booklets.reserve(booklet_id, raw.get("receipt_no"))

        tx = Transaction(booklet_id=booklet_id, receipt_no=receipt_no, created_by=draft.user)
        _fill(tx, draft)
        _post_new(tx, draft)
        log_action_on_commit(action="create_transaction", instance=tx, user=draft.user,
                             changes=_audit_payload(tx))

    tx.requires_recalculation = check.requires_recalculation
    tx.touched_head_ids = _touched_heads(tx)
    logger.info("credit %s posted: %s on %s (receipt %s)", tx.pk, tx.amount, tx.tx_date, receipt_no)
    _recalculate_if_needed(raw, tx)
    return tx


def post_debit(raw) -> Transaction:
    """
    Pay money out of one or more source heads into the target head.
    Cheque payments are recorded as pending and move no balances until cleared.
    """
    with transaction.atomic():
        account = _locked_account(raw.get("account_id"))
        draft = _parse_draft(raw, "debit", account)
        check = validate_transaction_period(account, draft.tx_date, draft.override)

        tx = Transaction(created_by=draft.user)
        _fill(tx, draft)
        _post_new(tx, draft)
        log_action_on_commit(action="create_transaction", instance=tx, user=draft.user,
                             changes=_audit_payload(tx))

    tx.requires_recalculation = check.requires_recalculation
    tx.touched_head_ids = _touched_heads(tx)
    logger.info("debit %s posted: %s on %s (%s)", tx.pk, tx.amount, tx.tx_date, tx.status)
    _recalculate_if_needed(raw, tx)
    return tx


def post(raw) -> Transaction:
    tx_type = raw.get("tx_type")
    if tx_type == "credit":
        return post_credit(raw)
    if tx_type == "debit":
        return post_debit(raw)
    raise ValidationError(f"Invalid tx_type {tx_type!r}")


def _locked_transaction(transaction_id):
    try:
        return Transaction.objects.select_for_update().get(pk=transaction_id)
    except Transaction.DoesNotExist:
        raise NotFoundError(f"Transaction {transaction_id} not found")


def _guard_closed(account, tx_date, override):
    if account.last_closed_date and tx_date <= account.last_closed_date and not override:
        raise ConflictError(
            f"Transaction dated {tx_date} belongs to a closed period "
            f"(closed through {account.last_closed_date})"
        )


def void_transaction(transaction_id, *, user=None, override=False):
    """
    Reverse every item of the transaction, hand its receipt number back to
    the booklet, then delete it (items and cheque go with it).
    """
    with transaction.atomic():
        tx = _locked_transaction(transaction_id)
        account = _locked_account(tx.account_id)
        _guard_closed(account, tx.tx_date, override)

        if tx.status == "completed":
            apply_transaction_effects(account, tx, reverse=True)

        payload = _audit_payload(tx)
        booklet_id, receipt_no, tx_pk = tx.booklet_id, tx.receipt_no, tx.pk
        tx.delete()
        if booklet_id:
            booklets.release(booklet_id, receipt_no)

        log_action_on_commit(action="void_transaction", object_type="Transaction",
                             object_id=tx_pk, user=user, changes=payload)
    logger.info("transaction %s voided", tx_pk)


def _draft_from(tx):
    """The stored transaction expressed as a draft, for partial updates."""
    raw = {
        "account_id": tx.account_id,
        "ledger_head_id": tx.ledger_head_id,
        "amount": tx.amount,
        "cash_type": tx.cash_type,
        "cash_amount": tx.cash_amount,
        "bank_amount": tx.bank_amount,
        "tx_date": tx.tx_date,
        "description": tx.description,
        "donor_id": tx.donor_id,
        "booklet_id": tx.booklet_id,
        "receipt_no": tx.receipt_no,
        "cheque_number": tx.cheque_number,
        "bank_name": tx.bank_name,
        "issue_date": tx.cheque_date,
        "due_date": tx.due_date,
    }
    side = "+" if tx.tx_type == "credit" else "-"
    legs = [
        {"ledger_head_id": i.ledger_head_id, "amount": i.amount}
        for i in tx.items.filter(side=side).order_by("pk")
    ]
    if tx.tx_type == "credit" and len(legs) == 1 and legs[0]["ledger_head_id"] == tx.ledger_head_id:
        legs = []  # unsplit credit: follows amount / ledger_head_id edits
    raw["splits" if tx.tx_type == "credit" else "sources"] = legs
    return raw


def update_transaction(transaction_id, new_raw) -> Transaction:
    """
    Edit = reverse the old effects, then post the new draft, in one unit of
    work. Keys missing from new_raw keep their stored values; any failure
    leaves the original transaction untouched.

    A cleared cheque stays cleared: its repost moves money straight away and
    keeps the cheque row with its clearing date. Cancelled transactions are
    closed to edits.
    """
    with transaction.atomic():
        tx = _locked_transaction(transaction_id)
        if new_raw.get("tx_type") not in (None, tx.tx_type):
            raise ValidationError("tx_type cannot be changed; void and post a new transaction")
        moved_to = new_raw.get("account_id")
        if moved_to not in (None, "") and parse_id(moved_to, "account_id") != tx.account_id:
            raise ValidationError("A transaction cannot be moved to another account")
        if tx.status == "cancelled":
            raise ConflictError(f"Transaction {tx.pk} was cancelled and cannot be edited")

        account = _locked_account(tx.account_id)
        override = bool(new_raw.get("override"))
        _guard_closed(account, tx.tx_date, override)
        before = _audit_payload(tx)
        cleared = Cheque.objects.select_for_update().filter(transaction=tx, status="cleared").first()

        raw = {**_draft_from(tx), **new_raw}
        # a lone debit source follows a new amount
        if tx.tx_type == "debit" and "amount" in new_raw and "sources" not in new_raw:
            if len(raw["sources"]) == 1:
                raw["sources"] = [{**raw["sources"][0], "amount": new_raw["amount"]}]

        # 1) reverse
        if tx.status == "completed":
            apply_transaction_effects(account, tx, reverse=True)
        if cleared is None:
            Cheque.objects.filter(transaction=tx).delete()
        tx.items.all().delete()

        # 2) repost
        draft = _parse_draft(raw, tx.tx_type, account)
        if cleared is not None and draft.cash_type != "cheque":
            raise ValidationError("A cleared cheque payment cannot change its cash_type")
        check = validate_transaction_period(account, draft.tx_date, draft.override)

        if tx.tx_type == "credit":
            if raw.get("booklet_id") in (None, ""):
                raise ValidationError("booklet_id is required for credit transactions")
            new_booklet = parse_id(raw["booklet_id"], "booklet_id")
            requested = raw.get("receipt_no")
            same_slip = new_booklet == tx.booklet_id and (
                requested in (None, "") or parse_id(requested, "receipt_no") == tx.receipt_no
            )
            if not same_slip:
                old_booklet, old_receipt = tx.booklet_id, tx.receipt_no
                # free the old slip first so the number can be re-requested
                tx.receipt_no = None
                tx.booklet_id = None
                tx.save(update_fields=["receipt_no", "booklet"])
                booklets.release(old_booklet, old_receipt)
                tx.receipt_no = booklets.reserve(new_booklet, new_raw.get("receipt_no"))
                tx.booklet_id = new_booklet

        _fill(tx, draft)
        if cleared is not None:
            tx.status = "completed"
        _post_new(tx, draft)
        if cleared is not None:
            for name, value in draft.cheque.items():
                setattr(cleared, name, value)
            cleared.ledger_head = draft.ledger_head
            cleared.description = draft.description
            cleared.save()
        log_action_on_commit(action="update_transaction", instance=tx, user=draft.user,
                             changes={"before": before, "after": _audit_payload(tx)})

    tx.requires_recalculation = check.requires_recalculation
    tx.touched_head_ids = _touched_heads(tx)
    logger.info("transaction %s updated", tx.pk)
    _recalculate_if_needed(new_raw, tx)
    return tx
