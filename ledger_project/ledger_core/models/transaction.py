from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import AccountScopedManager
from .account import Account
from .booklet import Booklet
from .donor import Donor
from .ledger_head import LedgerHead

# Choice Lists
TX_TYPES = [
    ("credit", "Credit"),  # money received onto one or more heads
    ("debit", "Debit"),    # money paid out of one or more source heads
]

CASH_TYPES = [
    ("cash", "Cash"),
    ("bank", "Bank"),
    ("cheque", "Cheque"),
    ("multiple", "Multiple"),  # part cash, part bank
    ("other", "Other"),        # booked against the bank bucket
]

TX_STATUS = [
    ("pending", "Pending"),      # cheque issued, not cleared yet
    ("completed", "Completed"),  # balances posted
    ("cancelled", "Cancelled"),
]

ITEM_SIDES = [
    ("+", "Increase"),
    ("-", "Decrease"),
]


# ---------- Transaction (header) ----------
class Transaction(models.Model):

    account = models.ForeignKey(Account, related_name="transactions", on_delete=models.PROTECT)
    # Primary head: receiving head for credits, target head for debits
    ledger_head = models.ForeignKey(LedgerHead, related_name="transactions", on_delete=models.PROTECT)
    donor = models.ForeignKey(
        Donor, null=True, blank=True, related_name="transactions", on_delete=models.SET_NULL
    )

    # Receipt slip used by a credit (booklet + page number)
    booklet = models.ForeignKey(
        Booklet, null=True, blank=True, related_name="transactions", on_delete=models.PROTECT
    )
    receipt_no = models.PositiveIntegerField(null=True, blank=True)

    amount = models.DecimalField(max_digits=18, decimal_places=2)
    # How amount is split between the two money buckets
    cash_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    bank_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    tx_type = models.CharField(max_length=6, choices=TX_TYPES)
    cash_type = models.CharField(max_length=10, choices=CASH_TYPES, default="cash")
    tx_date = models.DateField()
    description = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=TX_STATUS, default="completed")

    # Cheque details (debits paid by cheque)
    cheque_number = models.CharField(max_length=50, null=True, blank=True)
    bank_name = models.CharField(max_length=200, null=True, blank=True)
    cheque_date = models.DateField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AccountScopedManager()

    class Meta:
        indexes = [
            models.Index(fields=["account", "tx_date"], name="tx_account_date_idx"),
            models.Index(fields=["ledger_head", "tx_date"], name="tx_head_date_idx"),
            models.Index(fields=["status"], name="tx_status_idx"),
        ]
        constraints = [
            # A receipt slip can only be used once
            models.UniqueConstraint(
                fields=["booklet", "receipt_no"], name="uq_transaction_booklet_receipt"
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="transaction_amount_positive"
            ),
        ]
        ordering = ("tx_date", "id")

    def __str__(self):
        return f"{self.tx_type} {self.amount} ({self.cash_type}) on {self.tx_date}"

    def clean(self):
        if self.ledger_head_id and self.ledger_head.account_id != self.account_id:
            raise ValidationError("Transaction ledger head must belong to the transaction account.")

        # cash + bank must make up the full amount
        if self.amount is not None and self.cash_amount + self.bank_amount != self.amount:
            raise ValidationError(
                f"cash_amount {self.cash_amount} + bank_amount {self.bank_amount} "
                f"must equal amount {self.amount}"
            )

        if self.receipt_no is not None and not self.booklet_id:
            raise ValidationError("receipt_no requires a booklet.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def side_total(self, side):
        total = self.items.filter(side=side).aggregate(total=models.Sum("amount"))["total"]
        return total or Decimal("0.00")


# ---------- Transaction Item (one leg) ----------
class TransactionItem(models.Model):

    transaction = models.ForeignKey(Transaction, related_name="items", on_delete=models.CASCADE)
    ledger_head = models.ForeignKey(LedgerHead, related_name="items", on_delete=models.PROTECT)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    side = models.CharField(max_length=1, choices=ITEM_SIDES)

    class Meta:
        indexes = [models.Index(fields=["ledger_head", "side"], name="tx_item_head_side_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="transaction_item_amount_positive"
            ),
        ]

    def __str__(self):
        return f"{self.side}{self.amount} → {self.ledger_head.name}"

    @property
    def signed_amount(self):
        return self.amount if self.side == "+" else -self.amount

    def clean(self):
        # Legs can only touch heads of the transaction's own account
        if not (self.ledger_head_id and self.transaction_id):
            return
        if self.ledger_head.account_id != self.transaction.account_id:
            raise ValidationError("TransactionItem ledger head belongs to a different account.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
