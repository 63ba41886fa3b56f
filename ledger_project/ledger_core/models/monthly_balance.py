from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import AccountScopedManager
from .account import Account
from .ledger_head import LedgerHead

# Rounding slack allowed by the closing-balance identity
EPSILON = Decimal("0.01")


# ---------- Monthly Ledger Balance (snapshot) ----------
class MonthlyLedgerBalance(models.Model):
    """
    Frozen opening / receipts / payments / closing figures for one
    ledger head in one calendar month.

    cash_in_hand and cash_in_bank are the month-end cash and bank positions,
    so cash_in_hand + cash_in_bank tracks closing_balance.
    """

    account = models.ForeignKey(Account, related_name="monthly_balances", on_delete=models.CASCADE)
    ledger_head = models.ForeignKey(LedgerHead, related_name="monthly_balances", on_delete=models.CASCADE)
    month = models.PositiveSmallIntegerField()  # 1..12
    year = models.PositiveSmallIntegerField()

    opening_balance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    receipts = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    payments = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    closing_balance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    cash_in_hand = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    cash_in_bank = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # The month currently accepting new transactions for this head
    is_open = models.BooleanField(default=False)

    updated_at = models.DateTimeField(auto_now=True)

    objects = AccountScopedManager()

    class Meta:
        indexes = [
            # "latest snapshot of a head" lookups
            models.Index(fields=["ledger_head", "year", "month"], name="mlb_head_period_idx"),
            # open period lookups
            models.Index(fields=["account", "is_open"], name="mlb_account_open_idx"),
        ]
        constraints = [
            # exactly one row per (account, head, month)
            models.UniqueConstraint(
                fields=["account", "ledger_head", "month", "year"],
                name="uq_monthly_balance_key",
            ),
            models.CheckConstraint(
                condition=models.Q(month__gte=1) & models.Q(month__lte=12),
                name="monthly_balance_month_range",
            ),
        ]
        ordering = ("ledger_head", "year", "month")

    def __str__(self):
        return (
            f"{self.ledger_head.name} {self.year}-{self.month:02d}: "
            f"{self.opening_balance} + {self.receipts} - {self.payments} = {self.closing_balance}"
        )

    @property
    def period(self):
        return (self.month, self.year)

    def expected_closing(self):
        return self.opening_balance + self.receipts - self.payments

    def clean(self):
        if self.ledger_head_id and self.ledger_head.account_id != self.account_id:
            raise ValidationError("Snapshot ledger head must belong to the snapshot account.")
        if abs(self.closing_balance - self.expected_closing()) > EPSILON:
            raise ValidationError(
                f"closing_balance {self.closing_balance} != opening {self.opening_balance} "
                f"+ receipts {self.receipts} - payments {self.payments}"
            )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
