from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import AccountScopedManager
from .account import Account

# Choice Lists
HEAD_TYPES = [
    ("debit", "Debit"),    # expense-like heads (money leaves through them)
    ("credit", "Credit"),  # income-like heads (receipts land on them)
]


# ---------- Ledger Head ----------
class LedgerHead(models.Model):  # A named bucket inside an account with its own balances

    # Each head belongs to exactly one account
    account = models.ForeignKey(
        Account,
        related_name="ledger_heads",
        # Account can't be deleted while heads still reference it
        on_delete=models.PROTECT,
    )
    name = models.CharField(max_length=200)  # e.g. "Zakat", "Maintenance"
    head_type = models.CharField(max_length=6, choices=HEAD_TYPES, default="credit")
    description = models.TextField(null=True, blank=True)

    # Live running totals, updated by every posting
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    cash_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    bank_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    """ current_balance == cash_balance + bank_balance, at all times. """

    created_at = models.DateTimeField(auto_now_add=True)

    objects = AccountScopedManager()

    class Meta:
        indexes = [models.Index(fields=["account", "head_type"], name="ledger_head_acct_type_idx")]
        # Head names repeat across accounts but must be unique within one
        constraints = [
            models.UniqueConstraint(
                fields=["account", "name"], name="uq_account_ledger_head_name"
            ),
        ]
        ordering = ("account", "name")

    def __str__(self):
        return f"{self.account.name}: {self.name}"  # Example: "General Fund: Zakat"

    def clean(self):
        if self.current_balance != self.cash_balance + self.bank_balance:
            raise ValidationError(
                f"LedgerHead '{self.name}': current_balance {self.current_balance} "
                f"!= cash {self.cash_balance} + bank {self.bank_balance}"
            )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
