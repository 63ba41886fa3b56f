from django.core.exceptions import ValidationError
from django.db import models

from ..managers import AccountScopedManager
from .account import Account
from .ledger_head import LedgerHead
from .transaction import Transaction

CHEQUE_STATUS = [
    ("pending", "Pending"),
    ("cleared", "Cleared"),
    ("cancelled", "Cancelled"),
]


# ---------- Cheque ----------
class Cheque(models.Model):  # A cheque issued for a debit; balances move only once it clears

    transaction = models.OneToOneField(Transaction, related_name="cheque", on_delete=models.CASCADE)
    account = models.ForeignKey(Account, related_name="cheques", on_delete=models.PROTECT)
    # Head the money is paid into (the debit's target)
    ledger_head = models.ForeignKey(LedgerHead, related_name="cheques", on_delete=models.PROTECT)
    cheque_number = models.CharField(max_length=50)
    bank_name = models.CharField(max_length=200)
    issue_date = models.DateField()
    due_date = models.DateField()
    status = models.CharField(max_length=10, choices=CHEQUE_STATUS, default="pending")
    clearing_date = models.DateField(null=True, blank=True)
    description = models.TextField(null=True, blank=True)

    objects = AccountScopedManager()

    class Meta:
        indexes = [models.Index(fields=["account", "status"], name="cheque_account_status_idx")]
        constraints = [
            # the same cheque number can't be issued twice from one account
            models.UniqueConstraint(
                fields=["account", "cheque_number"], name="uq_account_cheque_number"
            ),
        ]

    def __str__(self):
        return f"Cheque {self.cheque_number} ({self.status})"

    def clean(self):
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValidationError("Cheque due_date cannot be before issue_date.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
