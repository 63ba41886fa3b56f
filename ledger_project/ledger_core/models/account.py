from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class Account(models.Model):
    """
    Top-level ledger owner (a fund, a trust, a branch...).
    - holds the cash/bank roll-up of all of its ledger heads
    - last_closed_date marks how far its books are locked
    """

    # Human-readable name → "General Fund", "Building Fund"
    name = models.CharField(max_length=200, unique=True)

    # Balance carried in when the account was opened
    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Roll-up of every ledger head, split into the two money buckets
    cash_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    bank_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    closing_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )  # always cash_balance + bank_balance

    # Last calendar day of the most recently closed month
    # (None → nothing closed yet)
    last_closed_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return self.name

    def clean(self):
        # Keep the roll-up self-consistent
        if self.closing_balance != self.cash_balance + self.bank_balance:
            raise ValidationError(
                "Account closing_balance must equal cash_balance + bank_balance."
            )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
