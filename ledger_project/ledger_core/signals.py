from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Account, LedgerHead

# Heads, transactions and booklets in use are already held by PROTECT
# foreign keys; these receivers cover what the schema can't express.

"""Block account deletion once any of its months has been closed."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Account)
def prevent_delete_closed_account(sender, instance, **kwargs):
    if instance.last_closed_date is not None:
        raise ValidationError("Cannot delete an account with closed periods.")


"""Block ledger head deletion while it still carries money."""


@receiver(pre_delete, sender=LedgerHead)
def prevent_delete_ledger_head_with_balance(sender, instance, **kwargs):
    if instance.current_balance or instance.cash_balance or instance.bank_balance:
        raise ValidationError("Cannot delete a ledger head with a non-zero balance.")
