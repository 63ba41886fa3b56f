from django.db import models

# -----------------------------------------
# Scope ledger rows to the account that
# owns them
# -----------------------------------------
# Define subclass of Django’s QuerySet
class AccountScopedQuerySet(models.QuerySet):
    def for_account(self, account):         # Add queryset helper
        # accept either an Account instance or its primary key
        account_id = getattr(account, "pk", account)
        return self.filter(account_id=account_id)

    def chronological(self):
        # (year, month) order; only meaningful for monthly snapshots
        return self.order_by("year", "month")

    def latest_first(self):
        return self.order_by("-year", "-month")


# Attach AccountScopedQuerySet to .objects
class AccountScopedManager(models.Manager):

    def get_queryset(self):  # ensure .for_account() is always available
        return AccountScopedQuerySet(self.model, using=self._db)

    def for_account(self, account):
        return self.get_queryset().for_account(account)

    # e.g. LedgerHead.objects.for_account(acct).select_for_update()
    use_in_migrations = True
