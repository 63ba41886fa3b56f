from django.conf import settings  # To access global project settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # Trace of every state-changing ledger operation

    # Which user performed the action
    # (Nullable for scheduled jobs like the reconciliation sweep)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Type of event being logged
    action = models.CharField(
        max_length=50
    )  # e.g. create_transaction, period_closed, reconcile_balance
    # What kind of object was affected
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Transaction", "LedgerHead", "Account")
    object_id = models.CharField(max_length=100)
    # Before/after figures, in JSON format
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)  # Decimals/dates allowed
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
        ]
        ordering = ("-created_at",)

    def __str__(self):
        time = self.created_at
        return f"[{time:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
