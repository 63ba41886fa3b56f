from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils import timezone

from ledger_core.exceptions import LedgerError
from ledger_core.services.balance import next_month
from ledger_core.services.cheques import cancel_cheque, clear_cheque
from ledger_core.services.periods import close_accounting_period
from ledger_core.services.reconciliation import reconcile_head

# ---------- Admin actions ----------
# Every action goes through the ledger services so admins can't bypass
# locking, validation or the audit trail.


@admin.action(description="Close next period for selected accounts")
def close_next_period(modeladmin, request, queryset):
    for account in queryset:
        if account.last_closed_date:
            month, year = next_month(account.last_closed_date.month, account.last_closed_date.year)
        else:
            today = timezone.localdate()
            month, year = today.month, today.year
        try:
            close_accounting_period(month, year, account.pk, user=request.user)
            modeladmin.message_user(request, f"{account}: closed {month:02d}/{year}")
        except (ValidationError, LedgerError) as e:
            modeladmin.message_user(request, f"{account}: {e}", level=messages.ERROR)


@admin.action(description="Reconcile selected ledger heads with their latest snapshot")
def reconcile_ledger_heads(modeladmin, request, queryset):
    fixed = 0
    for head in queryset:
        if reconcile_head(head.pk):
            fixed += 1
    modeladmin.message_user(request, f"Reconciled {fixed} of {queryset.count()} ledger heads.")


@admin.action(description="Mark selected cheques as Cleared")
def mark_cheques_cleared(modeladmin, request, queryset):
    for cheque in queryset:
        try:
            clear_cheque(cheque.pk, user=request.user)
        except (ValidationError, LedgerError) as e:
            modeladmin.message_user(request, f"{cheque}: {e}", level=messages.ERROR)


@admin.action(description="Cancel selected cheques")
def mark_cheques_cancelled(modeladmin, request, queryset):
    for cheque in queryset:
        try:
            cancel_cheque(cheque.pk, reason="cancelled from admin", user=request.user)
        except (ValidationError, LedgerError) as e:
            modeladmin.message_user(request, f"{cheque}: {e}", level=messages.ERROR)
