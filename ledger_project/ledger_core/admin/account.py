from django.contrib import admin

from ledger_core.models import Account, LedgerHead, MonthlyLedgerBalance

from .actions import close_next_period, reconcile_ledger_heads
from .readonly import ReadOnlyAdmin


class LedgerHeadInline(admin.TabularInline):
    """Show the heads of an account on its page"""

    model = LedgerHead
    extra = 0  # don’t show “empty” rows by default
    fields = ("name", "head_type", "current_balance", "cash_balance", "bank_balance")
    # balances only move through postings
    readonly_fields = ("current_balance", "cash_balance", "bank_balance")
    show_change_link = True


# Register `Account` model
@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "cash_balance",
        "bank_balance",
        "closing_balance",
        "last_closed_date",
    )
    search_fields = ("name",)
    readonly_fields = ("cash_balance", "bank_balance", "closing_balance", "last_closed_date")
    inlines = (LedgerHeadInline,)
    actions = (close_next_period,)


# Register `LedgerHead` model
@admin.register(LedgerHead)
class LedgerHeadAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "account",
        "name",
        "head_type",
        "current_balance",
        "cash_balance",
        "bank_balance",
    )
    list_filter = ("account", "head_type")
    search_fields = ("name",)
    readonly_fields = ("current_balance", "cash_balance", "bank_balance")
    actions = (reconcile_ledger_heads,)

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        return super().get_queryset(request).select_related("account")


# Register `MonthlyLedgerBalance` model
@admin.register(MonthlyLedgerBalance)
class MonthlyLedgerBalanceAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "account",
        "ledger_head",
        "year",
        "month",
        "opening_balance",
        "receipts",
        "payments",
        "closing_balance",
        "is_open",
    )
    list_filter = ("account", "year", "is_open")
    ordering = ("account", "ledger_head", "-year", "-month")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("account", "ledger_head")
