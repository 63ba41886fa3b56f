from django.contrib import admin

from ledger_core.models import (AuditLog, Booklet, Cheque, Donor, Transaction,
                                TransactionItem)

from .actions import mark_cheques_cancelled, mark_cheques_cleared
from .readonly import ReadOnlyAdmin


class TransactionItemInline(admin.TabularInline):
    """Show the legs of a transaction, read-only (edits go through update_transaction)"""

    model = TransactionItem
    extra = 0
    fields = ("ledger_head", "side", "amount")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# Register `Transaction` model
@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "account",
        "ledger_head",
        "tx_type",
        "cash_type",
        "amount",
        "tx_date",
        "status",
        "receipt_no",
    )
    list_filter = ("account", "tx_type", "cash_type", "status")
    search_fields = ("description", "cheque_number")
    date_hierarchy = "tx_date"
    inlines = (TransactionItemInline,)

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("account", "ledger_head", "booklet")


# Register `Cheque` model
@admin.register(Cheque)
class ChequeAdmin(ReadOnlyAdmin):
    list_display = ("id", "account", "cheque_number", "bank_name", "due_date", "status", "clearing_date")
    list_filter = ("account", "status")
    search_fields = ("cheque_number", "bank_name")
    actions = (mark_cheques_cleared, mark_cheques_cancelled)


# Register `Booklet` model
@admin.register(Booklet)
class BookletAdmin(admin.ModelAdmin):
    list_display = ("id", "booklet_no", "start_no", "end_no", "is_active")
    list_filter = ("is_active",)
    search_fields = ("booklet_no",)
    # the page pool is owned by reserve()/release()
    readonly_fields = ("pages_left",)


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "phone", "email")
    search_fields = ("name", "phone", "email")


# Register `AuditLog` model
@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("id", "user", "action", "object_type", "object_id", "created_at")
    search_fields = ("object_type", "object_id", "user__username")
    list_filter = ("action", "created_at")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        return super().get_queryset(request).select_related("user")
