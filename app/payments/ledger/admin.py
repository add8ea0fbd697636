"""
Django admin configuration for ledger models.

- LedgerEntry is immutable (no add/edit/delete permissions)
- Balance displayed on LedgerAccount list view
"""

from django.contrib import admin

from .models import LedgerAccount, LedgerEntry


@admin.register(LedgerAccount)
class LedgerAccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for LedgerAccount.

    Balance is computed dynamically from related entries.
    """

    list_display = [
        "id",
        "type",
        "owner_id",
        "currency",
        "balance_display",
        "is_active",
        "allow_negative",
        "created_at",
    ]
    list_filter = ["type", "currency", "is_active", "allow_negative"]
    search_fields = ["id", "owner_id"]
    readonly_fields = ["id", "created_at", "balance_display"]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "type", "owner_id", "currency")}),
        ("Configuration", {"fields": ("allow_negative", "is_active")}),
        ("Balance", {"fields": ("balance_display",)}),
        ("Timestamps", {"fields": ("created_at",)}),
    )

    @admin.display(description="Balance")
    def balance_display(self, obj: LedgerAccount) -> str:
        return f"{obj.get_balance():,.2f} {obj.currency}"


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """
    Admin configuration for LedgerEntry.

    Ledger entries are immutable. Corrections are made via new
    adjustment entries recorded through LedgerService.
    """

    list_display = [
        "id",
        "created_at",
        "entry_type",
        "amount",
        "currency",
        "debit_account",
        "credit_account",
        "reference_type",
        "created_by",
    ]
    list_filter = ["entry_type", "reference_type", "created_at"]
    search_fields = [
        "id",
        "idempotency_key",
        "reference_id",
        "description",
        "created_by",
    ]
    readonly_fields = [
        "id",
        "created_at",
        "debit_account",
        "credit_account",
        "amount",
        "currency",
        "entry_type",
        "reference_id",
        "reference_type",
        "description",
        "metadata",
        "created_by",
        "idempotency_key",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False
