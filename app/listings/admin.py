"""
Django admin configuration for listings.
"""

from django.contrib import admin

from listings.models import Item


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    """Admin for marketplace items."""

    list_display = ("title", "seller", "price", "currency", "quantity", "status", "created_at")
    list_filter = ("status", "currency")
    search_fields = ("title", "seller__email")
    raw_id_fields = ("seller",)
    readonly_fields = ("id", "created_at", "updated_at")
