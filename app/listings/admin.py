"""
Listing admin configuration.

Moderation happens here. Term fields are read-only because they are
owned by the payments app.
"""

from django.contrib import admin

from listings.models import Listing


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "name",
        "owner",
        "moderation_status",
        "tier",
        "term_status",
        "current_term_end",
        "created_at",
    ]
    list_filter = ["moderation_status", "term_status", "tier"]
    search_fields = ["id", "name", "owner__email", "owner__username"]
    readonly_fields = [
        "id",
        "term_status",
        "current_term_start",
        "current_term_end",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
