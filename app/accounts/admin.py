"""
Django admin configuration for accounts.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import Account


@admin.register(Account)
class AccountAdmin(BaseUserAdmin):
    """Account admin keyed by phone identifier instead of username."""

    list_display = (
        "phone_number",
        "name",
        "is_online",
        "last_seen",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = ("is_online", "is_active", "is_staff", "is_superuser")
    search_fields = ("phone_number", "name")
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("phone_number", "password")}),
        ("Profile", {"fields": ("name", "profile_picture")}),
        ("Presence", {"fields": ("is_online", "last_seen")}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("phone_number", "name", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login", "last_seen")

    def get_readonly_fields(self, request, obj=None):
        # The identifier is referenced by conversations and messages
        if obj is not None:
            return (*self.readonly_fields, "phone_number")
        return self.readonly_fields
