"""
Django app configuration for accounts.
"""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Identity directory: canonical account identifiers, profiles and presence."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "Accounts"
