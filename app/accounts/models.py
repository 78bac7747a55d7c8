"""
Account model: the identity directory record referenced by chat.

Chat never holds a foreign key to Account. Conversations and messages store
the canonical ``phone_number`` string plus a denormalized display snapshot,
so the identifier must never change once an account exists.

Related files:
    - managers.py: AccountManager (canonicalizes on create)
    - identifiers.py: canonicalization rules
    - directory.py: IdentityDirectory lookups and presence updates
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from accounts.identifiers import canonicalize
from accounts.managers import AccountManager


class Account(AbstractBaseUser, PermissionsMixin):
    """
    User account addressed by a canonical phone identifier.

    Fields:
        phone_number: Canonical identifier, unique, immutable after creation
        name: Display name shown to the other participant
        profile_picture: Avatar reference (URL)
        is_online: Whether the account has a live connection
        connection_count: Open live connections; is_online follows it
        last_seen: Last time a live connection closed or opened
        is_active: Whether the account can be addressed
        is_staff: Whether the account can access Django admin
        date_joined: When the account was created
        updated_at: When the account was last modified
    """

    phone_number = models.CharField(
        max_length=20,
        unique=True,
        help_text="Canonical phone identifier (country code + number, digits only)",
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name",
    )
    profile_picture = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Avatar URL",
    )

    is_online = models.BooleanField(
        default=False,
        help_text="Whether the account currently has a live connection",
    )
    last_seen = models.DateTimeField(
        default=timezone.now,
        help_text="When the account was last seen online",
    )
    connection_count = models.PositiveIntegerField(
        default=0,
        help_text="Live WebSocket connections currently open for the account",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the account can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the account record was last modified",
    )

    USERNAME_FIELD = "phone_number"
    REQUIRED_FIELDS = []

    objects = AccountManager()

    class Meta:
        verbose_name = "account"
        verbose_name_plural = "accounts"
        ordering = ["-date_joined"]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._stored_phone_number = instance.__dict__.get("phone_number")
        return instance

    def save(self, *args, **kwargs):
        self.phone_number = canonicalize(self.phone_number)
        stored = getattr(self, "_stored_phone_number", None)
        if stored is not None and stored != self.phone_number:
            raise ValidationError(
                {"phone_number": "The account identifier cannot be changed."}
            )
        super().save(*args, **kwargs)
        self._stored_phone_number = self.phone_number

    def __str__(self):
        return self.phone_number

    @property
    def display_name(self) -> str:
        return self.name or f"User {self.phone_number}"

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.name.split(" ")[0] if self.name else self.phone_number
