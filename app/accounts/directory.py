"""
Identity directory consumed by the chat services.

Chat resolves every participant through this module: canonicalize the raw
identifier, look the account up, and copy a display snapshot. Presence
(``is_online``/``last_seen``) is updated from the WebSocket lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.utils import timezone

from accounts.identifiers import canonicalize
from accounts.models import Account
from core.services import BaseService

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


@dataclass
class Presence:
    """Online state of one account."""

    identifier: str
    is_online: bool
    last_seen: datetime
    changed: bool = False

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "is_online": self.is_online,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }


class IdentityDirectory(BaseService):
    """Account lookups keyed by canonical identifier."""

    canonicalize = staticmethod(canonicalize)

    @classmethod
    def resolve_account(cls, identifier) -> Account | None:
        """Return the active account for ``identifier``, or None."""
        canonical = canonicalize(identifier)
        if not canonical:
            return None
        return Account.objects.filter(phone_number=canonical, is_active=True).first()

    @classmethod
    def resolve_accounts(cls, identifiers: Iterable) -> dict[str, Account]:
        """
        Resolve several identifiers with one query.

        Returns:
            Mapping of canonical identifier to account. Identifiers without an
            active account are absent from the mapping.
        """
        canonical = {canonicalize(value) for value in identifiers} - {""}
        if not canonical:
            return {}
        accounts = Account.objects.filter(phone_number__in=canonical, is_active=True)
        return {account.phone_number: account for account in accounts}

    @staticmethod
    def snapshot(account: Account) -> dict:
        """Participant snapshot stored on conversations."""
        return {
            "identifier": account.phone_number,
            "name": account.display_name,
            "profile_picture": account.profile_picture,
        }

    @classmethod
    def presence_for(cls, identifiers: Iterable) -> dict[str, Presence]:
        """Current presence of several accounts, keyed by canonical identifier."""
        canonical = {canonicalize(value) for value in identifiers} - {""}
        if not canonical:
            return {}
        rows = Account.objects.filter(phone_number__in=canonical).values_list(
            "phone_number", "is_online", "last_seen"
        )
        return {
            identifier: Presence(identifier, is_online, last_seen)
            for identifier, is_online, last_seen in rows
        }

    @classmethod
    def set_presence(cls, identifier, online: bool) -> Presence | None:
        """
        Record that one live connection of ``identifier`` opened or closed.

        Connections are counted, so the account stays online until its last
        connection closes. ``last_seen`` is stamped either way.

        Returns:
            The resulting Presence, or None when the identifier is unknown
        """
        canonical = canonicalize(identifier)
        now = timezone.now()

        with cls.atomic():
            account = (
                Account.objects.select_for_update()
                .filter(phone_number=canonical)
                .first()
            )
            if account is None:
                return None

            if online:
                count = account.connection_count + 1
            else:
                count = max(account.connection_count - 1, 0)
            is_online = count > 0

            Account.objects.filter(pk=account.pk).update(
                connection_count=count,
                is_online=is_online,
                last_seen=now,
            )

        changed = is_online != account.is_online
        cls.get_logger().debug(
            f"Presence for {canonical}: {count} connections"
            f"{' (now online)' if changed and is_online else ''}"
            f"{' (now offline)' if changed and not is_online else ''}"
        )
        return Presence(canonical, is_online, now, changed=changed)
