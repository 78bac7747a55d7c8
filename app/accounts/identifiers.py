"""
Canonical form of account identifiers.

Accounts are addressed by a phone-style identifier. The same human must never
be represented by two different strings, so every identifier that enters the
system (login, conversation lookup, message recipient) passes through
canonicalize() before it is stored or compared.

Rules:
    - surrounding whitespace and the separators ``space - ( ) .`` are removed
    - an explicit international prefix (``+`` or ``00``) is dropped and the
      remaining digits are kept as they are
    - otherwise ACCOUNT_DEFAULT_COUNTRY_CODE is prefixed unless present

Examples (default country code "91"):
    canonicalize("98765 43210")      -> "919876543210"
    canonicalize("919876543210")     -> "919876543210"
    canonicalize("+44 20 7946 0958") -> "442079460958"
    canonicalize("  ")               -> ""
"""

from __future__ import annotations

import re

from django.conf import settings

_SEPARATORS = re.compile(r"[\s\-().]")
_DIGITS = re.compile(r"^\d{6,15}$")


def default_country_code() -> str:
    return str(getattr(settings, "ACCOUNT_DEFAULT_COUNTRY_CODE", "91"))


def canonicalize(identifier) -> str:
    """Return the canonical identifier, or "" for empty input."""
    if identifier is None:
        return ""

    value = _SEPARATORS.sub("", str(identifier).strip())
    if not value:
        return ""

    if value.startswith("+"):
        return value[1:]
    if value.startswith("00"):
        return value[2:]

    country_code = default_country_code()
    if not value.startswith(country_code):
        value = f"{country_code}{value}"
    return value


def is_valid_identifier(identifier: str) -> bool:
    """True when a canonical identifier is 6 to 15 digits (E.164 length)."""
    return bool(identifier) and bool(_DIGITS.match(identifier))
