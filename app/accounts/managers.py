"""
Account manager for identifier-based creation.

Related files:
    - models.py: Account model that uses this manager
    - identifiers.py: canonicalization applied before saving
"""

from django.contrib.auth.models import BaseUserManager

from accounts.identifiers import canonicalize, is_valid_identifier


class AccountManager(BaseUserManager):
    """
    Manager creating accounts keyed by their canonical phone identifier.

    Usage:
        account = Account.objects.create_user(phone_number="98765 43210", name="Asha")
        account.phone_number  # "919876543210"
    """

    def create_user(self, phone_number, password=None, **extra_fields):
        """
        Create and save an account.

        Raises:
            ValueError: If the identifier is missing or not 6 to 15 digits
                once canonicalized
        """
        identifier = canonicalize(phone_number)
        if not identifier:
            raise ValueError("The phone number must be set")
        if not is_valid_identifier(identifier):
            raise ValueError(f"Invalid phone number: {phone_number!r}")

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        account = self.model(phone_number=identifier, **extra_fields)

        if password:
            account.set_password(password)
        else:
            # Sign-in happens at the identity provider; no local password
            account.set_unusable_password()

        account.save(using=self._db)
        return account

    def create_superuser(self, phone_number, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(phone_number, password, **extra_fields)

    def get_by_natural_key(self, username):
        return self.get(**{self.model.USERNAME_FIELD: canonicalize(username)})
