"""
Factory Boy factories for accounts models.

Usage:
    from accounts.tests.factories import AccountFactory

    # Account with a generated identifier
    account = AccountFactory()

    # Account with a specific identifier (canonicalized on create)
    account = AccountFactory(phone_number="98000 00001", name="Asha")

    # Deactivated account
    account = AccountFactory(is_active=False)
"""

import factory

from accounts.models import Account


class AccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for Account model.

    Identifiers are generated in canonical form ("91" + 10 digits).
    """

    class Meta:
        model = Account
        skip_postgeneration_save = True

    phone_number = factory.Sequence(lambda n: f"91{7000000000 + n}")
    name = factory.Faker("name")
    profile_picture = factory.Sequence(lambda n: f"https://cdn.example.com/avatars/{n}.png")
    is_active = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Override create to use AccountManager.create_user()."""
        password = kwargs.pop("password", None)
        return model_class.objects.create_user(
            phone_number=kwargs.pop("phone_number"), password=password, **kwargs
        )
