"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Test defaults; a real DATABASE_URL (e.g. PostgreSQL in CI) takes precedence
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DEBUG", "True")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ACCOUNT_DEFAULT_COUNTRY_CODE", "91")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()
