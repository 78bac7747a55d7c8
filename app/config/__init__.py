# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, ASGI/WSGI applications and the Celery app.
#
# Importing the Celery app here makes shared_task bind to it on startup.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
