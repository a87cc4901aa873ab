"""Django app configuration for newsletter_engine."""
from django.apps import AppConfig


class NewsletterEngineConfig(AppConfig):
    """Configuration for the newsletter engine app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "newsletter_engine"
    verbose_name = "Newsletter Engine"
