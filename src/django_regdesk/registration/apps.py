"""Django app configuration for the registration app."""

from django.apps import AppConfig


class DjangoRegdeskRegistrationConfig(AppConfig):
    """Configuration for the registration app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_regdesk.registration"
    label = "regdesk_registration"
    verbose_name = "Registration"
