from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"

    def ready(self):
        # Connect the feed receivers to the domain signals.
        from . import receivers  # noqa: F401
