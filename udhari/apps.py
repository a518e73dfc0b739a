from django.apps import AppConfig


class UdhariConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "udhari"
    verbose_name = "Udhari"

    def ready(self):
        from core.registry import EntityHandlers, registry
        from udhari.services import ledger

        # Entries are opened by the bill builder and are never deleted.
        registry.register("udhari", EntityHandlers(update=ledger.update_entry))
