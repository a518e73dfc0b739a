from django.apps import AppConfig


class InventoryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"

    def ready(self):
        from core.registry import EntityHandlers, registry
        from inventory.services import catalog

        registry.register(
            "product",
            EntityHandlers(
                create=catalog.create_product,
                update=catalog.update_product,
                delete=catalog.deactivate_product,
            ),
        )
