from django.apps import AppConfig


class BillingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"

    def ready(self):
        from billing.services import bills
        from core.registry import EntityHandlers, registry

        registry.register(
            "bill",
            EntityHandlers(
                create=bills.create_bill,
                update=bills.update_bill_from_payload,
                delete=bills.discard_draft_from_payload,
            ),
        )
