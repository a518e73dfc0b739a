from django.test import SimpleTestCase, TestCase

from core.exceptions import InsufficientStock, ValidationError
from core.registry import EntityHandlers, EntityRegistry, registry


def _echo(payload):
    return payload


class EntityRegistryTests(SimpleTestCase):
    def setUp(self):
        self.registry = EntityRegistry()
        self.registry.register("thing", EntityHandlers(create=_echo))

    def test_apply_dispatches_to_handler(self):
        self.assertEqual(self.registry.apply("thing", "create", {"a": 1}), {"a": 1})

    def test_unknown_kind_or_operation(self):
        with self.assertRaises(ValidationError):
            self.registry.apply("other", "create", {})
        with self.assertRaises(ValidationError):
            self.registry.apply("thing", "upsert", {})
        with self.assertRaises(ValidationError):
            self.registry.apply("thing", "delete", {})

    def test_register_is_idempotent_for_same_handlers(self):
        self.registry.register("thing", EntityHandlers(create=_echo))
        with self.assertRaises(ValueError):
            self.registry.register("thing", EntityHandlers(update=_echo))

    def test_unregister(self):
        self.registry.unregister("thing")
        self.assertEqual(self.registry.kinds(), [])


class AppRegistryTests(TestCase):
    def test_apps_register_their_kinds(self):
        self.assertEqual(set(registry.kinds()) & {"product", "bill", "udhari"}, {"product", "bill", "udhari"})


class DomainErrorTests(SimpleTestCase):
    def test_as_dict(self):
        exc = InsufficientStock("Insufficient stock for Sugar. Available: 1", product_id=4, requested=2, available=1)
        self.assertEqual(
            exc.as_dict(),
            {
                "code": "insufficient_stock",
                "detail": "Insufficient stock for Sugar. Available: 1",
                "errors": {"product_id": 4, "requested": 2, "available": 1},
            },
        )
        self.assertEqual(ValidationError("bad").as_dict(), {"code": "validation_error", "detail": "bad"})
