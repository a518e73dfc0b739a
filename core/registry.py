"""
Entity registry - maps an entity-kind tag to its create/update/delete handlers.

Sync and restore jobs replay operations against arbitrary entity kinds. Rather
than resolving model classes by name at runtime, each app registers the
handlers it is willing to expose from its AppConfig.ready():

    registry.register("product", EntityHandlers(create=..., update=..., delete=...))

and callers dispatch through `registry.apply(kind, operation, payload)`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from core.exceptions import ValidationError


logger = logging.getLogger(__name__)

Handler = Callable[[dict], Any]

OPERATIONS = ("create", "update", "delete")


@dataclass(frozen=True)
class EntityHandlers:
    create: Optional[Handler] = None
    update: Optional[Handler] = None
    delete: Optional[Handler] = None


class EntityRegistry:
    def __init__(self):
        self._handlers: Dict[str, EntityHandlers] = {}

    def register(self, kind: str, handlers: EntityHandlers) -> None:
        if kind in self._handlers and self._handlers[kind] != handlers:
            raise ValueError(f"Entity kind '{kind}' is already registered.")
        self._handlers[kind] = handlers

    def unregister(self, kind: str) -> None:
        self._handlers.pop(kind, None)

    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    def get(self, kind: str) -> EntityHandlers:
        handlers = self._handlers.get(kind)
        if handlers is None:
            valid = ", ".join(self.kinds())
            raise ValidationError(f"Unknown entity kind: '{kind}'. Valid kinds: {valid}")
        return handlers

    def apply(self, kind: str, operation: str, payload: dict) -> Any:
        """
        Dispatch one sync/restore operation.

        Raises:
            ValidationError: unknown kind, unknown operation, or an operation
            the entity kind does not support.
        """
        if operation not in OPERATIONS:
            raise ValidationError(f"Unknown operation: '{operation}'.")
        handler = getattr(self.get(kind), operation)
        if handler is None:
            raise ValidationError(f"Operation '{operation}' is not supported for '{kind}'.")
        logger.debug("Applying %s %s", operation, kind)
        return handler(dict(payload or {}))


registry = EntityRegistry()
