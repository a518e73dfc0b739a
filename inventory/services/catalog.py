from __future__ import annotations

import logging

from core.exceptions import ValidationError
from inventory.models import Product
from inventory.serializers import ProductSerializer, ProductUpdateSerializer
from inventory.services.stock import get_product


logger = logging.getLogger(__name__)


def create_product(payload: dict) -> Product:
    serializer = ProductSerializer(data=payload)
    if not serializer.is_valid():
        raise ValidationError.from_serializer(serializer)
    product = serializer.save()
    logger.info("Product created: %s", product.sku)
    return product


def update_product(payload: dict) -> Product:
    product = get_product(payload.get("id"))
    changes = {k: v for k, v in payload.items() if k != "id"}
    serializer = ProductUpdateSerializer(product, data=changes, partial=True)
    if not serializer.is_valid():
        raise ValidationError.from_serializer(serializer)
    product = serializer.save()
    logger.info("Product updated: %s", product.sku)
    return product


def deactivate_product(payload: dict) -> Product:
    # Bills keep referencing the product, so it is retired rather than deleted.
    product = get_product(payload.get("id"))
    if product.is_active:
        product.is_active = False
        product.save(update_fields=["is_active", "updated_at"])
        logger.info("Product deactivated: %s", product.sku)
    return product
