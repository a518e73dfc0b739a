from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import ConcurrencyConflict, InactiveProduct, InsufficientStock, NotFound, ValidationError
from core.signals import emit_on_commit, low_stock_crossed
from inventory.models import PriceHistory, Product


logger = logging.getLogger(__name__)


class Direction(str, Enum):
    OUT = "out"  # sale
    IN = "in"  # purchase


def _qty(value) -> int:
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid quantity: {value!r}.")
    if qty != qty.to_integral_value():
        raise ValidationError("quantity must be a whole number.")
    if qty <= 0:
        raise ValidationError("quantity must be > 0.")
    return int(qty)


def get_product(product_id) -> Product:
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound(f"Product not found: {product_id}", details={"product_id": product_id})
    return product


def _check_available(product: Product, qty: int, direction: Direction) -> None:
    if not product.is_active:
        raise InactiveProduct(f"Product is inactive: {product.name}", product_id=product.pk)
    if direction == Direction.OUT and product.stock < qty:
        raise InsufficientStock(
            f"Insufficient stock for {product.name}. Available: {product.stock}",
            product_id=product.pk,
            requested=qty,
            available=product.stock,
        )


def reserve_stock(product_id, qty) -> Product:
    """
    Validation read for a sale line. Does not mutate stock.

    Raises NotFound, InactiveProduct or InsufficientStock.
    """
    qty = _qty(qty)
    product = get_product(product_id)
    _check_available(product, qty, Direction.OUT)
    return product


def validate_lines(requirements: Iterable[tuple], direction: Direction) -> dict:
    """
    Staged validation of every line of a bill before any stock is touched.

    Quantities requested for the same product on several lines are summed
    before the availability check. Returns {product_id: Product}.
    """
    totals: dict = {}
    for product_id, qty in requirements:
        totals[product_id] = totals.get(product_id, 0) + _qty(qty)

    products = {p.pk: p for p in Product.objects.filter(pk__in=list(totals))}
    for product_id, qty in totals.items():
        product = products.get(product_id)
        if product is None:
            raise NotFound(f"Product not found: {product_id}", details={"product_id": product_id})
        _check_available(product, qty, direction)
    return products


def _raise_commit_failure(product_id, qty: int, direction: Direction):
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound(f"Product not found: {product_id}", details={"product_id": product_id})
    _check_available(product, qty, direction)
    # The row satisfied the guard when re-read, so another writer moved it in between.
    raise ConcurrencyConflict(
        f"Stock for {product.name} changed during commit; retry the operation.",
        details={"product_id": product.pk},
    )


def _record_purchase_price(product_id, unit_cost: Decimal, source_reference: str) -> None:
    product = Product.objects.select_for_update().get(pk=product_id)
    unit_cost = Decimal(str(unit_cost))
    if product.purchase_price == unit_cost:
        return
    PriceHistory.objects.create(
        product=product,
        field=PriceHistory.Field.PURCHASE_PRICE,
        old_value=product.purchase_price,
        new_value=unit_cost,
        source_reference=source_reference or "",
    )
    Product.objects.filter(pk=product_id).update(purchase_price=unit_cost)


def commit_stock(
    product_id,
    qty,
    direction: Direction,
    *,
    unit_cost: Decimal | None = None,
    source_reference: str = "",
) -> Product:
    """
    Apply a stock movement with a conditional UPDATE.

    Sales decrement only when `stock >= qty` at write time, so two concurrent
    bills can never both take the last unit. Purchases increment and record
    the new purchase price.
    """
    qty = _qty(qty)
    direction = Direction(direction)
    now = timezone.now()

    with transaction.atomic():
        if direction == Direction.OUT:
            updated = Product.objects.filter(pk=product_id, is_active=True, stock__gte=qty).update(
                stock=F("stock") - qty,
                updated_at=now,
            )
        else:
            updated = Product.objects.filter(pk=product_id, is_active=True).update(
                stock=F("stock") + qty,
                updated_at=now,
            )
        if not updated:
            _raise_commit_failure(product_id, qty, direction)

        if direction == Direction.IN and unit_cost is not None:
            _record_purchase_price(product_id, unit_cost, source_reference)

        product = Product.objects.get(pk=product_id)

    logger.debug("Stock %s %s x%s -> %s (%s)", direction.value, product.sku, qty, product.stock, source_reference)

    if direction == Direction.OUT and product.stock <= product.min_stock:
        logger.warning("Low stock: %s at %s (min %s)", product.sku, product.stock, product.min_stock)
        emit_on_commit(
            low_stock_crossed,
            sender=Product,
            product_id=product.pk,
            product_name=product.name,
            stock=product.stock,
            min_stock=product.min_stock,
        )
    return product
