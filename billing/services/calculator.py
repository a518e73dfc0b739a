"""
Money and tax arithmetic for bills.

Pure functions over Decimal; nothing here touches the database. Amounts are
kept to the cent with ROUND_HALF_UP, and the bill total is rounded to a whole
currency unit with the difference carried as `round_off`.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Sequence

from core.exceptions import ValidationError


MONEY_QUANT = Decimal("0.01")
UNIT_QUANT = Decimal("1")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

STATUS_PAID = "paid"
STATUS_PARTIAL = "partial"
STATUS_PENDING = "pending"


def to_decimal(value, field: str = "amount") -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"{field} is not a valid number.", details={field: str(value)})
    if not result.is_finite():
        raise ValidationError(f"{field} is not a valid number.", details={field: str(value)})
    return result


def money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def round_to_unit(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(UNIT_QUANT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    line_subtotal: Decimal
    tax_amount: Decimal
    line_total: Decimal

    @property
    def net_amount(self) -> Decimal:
        """Value of the line before tax."""
        return self.line_total - self.tax_amount


@dataclass(frozen=True)
class BillAmounts:
    subtotal: Decimal
    discount: Decimal
    tax_amount: Decimal
    round_off: Decimal
    total: Decimal


@dataclass(frozen=True)
class PaymentState:
    paid_amount: Decimal
    pending_amount: Decimal
    status: str


def _check_rate(rate: Decimal, field: str) -> None:
    if rate < 0 or rate > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100.", details={field: str(rate)})


def compute_line(
    *,
    quantity,
    unit_price,
    line_discount=ZERO,
    tax_rate=ZERO,
    tax_inclusive: bool = False,
) -> LineAmounts:
    quantity = to_decimal(quantity, "quantity")
    unit_price = to_decimal(unit_price, "unit_price")
    line_discount = to_decimal(line_discount, "discount")
    tax_rate = to_decimal(tax_rate, "tax_rate")

    if quantity <= 0:
        raise ValidationError("quantity must be > 0.")
    if unit_price < 0:
        raise ValidationError("unit_price cannot be negative.")
    if line_discount < 0:
        raise ValidationError("discount cannot be negative.")
    _check_rate(tax_rate, "tax_rate")

    line_subtotal = money(quantity * unit_price - line_discount)
    if line_subtotal < 0:
        raise ValidationError(
            "Line discount exceeds the line amount.",
            details={"line_subtotal": str(line_subtotal)},
        )

    if tax_inclusive:
        tax_amount = money(line_subtotal * tax_rate / (HUNDRED + tax_rate))
        line_total = line_subtotal
    else:
        tax_amount = money(line_subtotal * tax_rate / HUNDRED)
        line_total = line_subtotal + tax_amount

    return LineAmounts(line_subtotal=line_subtotal, tax_amount=tax_amount, line_total=line_total)


def compute_bill(
    lines: Sequence[LineAmounts],
    *,
    discount_percent=ZERO,
    flat_discount=ZERO,
) -> BillAmounts:
    """
    Bill-level totals: total = subtotal - discount + tax, rounded to a whole unit.

    The subtotal is the pre-tax value of the lines, so tax-inclusive lines
    are not taxed twice. Tax is the per-line tax computed before the bill
    discount.
    """
    if not lines:
        raise ValidationError("Please add items to the bill.")

    discount_percent = to_decimal(discount_percent, "discount_percent")
    flat_discount = to_decimal(flat_discount, "discount")
    _check_rate(discount_percent, "discount_percent")
    if flat_discount < 0:
        raise ValidationError("discount cannot be negative.")

    subtotal = money(sum((line.net_amount for line in lines), ZERO))
    tax_amount = money(sum((line.tax_amount for line in lines), ZERO))

    if discount_percent > 0:
        discount = money(subtotal * discount_percent / HUNDRED)
    else:
        discount = money(flat_discount)
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed the bill subtotal.")

    raw_total = subtotal - discount + tax_amount
    total = round_to_unit(raw_total)
    round_off = money(total - raw_total)

    return BillAmounts(
        subtotal=subtotal,
        discount=discount,
        tax_amount=tax_amount,
        round_off=round_off,
        total=money(total),
    )


def derive_payment_state(total, payments: Iterable) -> PaymentState:
    """
    The only place paid/pending/status of a bill are produced.

    `payments` is the list of payment amounts; paid is always their sum.
    """
    total = money(total)
    paid = money(sum((to_decimal(amount) for amount in payments), ZERO))
    pending = money(total - paid)
    if pending <= 0:
        status = STATUS_PAID
    elif paid > 0:
        status = STATUS_PARTIAL
    else:
        status = STATUS_PENDING
    return PaymentState(paid_amount=paid, pending_amount=pending, status=status)


def bill_profit(lines: Iterable) -> Decimal:
    """
    Gross profit over lines carrying a purchase price snapshot.

    Each line needs `unit_price`, `purchase_price`, `quantity`, `line_discount`.
    """
    profit = ZERO
    for line in lines:
        if not line.purchase_price:
            continue
        profit += (to_decimal(line.unit_price) - to_decimal(line.purchase_price)) * to_decimal(line.quantity)
        profit -= to_decimal(line.line_discount)
    return money(profit)


def profit_margin(profit, total) -> Decimal:
    total = to_decimal(total)
    if total == 0:
        return ZERO
    return money(to_decimal(profit) / total * HUNDRED)
