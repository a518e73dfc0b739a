from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from billing.models import Bill, BillLine, BillPayment
from billing.serializers import (
    BillCreateSerializer,
    DraftUpdateSerializer,
    FinalizeDraftSerializer,
    FinalizedUpdateSerializer,
    PaymentInputSerializer,
)
from billing.services.calculator import LineAmounts, compute_bill, compute_line, money
from billing.services.numbering import next_document_number
from core.exceptions import NotFound, OverpaymentRejected, ValidationError
from core.signals import emit_on_commit, payment_received
from inventory.models import Product
from inventory.services.stock import Direction, commit_stock, validate_lines


logger = logging.getLogger(__name__)

WALK_IN_CUSTOMER = "Walk-in Customer"
FINALIZED_EDITABLE_FIELDS = {"party_name", "notes"}


@dataclass(frozen=True)
class PreparedLine:
    product: Product
    quantity: int
    unit_price: Decimal
    line_discount: Decimal
    tax_rate: Decimal
    tax_inclusive: bool
    amounts: LineAmounts


def _validated(serializer_class, data, **kwargs) -> dict:
    serializer = serializer_class(data=data, **kwargs)
    if not serializer.is_valid():
        raise ValidationError.from_serializer(serializer)
    return serializer.validated_data


def _direction(kind: str) -> Direction:
    return Direction.OUT if kind == Bill.Kind.SALE else Direction.IN


def get_bill(bill_id) -> Bill:
    bill = Bill.objects.filter(pk=bill_id).first()
    if bill is None:
        raise NotFound(f"Bill not found: {bill_id}", details={"bill_id": bill_id})
    return bill


def _get_bill_for_update(bill_id) -> Bill:
    bill = Bill.objects.select_for_update().filter(pk=bill_id).first()
    if bill is None:
        raise NotFound(f"Bill not found: {bill_id}", details={"bill_id": bill_id})
    return bill


def drafts(kind: str | None = None):
    qs = Bill.objects.filter(is_draft=True)
    if kind:
        qs = qs.filter(kind=kind)
    return qs.order_by("-created_at", "-id")


def prepare_lines(kind: str, raw_lines: list[dict]) -> list[PreparedLine]:
    """
    Validate every line against the stock ledger, then price it.

    Nothing is written here; a failure on any line leaves stock untouched.
    Sale lines default to the product's selling price and follow its
    tax-inclusive flag. Purchase lines carry the supplier's price and are
    always taxed on top.
    """
    products = validate_lines(
        [(line["product_id"], line["quantity"]) for line in raw_lines],
        _direction(kind),
    )

    prepared = []
    for line in raw_lines:
        product = products[line["product_id"]]
        if kind == Bill.Kind.SALE:
            price = line.get("price")
            unit_price = product.selling_price if price is None else price
            tax_inclusive = product.tax_inclusive
        else:
            unit_price = line["price"]
            tax_inclusive = False
        line_discount = line.get("discount") or Decimal("0.00")
        amounts = compute_line(
            quantity=line["quantity"],
            unit_price=unit_price,
            line_discount=line_discount,
            tax_rate=product.tax_rate,
            tax_inclusive=tax_inclusive,
        )
        prepared.append(
            PreparedLine(
                product=product,
                quantity=int(line["quantity"]),
                unit_price=money(unit_price),
                line_discount=money(line_discount),
                tax_rate=product.tax_rate,
                tax_inclusive=tax_inclusive,
                amounts=amounts,
            )
        )
    return prepared


def _write_lines(bill: Bill, prepared: list[PreparedLine]) -> None:
    BillLine.objects.bulk_create(
        [
            BillLine(
                bill=bill,
                position=ix,
                product=line.product,
                product_name=line.product.name,
                sku=line.product.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_discount=line.line_discount,
                tax_rate=line.tax_rate,
                tax_inclusive=line.tax_inclusive,
                line_subtotal=line.amounts.line_subtotal,
                tax_amount=line.amounts.tax_amount,
                line_total=line.amounts.line_total,
                mrp=line.product.mrp,
                purchase_price=line.product.purchase_price if bill.kind == Bill.Kind.SALE else None,
            )
            for ix, line in enumerate(prepared)
        ]
    )


def _stored_lines(bill: Bill) -> list[dict]:
    return [
        {
            "product_id": line.product_id,
            "quantity": line.quantity,
            "price": line.unit_price,
            "discount": line.line_discount,
        }
        for line in bill.lines.all()
    ]


def _price_bill(bill: Bill, prepared: list[PreparedLine], *, discount_percent, flat_discount) -> None:
    amounts = compute_bill(
        [line.amounts for line in prepared],
        discount_percent=discount_percent,
        flat_discount=flat_discount,
    )
    bill.discount_percent = money(discount_percent)
    bill.apply_amounts(amounts)


def _finalize(bill: Bill, prepared: list[PreparedLine], *, paid_amount: Decimal, payment_mode: str, now) -> Bill:
    from udhari.services.ledger import local_today, open_entry

    if paid_amount > bill.total_amount:
        raise OverpaymentRejected(
            "Paid amount exceeds the bill total.",
            details={"paid_amount": str(paid_amount), "total_amount": str(bill.total_amount)},
        )

    direction = _direction(bill.kind)
    reference = f"bill:{bill.pk}"
    for line in prepared:
        commit_stock(
            line.product.pk,
            line.quantity,
            direction,
            unit_cost=line.unit_price if direction == Direction.IN else None,
            source_reference=reference,
        )

    bill.number = next_document_number(bill.kind, local_today(now).year)
    bill.is_draft = False
    bill.finalized_at = now
    bill.save()

    if paid_amount > 0:
        BillPayment.objects.create(
            bill=bill,
            amount=paid_amount,
            mode=payment_mode,
            remarks="Paid at billing",
            paid_at=now,
        )
    bill.refresh_payment_state()
    bill.save(update_fields=["paid_amount", "pending_amount", "payment_status", "updated_at"])

    if bill.pending_amount > 0 and bill.party_phone:
        open_entry(bill, due_date=bill.due_date, now=now)
    return bill


def create_bill(payload: dict, *, created_by=None, now=None) -> Bill:
    """
    Build a sale or purchase bill from a request payload.

    Finalized bills validate every line, compute totals, move stock, take a
    document number, record the upfront payment and open an udhari entry for
    any balance owed by a party with a phone. All of it happens in one
    transaction. Drafts stop after pricing and never touch stock.
    """
    data = _validated(BillCreateSerializer, payload)
    now = now or timezone.now()
    kind = data["kind"]
    is_draft = data["is_draft"]
    paid_amount = money(data["paid_amount"])
    if is_draft and paid_amount > 0:
        raise ValidationError("Drafts cannot take payments; pass paid_amount when finalizing.")

    party_name = data["party_name"] or (WALK_IN_CUSTOMER if kind == Bill.Kind.SALE else "")

    with transaction.atomic():
        prepared = prepare_lines(kind, data["lines"])

        bill = Bill(
            kind=kind,
            party_name=party_name,
            party_phone=data["party_phone"],
            payment_mode=data["payment_mode"],
            is_draft=True,
            due_date=data["due_date"],
            notes=data["notes"],
            created_by=created_by,
            created_at=now,
        )
        _price_bill(bill, prepared, discount_percent=data["discount_percent"], flat_discount=data["discount"])
        bill.refresh_payment_state()
        bill.save()
        _write_lines(bill, prepared)

        if not is_draft:
            _finalize(bill, prepared, paid_amount=paid_amount, payment_mode=data["payment_mode"], now=now)

    if is_draft:
        logger.info("Draft %s saved (#%s)", kind, bill.pk)
    else:
        logger.info("%s created: %s total=%s pending=%s", kind.title(), bill.number, bill.total_amount, bill.pending_amount)
    return bill


def finalize_draft(bill_id, *, paid_amount=Decimal("0.00"), payment_mode: str = "cash", now=None) -> Bill:
    """Draft -> Finalized, re-validated and re-priced against current stock."""
    data = _validated(FinalizeDraftSerializer, {"paid_amount": paid_amount, "payment_mode": payment_mode})
    paid_amount = money(data["paid_amount"])
    payment_mode = data["payment_mode"]
    now = now or timezone.now()

    with transaction.atomic():
        bill = _get_bill_for_update(bill_id)
        if not bill.is_draft:
            raise ValidationError("This is not a draft.")

        prepared = prepare_lines(bill.kind, _stored_lines(bill))
        flat_discount = bill.discount if not bill.discount_percent else Decimal("0.00")
        _price_bill(bill, prepared, discount_percent=bill.discount_percent, flat_discount=flat_discount)
        bill.lines.all().delete()
        _write_lines(bill, prepared)
        bill.payment_mode = payment_mode
        _finalize(bill, prepared, paid_amount=paid_amount, payment_mode=payment_mode, now=now)

    logger.info("Draft #%s finalized as %s", bill.pk, bill.number)
    return bill


def discard_draft(bill_id) -> None:
    with transaction.atomic():
        bill = _get_bill_for_update(bill_id)
        if not bill.is_draft:
            raise ValidationError("Cannot delete completed bills.")
        bill.delete()
    logger.info("Draft #%s deleted", bill_id)


def update_bill(bill_id, changes: dict, *, now=None) -> Bill:
    """
    Edit a bill.

    Drafts accept any change and are re-priced. Finalized bills are
    append-only for money: within the grace window only party name and notes
    may change; afterwards nothing does.
    """
    now = now or timezone.now()
    changes = dict(changes or {})

    with transaction.atomic():
        bill = _get_bill_for_update(bill_id)

        if bill.is_draft:
            data = _validated(DraftUpdateSerializer, changes)
            for field in ("party_name", "party_phone", "notes", "due_date"):
                if field in data:
                    setattr(bill, field, data[field])

            discount_percent = bill.discount_percent
            flat_discount = bill.discount if not bill.discount_percent else Decimal("0.00")
            if "discount_percent" in data:
                discount_percent = data["discount_percent"]
            if "discount" in data:
                flat_discount = data["discount"]
                if "discount_percent" not in data:
                    discount_percent = Decimal("0.00")

            raw_lines = data["lines"] if "lines" in data else _stored_lines(bill)
            prepared = prepare_lines(bill.kind, raw_lines)
            _price_bill(bill, prepared, discount_percent=discount_percent, flat_discount=flat_discount)
            bill.refresh_payment_state()
            bill.save()
            bill.lines.all().delete()
            _write_lines(bill, prepared)
        else:
            if not bill.grace_window_open(now):
                raise ValidationError("Cannot edit a bill after the grace window.")
            disallowed = sorted(set(changes) - FINALIZED_EDITABLE_FIELDS)
            if disallowed:
                raise ValidationError(
                    "Finalized bills only accept party_name and notes edits.",
                    details={"fields": disallowed},
                )
            data = _validated(FinalizedUpdateSerializer, changes)
            for field, value in data.items():
                setattr(bill, field, value)
            bill.save(update_fields=[*data.keys(), "updated_at"])
            if "party_name" in data:
                from udhari.models import CreditLedgerEntry

                CreditLedgerEntry.objects.filter(bill=bill).update(party_name=data["party_name"], updated_at=now)

    logger.info("Bill updated: %s", bill)
    return bill


def add_bill_payment(bill_id, payload: dict, *, now=None) -> Bill:
    """
    Append a payment to a finalized bill.

    When the bill has an udhari entry the payment goes through the credit
    ledger so both records move together.
    """
    from udhari.models import CreditLedgerEntry
    from udhari.services.ledger import add_payment

    data = _validated(PaymentInputSerializer, payload)
    now = now or timezone.now()

    with transaction.atomic():
        bill = _get_bill_for_update(bill_id)
        if bill.is_draft:
            raise ValidationError("Drafts cannot take payments.")

        entry_id = CreditLedgerEntry.objects.filter(bill_id=bill.pk).values_list("pk", flat=True).first()
        if entry_id is not None:
            add_payment(entry_id, data, now=now)
            bill.refresh_from_db()
            return bill

        bill.refresh_payment_state()
        amount = money(data["amount"])
        if amount > bill.pending_amount:
            raise OverpaymentRejected(
                "Payment amount exceeds pending amount.",
                details={"amount": str(amount), "pending_amount": str(bill.pending_amount)},
            )
        BillPayment.objects.create(
            bill=bill,
            amount=amount,
            mode=data["mode"],
            reference=data["reference"],
            remarks=data["remarks"],
            paid_at=now,
        )
        bill.refresh_payment_state()
        bill.save(update_fields=["paid_amount", "pending_amount", "payment_status", "updated_at"])
        emit_on_commit(
            payment_received,
            sender=Bill,
            bill_id=bill.pk,
            bill_number=bill.number,
            entry_id=None,
            amount=amount,
            mode=data["mode"],
            paid_amount=bill.paid_amount,
            pending_amount=bill.pending_amount,
        )

    logger.info("Payment added to %s: %s", bill.number, amount)
    return bill


def _payload_id(payload: dict):
    payload = dict(payload or {})
    bill_id = payload.pop("id", None)
    if bill_id is None:
        raise ValidationError("id is required.")
    return bill_id, payload


def update_bill_from_payload(payload: dict) -> Bill:
    bill_id, changes = _payload_id(payload)
    return update_bill(bill_id, changes)


def discard_draft_from_payload(payload: dict) -> None:
    bill_id, _ = _payload_id(payload)
    discard_draft(bill_id)
