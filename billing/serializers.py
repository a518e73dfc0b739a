from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from billing.models import Bill, PaymentMode


def _money_field(**kwargs):
    return serializers.DecimalField(max_digits=14, decimal_places=2, **kwargs)


class BillLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    price = _money_field(required=False, allow_null=True, min_value=Decimal("0"))
    discount = _money_field(required=False, default=Decimal("0.00"), min_value=Decimal("0"))


class BillCreateSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=Bill.Kind.choices)
    party_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    party_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    lines = BillLineInputSerializer(many=True, allow_empty=False)
    discount = _money_field(required=False, default=Decimal("0.00"), min_value=Decimal("0"))
    discount_percent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        required=False,
        default=Decimal("0.00"),
        min_value=Decimal("0"),
        max_value=Decimal("100"),
    )
    paid_amount = _money_field(required=False, default=Decimal("0.00"), min_value=Decimal("0"))
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, required=False, default=PaymentMode.CASH)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    is_draft = serializers.BooleanField(required=False, default=False)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs["kind"] == Bill.Kind.PURCHASE:
            missing = [ix for ix, line in enumerate(attrs["lines"]) if line.get("price") is None]
            if missing:
                raise serializers.ValidationError({"lines": f"Purchase lines need a price (lines {missing})."})
            if not attrs.get("party_name"):
                raise serializers.ValidationError({"party_name": "Supplier name is required for purchases."})
        return attrs


class DraftUpdateSerializer(serializers.Serializer):
    party_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    party_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    lines = BillLineInputSerializer(many=True, allow_empty=False, required=False)
    discount = _money_field(required=False, min_value=Decimal("0"))
    discount_percent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        required=False,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
    )
    notes = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateField(required=False, allow_null=True)


class FinalizedUpdateSerializer(serializers.Serializer):
    """Metadata that may still change inside the grace window."""

    party_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class PaymentInputSerializer(serializers.Serializer):
    amount = _money_field()
    mode = serializers.ChoiceField(choices=PaymentMode.choices, required=False, default=PaymentMode.CASH)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    remarks = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("amount must be > 0.")
        return value


class FinalizeDraftSerializer(serializers.Serializer):
    paid_amount = _money_field(required=False, default=Decimal("0.00"), min_value=Decimal("0"))
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, required=False, default=PaymentMode.CASH)
