from __future__ import annotations

from rest_framework import serializers

from inventory.models import Product


class ProductSerializer(serializers.ModelSerializer):
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "barcode",
            "purchase_price",
            "selling_price",
            "mrp",
            "stock",
            "min_stock",
            "max_stock",
            "tax_rate",
            "tax_inclusive",
            "is_active",
            "stock_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_tax_rate(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("tax_rate must be between 0 and 100.")
        return value

    def validate(self, attrs):
        min_stock = attrs.get("min_stock", getattr(self.instance, "min_stock", 0))
        max_stock = attrs.get("max_stock", getattr(self.instance, "max_stock", 0))
        if max_stock and min_stock > max_stock:
            raise serializers.ValidationError({"min_stock": "min_stock cannot exceed max_stock."})
        return attrs


class ProductUpdateSerializer(ProductSerializer):
    """Stock only moves through the stock ledger, never through a catalog edit."""

    class Meta(ProductSerializer.Meta):
        read_only_fields = ProductSerializer.Meta.read_only_fields + ["stock", "sku"]
