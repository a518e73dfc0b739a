from rest_framework import serializers


class EntryUpdateSerializer(serializers.Serializer):
    """Non-monetary fields of an udhari entry."""

    notes = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateField(required=False, allow_null=True)
