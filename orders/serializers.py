"""
Orders Serializers - live cost estimate
"""

from rest_framework import serializers


class EstimateItemSerializer(serializers.Serializer):
    service_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class CostEstimateRequestSerializer(serializers.Serializer):
    items = EstimateItemSerializer(many=True, allow_empty=False)
    tip = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False, default=0)


class TipPresetSerializer(serializers.Serializer):
    percentage = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)


class CostEstimateSerializer(serializers.Serializer):
    """Read-only cost breakdown. Money fields are 2-decimal strings."""

    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2)
    subscription_discount = serializers.DecimalField(max_digits=10, decimal_places=2)
    final_subtotal = serializers.DecimalField(max_digits=10, decimal_places=2)
    tax = serializers.DecimalField(max_digits=10, decimal_places=2)
    tip = serializers.DecimalField(max_digits=10, decimal_places=2)
    total = serializers.DecimalField(max_digits=10, decimal_places=2)
    covered_bags = serializers.IntegerField()
    pickup_covered = serializers.BooleanField()
    has_subscription_benefits = serializers.BooleanField()
    tip_presets = TipPresetSerializer(many=True)
