from decimal import Decimal

from rest_framework import serializers

from .models import Payment


class SettlementRequestSerializer(serializers.Serializer):
    """
    Payload of a settlement request.

    Fields (all required): project_id, client_id, freelancer_id, amount (> 0, cents precision).
    """
    project_id = serializers.IntegerField(min_value=1)
    client_id = serializers.IntegerField(min_value=1)
    freelancer_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))


class SettlementResultSerializer(serializers.Serializer):
    """Settlement outcome. Amounts are rendered as JSON numbers."""
    fee_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, coerce_to_string=False)
    platform_fee = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False)
    amount_to_freelancer = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False)
    client_balance = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False)
    freelancer_balance = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False)


class SettlementErrorSerializer(serializers.Serializer):
    error_kind = serializers.CharField()
    message = serializers.CharField()
    step = serializers.CharField(required=False)


class PaymentSerializer(serializers.ModelSerializer):
    project_title = serializers.CharField(source='project.title', read_only=True)
    client_email = serializers.EmailField(source='client.email', read_only=True)
    freelancer_email = serializers.EmailField(source='freelancer.email', read_only=True)

    class Meta:
        model = Payment
        fields = (
            'id',
            'project',
            'project_title',
            'client',
            'client_email',
            'freelancer',
            'freelancer_email',
            'amount',
            'platform_fee',
            'amount_to_freelancer',
            'status',
            'created_at',
        )
        read_only_fields = fields


class TransactionWindowSerializer(serializers.Serializer):
    """Optional ISO date window for the admin transaction listing."""
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('start'), attrs.get('end')
        if start and end and end < start:
            raise serializers.ValidationError("End date cannot be before start date.")
        return attrs
