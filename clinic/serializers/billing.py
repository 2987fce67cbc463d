from decimal import Decimal

from rest_framework import serializers

from clinic.models import Bill, BillItem, Payment
from clinic.services.billing import LineItem
from .fields import CleanCharField


class BillItemSerializer(serializers.Serializer):
    description = CleanCharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    taxRate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'),
                                       max_value=Decimal('100'), required=False, default=Decimal('0'))
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'),
                                        required=False, default=Decimal('0'))
    category = serializers.ChoiceField(choices=BillItem.CATEGORY_CHOICES, required=False, allow_blank=True)

    def to_line_item(self, data) -> LineItem:
        return LineItem(
            description=data['description'],
            rate=data['rate'],
            quantity=data['quantity'],
            tax_rate=data['taxRate'],
            discount=data['discount'],
            category=data.get('category', ''),
        )


def line_items(validated) -> list[LineItem]:
    return [BillItemSerializer().to_line_item(item) for item in validated]


class BillCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    bedId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    items = BillItemSerializer(many=True, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'),
                                        required=False, default=Decimal('0'))
    notes = CleanCharField(required=False, allow_blank=True)
    dueDate = serializers.DateField(required=False, allow_null=True)


class BillUpdateSerializer(serializers.Serializer):
    items = BillItemSerializer(many=True, required=False, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    notes = CleanCharField(required=False, allow_blank=True)
    dueDate = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=[Bill.STATUS_CANCELLED, Bill.STATUS_REFUNDED], required=False)


class BillListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Bill.STATUS_CHOICES, required=False)
    patientId = serializers.IntegerField(min_value=1, required=False)
    bedId = serializers.IntegerField(min_value=1, required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if (start is None) != (end is None):
            missing = 'endDate' if end is None else 'startDate'
            raise serializers.ValidationError({missing: 'startDate and endDate must be given together'})
        if start and start > end:
            raise serializers.ValidationError({'startDate': 'start date must be before end date'})
        return attrs


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    paymentMethod = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    transactionId = CleanCharField(max_length=128, required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)
