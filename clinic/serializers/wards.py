from rest_framework import serializers

from clinic.models import Bed, Ward
from .fields import CleanCharField


class WardSerializer(serializers.Serializer):
    name = CleanCharField(max_length=128)
    type = serializers.ChoiceField(choices=Ward.TYPE_CHOICES)
    capacity = serializers.IntegerField(min_value=1)
    floor = serializers.IntegerField(min_value=0, required=False, default=1)
    inCharge = CleanCharField(max_length=255, required=False, allow_blank=True)
    description = CleanCharField(required=False, allow_blank=True)


class WardListQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Ward.TYPE_CHOICES, required=False)


class BedSerializer(serializers.Serializer):
    bedNumber = CleanCharField(max_length=32)
    wardId = serializers.IntegerField(min_value=1)
    ratePerDay = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    features = serializers.ListField(child=CleanCharField(max_length=64), required=False)


class BedListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Bed.STATUS_CHOICES, required=False)
    wardId = serializers.IntegerField(min_value=1, required=False)
    available = serializers.BooleanField(required=False, allow_null=True, default=None)


class BedAssignSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    admissionDate = serializers.DateTimeField(required=False)
    dischargeDate = serializers.DateTimeField(required=False, allow_null=True)


class BedStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Bed.STATUS_AVAILABLE, Bed.STATUS_MAINTENANCE])
