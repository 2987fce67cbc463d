import re

from rest_framework import serializers

from clinic.models import Appointment
from .fields import CleanCharField

HHMM = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


class TimeSlotField(serializers.CharField):
    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if not HHMM.match(value):
            raise serializers.ValidationError('time must look like HH:MM')
        return value


class AppointmentCreateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    patientId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    time = TimeSlotField(max_length=5)
    reason = CleanCharField(max_length=255, required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)


class AppointmentUpdateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    time = TimeSlotField(max_length=5, required=False)
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES, required=False)
    reason = CleanCharField(max_length=255, required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)


class AppointmentListQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False)
    patientId = serializers.IntegerField(min_value=1, required=False)
    date = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES, required=False)


class MedicationSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    dosage = CleanCharField(max_length=128, required=False, allow_blank=True)
    frequency = CleanCharField(max_length=128, required=False, allow_blank=True)


class PrescriptionSerializer(serializers.Serializer):
    meds = MedicationSerializer(many=True, allow_empty=False)
    notes = CleanCharField(required=False, allow_blank=True)


class PrescriptionUpdateSerializer(serializers.Serializer):
    meds = MedicationSerializer(many=True, required=False, allow_empty=False)
    notes = CleanCharField(required=False, allow_blank=True)


class FollowUpCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    doctorId = serializers.IntegerField(min_value=1)
    followUpDate = serializers.DateField()


class FollowUpUpdateSerializer(serializers.Serializer):
    followUpDate = serializers.DateField(required=False)
    notified = serializers.BooleanField(required=False)
