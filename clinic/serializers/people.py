from rest_framework import serializers

from .fields import CleanCharField


class DoctorSerializer(serializers.Serializer):
    name = CleanCharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8, required=False)
    specialization = CleanCharField(max_length=255, required=False, allow_blank=True)
    phone = CleanCharField(max_length=32, required=False, allow_blank=True)
    schedule = CleanCharField(max_length=255, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=['active', 'inactive', 'on_leave'], required=False)
    avatar = serializers.CharField(max_length=512, required=False, allow_blank=True)


class PatientSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    age = serializers.IntegerField(min_value=0, max_value=150, required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=['male', 'female', 'other'], required=False, allow_blank=True)
    contact = CleanCharField(max_length=64, required=False, allow_blank=True)
    condition = CleanCharField(max_length=255, required=False, allow_blank=True)
    bloodType = serializers.CharField(max_length=8, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=['active', 'inactive'], required=False)

    def validate_name(self, v):
        if len(v) < 2:
            raise serializers.ValidationError('name must have at least 2 characters')
        return v
