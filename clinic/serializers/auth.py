from rest_framework import serializers

from clinic.models import Role
from .fields import CleanCharField


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    username = serializers.CharField(required=False)
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if not (attrs.get('email') or attrs.get('username')):
            raise serializers.ValidationError({'email': 'email is required'})
        return attrs


class RegisterSerializer(serializers.Serializer):
    name = CleanCharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=Role.choices, required=False, default=Role.RECEPTIONIST)
    phone = CleanCharField(max_length=32, required=False, allow_blank=True)
    specialization = CleanCharField(max_length=255, required=False, allow_blank=True)


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=False, allow_blank=True)
