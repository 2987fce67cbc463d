import bleach
from rest_framework import serializers


class CleanCharField(serializers.CharField):
    """CharField that strips surrounding whitespace and any HTML markup."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return bleach.clean(value, tags=[], strip=True).strip()
