from rest_framework import serializers

from clinic.services.reports import REPORT_TYPES


class ReportQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=REPORT_TYPES)
    startDate = serializers.DateField()
    endDate = serializers.DateField()
    status = serializers.CharField(max_length=32, required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['startDate'] > attrs['endDate']:
            raise serializers.ValidationError({'startDate': 'start date must be before end date'})
        return attrs


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('start'), attrs.get('end')
        if start and end and start > end:
            raise serializers.ValidationError({'start': 'start date must be before end date'})
        return attrs


class PdfReportSerializer(serializers.Serializer):
    dateRange = DateRangeSerializer(required=False, allow_null=True)
