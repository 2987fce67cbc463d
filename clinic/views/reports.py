"""
Report endpoints: JSON report data and PDF listings.
"""
from __future__ import annotations

from django.http import HttpResponse
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import Operation, allow
from ..serializers.reports import PdfReportSerializer, ReportQuerySerializer
from ..services import reports
from ..services.pdf import render_table_report


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.REPORT_DATA)])
def report_data(request):
    q = ReportQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    return Response({'ok': True, **reports.report_data(vd['type'], vd['startDate'], vd['endDate'], vd.get('status') or None)})


def _pdf_report(request, title: str, headers: list[str], rows_for):
    s = PdfReportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    rng = s.validated_data.get('dateRange') or {}
    start, end = rng.get('start'), rng.get('end')
    pdf = render_table_report(title, headers, rows_for(start, end), start=start, end=end)
    filename = f"{title.replace(' ', '_')}_{timezone.localdate():%Y-%m-%d}.pdf"
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated, allow(Operation.REPORT_PATIENTS_PDF)])
def patients_pdf(request):
    return _pdf_report(request, 'Patient Report', ['Name', 'Age', 'Gender', 'Contact', 'Status'], reports.patient_rows)


@api_view(['POST'])
@permission_classes([IsAuthenticated, allow(Operation.REPORT_DOCTORS_PDF)])
def doctors_pdf(request):
    return _pdf_report(request, 'Doctor Report', ['Name', 'Specialization', 'Phone', 'Email', 'Status'], reports.doctor_rows)


@api_view(['POST'])
@permission_classes([IsAuthenticated, allow(Operation.REPORT_APPOINTMENTS_PDF)])
def appointments_pdf(request):
    return _pdf_report(request, 'Appointment Report', ['Date', 'Patient', 'Doctor', 'Specialization', 'Status'],
                       reports.appointment_rows)
