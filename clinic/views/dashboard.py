"""
Administrative dashboard endpoint.

Provides a high level overview of staff, patients, appointments, beds
and outstanding bills, plus the most recent appointments.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Appointment
from ..permissions import Operation, allow
from ..services.reports import dashboard_counts


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.DASHBOARD_VIEW)])
def admin_dashboard(request):
    recent = (
        Appointment.objects.select_related('patient', 'doctor')
        .order_by('-created_at')[:5]
    )
    return Response({
        'ok': True,
        **dashboard_counts(),
        'recentAppointments': [
            {
                'id': a.id,
                'patientName': a.patient.name,
                'doctorName': a.doctor.name,
                'date': a.date.isoformat(),
                'time': a.time,
                'status': a.status,
            }
            for a in recent
        ],
    })
