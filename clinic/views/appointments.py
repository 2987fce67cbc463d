"""
Appointment views: listing, booking, rescheduling and free slots.
"""
from __future__ import annotations

from datetime import date

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFoundError, ValidationError
from ..models import Appointment, Role, User
from ..permissions import Operation, allow, require
from ..serializers.appointments import (
    AppointmentCreateSerializer,
    AppointmentListQuerySerializer,
    AppointmentUpdateSerializer,
)
from ..services.appointments import book_appointment, update_appointment
from ..services.audit import log_action
from ..services.slots import available_slots, clinic_slots


def serialize_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'date': a.date.isoformat(),
        'time': a.time,
        'status': a.status,
        'reason': a.reason,
        'notes': a.notes,
        'patient': {'id': a.patient_id, 'name': a.patient.name, 'contact': a.patient.contact},
        'doctor': {'id': a.doctor_id, 'name': a.doctor.name, 'specialization': a.doctor.specialization},
        'hasPrescription': hasattr(a, 'prescription'),
        'createdAt': a.created_at.isoformat() if a.created_at else None,
    }


def _base_qs():
    return Appointment.objects.select_related('patient', 'doctor', 'prescription')


def _get_appointment(pk: int) -> Appointment:
    a = _base_qs().filter(pk=pk).first()
    if not a:
        raise NotFoundError('appointment not found')
    return a


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.APPOINTMENT_VIEW)])
def appointments(request):
    if request.method == 'POST':
        require(request.user, Operation.APPOINTMENT_BOOK)
        s = AppointmentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        appt = book_appointment(
            doctor_id=vd['doctorId'],
            patient_id=vd['patientId'],
            date=vd['date'],
            time=vd['time'],
            reason=vd.get('reason', ''),
            notes=vd.get('notes', ''),
            booked_by=request.user,
        )
        return Response({'ok': True, 'appointment': serialize_appointment(_get_appointment(appt.id))},
                        status=status.HTTP_201_CREATED)

    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = _base_qs().order_by('-date', '-time')
    if 'doctorId' in vd:
        qs = qs.filter(doctor_id=vd['doctorId'])
    if 'patientId' in vd:
        qs = qs.filter(patient_id=vd['patientId'])
    if 'date' in vd:
        qs = qs.filter(date=vd['date'])
    if 'status' in vd:
        qs = qs.filter(status=vd['status'])
    return Response([serialize_appointment(a) for a in qs])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, allow(Operation.APPOINTMENT_VIEW)])
def appointment_detail(request, pk: int):
    appt = _get_appointment(pk)
    if request.method == 'GET':
        return Response(serialize_appointment(appt))

    if request.method == 'PUT':
        require(request.user, Operation.APPOINTMENT_UPDATE)
        s = AppointmentUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        update_appointment(appt, user=request.user, **s.validated_data)
        return Response({'ok': True, 'appointment': serialize_appointment(_get_appointment(pk))})

    require(request.user, Operation.APPOINTMENT_DELETE)
    appt.delete()
    log_action(user=request.user, action='appointment_delete', object_type='appointment', object_id=pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.APPOINTMENT_VIEW)])
def doctor_appointments(request, doctor_id: int):
    if not User.objects.filter(pk=doctor_id, role=Role.DOCTOR).exists():
        raise NotFoundError('doctor not found')
    qs = _base_qs().filter(doctor_id=doctor_id).order_by('date', 'time')
    st = request.query_params.get('status')
    if st:
        qs = qs.filter(status=st)
    return Response([serialize_appointment(a) for a in qs])


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.SLOTS_VIEW)])
def doctor_available_slots(request, doctor_id: int, day: str):
    try:
        parsed = date.fromisoformat(day)
    except ValueError:
        raise ValidationError({'date': 'date must look like YYYY-MM-DD'})
    free = available_slots(doctor_id, parsed)
    return Response({
        'ok': True,
        'doctorId': doctor_id,
        'date': parsed.isoformat(),
        'availableSlots': free,
        'totalSlots': len(clinic_slots()),
    })
