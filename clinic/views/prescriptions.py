"""
Prescription views.

A prescription belongs to exactly one appointment and lists its
medications in the order the doctor entered them.
"""
from __future__ import annotations

from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import ConflictError, NotFoundError
from ..models import Appointment, Medication, Prescription, Role, User
from ..permissions import Operation, allow, require
from ..serializers.appointments import PrescriptionSerializer, PrescriptionUpdateSerializer
from ..services.audit import log_action


def serialize_prescription(rx: Prescription) -> dict:
    appt = rx.appointment
    return {
        'id': rx.id,
        'appointmentId': appt.id,
        'date': appt.date.isoformat(),
        'time': appt.time,
        'patient': {'id': appt.patient_id, 'name': appt.patient.name},
        'doctor': {'id': appt.doctor_id, 'name': appt.doctor.name},
        'meds': [{'name': m.name, 'dosage': m.dosage, 'frequency': m.frequency} for m in rx.meds.all()],
        'notes': rx.notes,
        'createdAt': rx.created_at.isoformat() if rx.created_at else None,
    }


def _qs():
    return (
        Prescription.objects
        .select_related('appointment__patient', 'appointment__doctor')
        .prefetch_related('meds')
    )


def _replace_meds(rx: Prescription, meds: list[dict]) -> None:
    rx.meds.all().delete()
    Medication.objects.bulk_create([
        Medication(prescription=rx, position=i, name=m['name'],
                   dosage=m.get('dosage', ''), frequency=m.get('frequency', ''))
        for i, m in enumerate(meds)
    ])


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.PRESCRIPTION_VIEW)])
def prescriptions(request):
    return Response([serialize_prescription(rx) for rx in _qs().order_by('-created_at')])


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.PRESCRIPTION_VIEW)])
def appointment_prescription(request, appointment_id: int):
    if request.method == 'GET':
        rx = _qs().filter(appointment_id=appointment_id).first()
        if not rx:
            raise NotFoundError('prescription not found')
        return Response(serialize_prescription(rx))

    require(request.user, Operation.PRESCRIPTION_CREATE)
    appt = Appointment.objects.filter(pk=appointment_id).first()
    if not appt:
        raise NotFoundError('appointment not found')
    s = PrescriptionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    if Prescription.objects.filter(appointment=appt).exists():
        raise ConflictError('a prescription already exists for this appointment')
    try:
        with transaction.atomic():
            rx = Prescription.objects.create(appointment=appt, notes=s.validated_data.get('notes', ''),
                                             prescribed_by=request.user)
            _replace_meds(rx, s.validated_data['meds'])
    except IntegrityError:
        raise ConflictError('a prescription already exists for this appointment')
    log_action(user=request.user, action='prescription_create', object_type='prescription', object_id=rx.id,
               detail={'appointmentId': appt.id})
    return Response({'ok': True, 'prescription': serialize_prescription(_qs().get(pk=rx.pk))},
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.PRESCRIPTION_VIEW)])
def doctor_prescriptions(request, doctor_id: int):
    if not User.objects.filter(pk=doctor_id, role=Role.DOCTOR).exists():
        raise NotFoundError('doctor not found')
    qs = _qs().filter(appointment__doctor_id=doctor_id).order_by('-created_at')
    return Response([serialize_prescription(rx) for rx in qs])


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, allow(Operation.PRESCRIPTION_VIEW)])
def prescription_detail(request, pk: int):
    rx = _qs().filter(pk=pk).first()
    if not rx:
        raise NotFoundError('prescription not found')

    if request.method == 'DELETE':
        require(request.user, Operation.PRESCRIPTION_DELETE)
        rx.delete()
        log_action(user=request.user, action='prescription_delete', object_type='prescription', object_id=pk)
        return Response({'ok': True})

    require(request.user, Operation.PRESCRIPTION_UPDATE)
    s = PrescriptionUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    with transaction.atomic():
        if 'meds' in s.validated_data:
            _replace_meds(rx, s.validated_data['meds'])
        if 'notes' in s.validated_data:
            rx.notes = s.validated_data['notes']
        rx.save()
    return Response({'ok': True, 'prescription': serialize_prescription(_qs().get(pk=pk))})
