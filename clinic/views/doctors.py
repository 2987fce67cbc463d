"""
Doctor management views.

Doctors are staff users with the doctor role.  Administrators create,
edit and remove them; every role can list and look them up, which the
booking screens need.
"""
from __future__ import annotations

import secrets

from django.db import transaction
from django.db.models import Count, Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import ConflictError, NotFoundError
from ..models import Appointment, Role, User
from ..permissions import Operation, allow, require
from ..serializers.people import DoctorSerializer
from ..services.audit import log_action
from ..services.identifiers import next_staff_id


def _serialize(doc: User, appointment_count: int | None = None) -> dict:
    data = {
        'id': doc.id,
        'doctorId': doc.staff_id,
        'name': doc.name,
        'email': doc.email,
        'specialization': doc.specialization,
        'phone': doc.phone,
        'schedule': doc.schedule,
        'status': doc.status,
        'avatar': doc.avatar,
    }
    if appointment_count is not None:
        data['appointmentCount'] = appointment_count
    return data


def _get_doctor(pk: int) -> User:
    doc = User.objects.filter(pk=pk, role=Role.DOCTOR).first()
    if not doc:
        raise NotFoundError('doctor not found')
    return doc


def _apply(doc: User, vd: dict) -> None:
    if 'name' in vd:
        first, _, last = vd['name'].partition(' ')
        doc.first_name, doc.last_name = first[:150], last.strip()[:150]
    for field in ('specialization', 'phone', 'schedule', 'status', 'avatar'):
        if field in vd:
            setattr(doc, field, vd[field])


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.DOCTOR_VIEW)])
def doctors(request):
    if request.method == 'POST':
        return create_doctor(request)
    qs = (
        User.objects.filter(role=Role.DOCTOR)
        .annotate(n_appts=Count('doctor_appointments', filter=~Q(doctor_appointments__status=Appointment.STATUS_CANCELLED)))
        .order_by('first_name', 'last_name', 'id')
    )
    specialization = request.query_params.get('specialization')
    if specialization:
        qs = qs.filter(specialization__icontains=specialization)
    return Response([_serialize(d, d.n_appts) for d in qs])


def create_doctor(request):
    require(request.user, Operation.DOCTOR_CREATE)
    s = DoctorSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    email = vd['email'].lower()
    if User.objects.filter(email__iexact=email).exists():
        raise ConflictError('a user with this email already exists')

    password = vd.get('password') or secrets.token_urlsafe(12)
    with transaction.atomic():
        doc = User(username=email, email=email, role=Role.DOCTOR, staff_id=next_staff_id(Role.DOCTOR))
        doc.set_password(password)
        _apply(doc, vd)
        doc.save()
    log_action(user=request.user, action='doctor_create', object_type='user', object_id=doc.id)
    payload = {'ok': True, 'doctor': _serialize(doc)}
    if not vd.get('password'):
        payload['initialPassword'] = password
    return Response(payload, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, allow(Operation.DOCTOR_VIEW)])
def doctor_detail(request, pk: int):
    doc = _get_doctor(pk)
    if request.method == 'GET':
        return Response(_serialize(doc, doc.doctor_appointments.exclude(status=Appointment.STATUS_CANCELLED).count()))

    op = Operation.DOCTOR_UPDATE if request.method == 'PUT' else Operation.DOCTOR_DELETE
    require(request.user, op)

    if request.method == 'PUT':
        s = DoctorSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        if 'email' in vd:
            email = vd['email'].lower()
            if User.objects.filter(email__iexact=email).exclude(pk=doc.pk).exists():
                raise ConflictError('a user with this email already exists')
            doc.email = doc.username = email
        if vd.get('password'):
            doc.set_password(vd['password'])
        _apply(doc, vd)
        doc.save()
        log_action(user=request.user, action='doctor_update', object_type='user', object_id=doc.id)
        return Response({'ok': True, 'doctor': _serialize(doc)})

    if doc.doctor_appointments.exists():
        raise ConflictError('doctor has appointments and cannot be deleted')
    doc_id = doc.id
    doc.delete()
    log_action(user=request.user, action='doctor_delete', object_type='user', object_id=doc_id)
    return Response({'ok': True})
