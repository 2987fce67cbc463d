"""
Patient management views.

Front-desk staff register patients; every role can look them up and
update their details, and administrators can remove a patient who is not
referenced by any appointment, bed or bill.
"""
from __future__ import annotations

from django.db import transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import ConflictError, NotFoundError
from ..models import Patient
from ..permissions import Operation, allow, require
from ..serializers.people import PatientSerializer
from ..services.audit import log_action
from ..services.identifiers import next_patient_code

FIELD_MAP = {
    'name': 'name',
    'age': 'age',
    'gender': 'gender',
    'contact': 'contact',
    'condition': 'condition',
    'bloodType': 'blood_type',
    'status': 'status',
}


def serialize_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'patientCode': p.patient_code,
        'name': p.name,
        'age': p.age,
        'gender': p.gender,
        'contact': p.contact,
        'condition': p.condition,
        'bloodType': p.blood_type,
        'status': p.status,
        'createdAt': p.created_at.isoformat() if p.created_at else None,
    }


def _get_patient(pk: int) -> Patient:
    p = Patient.objects.filter(pk=pk).first()
    if not p:
        raise NotFoundError('patient not found')
    return p


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.PATIENT_VIEW)])
def patients(request):
    if request.method == 'POST':
        require(request.user, Operation.PATIENT_CREATE)
        s = PatientSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        fields = {FIELD_MAP[k]: v for k, v in s.validated_data.items()}
        with transaction.atomic():
            p = Patient.objects.create(patient_code=next_patient_code(), registered_by=request.user, **fields)
        log_action(user=request.user, action='patient_create', object_type='patient', object_id=p.id)
        return Response({'ok': True, 'patient': serialize_patient(p)}, status=status.HTTP_201_CREATED)

    qs = Patient.objects.order_by('-created_at', '-id')
    q = (request.query_params.get('q') or '').strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(contact__icontains=q) | Q(patient_code__icontains=q))
    st = request.query_params.get('status')
    if st:
        qs = qs.filter(status=st)
    return Response([serialize_patient(p) for p in qs])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, allow(Operation.PATIENT_VIEW)])
def patient_detail(request, pk: int):
    p = _get_patient(pk)
    if request.method == 'GET':
        return Response(serialize_patient(p))

    if request.method == 'PUT':
        require(request.user, Operation.PATIENT_UPDATE)
        s = PatientSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        for key, value in s.validated_data.items():
            setattr(p, FIELD_MAP[key], value)
        p.save()
        log_action(user=request.user, action='patient_update', object_type='patient', object_id=p.id,
                   detail={'fields': sorted(s.validated_data)})
        return Response({'ok': True, 'patient': serialize_patient(p)})

    require(request.user, Operation.PATIENT_DELETE)
    if p.appointments.exists() or p.beds.exists() or p.bills.exists():
        raise ConflictError('patient is referenced by appointments, beds or bills and cannot be deleted')
    pid = p.id
    p.delete()
    log_action(user=request.user, action='patient_delete', object_type='patient', object_id=pid)
    return Response({'ok': True})
