from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFoundError, ValidationError
from ..models import FollowUp, Patient, Role, User
from ..permissions import Operation, allow, require
from ..serializers.appointments import FollowUpCreateSerializer, FollowUpUpdateSerializer
from ..services.audit import log_action


def serialize_followup(f: FollowUp) -> dict:
    return {
        'id': f.id,
        'patient': {'id': f.patient_id, 'name': f.patient.name, 'contact': f.patient.contact},
        'doctor': {'id': f.doctor_id, 'name': f.doctor.name},
        'followUpDate': f.follow_up_date.isoformat(),
        'notified': f.notified,
    }


def _get_followup(pk: int) -> FollowUp:
    f = FollowUp.objects.select_related('patient', 'doctor').filter(pk=pk).first()
    if not f:
        raise NotFoundError('follow-up not found')
    return f


@api_view(['POST'])
@permission_classes([IsAuthenticated, allow(Operation.FOLLOWUP_SCHEDULE)])
def schedule_followup(request):
    s = FollowUpCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = Patient.objects.filter(pk=vd['patientId']).first()
    if not patient:
        raise NotFoundError('patient not found')
    doctor = User.objects.filter(pk=vd['doctorId']).first()
    if not doctor:
        raise NotFoundError('doctor not found')
    if doctor.role != Role.DOCTOR:
        raise ValidationError({'doctorId': 'user is not a doctor'})
    f = FollowUp.objects.create(patient=patient, doctor=doctor, follow_up_date=vd['followUpDate'])
    log_action(user=request.user, action='followup_schedule', object_type='followup', object_id=f.id)
    return Response({'ok': True, 'followUp': serialize_followup(f)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.FOLLOWUP_VIEW)])
def doctor_followups(request, doctor_id: int):
    qs = (
        FollowUp.objects.select_related('patient', 'doctor')
        .filter(doctor_id=doctor_id)
        .order_by('follow_up_date', 'id')
    )
    pending = request.query_params.get('pending')
    if pending in ('1', 'true'):
        qs = qs.filter(notified=False)
    return Response([serialize_followup(f) for f in qs])


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, allow(Operation.FOLLOWUP_VIEW)])
def followup_detail(request, pk: int):
    f = _get_followup(pk)
    if request.method == 'DELETE':
        require(request.user, Operation.FOLLOWUP_DELETE)
        f.delete()
        return Response({'ok': True})

    require(request.user, Operation.FOLLOWUP_UPDATE)
    s = FollowUpUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if 'followUpDate' in vd:
        f.follow_up_date = vd['followUpDate']
    if 'notified' in vd:
        f.notified = vd['notified']
    f.save()
    return Response({'ok': True, 'followUp': serialize_followup(f)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, allow(Operation.FOLLOWUP_NOTIFY)])
def mark_notified(request, pk: int):
    f = _get_followup(pk)
    if not f.notified:
        f.notified = True
        f.save(update_fields=['notified'])
    return Response({'ok': True, 'followUp': serialize_followup(f)})
