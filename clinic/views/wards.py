"""
Ward and bed views.

Bed assignment and discharge go through ``clinic.services.occupancy`` so
that the ward occupancy counter moves together with the bed.
"""
from __future__ import annotations

from django.db.models import Count, Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import ConflictError, NotFoundError
from ..models import Bed, Ward
from ..permissions import Operation, allow, require
from ..serializers.wards import (
    BedAssignSerializer,
    BedListQuerySerializer,
    BedSerializer,
    BedStatusSerializer,
    WardListQuerySerializer,
    WardSerializer,
)
from ..services.audit import log_action
from ..services.occupancy import assign_bed, discharge_bed, set_bed_status


def serialize_ward(w: Ward) -> dict:
    return {
        'id': w.id,
        'name': w.name,
        'type': w.type,
        'capacity': w.capacity,
        'currentOccupancy': w.current_occupancy,
        'availableCapacity': w.capacity - w.current_occupancy,
        'floor': w.floor,
        'inCharge': w.in_charge,
        'description': w.description,
    }


def serialize_bed(b: Bed) -> dict:
    return {
        'id': b.id,
        'bedNumber': b.bed_number,
        'status': b.status,
        'ward': {'id': b.ward_id, 'name': b.ward.name, 'type': b.ward.type},
        'patient': {'id': b.patient_id, 'name': b.patient.name} if b.patient_id else None,
        'admissionDate': b.admission_date.isoformat() if b.admission_date else None,
        'dischargeDate': b.discharge_date.isoformat() if b.discharge_date else None,
        'ratePerDay': b.rate_per_day,
        'features': b.features,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.WARD_VIEW)])
def wards(request):
    if request.method == 'POST':
        require(request.user, Operation.WARD_CREATE)
        s = WardSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        if Ward.objects.filter(name__iexact=vd['name']).exists():
            raise ConflictError('a ward with this name already exists')
        w = Ward.objects.create(
            name=vd['name'],
            type=vd['type'],
            capacity=vd['capacity'],
            floor=vd.get('floor', 1),
            in_charge=vd.get('inCharge', ''),
            description=vd.get('description', ''),
            created_by=request.user,
        )
        log_action(user=request.user, action='ward_create', object_type='ward', object_id=w.id)
        return Response({'ok': True, 'ward': serialize_ward(w)}, status=status.HTTP_201_CREATED)

    q = WardListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Ward.objects.order_by('name')
    if 'type' in q.validated_data:
        qs = qs.filter(type=q.validated_data['type'])
    return Response([serialize_ward(w) for w in qs])


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.WARD_VIEW)])
def ward_detail(request, pk: int):
    w = (
        Ward.objects.annotate(
            total_beds=Count('beds'),
            occupied=Count('beds', filter=Q(beds__status=Bed.STATUS_OCCUPIED)),
            available=Count('beds', filter=Q(beds__status=Bed.STATUS_AVAILABLE)),
            maintenance=Count('beds', filter=Q(beds__status=Bed.STATUS_MAINTENANCE)),
        )
        .filter(pk=pk)
        .first()
    )
    if not w:
        raise NotFoundError('ward not found')
    data = serialize_ward(w)
    data['beds'] = {
        'total': w.total_beds,
        'occupied': w.occupied,
        'available': w.available,
        'maintenance': w.maintenance,
    }
    return Response(data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.BED_VIEW)])
def beds(request):
    if request.method == 'POST':
        require(request.user, Operation.BED_CREATE)
        s = BedSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        ward = Ward.objects.filter(pk=vd['wardId']).first()
        if not ward:
            raise NotFoundError('ward not found')
        if Bed.objects.filter(bed_number__iexact=vd['bedNumber']).exists():
            raise ConflictError('a bed with this number already exists')
        b = Bed.objects.create(
            bed_number=vd['bedNumber'],
            ward=ward,
            rate_per_day=vd.get('ratePerDay', 0),
            features=vd.get('features', []),
            created_by=request.user,
            last_updated_by=request.user,
        )
        log_action(user=request.user, action='bed_create', object_type='bed', object_id=b.id)
        return Response({'ok': True, 'bed': serialize_bed(b)}, status=status.HTTP_201_CREATED)

    q = BedListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = Bed.objects.select_related('ward', 'patient').order_by('ward__name', 'bed_number')
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('wardId'):
        qs = qs.filter(ward_id=vd['wardId'])
    if vd.get('available') is True:
        qs = qs.filter(status=Bed.STATUS_AVAILABLE)
    return Response([serialize_bed(b) for b in qs])


def _bed_response(bed: Bed) -> Response:
    bed = Bed.objects.select_related('ward', 'patient').get(pk=bed.pk)
    return Response({'ok': True, 'bed': serialize_bed(bed), 'ward': serialize_ward(bed.ward)})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, allow(Operation.BED_ASSIGN)])
def assign(request, pk: int):
    s = BedAssignSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    bed = assign_bed(
        pk,
        patient_id=vd['patientId'],
        admission_date=vd.get('admissionDate'),
        discharge_date=vd.get('dischargeDate'),
        user=request.user,
    )
    return _bed_response(bed)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, allow(Operation.BED_DISCHARGE)])
def discharge(request, pk: int):
    return _bed_response(discharge_bed(pk, user=request.user))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, allow(Operation.BED_MAINTENANCE)])
def bed_status(request, pk: int):
    s = BedStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _bed_response(set_bed_status(pk, status=s.validated_data['status'], user=request.user))
