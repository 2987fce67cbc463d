"""
Bed assignment and discharge.

A ward's ``current_occupancy`` moves in lockstep with its beds: every
assign adds one and every discharge removes one, inside the same
transaction as the bed change.  Both sides use conditional UPDATEs so
that concurrent requests cannot double-assign a bed or push a ward past
its capacity; when a condition matches no row the whole transaction is
rolled back and the caller gets a DomainPreconditionError.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from clinic.exceptions import DomainPreconditionError, NotFoundError
from clinic.models import Bed, Patient, Ward
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)


def _get_bed(bed_id: int) -> Bed:
    bed = Bed.objects.select_related('ward').filter(pk=bed_id).first()
    if bed is None:
        raise NotFoundError('bed not found')
    return bed


def assign_bed(
    bed_id: int,
    *,
    patient_id: int,
    admission_date: Optional[datetime] = None,
    discharge_date: Optional[datetime] = None,
    user=None,
) -> Bed:
    bed = _get_bed(bed_id)
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise NotFoundError('patient not found')

    with transaction.atomic():
        claimed = Bed.objects.filter(pk=bed.pk, status=Bed.STATUS_AVAILABLE).update(
            status=Bed.STATUS_OCCUPIED,
            patient=patient,
            admission_date=admission_date or timezone.now(),
            discharge_date=discharge_date,
            last_updated_by=user,
            updated_at=timezone.now(),
        )
        if not claimed:
            raise DomainPreconditionError('bed is not available')
        room = Ward.objects.filter(pk=bed.ward_id, current_occupancy__lt=F('capacity')).update(
            current_occupancy=F('current_occupancy') + 1,
            updated_at=timezone.now(),
        )
        if not room:
            raise DomainPreconditionError('ward is at full capacity')

    bed.refresh_from_db()
    logger.info('bed %s assigned to patient %s', bed.bed_number, patient.id)
    log_action(user=user, action='bed_assign', object_type='bed', object_id=bed.id,
               detail={'patientId': patient.id, 'wardId': bed.ward_id})
    return bed


def discharge_bed(bed_id: int, *, user=None) -> Bed:
    bed = _get_bed(bed_id)
    patient_id = bed.patient_id

    with transaction.atomic():
        released = Bed.objects.filter(pk=bed.pk, status=Bed.STATUS_OCCUPIED).update(
            status=Bed.STATUS_AVAILABLE,
            patient=None,
            admission_date=None,
            discharge_date=None,
            last_updated_by=user,
            updated_at=timezone.now(),
        )
        if not released:
            raise DomainPreconditionError('bed is not occupied')
        freed = Ward.objects.filter(pk=bed.ward_id, current_occupancy__gt=0).update(
            current_occupancy=F('current_occupancy') - 1,
            updated_at=timezone.now(),
        )
        if not freed:
            # counter already at zero: occupancy drifted, keep it non-negative
            logger.warning('ward %s occupancy was already 0 on discharge of bed %s', bed.ward_id, bed.id)

    bed.refresh_from_db()
    logger.info('bed %s discharged', bed.bed_number)
    log_action(user=user, action='bed_discharge', object_type='bed', object_id=bed.id,
               detail={'patientId': patient_id, 'wardId': bed.ward_id})
    return bed


def set_bed_status(bed_id: int, *, status: str, user=None) -> Bed:
    """Move a bed between available and maintenance.

    Occupied beds leave that state only through discharge.
    """
    if status not in (Bed.STATUS_AVAILABLE, Bed.STATUS_MAINTENANCE):
        raise DomainPreconditionError('status can only be set to available or maintenance')
    bed = _get_bed(bed_id)
    changed = (
        Bed.objects.filter(pk=bed.pk)
        .exclude(status=Bed.STATUS_OCCUPIED)
        .update(status=status, last_updated_by=user, updated_at=timezone.now())
    )
    if not changed:
        raise DomainPreconditionError('an occupied bed must be discharged first')
    bed.refresh_from_db()
    return bed


def reconcile_ward_occupancy() -> list[tuple[Ward, int, int]]:
    """Reset every ward's counter to its number of occupied beds.

    Returns ``(ward, old, new)`` for each ward that was corrected.
    """
    fixed = []
    wards = Ward.objects.annotate(
        occupied=Count('beds', filter=Q(beds__status=Bed.STATUS_OCCUPIED)),
    )
    for ward in wards:
        if ward.current_occupancy != ward.occupied:
            old = ward.current_occupancy
            Ward.objects.filter(pk=ward.pk).update(current_occupancy=ward.occupied)
            fixed.append((ward, old, ward.occupied))
    return fixed
