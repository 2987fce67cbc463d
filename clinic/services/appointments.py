"""
Appointment booking and rescheduling.

Booking validates the request, checks that both parties exist and that
no live appointment holds the doctor's slot, and then inserts the row.
The check is a fast path for a readable error; the partial unique
constraint on (doctor, date, time) is what guarantees first-writer-wins
when two requests race, and its IntegrityError is reported as the same
conflict.
"""
from __future__ import annotations

import logging
from datetime import date as date_type
from typing import Optional

from django.db import IntegrityError, transaction

from clinic.exceptions import ConflictError, NotFoundError, ValidationError
from clinic.models import Appointment, Patient, Role, User
from clinic.services.audit import log_action
from clinic.services.slots import is_valid_slot

logger = logging.getLogger(__name__)

SLOT_TAKEN = 'the doctor already has an appointment at this date and time'


def _slot_holder(doctor_id: int, day: date_type, time: str, exclude_id: Optional[int] = None):
    qs = (
        Appointment.objects
        .filter(doctor_id=doctor_id, date=day, time=time)
        .exclude(status=Appointment.STATUS_CANCELLED)
    )
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.first()


def _check_time(time: str) -> None:
    if not is_valid_slot(time):
        raise ValidationError({'time': f'{time!r} is not a bookable slot'})


def book_appointment(
    *,
    doctor_id: Optional[int],
    patient_id: Optional[int],
    date: Optional[date_type],
    time: Optional[str],
    reason: str = '',
    notes: str = '',
    booked_by: Optional[User] = None,
) -> Appointment:
    missing = [
        name for name, value in
        (('doctorId', doctor_id), ('patientId', patient_id), ('date', date), ('time', time))
        if value in (None, '')
    ]
    if missing:
        raise ValidationError({name: 'this field is required' for name in missing})
    _check_time(time)

    doctor = User.objects.filter(pk=doctor_id, role=Role.DOCTOR).first()
    if doctor is None:
        raise NotFoundError('doctor not found')
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise NotFoundError('patient not found')

    try:
        with transaction.atomic():
            if _slot_holder(doctor.id, date, time) is not None:
                raise ConflictError(SLOT_TAKEN)
            appt = Appointment.objects.create(
                doctor=doctor,
                patient=patient,
                date=date,
                time=time,
                status=Appointment.STATUS_SCHEDULED,
                reason=reason or '',
                notes=notes or '',
                booked_by=booked_by,
            )
    except IntegrityError:
        logger.info('slot race lost for doctor=%s %s %s', doctor.id, date, time)
        raise ConflictError(SLOT_TAKEN)

    log_action(user=booked_by, action='appointment_book', object_type='appointment', object_id=appt.id,
               detail={'doctorId': doctor.id, 'patientId': patient.id, 'date': date.isoformat(), 'time': time})
    return appt


def update_appointment(appt: Appointment, *, user: Optional[User] = None, **changes) -> Appointment:
    """Apply ``changes`` (date, time, status, reason, notes) to ``appt``.

    The slot is re-checked only when the appointment moves to another
    date or time, or when a cancelled appointment becomes live again;
    the appointment never conflicts with itself.
    """
    new_date = changes.get('date') or appt.date
    new_time = changes.get('time') or appt.time
    new_status = changes.get('status') or appt.status

    moved = new_date != appt.date or new_time != appt.time
    revived = appt.status == Appointment.STATUS_CANCELLED and new_status != Appointment.STATUS_CANCELLED
    if 'time' in changes and changes['time']:
        _check_time(new_time)

    appt.date = new_date
    appt.time = new_time
    appt.status = new_status
    for field in ('reason', 'notes'):
        if changes.get(field) is not None:
            setattr(appt, field, changes[field])

    try:
        with transaction.atomic():
            if (moved or revived) and new_status != Appointment.STATUS_CANCELLED:
                if _slot_holder(appt.doctor_id, new_date, new_time, exclude_id=appt.id) is not None:
                    raise ConflictError(SLOT_TAKEN)
            appt.save()
    except IntegrityError:
        raise ConflictError(SLOT_TAKEN)

    log_action(user=user, action='appointment_update', object_type='appointment', object_id=appt.id,
               detail={k: str(v) for k, v in changes.items()})
    return appt
