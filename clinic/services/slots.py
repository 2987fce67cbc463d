"""
Appointment slot catalog and availability.

A clinic day is split into fixed-width slots between the configured
opening and closing hour.  Every doctor shares the same catalog on every
date; a slot is available for a doctor on a date unless a non-cancelled
appointment already holds it.
"""
from __future__ import annotations

from datetime import date
from typing import List

from django.conf import settings

from clinic.exceptions import NotFoundError
from clinic.models import Appointment, Role, User


def generate_time_slots(start_hour: int, end_hour: int, interval: int) -> List[str]:
    """Return the "HH:MM" slot starts in ``[start_hour, end_hour)``.

    Slots are ``interval`` minutes apart across the whole day, so the
    count is ceil((end - start) * 60 / interval).  The result is
    strictly increasing and has no duplicates.
    """
    if interval <= 0:
        raise ValueError('interval must be positive')
    slots: List[str] = []
    for t in range(start_hour * 60, end_hour * 60, interval):
        slots.append(f'{t // 60:02d}:{t % 60:02d}')
    return slots


def clinic_slots() -> List[str]:
    """The slot catalog for the configured clinic day."""
    return generate_time_slots(
        settings.CLINIC_DAY_START_HOUR,
        settings.CLINIC_DAY_END_HOUR,
        settings.CLINIC_SLOT_MINUTES,
    )


def is_valid_slot(time: str) -> bool:
    return time in clinic_slots()


def booked_times(doctor_id: int, day: date) -> set[str]:
    return set(
        Appointment.objects
        .filter(doctor_id=doctor_id, date=day)
        .exclude(status=Appointment.STATUS_CANCELLED)
        .values_list('time', flat=True)
    )


def available_slots(doctor_id: int, day: date) -> List[str]:
    """Catalog slots not held by a live appointment of the doctor on ``day``."""
    if not User.objects.filter(pk=doctor_id, role=Role.DOCTOR).exists():
        raise NotFoundError('doctor not found')
    taken = booked_times(doctor_id, day)
    return [slot for slot in clinic_slots() if slot not in taken]
