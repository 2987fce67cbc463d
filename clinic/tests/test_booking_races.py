"""
Storage-level guarantees behind booking and bed occupancy.

The application checks run first, but two requests can both pass them;
these tests make the check "lose" and confirm the database constraints
still let only the first writer through.
"""
from datetime import date

import pytest
from django.db import IntegrityError, transaction
from django.db.models import F

from clinic.exceptions import ConflictError
from clinic.models import Appointment, Bed, Ward
from clinic.services import appointments
from clinic.services.appointments import book_appointment, update_appointment

pytestmark = pytest.mark.django_db

DAY = date(2030, 1, 7)


@pytest.fixture
def lost_race(monkeypatch):
    """Pretend every slot looks free to the application check."""
    monkeypatch.setattr(appointments, '_slot_holder', lambda *args, **kwargs: None)


def live(doctor):
    return Appointment.objects.filter(doctor=doctor, date=DAY).exclude(status=Appointment.STATUS_CANCELLED)


def test_second_writer_gets_conflict_when_check_is_bypassed(doctor, patient, lost_race):
    first = book_appointment(doctor_id=doctor.id, patient_id=patient.id, date=DAY, time='10:00')
    with pytest.raises(ConflictError):
        book_appointment(doctor_id=doctor.id, patient_id=patient.id, date=DAY, time='10:00')
    assert list(live(doctor).values_list('id', flat=True)) == [first.id]


def test_move_onto_held_slot_conflicts_when_check_is_bypassed(doctor, patient, lost_race):
    book_appointment(doctor_id=doctor.id, patient_id=patient.id, date=DAY, time='10:00')
    other = book_appointment(doctor_id=doctor.id, patient_id=patient.id, date=DAY, time='11:00')
    with pytest.raises(ConflictError):
        update_appointment(other, time='10:00')
    other.refresh_from_db()
    assert other.time == '11:00'
    assert live(doctor).filter(time='10:00').count() == 1


def test_revive_onto_held_slot_conflicts_when_check_is_bypassed(doctor, patient, lost_race):
    old = Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='10:00',
                                     status=Appointment.STATUS_CANCELLED)
    book_appointment(doctor_id=doctor.id, patient_id=patient.id, date=DAY, time='10:00')
    with pytest.raises(ConflictError):
        update_appointment(old, status=Appointment.STATUS_SCHEDULED)
    old.refresh_from_db()
    assert old.status == Appointment.STATUS_CANCELLED


def test_live_slot_is_unique_in_the_database(doctor, patient):
    Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='10:00')
    with pytest.raises(IntegrityError), transaction.atomic():
        Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='10:00')

    # cancelled rows do not hold the slot
    Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='10:00',
                               status=Appointment.STATUS_CANCELLED)
    Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='10:00',
                               status=Appointment.STATUS_CANCELLED)
    assert live(doctor).count() == 1


def test_ward_counter_cannot_exceed_capacity_in_the_database(ward):
    with pytest.raises(IntegrityError), transaction.atomic():
        Ward.objects.filter(pk=ward.pk).update(current_occupancy=F('capacity') + 1)
    ward.refresh_from_db()
    assert ward.current_occupancy == 0


def test_occupied_bed_needs_a_patient_in_the_database(bed):
    with pytest.raises(IntegrityError), transaction.atomic():
        Bed.objects.filter(pk=bed.pk).update(status=Bed.STATUS_OCCUPIED)
    bed.refresh_from_db()
    assert bed.status == Bed.STATUS_AVAILABLE
