import pytest

from clinic.exceptions import DomainPreconditionError, NotFoundError
from clinic.models import AuditEvent, Bed, Ward
from clinic.services.occupancy import assign_bed, discharge_bed, reconcile_ward_occupancy, set_bed_status

pytestmark = pytest.mark.django_db


def test_assign_then_discharge_moves_ward_counter(bed, patient, receptionist):
    bed = assign_bed(bed.id, patient_id=patient.id, user=receptionist)
    assert bed.status == Bed.STATUS_OCCUPIED
    assert bed.patient_id == patient.id
    assert bed.admission_date is not None
    assert Ward.objects.get(pk=bed.ward_id).current_occupancy == 1

    bed = discharge_bed(bed.id, user=receptionist)
    assert bed.status == Bed.STATUS_AVAILABLE
    assert bed.patient_id is None
    assert bed.admission_date is None
    assert Ward.objects.get(pk=bed.ward_id).current_occupancy == 0

    actions = list(AuditEvent.objects.filter(object_type='bed').values_list('action', flat=True))
    assert actions.count('bed_assign') == 1
    assert actions.count('bed_discharge') == 1


def test_occupied_bed_cannot_be_assigned_again(bed, patient):
    assign_bed(bed.id, patient_id=patient.id)
    with pytest.raises(DomainPreconditionError):
        assign_bed(bed.id, patient_id=patient.id)
    assert Ward.objects.get(pk=bed.ward_id).current_occupancy == 1


def test_discharging_a_free_bed_is_rejected(bed):
    with pytest.raises(DomainPreconditionError):
        discharge_bed(bed.id)


def test_full_ward_rolls_back_the_bed_claim(patient):
    ward = Ward.objects.create(name='ICU', type='icu', capacity=1, current_occupancy=1)
    bed = Bed.objects.create(bed_number='ICU-2', ward=ward)
    with pytest.raises(DomainPreconditionError):
        assign_bed(bed.id, patient_id=patient.id)
    bed.refresh_from_db()
    assert bed.status == Bed.STATUS_AVAILABLE
    assert bed.patient_id is None
    assert Ward.objects.get(pk=ward.pk).current_occupancy == 1


def test_unknown_bed_or_patient(bed):
    with pytest.raises(NotFoundError):
        assign_bed(424242, patient_id=1)
    with pytest.raises(NotFoundError):
        assign_bed(bed.id, patient_id=424242)


def test_maintenance_toggle(bed, patient):
    assert set_bed_status(bed.id, status=Bed.STATUS_MAINTENANCE).status == Bed.STATUS_MAINTENANCE
    with pytest.raises(DomainPreconditionError):
        assign_bed(bed.id, patient_id=patient.id)
    assert set_bed_status(bed.id, status=Bed.STATUS_AVAILABLE).status == Bed.STATUS_AVAILABLE


def test_status_change_refused_for_occupied_bed(bed, patient):
    assign_bed(bed.id, patient_id=patient.id)
    with pytest.raises(DomainPreconditionError):
        set_bed_status(bed.id, status=Bed.STATUS_MAINTENANCE)
    with pytest.raises(DomainPreconditionError):
        set_bed_status(bed.id, status=Bed.STATUS_OCCUPIED)


def test_reconcile_resets_drifted_counter(bed, patient, ward):
    assign_bed(bed.id, patient_id=patient.id)
    Ward.objects.filter(pk=ward.pk).update(current_occupancy=0)

    fixed = reconcile_ward_occupancy()
    assert [(w.pk, old, new) for w, old, new in fixed] == [(ward.pk, 0, 1)]
    assert Ward.objects.get(pk=ward.pk).current_occupancy == 1
    assert reconcile_ward_occupancy() == []
