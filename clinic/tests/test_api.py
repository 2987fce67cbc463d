"""
Integration tests for the hospital backend API.

These cover the resource endpoints around the booking core: patients,
doctors, prescriptions, follow-ups, wards and beds, billing, reports and
the administrative dashboard, plus the maintenance commands.
"""
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from clinic.models import Appointment, AuditEvent, Bed, Bill, FollowUp, Patient, Prescription, Role, User, Ward
from clinic.services.billing import LineItem, create_bill

from .conftest import client_for, make_staff

pytestmark = pytest.mark.django_db

DAY = date(2030, 1, 7)


@pytest.fixture
def appointment(doctor, patient):
    return Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='10:00')


# ---------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------
def test_register_patient_assigns_code(desk_client):
    r = desk_client.post(reverse('patients'), {
        'name': 'Mary Major', 'age': 52, 'gender': 'female', 'contact': '555-0199', 'bloodType': 'O+',
    }, format='json')
    assert r.status_code == 201
    p = r.data['patient']
    assert p['patientCode'].startswith(f'PT-{timezone.localdate().year}-')
    assert p['bloodType'] == 'O+'
    assert Patient.objects.get(pk=p['id']).registered_by.email == 'desk@test.local'


def test_patient_input_is_validated_and_sanitised(desk_client):
    r = desk_client.post(reverse('patients'), {'name': 'A', 'gender': 'unknown'}, format='json')
    assert r.status_code == 400
    assert set(r.data['error']['message']) == {'name', 'gender'}

    r = desk_client.post(reverse('patients'), {'name': '<script>x</script>Bob Stone'}, format='json')
    assert r.status_code == 201
    assert '<script>' not in r.data['patient']['name']


def test_patient_search_and_update(desk_client, patient):
    Patient.objects.create(name='Zed Zulu', contact='555-9999')
    r = desk_client.get(reverse('patients'), {'q': 'smith'})
    assert [p['id'] for p in r.data] == [patient.id]

    r = desk_client.put(reverse('patient_detail', args=[patient.id]), {'condition': 'Asthma'}, format='json')
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.condition == 'Asthma'
    assert patient.name == 'John Smith'


def test_referenced_patient_cannot_be_deleted(admin_client, patient, appointment):
    r = admin_client.delete(reverse('patient_detail', args=[patient.id]))
    assert r.status_code == 409
    assert Patient.objects.filter(pk=patient.id).exists()


def test_admin_deletes_unreferenced_patient(admin_client, desk_client, patient):
    assert desk_client.delete(reverse('patient_detail', args=[patient.id])).status_code == 403
    assert admin_client.delete(reverse('patient_detail', args=[patient.id])).status_code == 200
    assert not Patient.objects.filter(pk=patient.id).exists()
    assert AuditEvent.objects.filter(action='patient_delete', object_id=patient.id).exists()


# ---------------------------------------------------------------------
# Doctors
# ---------------------------------------------------------------------
def test_admin_creates_doctor_with_initial_password(admin_client):
    r = admin_client.post(reverse('doctors'), {
        'name': 'Gregory House', 'email': 'House@Test.Local', 'specialization': 'Diagnostics',
    }, format='json')
    assert r.status_code == 201
    assert r.data['doctor']['doctorId'].startswith('DOC-')
    doc = User.objects.get(email='house@test.local')
    assert doc.role == Role.DOCTOR
    assert doc.check_password(r.data['initialPassword'])


def test_doctor_list_counts_live_appointments(desk_client, doctor, patient, appointment):
    Appointment.objects.create(doctor=doctor, patient=patient, date=DAY, time='11:00',
                               status=Appointment.STATUS_CANCELLED)
    r = desk_client.get(reverse('doctors'))
    assert r.status_code == 200
    assert r.data[0]['appointmentCount'] == 1


def test_doctor_with_appointments_cannot_be_deleted(admin_client, doctor, appointment):
    assert admin_client.delete(reverse('doctor_detail', args=[doctor.id])).status_code == 409


def test_desk_cannot_edit_doctors(desk_client, doctor):
    r = desk_client.put(reverse('doctor_detail', args=[doctor.id]), {'phone': '1'}, format='json')
    assert r.status_code == 403


# ---------------------------------------------------------------------
# Prescriptions and follow-ups
# ---------------------------------------------------------------------
def test_prescription_lifecycle(doctor_client, desk_client, admin_client, appointment, doctor):
    url = reverse('appointment_prescription', args=[appointment.id])
    payload = {'meds': [{'name': 'Aspirin', 'dosage': '75mg', 'frequency': 'daily'},
                        {'name': 'Atorvastatin', 'dosage': '20mg'}],
               'notes': 'review in 4 weeks'}
    assert desk_client.post(url, payload, format='json').status_code == 403

    r = doctor_client.post(url, payload, format='json')
    assert r.status_code == 201
    assert [m['name'] for m in r.data['prescription']['meds']] == ['Aspirin', 'Atorvastatin']
    assert doctor_client.post(url, payload, format='json').status_code == 409

    r = desk_client.get(reverse('doctor_prescriptions', args=[doctor.id]))
    assert len(r.data) == 1

    rx_id = r.data[0]['id']
    r = doctor_client.put(reverse('prescription_detail', args=[rx_id]),
                          {'meds': [{'name': 'Clopidogrel'}]}, format='json')
    assert r.status_code == 200
    assert [m['name'] for m in r.data['prescription']['meds']] == ['Clopidogrel']
    assert r.data['prescription']['notes'] == 'review in 4 weeks'

    assert doctor_client.delete(reverse('prescription_detail', args=[rx_id])).status_code == 403
    assert admin_client.delete(reverse('prescription_detail', args=[rx_id])).status_code == 200
    assert not Prescription.objects.exists()


def test_prescription_needs_medications(doctor_client, appointment):
    r = doctor_client.post(reverse('appointment_prescription', args=[appointment.id]), {'meds': []}, format='json')
    assert r.status_code == 400


def test_followup_schedule_and_notify(desk_client, doctor_client, doctor, patient):
    r = desk_client.post(reverse('followups'), {
        'patientId': patient.id, 'doctorId': doctor.id, 'followUpDate': '2030-02-01',
    }, format='json')
    assert r.status_code == 201
    fid = r.data['followUp']['id']

    r = doctor_client.get(reverse('doctor_followups', args=[doctor.id]), {'pending': '1'})
    assert [f['id'] for f in r.data] == [fid]

    r = doctor_client.patch(reverse('followup_notify', args=[fid]))
    assert r.status_code == 200
    assert r.data['followUp']['notified'] is True
    r = doctor_client.get(reverse('doctor_followups', args=[doctor.id]), {'pending': 'true'})
    assert r.data == []


def test_followup_requires_a_doctor(desk_client, receptionist, patient):
    r = desk_client.post(reverse('followups'), {
        'patientId': patient.id, 'doctorId': receptionist.id, 'followUpDate': '2030-02-01',
    }, format='json')
    assert r.status_code == 400
    assert not FollowUp.objects.exists()


# ---------------------------------------------------------------------
# Wards and beds
# ---------------------------------------------------------------------
def test_ward_and_bed_setup(admin_client, desk_client):
    r = desk_client.post(reverse('wards'), {'name': 'Cardio', 'type': 'general', 'capacity': 4}, format='json')
    assert r.status_code == 403
    r = admin_client.post(reverse('wards'), {'name': 'Cardio', 'type': 'general', 'capacity': 4}, format='json')
    assert r.status_code == 201
    ward_id = r.data['ward']['id']
    assert admin_client.post(reverse('wards'), {'name': 'cardio', 'type': 'icu', 'capacity': 1},
                             format='json').status_code == 409

    r = desk_client.post(reverse('beds'), {'bedNumber': 'C-1', 'wardId': ward_id, 'ratePerDay': '1500.00'},
                         format='json')
    assert r.status_code == 201
    assert r.data['bed']['status'] == Bed.STATUS_AVAILABLE

    r = desk_client.get(reverse('ward_detail', args=[ward_id]))
    assert r.data['beds'] == {'total': 1, 'occupied': 0, 'available': 1, 'maintenance': 0}
    assert r.data['availableCapacity'] == 4


def test_assign_and_discharge_over_http(desk_client, bed, patient):
    r = desk_client.put(reverse('bed_assign', args=[bed.id]), {'patientId': patient.id}, format='json')
    assert r.status_code == 200
    assert r.data['bed']['status'] == Bed.STATUS_OCCUPIED
    assert r.data['ward']['currentOccupancy'] == 1

    r = desk_client.put(reverse('bed_assign', args=[bed.id]), {'patientId': patient.id}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'precondition_failed'

    r = desk_client.get(reverse('beds'), {'status': 'occupied'})
    assert [b['patient']['id'] for b in r.data] == [patient.id]

    r = desk_client.put(reverse('bed_discharge', args=[bed.id]))
    assert r.status_code == 200
    assert r.data['bed']['patient'] is None
    assert r.data['ward']['currentOccupancy'] == 0


def test_admin_cannot_assign_beds(admin_client, bed, patient):
    r = admin_client.put(reverse('bed_assign', args=[bed.id]), {'patientId': patient.id}, format='json')
    assert r.status_code == 403


def test_bed_status_endpoint(desk_client, bed):
    r = desk_client.put(reverse('bed_status', args=[bed.id]), {'status': 'maintenance'}, format='json')
    assert r.status_code == 200
    assert r.data['bed']['status'] == Bed.STATUS_MAINTENANCE
    r = desk_client.put(reverse('bed_status', args=[bed.id]), {'status': 'occupied'}, format='json')
    assert r.status_code == 400


# ---------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------
def test_bill_flow_over_http(desk_client, patient, bed):
    r = desk_client.post(reverse('bills'), {
        'patientId': patient.id,
        'bedId': bed.id,
        'items': [{'description': 'Room', 'quantity': 2, 'rate': '100.00', 'taxRate': '10', 'category': 'room'}],
    }, format='json')
    assert r.status_code == 201
    bill = r.data['bill']
    assert bill['totalAmount'] == Decimal('220.00')
    assert bill['status'] == Bill.STATUS_GENERATED
    assert bill['invoiceNumber'].startswith('INV-')
    assert len(bill['items']) == 1

    url = reverse('bill_payments', args=[bill['id']])
    r = desk_client.post(url, {'amount': '300', 'paymentMethod': 'cash'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'precondition_failed'

    r = desk_client.post(url, {'amount': '220', 'paymentMethod': 'credit_card', 'transactionId': 'T-1'}, format='json')
    assert r.status_code == 200
    assert r.data['bill']['status'] == Bill.STATUS_PAID
    assert r.data['bill']['balance'] == Decimal('0.00')
    assert r.data['bill']['payments'][0]['transactionId'] == 'T-1'

    r = desk_client.get(reverse('bills'), {'status': 'paid'})
    assert [b['id'] for b in r.data] == [bill['id']]


def test_bill_requires_items(desk_client, patient):
    r = desk_client.post(reverse('bills'), {'patientId': patient.id, 'items': []}, format='json')
    assert r.status_code == 400


def test_bill_list_date_range(desk_client, patient):
    recent = create_bill(patient_id=patient.id, items=[LineItem(description='Lab', rate=Decimal('80'))])
    old = create_bill(patient_id=patient.id, items=[LineItem(description='Lab', rate=Decimal('20'))])
    Bill.objects.filter(pk=old.pk).update(billing_date=timezone.now() - timedelta(days=40))
    today = timezone.localdate().isoformat()

    r = desk_client.get(reverse('bills'), {'startDate': today, 'endDate': today})
    assert r.status_code == 200
    assert [b['id'] for b in r.data] == [recent.id]

    r = desk_client.get(reverse('bills'), {'startDate': today})
    assert r.status_code == 400
    assert 'endDate' in r.data['error']['message']
    assert desk_client.get(reverse('bills'), {'endDate': today}).status_code == 400
    assert desk_client.get(reverse('bills'), {'startDate': '2030-01-05', 'endDate': '2030-01-02'}).status_code == 400


def test_bill_manual_status(desk_client, patient):
    bill = create_bill(patient_id=patient.id, items=[LineItem(description='X-ray', rate=Decimal('40'))])
    url = reverse('bill_detail', args=[bill.id])
    assert desk_client.put(url, {'status': 'paid'}, format='json').status_code == 400
    r = desk_client.put(url, {'status': 'cancelled'}, format='json')
    assert r.status_code == 200
    assert r.data['bill']['status'] == Bill.STATUS_CANCELLED


def test_billing_summary_and_invoice(desk_client, patient):
    bill = create_bill(patient_id=patient.id, items=[LineItem(description='Consultation', rate=Decimal('500'))])
    r = desk_client.get(reverse('billing_summary'))
    assert r.status_code == 200
    assert r.data['totalOutstanding'] == Decimal('500.00')

    r = desk_client.get(reverse('bill_invoice', args=[bill.id]))
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/pdf'
    assert r.content.startswith(b'%PDF')


def test_doctors_have_no_billing_access(doctor_client, patient):
    bill = create_bill(patient_id=patient.id, items=[LineItem(description='Consultation', rate=Decimal('10'))])
    assert doctor_client.get(reverse('bill_invoice', args=[bill.id])).status_code == 403


# ---------------------------------------------------------------------
# Reports and dashboard
# ---------------------------------------------------------------------
def test_report_data_patients(desk_client, patient):
    Patient.objects.create(name='Old Timer', status='inactive')
    today = timezone.localdate().isoformat()
    r = desk_client.get(reverse('report_data'), {'type': 'patients', 'startDate': today, 'endDate': today})
    assert r.status_code == 200
    assert r.data['summary'] == {'totalPatients': 2, 'activePatients': 1, 'inactivePatients': 1}
    assert r.data['meta']['statusFilter'] == 'all'

    r = desk_client.get(reverse('report_data'), {
        'type': 'patients', 'startDate': today, 'endDate': today, 'status': 'active',
    })
    assert [p['id'] for p in r.data['data']] == [patient.id]


def test_report_data_validation(desk_client):
    r = desk_client.get(reverse('report_data'), {'type': 'payroll', 'startDate': '2030-01-01', 'endDate': '2030-01-02'})
    assert r.status_code == 400
    r = desk_client.get(reverse('report_data'), {'type': 'patients', 'startDate': '2030-01-05', 'endDate': '2030-01-02'})
    assert r.status_code == 400


def test_report_data_billing_range(desk_client, patient):
    create_bill(patient_id=patient.id, items=[LineItem(description='Lab', rate=Decimal('80'))])
    old = create_bill(patient_id=patient.id, items=[LineItem(description='Lab', rate=Decimal('20'))])
    Bill.objects.filter(pk=old.pk).update(billing_date=timezone.now() - timedelta(days=40))
    today = timezone.localdate().isoformat()
    r = desk_client.get(reverse('report_data'), {'type': 'billing', 'startDate': today, 'endDate': today})
    assert r.data['summary']['totalBills'] == 1
    assert r.data['summary']['totalAmount'] == Decimal('80.00')
    assert r.data['summary']['unpaid'] == 1


@pytest.mark.parametrize('name', ['report_patients_pdf', 'report_appointments_pdf'])
def test_pdf_reports(desk_client, appointment, name):
    r = desk_client.post(reverse(name), {'dateRange': {'start': '2030-01-01', 'end': '2030-01-31'}}, format='json')
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/pdf'
    assert 'attachment; filename=' in r['Content-Disposition']
    assert r.content.startswith(b'%PDF')


def test_doctor_pdf_is_not_for_front_desk(desk_client, doctor_client, doctor):
    assert desk_client.post(reverse('report_doctors_pdf'), {}, format='json').status_code == 403
    r = doctor_client.post(reverse('report_doctors_pdf'), {}, format='json')
    assert r.status_code == 200
    assert r.content.startswith(b'%PDF')


def test_dashboard_is_admin_only(admin_client, desk_client, appointment, bed):
    assert desk_client.get(reverse('admin_dashboard')).status_code == 403
    r = admin_client.get(reverse('admin_dashboard'))
    assert r.status_code == 200
    assert r.data['doctors'] == 1
    assert r.data['patients'] == 1
    assert r.data['beds']['available'] == 1
    assert r.data['recentAppointments'][0]['id'] == appointment.id


def test_healthz(client):
    r = client.get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}


# ---------------------------------------------------------------------
# Management commands
# ---------------------------------------------------------------------
def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users', '--password', 'Demo-pass1', stdout=StringIO())
    call_command('ensure_test_users', '--password', 'Demo-pass1', stdout=StringIO())
    assert User.objects.count() == 3
    doc = User.objects.get(username='doctor@hospital.test')
    assert doc.role == Role.DOCTOR
    assert doc.check_password('Demo-pass1')


def test_migrations_match_models():
    # exits non-zero when the models have drifted from the migrations
    call_command('makemigrations', 'clinic', '--check', '--dry-run', stdout=StringIO())


def test_refresh_bill_statuses(patient):
    bill = create_bill(patient_id=patient.id, items=[LineItem(description='Lab', rate=Decimal('10'))])
    Bill.objects.filter(pk=bill.pk).update(due_date=timezone.localdate() - timedelta(days=2))

    out = StringIO()
    call_command('refresh_bill_statuses', '--dry-run', stdout=out)
    assert '(dry run)' in out.getvalue()
    assert Bill.objects.get(pk=bill.pk).status == Bill.STATUS_GENERATED

    call_command('refresh_bill_statuses', stdout=StringIO())
    assert Bill.objects.get(pk=bill.pk).status == Bill.STATUS_OVERDUE


def test_reconcile_occupancy_command(ward, bed, patient):
    Bed.objects.filter(pk=bed.pk).update(status=Bed.STATUS_OCCUPIED, patient=patient)
    out = StringIO()
    call_command('reconcile_occupancy', stdout=out)
    assert '1 ward(s) corrected' in out.getvalue()
    assert Ward.objects.get(pk=ward.pk).current_occupancy == 1


def test_me_reports_each_role():
    for role in Role.values:
        user = make_staff(f'{role}-x@test.local', role)
        assert client_for(user).get(reverse('me_view')).data['user']['role'] == role
