"""
API tests for booking, rescheduling and slot availability.

The double-booking rule is checked end to end here: a doctor's slot is
held by at most one appointment that is not cancelled, whether the
appointment is created, moved or revived.
"""
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Appointment, Patient, Role, User

DAY = '2030-01-07'


class AppointmentAPITests(APITestCase):
    def setUp(self) -> None:
        self.desk = User.objects.create_user(
            username='desk@test.local', email='desk@test.local', password='P@ssw0rd1', role=Role.RECEPTIONIST,
        )
        self.doctor = User.objects.create_user(
            username='doc@test.local', email='doc@test.local', password='P@ssw0rd1', role=Role.DOCTOR,
            first_name='Dan', specialization='Cardiology',
        )
        self.patient = Patient.objects.create(name='John Smith', age=40, gender='male', contact='555-0100')
        self.other_patient = Patient.objects.create(name='Jane Roe', age=33, gender='female', contact='555-0101')
        self.client = self.authenticate(self.desk)

    def authenticate(self, user: User) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def book(self, patient=None, time='09:30', day=DAY):
        return self.client.post(reverse('appointments'), {
            'doctorId': self.doctor.id,
            'patientId': (patient or self.patient).id,
            'date': day,
            'time': time,
            'reason': 'checkup',
        }, format='json')

    def test_book_returns_created_appointment(self):
        r = self.book()
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        appt = r.data['appointment']
        self.assertEqual(appt['time'], '09:30')
        self.assertEqual(appt['status'], Appointment.STATUS_SCHEDULED)
        self.assertEqual(appt['doctor']['id'], self.doctor.id)
        self.assertFalse(appt['hasPrescription'])

    def test_double_booking_is_a_conflict(self):
        self.assertEqual(self.book().status_code, status.HTTP_201_CREATED)
        r = self.book(patient=self.other_patient)
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(r.data['ok'])
        self.assertEqual(r.data['error']['code'], 'conflict')
        self.assertEqual(Appointment.objects.count(), 1)

    def test_cancelled_slot_can_be_booked_again(self):
        first = self.book().data['appointment']
        r = self.client.put(reverse('appointment_detail', args=[first['id']]),
                            {'status': Appointment.STATUS_CANCELLED}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(self.book(patient=self.other_patient).status_code, status.HTTP_201_CREATED)

        # reviving the cancelled one would now double-book the slot
        r = self.client.put(reverse('appointment_detail', args=[first['id']]),
                            {'status': Appointment.STATUS_SCHEDULED}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)

    def test_moving_onto_a_taken_slot_is_rejected(self):
        self.book(time='09:00')
        second = self.book(patient=self.other_patient, time='10:00').data['appointment']
        url = reverse('appointment_detail', args=[second['id']])

        r = self.client.put(url, {'time': '09:00'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Appointment.objects.get(pk=second['id']).time, '10:00')

        r = self.client.put(url, {'time': '11:30', 'notes': 'moved'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['appointment']['time'], '11:30')

    def test_updating_without_moving_does_not_conflict_with_itself(self):
        appt = self.book().data['appointment']
        r = self.client.put(reverse('appointment_detail', args=[appt['id']]),
                            {'time': '09:30', 'status': Appointment.STATUS_COMPLETED}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['appointment']['status'], Appointment.STATUS_COMPLETED)

    def test_time_outside_the_slot_catalog_is_rejected(self):
        for bad in ('09:15', '17:00', '08:30'):
            r = self.book(time=bad)
            self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST, bad)
            self.assertEqual(r.data['error']['code'], 'validation_error')
        self.assertEqual(self.book(time='9:30').status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_fields_are_reported(self):
        r = self.client.post(reverse('appointments'), {'doctorId': self.doctor.id}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        for field in ('patientId', 'date', 'time'):
            self.assertIn(field, r.data['error']['message'])

    def test_unknown_doctor_or_patient(self):
        r = self.client.post(reverse('appointments'), {
            'doctorId': self.desk.id, 'patientId': self.patient.id, 'date': DAY, 'time': '09:00',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        r = self.client.post(reverse('appointments'), {
            'doctorId': self.doctor.id, 'patientId': 99999, 'date': DAY, 'time': '09:00',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_available_slots_exclude_live_bookings(self):
        self.book(time='09:00')
        cancelled = self.book(patient=self.other_patient, time='10:00').data['appointment']
        Appointment.objects.filter(pk=cancelled['id']).update(status=Appointment.STATUS_CANCELLED)

        r = self.client.get(reverse('available_slots', args=[self.doctor.id, DAY]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['totalSlots'], 16)
        self.assertNotIn('09:00', r.data['availableSlots'])
        self.assertIn('10:00', r.data['availableSlots'])
        self.assertEqual(len(r.data['availableSlots']), 15)

    def test_available_slots_bad_input(self):
        r = self.client.get(reverse('available_slots', args=[self.doctor.id, 'tomorrow']))
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.get(reverse('available_slots', args=[self.desk.id, DAY]))
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_filters_and_doctor_view(self):
        self.book(time='09:00')
        self.book(patient=self.other_patient, time='09:30')
        r = self.client.get(reverse('appointments'), {'patientId': self.other_patient.id})
        self.assertEqual([a['time'] for a in r.data], ['09:30'])

        r = self.authenticate(self.doctor).get(reverse('doctor_appointments', args=[self.doctor.id]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([a['time'] for a in r.data], ['09:00', '09:30'])

    def test_only_admin_deletes(self):
        appt = self.book().data['appointment']
        url = reverse('appointment_detail', args=[appt['id']])
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)
        admin = User.objects.create_user(username='a@test.local', email='a@test.local', password='x', role=Role.ADMIN)
        self.assertEqual(self.authenticate(admin).delete(url).status_code, status.HTTP_200_OK)
        self.assertFalse(Appointment.objects.filter(pk=appt['id']).exists())
