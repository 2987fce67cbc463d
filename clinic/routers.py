"""
URL mappings for the hospital backend API.

Paths carry no trailing slash; resource collections live at
``api/<resource>`` and single records at ``api/<resource>/<id>``.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, me_view, register_view
from .views import appointments, billing, doctors, followups, health, patients, prescriptions, reports, wards
from .views.dashboard import admin_dashboard

urlpatterns = [
    # exposes /metrics
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),

    # Authentication
    path('api/auth/register', register_view, name='register_view'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/logout', jwt_logout_view, name='logout_view'),
    path('api/auth/refresh', jwt_refresh_view, name='refresh_view'),
    path('api/auth/me', me_view, name='me_view'),

    # Dashboard
    path('api/admin/dashboard', admin_dashboard, name='admin_dashboard'),

    # Doctors
    path('api/doctors', doctors.doctors, name='doctors'),
    path('api/doctors/<int:pk>', doctors.doctor_detail, name='doctor_detail'),

    # Patients
    path('api/patients', patients.patients, name='patients'),
    path('api/patients/<int:pk>', patients.patient_detail, name='patient_detail'),

    # Appointments
    path('api/appointments', appointments.appointments, name='appointments'),
    path('api/appointments/<int:pk>', appointments.appointment_detail, name='appointment_detail'),
    path('api/appointments/doctor/<int:doctor_id>', appointments.doctor_appointments, name='doctor_appointments'),
    path('api/appointments/doctor/<int:doctor_id>/available-slots/<str:day>',
         appointments.doctor_available_slots, name='available_slots'),

    # Prescriptions
    path('api/prescriptions', prescriptions.prescriptions, name='prescriptions'),
    path('api/prescriptions/appointment/<int:appointment_id>', prescriptions.appointment_prescription,
         name='appointment_prescription'),
    path('api/prescriptions/doctor/<int:doctor_id>', prescriptions.doctor_prescriptions, name='doctor_prescriptions'),
    path('api/prescriptions/<int:pk>', prescriptions.prescription_detail, name='prescription_detail'),

    # Follow-ups
    path('api/followups', followups.schedule_followup, name='followups'),
    path('api/followups/doctor/<int:doctor_id>', followups.doctor_followups, name='doctor_followups'),
    path('api/followups/<int:pk>', followups.followup_detail, name='followup_detail'),
    path('api/followups/<int:pk>/notify', followups.mark_notified, name='followup_notify'),

    # Wards & beds
    path('api/wards', wards.wards, name='wards'),
    path('api/wards/<int:pk>', wards.ward_detail, name='ward_detail'),
    path('api/beds', wards.beds, name='beds'),
    path('api/beds/<int:pk>/assign', wards.assign, name='bed_assign'),
    path('api/beds/<int:pk>/discharge', wards.discharge, name='bed_discharge'),
    path('api/beds/<int:pk>/status', wards.bed_status, name='bed_status'),

    # Billing
    path('api/billing', billing.bills, name='bills'),
    path('api/billing/summary', billing.billing_summary, name='billing_summary'),
    path('api/billing/<int:pk>', billing.bill_detail, name='bill_detail'),
    path('api/billing/<int:pk>/payments', billing.payments, name='bill_payments'),
    path('api/billing/<int:pk>/invoice', billing.invoice, name='bill_invoice'),

    # Reports
    path('api/reports', reports.report_data, name='report_data'),
    path('api/reports/patients', reports.patients_pdf, name='report_patients_pdf'),
    path('api/reports/doctors', reports.doctors_pdf, name='report_doctors_pdf'),
    path('api/reports/appointments', reports.appointments_pdf, name='report_appointments_pdf'),
]
