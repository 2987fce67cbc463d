"""
Report queries.

``report_data`` backs the JSON reports endpoint: for a report type and an
inclusive date range it returns the matching rows, a summary of counts
or amounts, and meta information echoing the query.  The ``*_rows``
helpers feed the PDF listing reports.
"""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from django.db.models import Count, Q, Sum
from django.utils import timezone

from clinic.models import Appointment, Bed, Bill, Patient, Role, User
from clinic.services.billing import ZERO, money
from clinic.services.identifiers import invoice_number

REPORT_TYPES = ('patients', 'appointments', 'billing', 'beds')


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Aware datetimes spanning the first to the last instant of the range."""
    tz = timezone.get_current_timezone()
    return (
        timezone.make_aware(datetime.combine(start, time.min), tz),
        timezone.make_aware(datetime.combine(end, time.max), tz),
    )


def _day(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = timezone.localtime(value)
    return f'{value:%Y-%m-%d}'


def _patients(lo, hi, status):
    qs = Patient.objects.filter(created_at__range=(lo, hi)).order_by('-created_at')
    if status:
        qs = qs.filter(status=status)
    data = [{
        'id': p.id,
        'patientCode': p.patient_code,
        'name': p.name,
        'age': p.age,
        'gender': p.gender,
        'contact': p.contact,
        'condition': p.condition,
        'status': p.status,
        'registeredDate': _day(p.created_at),
    } for p in qs]
    summary = {
        'totalPatients': len(data),
        'activePatients': sum(1 for p in data if p['status'] == 'active'),
        'inactivePatients': sum(1 for p in data if p['status'] == 'inactive'),
    }
    return data, summary


def _appointments(lo, hi, status):
    qs = (
        Appointment.objects.select_related('patient', 'doctor')
        .filter(created_at__range=(lo, hi))
        .order_by('-date', '-time')
    )
    if status:
        qs = qs.filter(status=status)
    data = [{
        'id': a.id,
        'date': _day(a.date),
        'time': a.time,
        'status': a.status,
        'reason': a.reason,
        'patientName': a.patient.name,
        'patientContact': a.patient.contact,
        'doctorName': a.doctor.name,
        'doctorSpecialization': a.doctor.specialization,
    } for a in qs]
    summary = {'totalAppointments': len(data)}
    for key, _label in Appointment.STATUS_CHOICES:
        summary[key] = sum(1 for a in data if a['status'] == key)
    return data, summary


def _billing(lo, hi, status):
    qs = (
        Bill.objects.select_related('patient', 'bed')
        .filter(billing_date__range=(lo, hi))
        .order_by('-billing_date')
    )
    if status:
        qs = qs.filter(status=status)
    bills = list(qs)
    data = [{
        'id': b.id,
        'invoiceNumber': invoice_number(b),
        'patientName': b.patient.name,
        'patientContact': b.patient.contact,
        'bedNumber': b.bed.bed_number if b.bed_id else None,
        'totalAmount': b.total_amount,
        'paidAmount': b.paid_amount,
        'balance': b.balance,
        'status': b.status,
        'billingDate': _day(b.billing_date),
        'dueDate': _day(b.due_date),
    } for b in bills]
    summary = {
        'totalBills': len(bills),
        'totalAmount': money(sum((b.total_amount for b in bills), ZERO)),
        'totalPaid': money(sum((b.paid_amount for b in bills), ZERO)),
        'totalBalance': money(sum((b.balance for b in bills), ZERO)),
        'paid': sum(1 for b in bills if b.status == Bill.STATUS_PAID),
        'partial': sum(1 for b in bills if b.status == Bill.STATUS_PARTIAL),
        'unpaid': sum(1 for b in bills if b.status in (Bill.STATUS_GENERATED, Bill.STATUS_OVERDUE)),
    }
    return data, summary


def _beds(lo, hi, status):
    qs = (
        Bed.objects.select_related('patient', 'ward')
        .filter(created_at__range=(lo, hi))
        .order_by('bed_number')
    )
    if status:
        qs = qs.filter(status=status)
    data = [{
        'id': b.id,
        'bedNumber': b.bed_number,
        'status': b.status,
        'wardName': b.ward.name,
        'wardType': b.ward.type,
        'patientName': b.patient.name if b.patient_id else None,
        'patientContact': b.patient.contact if b.patient_id else None,
        'admissionDate': _day(b.admission_date),
        'ratePerDay': b.rate_per_day,
        'updatedAt': _day(b.updated_at),
    } for b in qs]
    summary = {'totalBeds': len(data)}
    for key, _label in Bed.STATUS_CHOICES:
        summary[key] = sum(1 for b in data if b['status'] == key)
    return data, summary


_BUILDERS = {
    'patients': _patients,
    'appointments': _appointments,
    'billing': _billing,
    'beds': _beds,
}


def report_data(report_type: str, start: date, end: date, status: Optional[str] = None) -> dict:
    lo, hi = day_bounds(start, end)
    if status == 'all':
        status = None
    data, summary = _BUILDERS[report_type](lo, hi, status)
    return {
        'data': data,
        'summary': summary,
        'meta': {
            'type': report_type,
            'startDate': start.isoformat(),
            'endDate': end.isoformat(),
            'statusFilter': status or 'all',
            'count': len(data),
            'generatedAt': timezone.now().isoformat(),
        },
    }


def patient_rows(start: Optional[date] = None, end: Optional[date] = None):
    qs = Patient.objects.order_by('-created_at')
    if start and end:
        qs = qs.filter(created_at__range=day_bounds(start, end))
    return [[p.name, p.age, p.gender, p.contact, p.status.capitalize()] for p in qs]


def doctor_rows(start: Optional[date] = None, end: Optional[date] = None):
    qs = User.objects.filter(role=Role.DOCTOR).order_by('-date_joined')
    if start and end:
        qs = qs.filter(date_joined__range=day_bounds(start, end))
    return [[d.name, d.specialization, d.phone, d.email, d.status.capitalize()] for d in qs]


def appointment_rows(start: Optional[date] = None, end: Optional[date] = None):
    qs = Appointment.objects.select_related('patient', 'doctor').order_by('-date', '-time')
    if start and end:
        qs = qs.filter(date__range=(start, end))
    return [
        [f'{a.date:%m/%d/%Y} {a.time}', a.patient.name, a.doctor.name, a.doctor.specialization, a.status.capitalize()]
        for a in qs
    ]


def dashboard_counts() -> dict:
    today = timezone.localdate()
    appts = Appointment.objects.aggregate(
        total=Count('id'),
        today=Count('id', filter=Q(date=today)),
        upcoming=Count('id', filter=Q(date__gte=today, status=Appointment.STATUS_SCHEDULED)),
        completed=Count('id', filter=Q(status=Appointment.STATUS_COMPLETED)),
        cancelled=Count('id', filter=Q(status=Appointment.STATUS_CANCELLED)),
    )
    beds = Bed.objects.aggregate(
        total=Count('id'),
        occupied=Count('id', filter=Q(status=Bed.STATUS_OCCUPIED)),
        available=Count('id', filter=Q(status=Bed.STATUS_AVAILABLE)),
        maintenance=Count('id', filter=Q(status=Bed.STATUS_MAINTENANCE)),
    )
    outstanding = (
        Bill.objects.exclude(status__in=[Bill.STATUS_CANCELLED, Bill.STATUS_REFUNDED])
        .aggregate(total=Sum('balance'))['total']
    )
    return {
        'doctors': User.objects.filter(role=Role.DOCTOR).count(),
        'receptionists': User.objects.filter(role=Role.RECEPTIONIST).count(),
        'patients': Patient.objects.count(),
        'appointments': appts,
        'beds': beds,
        'outstandingBalance': money(outstanding or ZERO),
    }
