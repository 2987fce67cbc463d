"""
Human readable identifiers for staff, patients and invoices.

Staff ids look like ``DOC-2025-0007`` (``REC-`` for receptionists, ``ADM-``
for administrators) and patient codes like ``PT-2025-00042``.  The
sequence restarts every calendar year and continues from the highest id
already issued for the prefix and year.  The columns are unique, so two
requests racing for the same number end in an IntegrityError (409)
instead of a duplicate.
"""
from __future__ import annotations

from datetime import date

from django.utils import timezone

from clinic.models import Patient, Role, User

STAFF_PREFIX = {
    Role.DOCTOR: 'DOC',
    Role.RECEPTIONIST: 'REC',
    Role.ADMIN: 'ADM',
}


def _next_code(queryset, field: str, prefix: str, year: int, width: int) -> str:
    stem = f'{prefix}-{year}-'
    last = (
        queryset.filter(**{f'{field}__startswith': stem})
        .order_by(f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    seq = 1
    if last:
        try:
            seq = int(last.rsplit('-', 1)[1]) + 1
        except (IndexError, ValueError):
            seq = 1
    return f'{stem}{seq:0{width}d}'


def next_staff_id(role: str, today: date | None = None) -> str:
    year = (today or timezone.localdate()).year
    prefix = STAFF_PREFIX.get(role, 'STAFF')
    return _next_code(User.objects.all(), 'staff_id', prefix, year, 4)


def next_patient_code(today: date | None = None) -> str:
    year = (today or timezone.localdate()).year
    return _next_code(Patient.objects.all(), 'patient_code', 'PT', year, 5)


def invoice_number(bill) -> str:
    """``INV-YYMMDD-XXXX``: billing date plus the last four digits of the bill id."""
    issued = timezone.localtime(bill.billing_date) if timezone.is_aware(bill.billing_date) else bill.billing_date
    return f"INV-{issued:%y%m%d}-{bill.pk % 10000:04d}"
