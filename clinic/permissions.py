"""
Role based access control.

Every protected operation of the API is named by an ``Operation`` and the
``PERMISSION_MATRIX`` lists which roles may perform it.  Views declare the
operation they implement once, at the boundary, through ``allow(op)``:

    @permission_classes([IsAuthenticated, allow(Operation.PATIENT_CREATE)])

so that the question "who may do what" has a single answer in this file.
"""
from __future__ import annotations

import enum

from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission

from .models import Role


class Operation(str, enum.Enum):
    STAFF_REGISTER = 'staff.register'

    DOCTOR_VIEW = 'doctor.view'
    DOCTOR_CREATE = 'doctor.create'
    DOCTOR_UPDATE = 'doctor.update'
    DOCTOR_DELETE = 'doctor.delete'

    PATIENT_VIEW = 'patient.view'
    PATIENT_CREATE = 'patient.create'
    PATIENT_UPDATE = 'patient.update'
    PATIENT_DELETE = 'patient.delete'

    APPOINTMENT_VIEW = 'appointment.view'
    APPOINTMENT_BOOK = 'appointment.book'
    APPOINTMENT_UPDATE = 'appointment.update'
    APPOINTMENT_DELETE = 'appointment.delete'
    SLOTS_VIEW = 'slots.view'

    PRESCRIPTION_VIEW = 'prescription.view'
    PRESCRIPTION_CREATE = 'prescription.create'
    PRESCRIPTION_UPDATE = 'prescription.update'
    PRESCRIPTION_DELETE = 'prescription.delete'

    FOLLOWUP_SCHEDULE = 'followup.schedule'
    FOLLOWUP_VIEW = 'followup.view'
    FOLLOWUP_UPDATE = 'followup.update'
    FOLLOWUP_DELETE = 'followup.delete'
    FOLLOWUP_NOTIFY = 'followup.notify'

    WARD_VIEW = 'ward.view'
    WARD_CREATE = 'ward.create'

    BED_VIEW = 'bed.view'
    BED_CREATE = 'bed.create'
    BED_ASSIGN = 'bed.assign'
    BED_DISCHARGE = 'bed.discharge'
    BED_MAINTENANCE = 'bed.maintenance'

    BILL_VIEW = 'bill.view'
    BILL_CREATE = 'bill.create'
    BILL_UPDATE = 'bill.update'
    BILL_PAYMENT = 'bill.payment'
    BILL_INVOICE = 'bill.invoice'
    BILL_SUMMARY = 'bill.summary'

    REPORT_DATA = 'report.data'
    REPORT_PATIENTS_PDF = 'report.patients_pdf'
    REPORT_DOCTORS_PDF = 'report.doctors_pdf'
    REPORT_APPOINTMENTS_PDF = 'report.appointments_pdf'

    DASHBOARD_VIEW = 'dashboard.view'


_SHARED = {
    Operation.DOCTOR_VIEW,
    Operation.PATIENT_VIEW,
    Operation.PATIENT_UPDATE,
    Operation.APPOINTMENT_VIEW,
    Operation.APPOINTMENT_BOOK,
    Operation.APPOINTMENT_UPDATE,
    Operation.SLOTS_VIEW,
    Operation.PRESCRIPTION_VIEW,
    Operation.PRESCRIPTION_UPDATE,
    Operation.REPORT_PATIENTS_PDF,
    Operation.REPORT_APPOINTMENTS_PDF,
}

_FRONT_DESK = {
    Operation.PATIENT_CREATE,
    Operation.WARD_VIEW,
    Operation.BED_VIEW,
    Operation.BED_CREATE,
    Operation.BED_MAINTENANCE,
    Operation.BILL_VIEW,
    Operation.BILL_CREATE,
    Operation.BILL_UPDATE,
    Operation.BILL_PAYMENT,
    Operation.BILL_INVOICE,
    Operation.BILL_SUMMARY,
    Operation.REPORT_DATA,
}

PERMISSION_MATRIX: dict[str, frozenset[Operation]] = {
    Role.ADMIN: frozenset(_SHARED | _FRONT_DESK | {
        Operation.STAFF_REGISTER,
        Operation.DOCTOR_CREATE,
        Operation.DOCTOR_UPDATE,
        Operation.DOCTOR_DELETE,
        Operation.PATIENT_DELETE,
        Operation.APPOINTMENT_DELETE,
        Operation.PRESCRIPTION_DELETE,
        Operation.WARD_CREATE,
        Operation.REPORT_DOCTORS_PDF,
        Operation.DASHBOARD_VIEW,
    }),
    Role.DOCTOR: frozenset(_SHARED | {
        Operation.PRESCRIPTION_CREATE,
        Operation.FOLLOWUP_SCHEDULE,
        Operation.FOLLOWUP_VIEW,
        Operation.FOLLOWUP_UPDATE,
        Operation.FOLLOWUP_DELETE,
        Operation.FOLLOWUP_NOTIFY,
        Operation.REPORT_DOCTORS_PDF,
    }),
    Role.RECEPTIONIST: frozenset(_SHARED | _FRONT_DESK | {
        Operation.BED_ASSIGN,
        Operation.BED_DISCHARGE,
        Operation.FOLLOWUP_SCHEDULE,
    }),
}


def can(user, op: Operation) -> bool:
    """Return True when ``user`` is authenticated and its role grants ``op``."""
    if not (user and getattr(user, 'is_authenticated', False)):
        return False
    return op in PERMISSION_MATRIX.get(getattr(user, 'role', None), frozenset())


def allow(op: Operation) -> type[BasePermission]:
    """Build a DRF permission class granting exactly the roles allowed ``op``."""

    class _Allowed(BasePermission):
        message = f'your role is not allowed to perform {op.value}'

        def has_permission(self, request, view) -> bool:  # type: ignore[override]
            return can(getattr(request, 'user', None), op)

    _Allowed.__name__ = f'Allow[{op.value}]'
    _Allowed.__qualname__ = _Allowed.__name__
    return _Allowed


def require(user, op: Operation) -> None:
    """Raise PermissionDenied unless ``user`` may perform ``op``.

    For views serving several operations under one URL, where the
    decorator can only check the operation they all share.
    """
    if not can(user, op):
        raise PermissionDenied(f'your role is not allowed to perform {op.value}')
