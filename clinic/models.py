"""
Database models for the hospital management backend.

These models capture the front-desk concepts of the system: staff users
with a role, patients, appointments with their prescriptions and
follow-ups, wards and beds, and bills with line items and payments.
Cross-request invariants (one live appointment per doctor slot, ward
occupancy within capacity, a bed holds a patient only while occupied)
are declared as database constraints so that concurrent requests cannot
break them.
"""
from __future__ import annotations

from decimal import Decimal

from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Role(models.TextChoices):
    ADMIN = 'admin', 'Administrator'
    DOCTOR = 'doctor', 'Doctor'
    RECEPTIONIST = 'receptionist', 'Receptionist'


class UserManager(DjangoUserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', Role.ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """Hospital staff account.

    Roles are 'admin', 'doctor' and 'receptionist'.  Doctors carry a
    specialization and are the targets of appointments and follow-ups.
    Staff log in with their e-mail address, which is also stored as the
    username.
    """
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.RECEPTIONIST, db_index=True)
    staff_id = models.CharField(max_length=32, unique=True, null=True, blank=True)
    specialization = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    schedule = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=32, default='active')
    avatar = models.CharField(max_length=512, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    @property
    def name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    """A registered patient.  Appointments, beds and bills reference it."""
    patient_code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=16, blank=True)
    contact = models.CharField(max_length=64, blank=True)
    condition = models.CharField(max_length=255, blank=True)
    blood_type = models.CharField(max_length=8, blank=True)
    # 'active' / 'inactive', used by the patient report summary
    status = models.CharField(max_length=16, default='active', db_index=True)
    registered_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='registered_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.patient_code or self.id})"


class Appointment(models.Model):
    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='appointments')
    doctor = models.ForeignKey(User, on_delete=models.PROTECT, related_name='doctor_appointments')
    date = models.DateField()
    # Slot start as "HH:MM"
    time = models.CharField(max_length=5)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    booked_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='booked_appointments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'date', 'time'],
                condition=~Q(status='cancelled'),
                name='uniq_live_appointment_per_doctor_slot',
            ),
        ]
        indexes = [
            models.Index(fields=['doctor', 'date'], name='clinic_appo_doctor__5f1c2e_idx'),
        ]

    def __str__(self) -> str:
        return f"appt {self.id} d={self.doctor_id} {self.date} {self.time} [{self.status}]"


class Prescription(models.Model):
    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='prescription')
    notes = models.TextField(blank=True)
    prescribed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"rx for appt {self.appointment_id}"


class Medication(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='meds')
    position = models.PositiveSmallIntegerField(default=0)
    name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=128, blank=True)
    frequency = models.CharField(max_length=128, blank=True)

    class Meta:
        ordering = ['position', 'id']

    def __str__(self) -> str:
        return f"{self.name} {self.dosage}".strip()


class FollowUp(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='followups')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='followups')
    follow_up_date = models.DateField()
    notified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['doctor', 'follow_up_date'], name='clinic_foll_doctor__8a3b1d_idx')]

    def __str__(self) -> str:
        return f"follow-up p={self.patient_id} d={self.doctor_id} on {self.follow_up_date}"


class Ward(models.Model):
    TYPE_CHOICES = [
        ('general', 'General'),
        ('icu', 'ICU'),
        ('private', 'Private'),
        ('semi-private', 'Semi-private'),
        ('pediatric', 'Pediatric'),
        ('maternity', 'Maternity'),
    ]

    name = models.CharField(max_length=128, unique=True)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    capacity = models.PositiveIntegerField()
    # Kept equal to the number of occupied beds in this ward
    current_occupancy = models.PositiveIntegerField(default=0)
    floor = models.PositiveSmallIntegerField(default=1)
    in_charge = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=Q(current_occupancy__lte=F('capacity')),
                name='ward_occupancy_within_capacity',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.current_occupancy}/{self.capacity})"


class Bed(models.Model):
    STATUS_AVAILABLE = 'available'
    STATUS_OCCUPIED = 'occupied'
    STATUS_MAINTENANCE = 'maintenance'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_OCCUPIED, 'Occupied'),
        (STATUS_MAINTENANCE, 'Maintenance'),
    ]

    bed_number = models.CharField(max_length=32, unique=True)
    ward = models.ForeignKey(Ward, on_delete=models.PROTECT, related_name='beds')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_AVAILABLE, db_index=True)
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.PROTECT, related_name='beds')
    admission_date = models.DateTimeField(null=True, blank=True)
    # Expected discharge while occupied
    discharge_date = models.DateTimeField(null=True, blank=True)
    rate_per_day = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    features = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    last_updated_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(Q(status='occupied') & Q(patient__isnull=False))
                | (~Q(status='occupied') & Q(patient__isnull=True)),
                name='bed_patient_iff_occupied',
            ),
        ]

    def __str__(self) -> str:
        return f"bed {self.bed_number} [{self.status}]"


class Bill(models.Model):
    STATUS_DRAFT = 'draft'
    STATUS_GENERATED = 'generated'
    STATUS_PARTIAL = 'partial'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'
    STATUS_REFUNDED = 'refunded'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_GENERATED, 'Generated'),
        (STATUS_PARTIAL, 'Partially paid'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_REFUNDED, 'Refunded'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='bills')
    bed = models.ForeignKey(Bed, null=True, blank=True, on_delete=models.SET_NULL, related_name='bills')
    billing_date = models.DateTimeField(default=timezone.now, db_index=True)
    due_date = models.DateField(null=True, blank=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    updated_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"bill {self.id} p={self.patient_id} {self.total_amount} [{self.status}]"


class BillItem(models.Model):
    CATEGORY_CHOICES = [
        ('room', 'Room'),
        ('medication', 'Medication'),
        ('procedure', 'Procedure'),
        ('test', 'Test'),
        ('other', 'Other'),
    ]

    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name='items')
    position = models.PositiveSmallIntegerField(default=0)
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    rate = models.DecimalField(max_digits=12, decimal_places=2)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    category = models.CharField(max_length=16, choices=CATEGORY_CHOICES, blank=True)

    class Meta:
        ordering = ['position', 'id']

    def __str__(self) -> str:
        return f"{self.description} x{self.quantity}"


class Payment(models.Model):
    METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('credit_card', 'Credit card'),
        ('debit_card', 'Debit card'),
        ('bank_transfer', 'Bank transfer'),
        ('upi', 'UPI'),
        ('insurance', 'Insurance'),
        ('other', 'Other'),
    ]

    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=16, choices=METHOD_CHOICES)
    transaction_id = models.CharField(max_length=128, blank=True)
    notes = models.TextField(blank=True)
    date = models.DateTimeField(default=timezone.now)
    recorded_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')

    class Meta:
        ordering = ['date', 'id']

    def __str__(self) -> str:
        return f"payment {self.amount} on bill {self.bill_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='clinic_audi_action_0c9d4e_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='clinic_audi_object__7e2f6a_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.object_type}#{self.object_id}"
