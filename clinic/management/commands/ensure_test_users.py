# clinic/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password

from clinic.models import Role, User
from clinic.services.identifiers import next_staff_id

TEST_SET = [
    ("admin@hospital.test", "Ada Admin", Role.ADMIN, ""),
    ("doctor@hospital.test", "Dan Doctor", Role.DOCTOR, "General Medicine"),
    ("reception@hospital.test", "Rita Reception", Role.RECEPTIONIST, ""),
]


class Command(BaseCommand):
    help = "Ensure demo staff accounts exist, one per role (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="Passw0rd!", help="password set on every demo account")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for email, name, role, specialization in TEST_SET:
            first, _, last = name.partition(" ")
            u, created = User.objects.get_or_create(
                username=email,
                defaults={
                    "email": email,
                    "first_name": first,
                    "last_name": last,
                    "role": role,
                    "specialization": specialization,
                    "staff_id": next_staff_id(role),
                    "password": password,
                    "is_active": True,
                },
            )
            if not created:
                # reset password, role and activation
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role})"))
        self.stdout.write(self.style.SUCCESS("All demo staff ensured."))
