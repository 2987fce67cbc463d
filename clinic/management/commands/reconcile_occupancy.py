from django.core.management.base import BaseCommand
from django.db import transaction

from clinic.services.occupancy import reconcile_ward_occupancy


class Command(BaseCommand):
    help = "Recompute every ward's occupancy counter from its occupied beds."

    def handle(self, *args, **options):
        with transaction.atomic():
            fixed = reconcile_ward_occupancy()
        for ward, old, new in fixed:
            self.stdout.write(self.style.WARNING(f"{ward.name}: {old} -> {new}"))
        self.stdout.write(self.style.SUCCESS(f"{len(fixed)} ward(s) corrected"))
