from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.models import Bill
from clinic.services.billing import ABSORBING, apply_derivation, recompute_bill


class Command(BaseCommand):
    help = "Re-derive amounts and status of open bills so past-due bills become overdue."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="report changes without saving them")

    def handle(self, *args, **options):
        today = timezone.localdate()
        changed = 0
        qs = Bill.objects.exclude(status__in=ABSORBING).exclude(status=Bill.STATUS_PAID)
        for bill in qs.iterator():
            before = bill.status
            if options["dry_run"]:
                apply_derivation(bill, list(bill.items.values_list("amount", flat=True)), today=today)
                if bill.status != before:
                    changed += 1
                    self.stdout.write(f"bill {bill.id}: {before} -> {bill.status} (dry run)")
                continue
            if recompute_bill(bill, today=today):
                changed += 1
                self.stdout.write(f"bill {bill.id}: {before} -> {bill.status}")
        self.stdout.write(self.style.SUCCESS(f"{changed} bill(s) updated on {today}"))
