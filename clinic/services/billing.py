"""
Bill amounts, status derivation and payments.

The calculator half of this module is pure: it turns line items and a
discount into subtotal, tax and total, and derives a bill's status from
its balance, payments and due date through an ordered rule table.  The
other half applies those derivations to ``Bill`` rows inside
transactions, so that a bill is always stored consistent with its items
and payments.

Rules, first match wins (cancelled and refunded bills never change):

    balance <= 0                 -> paid
    paid amount > 0              -> partial
    due date before today        -> overdue
    draft with at least one item -> generated
    otherwise                    -> unchanged
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, List, Optional, Sequence

from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from clinic.exceptions import DomainPreconditionError, NotFoundError, ValidationError
from clinic.models import Bed, Bill, BillItem, Patient, Payment
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0')

ABSORBING = frozenset({Bill.STATUS_CANCELLED, Bill.STATUS_REFUNDED})
MANUAL_STATUSES = ABSORBING


def money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    description: str
    rate: Decimal
    quantity: int = 1
    tax_rate: Decimal = ZERO
    discount: Decimal = ZERO
    category: str = ''

    @property
    def amount(self) -> Decimal:
        return money(self.rate * self.quantity)

    @property
    def tax(self) -> Decimal:
        return self.rate * self.quantity * self.tax_rate / 100


@dataclass(frozen=True)
class Amounts:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def calculate_amounts(items: Iterable[LineItem], discount=ZERO) -> Amounts:
    items = list(items)
    subtotal = money(sum((i.rate * i.quantity for i in items), ZERO))
    tax = money(sum((i.tax for i in items), ZERO))
    return Amounts(subtotal=subtotal, tax=tax, total=subtotal + tax - money(discount))


@dataclass(frozen=True)
class StatusFacts:
    status: str
    balance: Decimal
    paid_amount: Decimal
    due_date: Optional[date]
    has_items: bool
    today: date


STATUS_RULES: Sequence[tuple[Callable[[StatusFacts], bool], Optional[str]]] = (
    (lambda f: f.balance <= 0, Bill.STATUS_PAID),
    (lambda f: f.paid_amount > 0, Bill.STATUS_PARTIAL),
    (lambda f: f.due_date is not None and f.due_date < f.today, Bill.STATUS_OVERDUE),
    (lambda f: f.status == Bill.STATUS_DRAFT and f.has_items, Bill.STATUS_GENERATED),
)


def derive_status(facts: StatusFacts) -> str:
    if facts.status in ABSORBING:
        return facts.status
    for matches, result in STATUS_RULES:
        if matches(facts):
            return result
    return facts.status


def apply_derivation(bill: Bill, item_amounts: Sequence[Decimal], today: Optional[date] = None) -> None:
    """Recompute subtotal, total, balance and status of ``bill`` in place.

    The subtotal is the sum of the stored item amounts; tax, discount
    and paid amount are taken as they are on the bill.
    """
    bill.subtotal = money(sum(item_amounts, ZERO))
    bill.total_amount = bill.subtotal + money(bill.tax) - money(bill.discount)
    bill.balance = bill.total_amount - money(bill.paid_amount)
    bill.status = derive_status(StatusFacts(
        status=bill.status,
        balance=bill.balance,
        paid_amount=money(bill.paid_amount),
        due_date=bill.due_date,
        has_items=bool(item_amounts),
        today=today or timezone.localdate(),
    ))


DERIVED_FIELDS = ['subtotal', 'total_amount', 'balance', 'status']


def recompute_bill(bill: Bill, today: Optional[date] = None) -> bool:
    """Re-run the derivation for a stored bill; return True if anything changed."""
    before = tuple(getattr(bill, f) for f in DERIVED_FIELDS)
    amounts = list(bill.items.values_list('amount', flat=True))
    apply_derivation(bill, amounts, today=today)
    after = tuple(getattr(bill, f) for f in DERIVED_FIELDS)
    if before == after:
        return False
    bill.save(update_fields=DERIVED_FIELDS + ['updated_at'])
    return True


def _store_items(bill: Bill, items: List[LineItem]) -> List[BillItem]:
    return BillItem.objects.bulk_create([
        BillItem(
            bill=bill,
            position=pos,
            description=item.description,
            quantity=item.quantity,
            rate=money(item.rate),
            amount=item.amount,
            tax_rate=item.tax_rate,
            discount=money(item.discount),
            category=item.category or '',
        )
        for pos, item in enumerate(items)
    ])


def _check_total(amounts: Amounts) -> None:
    if amounts.total < 0:
        raise ValidationError({'discount': 'discount cannot exceed subtotal plus tax'})


def create_bill(
    *,
    patient_id: int,
    items: List[LineItem],
    bed_id: Optional[int] = None,
    discount=ZERO,
    notes: str = '',
    due_date: Optional[date] = None,
    user=None,
) -> Bill:
    if not items:
        raise ValidationError({'items': 'a bill needs at least one item'})
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise NotFoundError('patient not found')
    bed = None
    if bed_id is not None:
        bed = Bed.objects.filter(pk=bed_id).first()
        if bed is None:
            raise NotFoundError('bed not found')

    amounts = calculate_amounts(items, discount)
    _check_total(amounts)
    with transaction.atomic():
        bill = Bill.objects.create(
            patient=patient,
            bed=bed,
            due_date=due_date,
            subtotal=amounts.subtotal,
            tax=amounts.tax,
            discount=money(discount),
            total_amount=amounts.total,
            balance=amounts.total,
            status=Bill.STATUS_GENERATED,
            notes=notes or '',
            created_by=user,
            updated_by=user,
        )
        stored = _store_items(bill, items)
        apply_derivation(bill, [i.amount for i in stored])
        bill.save(update_fields=DERIVED_FIELDS)

    log_action(user=user, action='bill_create', object_type='bill', object_id=bill.id,
               detail={'patientId': patient.id, 'total': str(bill.total_amount)})
    return bill


def update_bill(
    bill_id: int,
    *,
    items: Optional[List[LineItem]] = None,
    discount=None,
    notes: Optional[str] = None,
    due_date: Optional[date] = None,
    status: Optional[str] = None,
    user=None,
) -> Bill:
    """Edit a bill and re-derive its amounts.

    Replacing the items also re-derives the tax from the new items.  The
    status can only be set by hand to cancelled or refunded; every other
    status follows from the amounts.
    """
    if status is not None and status not in MANUAL_STATUSES:
        raise ValidationError({'status': 'status can only be set to cancelled or refunded'})
    if items is not None and not items:
        raise ValidationError({'items': 'a bill needs at least one item'})

    with transaction.atomic():
        bill = Bill.objects.select_for_update().filter(pk=bill_id).first()
        if bill is None:
            raise NotFoundError('billing record not found')

        if items is not None:
            bill.items.all().delete()
            stored = _store_items(bill, items)
            bill.tax = calculate_amounts(items).tax
            amounts = [i.amount for i in stored]
        else:
            amounts = list(bill.items.values_list('amount', flat=True))
        if discount is not None:
            bill.discount = money(discount)
        if notes is not None:
            bill.notes = notes
        if due_date is not None:
            bill.due_date = due_date
        if status is not None:
            bill.status = status
        bill.updated_by = user

        apply_derivation(bill, amounts)
        if bill.total_amount < 0:
            raise ValidationError({'discount': 'discount cannot exceed subtotal plus tax'})
        bill.save()

    log_action(user=user, action='bill_update', object_type='bill', object_id=bill.id,
               detail={'status': bill.status, 'total': str(bill.total_amount)})
    return bill


def record_payment(
    bill_id: int,
    *,
    amount,
    payment_method: str,
    transaction_id: str = '',
    notes: str = '',
    user=None,
) -> Bill:
    amount = money(amount)
    if amount <= 0:
        raise ValidationError({'amount': 'payment amount must be positive'})

    with transaction.atomic():
        bill = Bill.objects.select_for_update().filter(pk=bill_id).first()
        if bill is None:
            raise NotFoundError('billing record not found')
        if bill.status in ABSORBING:
            raise DomainPreconditionError(f'cannot record a payment on a {bill.status} bill')
        remaining = bill.total_amount - bill.paid_amount
        if amount > remaining:
            raise DomainPreconditionError(f'payment amount exceeds remaining balance of {remaining:.2f}')

        Payment.objects.create(
            bill=bill,
            amount=amount,
            payment_method=payment_method,
            transaction_id=transaction_id or '',
            notes=notes or '',
            recorded_by=user,
        )
        bill.paid_amount = money(bill.paid_amount) + amount
        bill.updated_by = user
        apply_derivation(bill, list(bill.items.values_list('amount', flat=True)))
        bill.save()

    logger.info('payment of %s recorded on bill %s (%s)', amount, bill.id, bill.status)
    log_action(user=user, action='bill_payment', object_type='bill', object_id=bill.id,
               detail={'amount': str(amount), 'method': payment_method, 'status': bill.status})
    return bill


def financial_summary() -> dict:
    totals = Bill.objects.aggregate(
        totalBilled=Sum('total_amount'),
        totalPaid=Sum('paid_amount'),
        totalOutstanding=Sum('balance'),
        count=Count('id'),
    )
    by_status = {
        row['status']: {
            'count': row['count'],
            'amount': money(row['amount'] or ZERO),
        }
        for row in Bill.objects.order_by().values('status').annotate(count=Count('id'), amount=Sum('total_amount'))
    }
    return {
        'totalBilled': money(totals['totalBilled'] or ZERO),
        'totalPaid': money(totals['totalPaid'] or ZERO),
        'totalOutstanding': money(totals['totalOutstanding'] or ZERO),
        'count': totals['count'],
        'byStatus': by_status,
    }
