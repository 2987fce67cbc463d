"""
Billing views: bills, payments, the financial summary and PDF invoices.
"""
from __future__ import annotations

from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFoundError
from ..models import Bill
from ..permissions import Operation, allow, require
from ..serializers.billing import (
    BillCreateSerializer,
    BillListQuerySerializer,
    BillUpdateSerializer,
    PaymentSerializer,
    line_items,
)
from ..services.billing import create_bill, financial_summary, record_payment, update_bill
from ..services.identifiers import invoice_number
from ..services.pdf import render_invoice
from ..services.reports import day_bounds


def serialize_bill(b: Bill, *, detail: bool = False) -> dict:
    data = {
        'id': b.id,
        'invoiceNumber': invoice_number(b),
        'patient': {'id': b.patient_id, 'name': b.patient.name},
        'bed': {'id': b.bed_id, 'bedNumber': b.bed.bed_number} if b.bed_id else None,
        'billingDate': b.billing_date.isoformat(),
        'dueDate': b.due_date.isoformat() if b.due_date else None,
        'subtotal': b.subtotal,
        'tax': b.tax,
        'discount': b.discount,
        'totalAmount': b.total_amount,
        'paidAmount': b.paid_amount,
        'balance': b.balance,
        'status': b.status,
        'notes': b.notes,
    }
    if detail:
        data['items'] = [
            {
                'description': i.description,
                'quantity': i.quantity,
                'rate': i.rate,
                'amount': i.amount,
                'taxRate': i.tax_rate,
                'discount': i.discount,
                'category': i.category,
            }
            for i in b.items.all()
        ]
        data['payments'] = [
            {
                'id': p.id,
                'amount': p.amount,
                'paymentMethod': p.payment_method,
                'transactionId': p.transaction_id,
                'notes': p.notes,
                'date': p.date.isoformat(),
            }
            for p in b.payments.all()
        ]
    return data


def _get_bill(pk: int) -> Bill:
    b = (
        Bill.objects.select_related('patient', 'bed')
        .prefetch_related('items', 'payments')
        .filter(pk=pk)
        .first()
    )
    if not b:
        raise NotFoundError('billing record not found')
    return b


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow(Operation.BILL_VIEW)])
def bills(request):
    if request.method == 'POST':
        require(request.user, Operation.BILL_CREATE)
        s = BillCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        bill = create_bill(
            patient_id=vd['patientId'],
            bed_id=vd.get('bedId'),
            items=line_items(vd['items']),
            discount=vd.get('discount'),
            notes=vd.get('notes', ''),
            due_date=vd.get('dueDate'),
            user=request.user,
        )
        return Response({'ok': True, 'bill': serialize_bill(_get_bill(bill.id), detail=True)},
                        status=status.HTTP_201_CREATED)

    q = BillListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = Bill.objects.select_related('patient', 'bed').order_by('-billing_date', '-id')
    if 'status' in vd:
        qs = qs.filter(status=vd['status'])
    if 'patientId' in vd:
        qs = qs.filter(patient_id=vd['patientId'])
    if 'bedId' in vd:
        qs = qs.filter(bed_id=vd['bedId'])
    if 'startDate' in vd and 'endDate' in vd:
        qs = qs.filter(billing_date__range=day_bounds(vd['startDate'], vd['endDate']))
    return Response([serialize_bill(b) for b in qs])


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.BILL_SUMMARY)])
def billing_summary(request):
    return Response({'ok': True, **financial_summary()})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, allow(Operation.BILL_VIEW)])
def bill_detail(request, pk: int):
    if request.method == 'GET':
        return Response(serialize_bill(_get_bill(pk), detail=True))

    require(request.user, Operation.BILL_UPDATE)
    s = BillUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    update_bill(
        pk,
        items=line_items(vd['items']) if 'items' in vd else None,
        discount=vd.get('discount'),
        notes=vd.get('notes'),
        due_date=vd.get('dueDate'),
        status=vd.get('status'),
        user=request.user,
    )
    return Response({'ok': True, 'bill': serialize_bill(_get_bill(pk), detail=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, allow(Operation.BILL_PAYMENT)])
def payments(request, pk: int):
    s = PaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    record_payment(
        pk,
        amount=vd['amount'],
        payment_method=vd['paymentMethod'],
        transaction_id=vd.get('transactionId', ''),
        notes=vd.get('notes', ''),
        user=request.user,
    )
    return Response({'ok': True, 'bill': serialize_bill(_get_bill(pk), detail=True)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow(Operation.BILL_INVOICE)])
def invoice(request, pk: int):
    bill = _get_bill(pk)
    pdf = render_invoice(bill)
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="invoice-{invoice_number(bill)}.pdf"'
    return response
