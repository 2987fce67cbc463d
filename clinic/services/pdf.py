"""
PDF rendering with reportlab.

Two kinds of documents are produced: tabular listing reports (patients,
doctors, appointments) and per-bill invoices.  Both are built in memory
with the platypus layout engine and returned as bytes, ready to be sent
as an ``application/pdf`` response.
"""
from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Iterable, Optional, Sequence

from django.conf import settings
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from clinic.services.identifiers import invoice_number

HEADER_COLOR = colors.HexColor('#0b3d60')

_GRID_STYLE = [
    ('BACKGROUND', (0, 0), (-1, 0), HEADER_COLOR),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('FONTSIZE', (0, 0), (-1, -1), 9),
    ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.lightgrey]),
    ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
]


def _title_style():
    styles = getSampleStyleSheet()
    return styles, ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=HEADER_COLOR,
        alignment=1,
        spaceAfter=12,
    )


def _money(value) -> str:
    return f'{settings.CURRENCY_SYMBOL} {value:.2f}'


def na(value) -> str:
    if value is None or value == '':
        return 'N/A'
    return str(value)


def render_table_report(
    title: str,
    headers: Sequence[str],
    rows: Iterable[Sequence],
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=title)
    styles, title_style = _title_style()

    elements = [
        Paragraph(settings.HOSPITAL_NAME, styles['Heading3']),
        Paragraph(title, title_style),
        Paragraph(f"Generated on: {timezone.localtime():%B %d %Y, %I:%M %p}", styles['Normal']),
    ]
    if start and end:
        elements.append(Paragraph(f'Date Range: {start:%m/%d/%Y} - {end:%m/%d/%Y}', styles['Normal']))
    elements.append(Spacer(1, 0.25 * inch))

    data = [list(headers)] + [[na(cell) for cell in row] for row in rows]
    if len(data) == 1:
        elements.append(Paragraph('No records found.', styles['Italic']))
    else:
        table = Table(data, repeatRows=1)
        table.setStyle(TableStyle(_GRID_STYLE))
        elements.append(table)

    doc.build(elements)
    return buffer.getvalue()


def render_invoice(bill) -> bytes:
    buffer = BytesIO()
    number = invoice_number(bill)
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=number)
    styles, title_style = _title_style()

    elements = [
        Paragraph(settings.HOSPITAL_NAME, title_style),
        Paragraph('INVOICE', styles['Heading2']),
        Spacer(1, 0.15 * inch),
    ]

    info = [
        ['Invoice Number:', number],
        ['Billing Date:', f'{timezone.localtime(bill.billing_date):%Y-%m-%d}'],
        ['Due Date:', na(bill.due_date and f'{bill.due_date:%Y-%m-%d}')],
        ['Status:', bill.get_status_display()],
        ['Patient:', bill.patient.name],
        ['Patient Code:', na(bill.patient.patient_code)],
        ['Contact:', na(bill.patient.contact)],
    ]
    if bill.bed_id:
        info.append(['Bed:', bill.bed.bed_number])
    info_table = Table(info, colWidths=[1.6 * inch, 4 * inch])
    info_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements += [info_table, Spacer(1, 0.25 * inch)]

    lines = [['Description', 'Qty', 'Rate', 'Tax %', 'Amount']]
    for item in bill.items.all():
        lines.append([item.description, str(item.quantity), _money(item.rate), f'{item.tax_rate:.2f}', _money(item.amount)])
    items_table = Table(lines, colWidths=[2.8 * inch, 0.6 * inch, 1.1 * inch, 0.7 * inch, 1.2 * inch], repeatRows=1)
    items_table.setStyle(TableStyle(_GRID_STYLE + [('ALIGN', (1, 1), (-1, -1), 'RIGHT')]))
    elements += [items_table, Spacer(1, 0.25 * inch)]

    totals = [
        ['Subtotal:', _money(bill.subtotal)],
        ['Tax:', _money(bill.tax)],
    ]
    if bill.discount > 0:
        totals.append(['Discount:', f'-{_money(bill.discount)}'])
    totals += [
        ['Total Amount:', _money(bill.total_amount)],
        ['Paid Amount:', _money(bill.paid_amount)],
        ['Balance Due:', _money(bill.balance)],
    ]
    totals_table = Table(totals, colWidths=[1.6 * inch, 1.4 * inch], hAlign='RIGHT')
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, -3), (-1, -3), 0.5, colors.black),
    ]))
    elements.append(totals_table)

    payments = list(bill.payments.all())
    if payments:
        elements += [Spacer(1, 0.25 * inch), Paragraph('Payments', styles['Heading3'])]
        rows = [['Date', 'Method', 'Transaction', 'Amount']]
        for p in payments:
            rows.append([f'{timezone.localtime(p.date):%Y-%m-%d}', p.get_payment_method_display(), na(p.transaction_id), _money(p.amount)])
        pay_table = Table(rows, repeatRows=1)
        pay_table.setStyle(TableStyle(_GRID_STYLE))
        elements.append(pay_table)

    elements += [Spacer(1, 0.4 * inch), Paragraph('Thank you for choosing our hospital.', styles['Italic'])]
    doc.build(elements)
    return buffer.getvalue()
