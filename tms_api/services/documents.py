# tms_api/services/documents.py
"""
Quote documents (Excel and PDF) and generic HTML-to-PDF rendering.

Both quote formats print the same 13 columns per order item; see
QUOTE_HEADERS_MN / QUOTE_HEADERS_EN.
"""
import logging
import os
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from xhtml2pdf import pisa

from tms_api.config import settings
from tms_api.core.pricing import quote_line, quote_totals
from tms_api.services.sheets_client import Lookups, lookup_name

logger = logging.getLogger(__name__)


class DocumentRenderError(Exception):
    pass


QUOTE_HEADERS_MN = [
    '№', 'Үйлчилгээний төрөл', 'Ачааны мэдээлэл', 'Тээвэр эхлэх цэг',
    'Тээвэр дуусах цэг', 'Нийт зай', 'Машины төрөл', 'Даац, Тэвшний хэмжээ',
    'Үнэлгээ', 'Хэмжээ нэгж', 'Нийт хөлс ₮', 'НӨАТ ₮', 'Нийт дүн ₮',
]
QUOTE_HEADERS_EN = [
    'No', 'Service Type', 'Cargo Info', 'Loading Point', 'Unloading Point', 'Distance',
    'Vehicle Type', 'Trailer Size', 'Unit Price', 'Qty', 'Subtotal', 'VAT', 'Total',
]

QUOTE_NOTES_MN = [
    'Ачилт: Захиалагч тал хариуцна',
    'Буулгалт: Захиалагч тал хариуцна',
    'ТХ-ийн бэлэн байдал: 24 цаг',
    'Тээвэрлэлтийн хугацаа: Стандартаар 48 цагын хугацаанд тээвэрлэлт хийнэ.',
    'Төлбөрийн нөхцөл: Гэрээний дагуу',
    'Даатгал: Тээвэрлэгчийн хариуцлагын даатгал /3 тэрбум/',
]
QUOTE_NOTES_EN = [
    'Loading: Customer responsibility',
    'Unloading: Customer responsibility',
    'Vehicle availability: 24 hours',
    'Transportation time: Standard 48 hours',
    'Payment terms: According to contract',
    'Insurance: Carrier liability /3 billion/',
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _cargo_description(cargo_items: List[Dict[str, Any]]) -> str:
    parts = []
    for cargo in cargo_items or []:
        text = cargo.get("name") or ""
        if cargo.get("quantity") and cargo.get("unit"):
            text = f"{text} ({cargo['quantity']} {cargo['unit']})".strip()
        if text:
            parts.append(text)
    return ", ".join(parts)


def _location(lookups: Lookups, region_id: Optional[str], warehouse_id: Optional[str]) -> str:
    names = [
        lookup_name(lookups, "regions", region_id, default=""),
        lookup_name(lookups, "warehouses", warehouse_id, default=""),
    ]
    return ", ".join(n for n in names if n)


def quote_rows(order_items: List[Dict[str, Any]], lookups: Lookups, vat_rate: float) -> List[Dict[str, Any]]:
    """Resolves each order item into the values printed on a quote line."""
    rows = []
    for index, item in enumerate(order_items):
        figures = quote_line(item.get("finalPrice"), item.get("frequency"), item.get("withVAT", False), vat_rate)
        distance = item.get("totalDistance")
        rows.append({
            "no": index + 1,
            "serviceType": lookup_name(lookups, "service_types", item.get("serviceTypeId"), default=""),
            "cargo": _cargo_description(item.get("cargoItems", [])),
            "start": _location(lookups, item.get("startRegionId"), item.get("startWarehouseId")),
            "end": _location(lookups, item.get("endRegionId"), item.get("endWarehouseId")),
            "distance": f"{distance:g}км" if distance else "",
            "vehicleType": lookup_name(lookups, "vehicle_types", item.get("vehicleTypeId"), default=""),
            "trailerType": lookup_name(lookups, "trailer_types", item.get("trailerTypeId"), default=""),
            **figures,
        })
    return rows


def build_quote_workbook(
    order: Dict[str, Any],
    order_items: List[Dict[str, Any]],
    lookups: Lookups,
    quote_number: str,
    now: datetime,
    vat_rate: float = 0.1,
) -> bytes:
    if not order_items:
        raise ValueError("Invalid input data: no order items")

    wb = Workbook()
    ws = wb.active
    ws.title = 'Үнийн санал'
    ws.page_setup.orientation = 'landscape'
    ws.page_setup.paperSize = ws.PAPERSIZE_A4
    small = Font(size=10)

    # Company header
    for row, text in ((1, settings.COMPANY_CITY), (3, settings.COMPANY_NAME),
                      (4, settings.COMPANY_ADDRESS), (7, settings.COMPANY_PHONE)):
        ws.merge_cells(f'A{row}:F{row}')
        ws[f'A{row}'] = text
        ws[f'A{row}'].font = small
    ws.merge_cells('A6:F6')
    ws['A6'] = settings.COMPANY_WEBSITE
    ws['A6'].hyperlink = f"http://{settings.COMPANY_WEBSITE}"
    ws['A6'].font = Font(size=10, color='FF0000FF', underline='single')

    # Bill to
    ws['A9'] = 'BILL TO'
    ws['A9'].font = Font(bold=True, size=10)
    for row, key in ((10, 'customerName'), (11, 'employeeName'), (12, 'employeeEmail'), (13, 'employeePhone')):
        ws[f'A{row}'] = order.get(key) or ''
        ws[f'A{row}'].font = small

    ws['L10'], ws['M10'] = 'Quote No:', quote_number
    ws['L11'], ws['M11'] = 'Quote Date:', f"{now.month}/{now.day}/{now.year}"

    thin = Side(style='thin')
    border = Border(top=thin, left=thin, bottom=thin, right=thin)

    header_fill = PatternFill(start_color='FF4F81BD', end_color='FF4F81BD', fill_type='solid')
    for col, header in enumerate(QUOTE_HEADERS_MN, start=1):
        cell = ws.cell(row=15, column=col, value=header)
        cell.fill = header_fill
        cell.font = Font(color='FFFFFFFF', bold=True, size=9)
        cell.alignment = Alignment(vertical='center', horizontal='center', wrap_text=True)
        cell.border = border
    ws.row_dimensions[15].height = 45

    current_row = 16
    for line in quote_rows(order_items, lookups, vat_rate):
        values = [
            line["no"], line["serviceType"], line["cargo"], line["start"], line["end"], line["distance"],
            line["vehicleType"], line["trailerType"], line["unitPrice"], line["frequency"],
            line["priceBeforeVat"], line["vatAmount"], line["finalPrice"],
        ]
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=current_row, column=col, value=value)
            cell.alignment = Alignment(vertical='center', horizontal='left', wrap_text=True)
            cell.border = border
            cell.font = Font(size=9)
        for col in (1, 10):
            ws.cell(row=current_row, column=col).alignment = Alignment(vertical='center', horizontal='center', wrap_text=True)
        for col in (9, 11, 12, 13):
            cell = ws.cell(row=current_row, column=col)
            cell.number_format = '#,##0'
            cell.alignment = Alignment(vertical='center', horizontal='right', wrap_text=True)
        ws.row_dimensions[current_row].height = 60
        current_row += 1

    # Notes
    current_row += 1
    ws[f'A{current_row}'] = 'Тайлбар'
    ws[f'A{current_row}'].font = Font(bold=True, size=10)
    ws[f'A{current_row}'].fill = PatternFill(start_color='FFD9D9D9', end_color='FFD9D9D9', fill_type='solid')
    current_row += 1

    first = order_items[0]
    route = (f"{lookup_name(lookups, 'warehouses', first.get('startWarehouseId'), default='')} - "
             f"{lookup_name(lookups, 'warehouses', first.get('endWarehouseId'), default='')}")
    notes = QUOTE_NOTES_MN[:2] + [f'Маршрут: {route}'] + QUOTE_NOTES_MN[2:]
    ws.merge_cells(f'A{current_row}:M{current_row + 6}')
    notes_cell = ws[f'A{current_row}']
    notes_cell.value = "\n".join(notes)
    notes_cell.alignment = Alignment(vertical='top', horizontal='left', wrap_text=True)
    notes_cell.font = Font(size=9)

    for letter, width in zip("ABCDEFGHIJKLM", (5, 15, 35, 18, 18, 12, 15, 18, 12, 10, 14, 12, 14)):
        ws.column_dimensions[letter].width = width

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _register_unicode_fonts() -> Optional[Dict[str, str]]:
    """Registers NotoSans from the font dir; returns None when it is unavailable."""
    regular = os.path.join(settings.PDF_FONT_DIR, "NotoSans-Regular.ttf")
    bold = os.path.join(settings.PDF_FONT_DIR, "NotoSans-Bold.ttf")
    if not os.path.exists(regular):
        return None
    try:
        pdfmetrics.registerFont(TTFont("NotoSans", regular))
        bold_name = "NotoSans"
        if os.path.exists(bold):
            pdfmetrics.registerFont(TTFont("NotoSans-Bold", bold))
            bold_name = "NotoSans-Bold"
        return {"regular": "NotoSans", "bold": bold_name}
    except Exception as e:
        logger.error(f"Font loading error: {e}", exc_info=True)
        return None


def _text(value: Any) -> str:
    # Paragraphs parse markup
    return escape(str(value if value is not None else ""))


def _latin1_safe(value: Any) -> str:
    # Helvetica only covers Latin-1
    return "".join(ch for ch in _text(value) if ord(ch) < 256)


def build_quote_pdf(
    order: Dict[str, Any],
    order_items: List[Dict[str, Any]],
    lookups: Lookups,
    quote_number: str,
    now: datetime,
    vat_rate: float = 0.1,
) -> bytes:
    if not order_items:
        raise ValueError("Invalid input data: no order items")

    fonts = _register_unicode_fonts()
    unicode_ok = fonts is not None
    regular, bold = (fonts["regular"], fonts["bold"]) if unicode_ok else ("Helvetica", "Helvetica-Bold")
    clean = _text if unicode_ok else _latin1_safe

    styles = getSampleStyleSheet()
    body = ParagraphStyle('QuoteBody', parent=styles['Normal'], fontName=regular, fontSize=8, leading=10)
    head = ParagraphStyle('QuoteHead', parent=body, fontName=bold, textColor=colors.white, alignment=1)
    text = ParagraphStyle('QuoteText', parent=body, fontSize=10, leading=14)
    brand = ParagraphStyle('QuoteBrand', parent=text, fontName=bold, fontSize=18, leading=22,
                           textColor=colors.HexColor('#FF6600'), alignment=2)

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4), leftMargin=14 * mm, rightMargin=14 * mm,
                            topMargin=12 * mm, bottomMargin=12 * mm)
    elements = [Paragraph(clean(settings.COMPANY_BRAND), brand)]
    for line in (settings.COMPANY_CITY, settings.COMPANY_NAME, settings.COMPANY_ADDRESS,
                 settings.COMPANY_WEBSITE, settings.COMPANY_PHONE):
        elements.append(Paragraph(clean(line), text))
    elements.append(Spacer(1, 10))

    bill_to = [
        [Paragraph('<b>BILL TO</b>', text), '', Paragraph('Quote No:', text), Paragraph(f'<b>{clean(quote_number)}</b>', text)],
        [Paragraph(clean(order.get('customerName')), text), '', Paragraph('Quote Date:', text),
         Paragraph(f"{now.month}/{now.day}/{now.year}", text)],
        [Paragraph(clean(order.get('employeeName')), text), '', '', ''],
        [Paragraph(clean(order.get('employeeEmail')), text), '', '', ''],
        [Paragraph(clean(order.get('employeePhone')), text), '', '', ''],
    ]
    elements.append(Table(bill_to, colWidths=[90 * mm, 110 * mm, 30 * mm, 35 * mm]))
    elements.append(Spacer(1, 12))

    headers = QUOTE_HEADERS_MN if unicode_ok else QUOTE_HEADERS_EN
    data = [[Paragraph(clean(h), head) for h in headers]]
    for line in quote_rows(order_items, lookups, vat_rate):
        cells = [
            str(line["no"]), line["serviceType"], line["cargo"], line["start"], line["end"],
            line["distance"], line["vehicleType"], line["trailerType"],
            f"{round(line['unitPrice']):,}", str(line["frequency"]),
            f"{round(line['priceBeforeVat']):,}", f"{round(line['vatAmount']):,}", f"{round(line['finalPrice']):,}",
        ]
        data.append([Paragraph(clean(c), body) for c in cells])

    totals = quote_totals(quote_rows(order_items, lookups, vat_rate))
    data.append([''] * 10 + [Paragraph(f"<b>{round(totals[k]):,}</b>", body)
                             for k in ("priceBeforeVat", "vatAmount", "finalPrice")])

    col_widths = [w * mm for w in (8, 20, 34, 28, 28, 15, 21, 25, 18, 12, 20, 16, 20)]
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.Color(0.31, 0.51, 0.74)),
        ('GRID', (0, 0), (-1, -2), 0.5, colors.Color(0.8, 0.8, 0.8)),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('PADDING', (0, 0), (-1, -1), 3),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 16))

    elements.append(Paragraph(f"<b>{'Тайлбар' if unicode_ok else 'Notes'}</b>", text))
    for note in (QUOTE_NOTES_MN if unicode_ok else QUOTE_NOTES_EN):
        elements.append(Paragraph(clean(note), body))

    try:
        doc.build(elements)
    except Exception as e:
        logger.error(f"Error generating quote PDF {quote_number}: {e}", exc_info=True)
        raise DocumentRenderError(str(e)) from e
    return buffer.getvalue()


def render_html_pdf(html_content: str, css_content: str) -> bytes:
    """Renders an HTML fragment with its stylesheet to a landscape A4 PDF."""
    page_css = "@page { size: a4 landscape; margin: 10mm; }"
    source = (
        "<!DOCTYPE html><html><head><meta charset=\"UTF-8\" />"
        f"<style>{page_css}\n{css_content}</style></head>"
        f"<body>{html_content}</body></html>"
    )
    buffer = BytesIO()
    result = pisa.CreatePDF(source, dest=buffer, encoding="utf-8")
    if result.err:
        logger.error(f"HTML to PDF conversion reported {result.err} error(s)")
        raise DocumentRenderError("Failed to generate PDF")
    return buffer.getvalue()
