"""
Order exports: Excel sheet (openpyxl), PDF delivery labels and PNG receipts
(Pillow + python-barcode).
"""
import io
import logging
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

import barcode
from barcode.writer import ImageWriter
from django.conf import settings
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment
from openpyxl.utils import get_column_letter
from PIL import Image, ImageDraw, ImageFont

from .option_details import describe_item

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    ('Order Number', 20),
    ('Order Date', 18),
    ('Customer Name', 20),
    ('Customer Phone', 15),
    ('Customer Location', 30),
    ('Province', 15),
    ('Products', 50),
    ('Subtotal', 12),
    ('Delivery Price', 14),
    ('Company Delivery Price', 20),
    ('Total Price', 12),
    ('Status', 12),
    ('Paid', 8),
    ('Driver', 18),
]

# 100 x 150 mm label at 150 DPI
LABEL_WIDTH = 591
LABEL_HEIGHT = 886
LABEL_DPI = 150
RECEIPT_WIDTH = 576  # 80 mm roll at ~180 DPI


def format_export_date(value) -> str:
    if not value:
        return ''
    local = timezone.localtime(value, ZoneInfo(settings.EXPORT_TIMEZONE))
    return local.strftime('%b %d, %Y %I:%M %p')


def products_text(order, separator='; ') -> str:
    return separator.join(describe_item(item.product_name, item.quantity, item.option_details)
                          for item in order.items.all())


def order_export_row(order) -> list:
    return [
        order.order_number,
        format_export_date(order.order_at),
        order.customer_name,
        order.customer_phone,
        order.customer_location,
        order.province,
        products_text(order),
        float(order.subtotal_price),
        float(order.delivery_price),
        float(order.company_delivery_price),
        float(order.total_price),
        order.state,
        'Yes' if order.is_paid else 'No',
        order.driver_name or 'Unassigned',
    ]


def build_orders_workbook(orders: Iterable, title: str = 'Orders') -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append([name for name, _ in EXPORT_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for index, (_, width) in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    count = 0
    for order in orders:
        ws.append(order_export_row(order))
        count += 1

    money_columns = range(8, 12)
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            if cell.column in money_columns:
                cell.number_format = '"$"#,##0.00'
            elif cell.column == 7:
                cell.alignment = Alignment(wrap_text=True, vertical='top')
    ws.freeze_panes = 'A2'

    output = io.BytesIO()
    wb.save(output)
    logger.info(f"Built orders workbook with {count} rows")
    return output.getvalue()


def _load_fonts():
    """(large, medium, small) fonts; falls back to Pillow's default font"""
    for bold, regular in (
        ('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf', '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'),
        ('arialbd.ttf', 'arial.ttf'),
    ):
        try:
            return (ImageFont.truetype(bold, 30), ImageFont.truetype(regular, 22),
                    ImageFont.truetype(regular, 18))
        except (OSError, IOError):
            continue
    default = ImageFont.load_default()
    return default, default, default


def _wrap(draw, text: str, font, max_width: int) -> List[str]:
    lines = []
    for paragraph in (text or '').split('\n'):
        current = ''
        for word in paragraph.split():
            candidate = f"{current} {word}".strip()
            if draw.textlength(candidate, font=font) <= max_width or not current:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


def render_barcode(value: str, width: int, height: int) -> Optional[Image.Image]:
    """Code128 barcode scaled into width x height, or None when it cannot be rendered"""
    try:
        code128 = barcode.get_barcode_class('code128')
        barcode_img = code128(value, writer=ImageWriter()).render({
            'write_text': False,
            'module_width': 0.3,
            'module_height': 15.0,
            'quiet_zone': 2.0,
            'background': 'white',
            'foreground': 'black',
        })
    except Exception as e:
        logger.error(f"Barcode generation failed for '{value}': {str(e)}")
        return None
    return barcode_img.resize((width, height), Image.Resampling.BILINEAR)


def _draw_lines(draw, x, y, lines, font, spacing=6):
    for line in lines:
        draw.text((x, y), line, fill='black', font=font)
        bbox = draw.textbbox((0, 0), line or ' ', font=font)
        y += (bbox[3] - bbox[1]) + spacing
    return y


def render_order_label(order) -> Image.Image:
    """One delivery label page: header, customer block, barcode and items"""
    font_large, font_medium, font_small = _load_fonts()
    img = Image.new('RGB', (LABEL_WIDTH, LABEL_HEIGHT), color='white')
    draw = ImageDraw.Draw(img)
    margin = 24
    content_width = LABEL_WIDTH - 2 * margin

    y = _draw_lines(draw, margin, margin, [order.order_number], font_large)
    y = _draw_lines(draw, margin, y, [format_export_date(order.order_at)], font_small)
    draw.line((margin, y + 4, LABEL_WIDTH - margin, y + 4), fill='black', width=2)
    y += 16

    customer = [order.customer_name, order.customer_phone]
    customer += _wrap(draw, f"{order.customer_location}, {order.province}".strip(', '), font_medium, content_width)
    y = _draw_lines(draw, margin, y, customer, font_medium)

    barcode_img = render_barcode(order.order_number, content_width, 110)
    if barcode_img is not None:
        img.paste(barcode_img, (margin, y + 8))
        y += 126

    y = _draw_lines(draw, margin, y, _wrap(draw, products_text(order, '\n'), font_small, content_width), font_small)
    y += 8
    draw.line((margin, y, LABEL_WIDTH - margin, y), fill='black', width=1)
    totals = [
        f"Total: ${order.total_price:.2f}  {'PAID' if order.is_paid else 'COD'}",
        f"Driver: {order.driver_name or 'Unassigned'}",
    ]
    if order.remark:
        totals += _wrap(draw, f"Remark: {order.remark}", font_small, content_width)
    _draw_lines(draw, margin, y + 8, totals, font_medium)
    return img


def build_orders_pdf(orders: Iterable) -> bytes:
    """Multi-page PDF, one label per order"""
    pages = [render_order_label(order) for order in orders]
    if not pages:
        pages = [Image.new('RGB', (LABEL_WIDTH, LABEL_HEIGHT), color='white')]
    output = io.BytesIO()
    pages[0].save(output, 'PDF', resolution=LABEL_DPI, save_all=True, append_images=pages[1:])
    logger.info(f"Built orders PDF with {len(pages)} pages")
    return output.getvalue()


def build_receipt_png(order) -> bytes:
    """Printable receipt with the order number as a Code128 barcode"""
    font_large, font_medium, font_small = _load_fonts()
    margin = 16
    content_width = RECEIPT_WIDTH - 2 * margin

    # measure on a scratch canvas first so the receipt height fits its content
    scratch = ImageDraw.Draw(Image.new('RGB', (1, 1)))
    item_rows = [
        (_wrap(scratch, describe_item(item.product_name, item.quantity, item.option_details),
               font_small, content_width - 110), f"${item.line_total:.2f}")
        for item in order.items.all()
    ]
    height = 420 + 30 * sum(len(lines) for lines, _ in item_rows)

    img = Image.new('RGB', (RECEIPT_WIDTH, height), color='white')
    draw = ImageDraw.Draw(img)
    y = _draw_lines(draw, margin, margin, [order.order_number], font_large)
    y = _draw_lines(draw, margin, y, [format_export_date(order.order_at), order.customer_name, order.customer_phone],
                    font_small)

    barcode_img = render_barcode(order.order_number, content_width, 90)
    if barcode_img is not None:
        img.paste(barcode_img, (margin, y + 6))
        y += 106

    for lines, amount in item_rows:
        draw.text((RECEIPT_WIDTH - margin - draw.textlength(amount, font=font_small), y), amount,
                  fill='black', font=font_small)
        y = _draw_lines(draw, margin, y, lines, font_small)

    draw.line((margin, y + 4, RECEIPT_WIDTH - margin, y + 4), fill='black', width=1)
    _draw_lines(draw, margin, y + 12, [
        f"Subtotal: ${order.subtotal_price:.2f}",
        f"Delivery: ${order.delivery_price:.2f}",
        f"Total: ${order.total_price:.2f}",
    ], font_medium)

    output = io.BytesIO()
    img.save(output, format='PNG', optimize=True)
    return output.getvalue()
