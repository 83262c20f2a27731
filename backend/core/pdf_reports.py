"""
Table-style PDF reports rendered with reportlab.

Used for the transaction and checklist exports delivered to Telegram.
"""
import io
from xml.sax.saxutils import escape
import logging

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

HEADER_BG = HexColor("#003366")
GRID = HexColor("#B0BEC5")
STRIPE = HexColor("#F4F7FA")


def render_table_pdf(title, subtitle_lines, headers, rows, col_widths=None, wide=False):
    """
    Render a single-table report and return the PDF bytes.

    Args:
        title: Report heading
        subtitle_lines: Lines printed under the heading (tenant, period, ...)
        headers: Column headers
        rows: List of row value lists, stringified on render
        col_widths: Optional column widths in points
        wide: Use landscape A4 instead of portrait
    """
    buffer = io.BytesIO()
    page_size = landscape(A4) if wide else A4
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        leftMargin=12 * mm,
        rightMargin=12 * mm,
        topMargin=12 * mm,
        bottomMargin=12 * mm,
        title=title,
    )
    styles = getSampleStyleSheet()
    cell_style = styles['BodyText']
    cell_style.fontSize = 8
    cell_style.leading = 10

    story = [Paragraph(escape(title), styles['Title'])]
    for line in subtitle_lines or []:
        story.append(Paragraph(escape(line), styles['Normal']))
    story.append(Spacer(1, 6 * mm))

    data = [headers]
    for row in rows:
        data.append([Paragraph(escape(str(value)) if value is not None else '-', cell_style) for value in row])
    if not rows:
        data.append(['No data'] + [''] * (len(headers) - 1))

    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ('FONT', (0, 0), (-1, 0), 'Helvetica-Bold', 9),
        ('BACKGROUND', (0, 0), (-1, 0), HEADER_BG),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), (STRIPE, colors.white)),
        ('GRID', (0, 0), (-1, -1), .25, GRID),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story.append(table)

    doc.build(story)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    logger.debug(f"Rendered PDF '{title}' with {len(rows)} rows ({len(pdf_bytes)} bytes)")
    return pdf_bytes
