"""
report_builder.py — Serialization of ExportPayloads into downloadable files.

Generates:
- Excel (.xlsx)  one styled sheet, frozen header, auto-width columns
- CSV            every cell quoted, header line first
- PDF            A4 (landscape for wide tables), generated-on line, striped table, footer
- Distribution chart PNG for the dashboard

The serializers only see headers + rows, never records, so adding a report
kind never touches this module.
"""

import csv
import io
import logging
from datetime import datetime
from typing import List, Sequence
from xml.sax.saxutils import escape

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from analytics.models import BucketCount, ExportFormat, ExportPayload

logger = logging.getLogger(__name__)


MEDIA_TYPES = {
    ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.CSV: "text/csv",
    ExportFormat.PDF: "application/pdf",
}

# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK = colors.HexColor("#1a1a2e")
LIGHT_GREY = colors.HexColor("#f5f5f5")
WHITE = colors.white

MPL_PALETTE = ["#27ae60", "#2ecc71", "#f1c40f", "#f39c12", "#e67e22", "#e74c3c"]

# Sheet titles are capped at 31 characters and may not contain these.
_SHEET_FORBIDDEN = "[]:*?/\\"


def filename_for(payload: ExportPayload, fmt: ExportFormat) -> str:
    return f"{payload.filename}.{ExportFormat(fmt).value}"


# ── Helpers ─────────────────────────────────────────────────────────

def _footer(canvas, doc, school_name: str):
    """Draw school name and date in the page footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{school_name} | Generated {datetime.now().strftime('%d %B %Y, %H:%M')}"
    canvas.drawString(2 * cm, 1.2 * cm, footer_text)
    canvas.drawRightString(doc.pagesize[0] - 2 * cm, 1.2 * cm, f"Page {doc.page}")
    canvas.restoreState()


def _styles():
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ReportTitle", parent=ss["Title"],
            fontSize=18, leading=22, textColor=BRAND_DARK,
            spaceAfter=3 * mm,
        ),
        "small": ParagraphStyle(
            "ReportSmall", parent=ss["Normal"],
            fontSize=8, leading=10, textColor=colors.grey,
        ),
        "cell": ParagraphStyle(
            "ReportCell", parent=ss["Normal"],
            fontSize=7, leading=9,
        ),
    }


def _make_table(data: List[List], col_widths=None, header_color=BRAND_DARK):
    """Create a styled table with a repeated header row."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), header_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 8),
        ("FONTSIZE", (0, 1), (-1, -1), 7),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]
    if len(data) > 1:
        style_cmds.append(("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY]))
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def _sheet_title(title: str) -> str:
    cleaned = "".join("-" if ch in _SHEET_FORBIDDEN else ch for ch in title).strip()
    return (cleaned or "Report")[:31]


# ═══════════════════════════════════════════════════════════════════
# EXCEL
# ═══════════════════════════════════════════════════════════════════

def to_xlsx(payload: ExportPayload) -> bytes:
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    wb = Workbook()
    ws = wb.active
    ws.title = _sheet_title(payload.title)
    ws.sheet_properties.tabColor = "1a1a2e"

    ws.append(list(payload.headers))
    for row in payload.rows:
        ws.append(list(row))

    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        cell.border = thin_border

    for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        for cell in row:
            cell.border = thin_border

    ws.freeze_panes = "A2"

    # Auto-width columns
    for col_cells in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 40)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════════════
# CSV
# ═══════════════════════════════════════════════════════════════════

def to_csv(payload: ExportPayload) -> bytes:
    df = pd.DataFrame(payload.rows, columns=payload.headers, dtype=str)
    text = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return text.encode("utf-8")


# ═══════════════════════════════════════════════════════════════════
# PDF
# ═══════════════════════════════════════════════════════════════════

def to_pdf(payload: ExportPayload, school_name: str = "School") -> bytes:
    st = _styles()
    wide = len(payload.headers) > 6
    pagesize = landscape(A4) if wide else A4

    story = [
        Paragraph(escape(payload.title), st["title"]),
        Paragraph(f"Generated on: {datetime.now().strftime('%d/%m/%Y')}", st["small"]),
        Spacer(1, 5 * mm),
    ]

    # Paragraph cells wrap long remarks instead of overflowing the page.
    data = [list(payload.headers)]
    data.extend([Paragraph(escape(str(cell)), st["cell"]) for cell in row] for row in payload.rows)

    usable = pagesize[0] - 4 * cm
    col_widths = [usable / max(len(payload.headers), 1)] * len(payload.headers)
    story.append(_make_table(data, col_widths=col_widths))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=pagesize,
        leftMargin=2 * cm,
        rightMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2.5 * cm,
        title=payload.title,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )
    return buf.getvalue()


def serialize(payload: ExportPayload, fmt: ExportFormat, school_name: str = "School") -> bytes:
    """Render ``payload`` in the requested format."""
    fmt = ExportFormat(fmt)
    logger.info("Serializing %s (%d rows) as %s", payload.filename, len(payload.rows), fmt.value)
    if fmt == ExportFormat.XLSX:
        return to_xlsx(payload)
    if fmt == ExportFormat.CSV:
        return to_csv(payload)
    return to_pdf(payload, school_name=school_name)


# ── Charts ──────────────────────────────────────────────────────────

def distribution_chart(buckets: Sequence[BucketCount], title: str = "Score Distribution") -> bytes:
    """Bar chart of a bucketed distribution, as PNG bytes."""
    labels = [b.label for b in buckets]
    values = [b.count for b in buckets]

    fig, ax = plt.subplots(figsize=(7, 3.5))
    bar_colors = [MPL_PALETTE[i % len(MPL_PALETTE)] for i in range(len(labels))]
    bars = ax.bar(labels, values, color=bar_colors, edgecolor="white", linewidth=0.5)
    for bar, bucket in zip(bars, buckets):
        ax.text(bar.get_x() + bar.get_width() / 2, bar.get_height() + 0.1,
                f"{bucket.count} ({bucket.percentage:.1f}%)",
                ha="center", va="bottom", fontsize=7)
    ax.set_ylabel("Records", fontsize=10)
    ax.set_title(title, fontsize=12, fontweight="bold", pad=12)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.tick_params(axis="x", rotation=20, labelsize=8)
    fig.tight_layout()

    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()
