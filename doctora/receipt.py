"""Booking confirmation PDF.

The styled receipt (tables, colored queue banner) is tried first; if that
raises, a plain text PDF listing the same fields in the same order is
written instead.
"""
from __future__ import annotations
import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .errors import ReceiptError
from .logging_config import get_logger
from .models import BookingDraft, PatientRecord, SelectionType

logger = get_logger(__name__)

BRAND = "doctora"
BRAND_COLOR = colors.Color(40 / 255, 107 / 255, 129 / 255)

SELECTION_LABELS = {
    SelectionType.AUTO: "เลือกแพทย์ให้ฉัน",
    SelectionType.MANUAL: "ฉันต้องการเลือกแพทย์เอง",
}

# Optional TTF with Thai glyphs, e.g. THSarabunNew.ttf
_FONT_PATH = os.getenv("DOCTORA_RECEIPT_FONT")
_FONT_NAME = "ReceiptFont"

Rows = list[tuple[str, str]]


@dataclass
class ReceiptContent:
    queue_number: str
    patient: Rows
    appointment: Rows

    @property
    def filename(self) -> str:
        return f"Booking_{self.queue_number}.pdf"


def selection_label(value: SelectionType | None) -> str:
    if value is None:
        return "-"
    return SELECTION_LABELS.get(value, value.value)


def build_content(queue_number: str, patient: PatientRecord, draft: BookingDraft, doctor_name: str = "") -> ReceiptContent:
    """Receipt rows in their fixed label order."""
    patient_rows = [
        ("คำนำหน้า / Prefix", patient.prefix or "-"),
        ("ชื่อ / First Name", patient.first_name or "-"),
        ("นามสกุล / Last Name", patient.last_name or "-"),
        ("เพศ / Gender", patient.gender or "-"),
        ("วัน/เดือน/ปีเกิด / Date of Birth", patient.date_of_birth.isoformat()),
        ("สัญชาติ / Nationality", patient.nationality or "-"),
        ("เลขบัตรประชาชน / ID Number", patient.national_id or "-"),
        ("เบอร์ติดต่อ / Phone", patient.phone or "-"),
        ("อีเมล / Email", patient.email or "-"),
    ]
    when = f"{draft.selected_date.isoformat() if draft.selected_date else ''} {draft.selected_time}".strip()
    appointment_rows = [
        ("แผนก / Department", draft.department or "-"),
        ("ประเภทการจอง / Booking Type", selection_label(draft.selection_type)),
        ("แพทย์ / Doctor", doctor_name or draft.selected_doctor_name or "-"),
        ("วันที่และเวลา / Date & Time", when or "-"),
    ]
    if draft.illness_description:
        appointment_rows.append(("อาการ / Symptoms", draft.illness_description))
    return ReceiptContent(queue_number, patient_rows, appointment_rows)


def text_lines(content: ReceiptContent) -> list[str]:
    """The receipt as plain lines; used by the text PDF and for logs/tests."""
    lines = [
        BRAND,
        "ใบยืนยันการนัดหมาย",
        "APPOINTMENT CONFIRMATION",
        f"หมายเลขคิว / Queue Number: {content.queue_number}",
        "ข้อมูลผู้ป่วย / PATIENT INFORMATION",
    ]
    lines += [f"{label}: {value}" for label, value in content.patient]
    lines.append("รายละเอียดการนัดหมาย / APPOINTMENT DETAILS")
    lines += [f"{label}: {value}" for label, value in content.appointment]
    lines += [
        "กรุณานำใบยืนยันนี้มาแสดงในวันนัดหมาย",
        "Please bring this confirmation on your appointment date",
    ]
    return lines


def _font(fallback: str) -> str:
    if not _FONT_PATH:
        return fallback
    if _FONT_NAME not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(_FONT_NAME, _FONT_PATH))
    return _FONT_NAME


def render_visual(content: ReceiptContent, path: Path) -> Path:
    font = _font("Helvetica")
    styles = getSampleStyleSheet()
    title = ParagraphStyle("brand", parent=styles["Title"], fontName=font, textColor=BRAND_COLOR, fontSize=24)
    heading = ParagraphStyle("h", parent=styles["Heading3"], fontName=font, textColor=BRAND_COLOR)
    body = ParagraphStyle("b", parent=styles["BodyText"], fontName=font, fontSize=11)

    def table(rows: Rows) -> Table:
        t = Table([[Paragraph(escape(k), body), Paragraph(escape(v), body)] for k, v in rows], colWidths=[70 * mm, 100 * mm])
        t.setStyle(TableStyle([
            ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        return t

    banner = Table([[Paragraph(f"หมายเลขคิว / Queue Number: {content.queue_number}", heading)]], colWidths=[170 * mm])
    banner.setStyle(TableStyle([("BACKGROUND", (0, 0), (-1, -1), colors.aliceblue)]))

    doc = SimpleDocTemplate(str(path), pagesize=A4, leftMargin=15 * mm, rightMargin=15 * mm, topMargin=15 * mm)
    doc.build([
        Paragraph(BRAND, title),
        Paragraph("ใบยืนยันการนัดหมาย / APPOINTMENT CONFIRMATION", heading),
        Spacer(1, 6 * mm),
        banner,
        Spacer(1, 6 * mm),
        Paragraph("ข้อมูลผู้ป่วย / PATIENT INFORMATION", heading),
        table(content.patient),
        Spacer(1, 6 * mm),
        Paragraph("รายละเอียดการนัดหมาย / APPOINTMENT DETAILS", heading),
        table(content.appointment),
        Spacer(1, 10 * mm),
        Paragraph("กรุณานำใบยืนยันนี้มาแสดงในวันนัดหมาย<br/>Please bring this confirmation on your appointment date", body),
    ])
    return path


def render_text(content: ReceiptContent, path: Path) -> Path:
    try:
        font = _font("Helvetica")
    except Exception:  # font file unreadable, keep the built-in face
        font = "Helvetica"
    pdf = canvas.Canvas(str(path), pagesize=A4)
    width, height = A4
    y = height - 25 * mm
    for line in text_lines(content):
        if y < 20 * mm:
            pdf.showPage()
            y = height - 25 * mm
        pdf.setFont(font, 11)
        pdf.drawString(20 * mm, y, line)
        y -= 6 * mm
    pdf.save()
    return path


@dataclass
class ReceiptResult:
    path: Path
    mode: str  # "visual" or "text"


Renderer = Callable[[ReceiptContent, Path], Path]


class ReceiptExporter:
    """Writes ``Booking_{queue}.pdf`` into ``directory``."""

    def __init__(self, directory: str | Path, visual: Renderer = render_visual, text: Renderer = render_text):
        self.directory = Path(directory)
        self.visual = visual
        self.text = text

    async def export(self, content: ReceiptContent) -> ReceiptResult:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / content.filename
        try:
            await asyncio.to_thread(self.visual, content, path)
            return ReceiptResult(path, "visual")
        except Exception as exc:
            logger.warning("receipt.visual_failed", queue_number=content.queue_number, error=str(exc))

        try:
            await asyncio.to_thread(self.text, content, path)
        except Exception as exc:
            logger.error("receipt.text_failed", queue_number=content.queue_number, error=str(exc))
            raise ReceiptError(f"could not render receipt {content.filename}") from exc
        return ReceiptResult(path, "text")
