"""
Invoice PDF Generator
Renders an invoice with customer block, line items and totals
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models_invoice import Invoice

logger = logging.getLogger(__name__)

COMPANY_NAME = "CarFlow Rentals"


def _money(value) -> str:
    return f"${float(value or 0):,.2f}"


class InvoicePDFGenerator:
    """Generate invoice PDFs"""

    def __init__(self, invoice: Invoice):
        self.invoice = invoice
        self.customer = invoice.customer
        self.booking = invoice.booking

        self.page_width, self.page_height = letter
        self.margin = 0.75 * inch

        self.brand_color = colors.HexColor("#2563eb")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    def generate(self) -> bytes:
        """Generate PDF and return bytes"""
        logger.info(f"📄 Generating invoice PDF for {self.invoice.invoice_number}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Invoice {self.invoice.invoice_number}",
        )

        story = []
        styles = getSampleStyleSheet()

        title_style = ParagraphStyle(
            "InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=24,
            textColor=self.brand_color,
            spaceAfter=12,
        )
        heading_style = ParagraphStyle(
            "InvoiceHeading",
            parent=styles["Heading2"],
            fontSize=13,
            textColor=self.dark_gray,
            spaceAfter=8,
            spaceBefore=16,
        )
        body_style = ParagraphStyle(
            "InvoiceBody",
            parent=styles["Normal"],
            fontSize=10,
            textColor=self.dark_gray,
            spaceAfter=4,
        )

        story.append(Paragraph("INVOICE", title_style))
        story.append(Paragraph(COMPANY_NAME, body_style))
        story.append(Spacer(1, 0.25 * inch))

        info_data = [
            ["Invoice #:", self.invoice.invoice_number],
            ["Invoice Date:", self.invoice.invoice_date.strftime("%B %d, %Y")],
            ["Due Date:", self.invoice.due_date.strftime("%B %d, %Y")],
            ["Status:", self.invoice.status.upper()],
        ]
        if self.booking:
            info_data.append(["Booking:", self.booking.booking_ref])
        if self.invoice.payment_terms:
            info_data.append(["Terms:", self.invoice.payment_terms])

        info_table = Table(info_data, colWidths=[1.5 * inch, 4.5 * inch])
        info_table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        story.append(info_table)

        # Bill to
        story.append(Paragraph("BILL TO", heading_style))
        if self.customer:
            story.append(Paragraph(escape(self.customer.full_name), body_style))
            story.append(Paragraph(escape(self.customer.email), body_style))
            if self.customer.phone:
                story.append(Paragraph(escape(self.customer.phone), body_style))
            if self.customer.address:
                story.append(Paragraph(escape(self.customer.address), body_style))

        # Line items
        story.append(Paragraph("ITEMS", heading_style))
        table_data = [["Description", "Qty", "Unit Price", "Amount"]]
        for item in self.invoice.items or []:
            quantity = item.get("quantity", 1)
            unit_price = item.get("unitPrice", 0)
            table_data.append(
                [
                    Paragraph(escape(str(item.get("description", ""))), body_style),
                    str(quantity),
                    _money(unit_price),
                    _money(quantity * unit_price),
                ]
            )

        items_table = Table(
            table_data,
            colWidths=[3.5 * inch, 0.7 * inch, 1.2 * inch, 1.2 * inch],
            repeatRows=1,
        )
        items_table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                    ("TOPPADDING", (0, 0), (-1, 0), 8),
                    ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                    ("TEXTCOLOR", (0, 1), (-1, -1), self.dark_gray),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("VALIGN", (0, 1), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ]
            )
        )
        story.append(items_table)
        story.append(Spacer(1, 0.2 * inch))

        totals_data = [
            ["Subtotal:", _money(self.invoice.subtotal)],
            [f"Tax ({self.invoice.tax_rate:g}%):", _money(self.invoice.tax)],
            ["Total:", _money(self.invoice.total)],
        ]
        totals_table = Table(totals_data, colWidths=[5.4 * inch, 1.2 * inch])
        totals_table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (-1, -2), "Helvetica", 10),
                    ("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 12),
                    ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("LINEABOVE", (0, -1), (-1, -1), 1, self.dark_gray),
                ]
            )
        )
        story.append(totals_table)

        if self.invoice.notes:
            story.append(Paragraph("NOTES", heading_style))
            story.append(Paragraph(escape(self.invoice.notes), body_style))

        story.append(Spacer(1, 0.4 * inch))
        story.append(
            Paragraph(
                "<i>Thank you for renting with us.</i>",
                ParagraphStyle("Footer", parent=body_style, fontSize=8, textColor=colors.grey, alignment=1),
            )
        )

        doc.build(story, onFirstPage=self._add_page_number, onLaterPages=self._add_page_number)

        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"✅ Generated invoice PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _add_page_number(self, canvas_obj, doc):
        canvas_obj.setFont("Helvetica", 9)
        canvas_obj.setFillColor(colors.grey)
        canvas_obj.drawRightString(
            self.page_width - self.margin, self.margin / 2, f"Page {canvas_obj.getPageNumber()}"
        )


def generate_invoice_pdf(invoice: Invoice) -> bytes:
    return InvoicePDFGenerator(invoice).generate()
