"""PDF rendering of stored report snapshots."""
from __future__ import annotations

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from rentledger.services.reports import (
    AddressInfo,
    CreditBuildingReport,
    LandlordVerificationReport,
    PaymentHistoryItem,
    RentalHistoryReport,
)

AnyReport = CreditBuildingReport | RentalHistoryReport | LandlordVerificationReport

REPORT_TITLES = {
    "credit": "Rent Credit Report",
    "rental": "Rental History Report",
    "landlord": "Landlord Verification Report",
}

_COLUMNS = (("Period", 25), ("Due", 30), ("Paid", 30), ("Amount", 35), ("Status", 35), ("Verified", 25))


def _latin1(value: object) -> str:
    # Core PDF fonts only cover Latin-1.
    return str(value).encode("latin-1", "replace").decode("latin-1")


def _money(pence: int) -> str:
    return f"£{pence / 100:,.2f}"


def _label(pdf: FPDF, label: str, value: object) -> None:
    pdf.set_font("Helvetica", style="B", size=9)
    pdf.set_text_color(100, 116, 139)
    pdf.cell(0, 6, text=label.upper(), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=12)
    pdf.set_text_color(15, 23, 42)
    pdf.cell(0, 7, text=_latin1(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _address(document: AnyReport) -> AddressInfo:
    if isinstance(document, CreditBuildingReport):
        return document.current_address
    if isinstance(document, RentalHistoryReport):
        return document.current_property
    return document.property_details


def _landlord_line(document: AnyReport) -> str:
    if isinstance(document, CreditBuildingReport):
        info = document.landlord_verification
        return f"{info.name or 'Property Management'} ({info.verification_status.replace('_', ' ')})"
    if isinstance(document, RentalHistoryReport):
        info = document.landlord_info
        return f"{info.name or 'Property Management'} ({info.verification_status.replace('_', ' ')})"
    request = document.verification_request
    return f"{request.landlord_name or 'Property Management'} (verification {request.status})"


def _headline(document: AnyReport) -> list[tuple[str, str]]:
    if isinstance(document, CreditBuildingReport):
        return [
            ("Rent score", str(document.rent_score)),
            ("Payment streak", f"{document.payment_streak} months"),
            ("On-time rate", f"{document.on_time_rate:.1f}%"),
            ("Total paid", _money(document.total_paid_pence)),
        ]
    if isinstance(document, RentalHistoryReport):
        summary = document.payment_summary
        return [
            ("Rent score", str(document.rent_score)),
            ("Payment streak", f"{summary.payment_streak} months"),
            ("On-time rate", f"{summary.on_time_rate:.1f}%"),
            ("Total paid", _money(summary.total_paid_pence)),
        ]
    reliability = document.reliability
    return [
        ("Rent score", str(reliability.rent_score)),
        ("Payment streak", f"{document.payment_streak} months"),
        ("On-time rate", f"{reliability.on_time_rate:.1f}%"),
        ("Verified", f"{reliability.verification_rate:.1f}%"),
    ]


def _history_table(pdf: FPDF, history: tuple[PaymentHistoryItem, ...]) -> None:
    pdf.set_font("Helvetica", style="B", size=9)
    pdf.set_fill_color(241, 245, 249)
    for heading, width in _COLUMNS:
        pdf.cell(width, 8, text=heading.upper(), border=1, fill=True)
    pdf.ln()

    pdf.set_font("Helvetica", size=9)
    if not history:
        pdf.cell(sum(width for _, width in _COLUMNS), 8, text="No payments recorded", border=1, align="C")
        pdf.ln()
        return
    for item in history:
        row = (
            item.period,
            item.due_date.isoformat(),
            item.paid_date.isoformat() if item.paid_date else "-",
            _money(item.amount_pence),
            item.status.capitalize(),
            "Yes" if item.verified else "No",
        )
        for value, (_, width) in zip(row, _COLUMNS):
            pdf.cell(width, 7, text=_latin1(value), border=1)
        pdf.ln()


def render_report_pdf(document: AnyReport) -> bytes:
    """Render a report snapshot as a single PDF document."""

    title = REPORT_TITLES[document.report_type]
    address = _address(document)

    pdf = FPDF()
    pdf.set_title(title)
    pdf.set_author("RentLedger")
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.set_font("Helvetica", style="B", size=22)
    pdf.set_text_color(79, 70, 229)
    pdf.cell(0, 12, text="RentLedger", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=14)
    pdf.set_text_color(15, 23, 42)
    pdf.cell(0, 8, text=title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    _label(pdf, "Tenant name", document.user_info.full_name)
    _label(pdf, "Address", f"{address.address}, {address.city}, {address.postcode}")
    _label(pdf, "Monthly rent", _money(address.monthly_rent_pence))
    _label(pdf, "Landlord / agent", _landlord_line(document))
    if address.tenancy_start_date is not None:
        end = address.tenancy_end_date.isoformat() if address.tenancy_end_date else "present"
        _label(pdf, "Tenancy period", f"{address.tenancy_start_date.isoformat()} to {end}")

    for label, value in _headline(document):
        _label(pdf, label, value)

    if document.badges:
        badges = ", ".join(f"{badge.title} ({badge.earned_at.isoformat()})" for badge in document.badges)
        pdf.set_font("Helvetica", style="B", size=9)
        pdf.set_text_color(100, 116, 139)
        pdf.cell(0, 6, text="ACHIEVEMENTS", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", size=11)
        pdf.set_text_color(15, 23, 42)
        pdf.multi_cell(0, 6, text=_latin1(badges), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(2)

    _history_table(pdf, document.payment_history)

    pdf.ln(6)
    pdf.set_font("Helvetica", size=8)
    pdf.set_text_color(100, 116, 139)
    pdf.cell(
        0,
        5,
        text=f"Generated by RentLedger on {document.generated_date:%d %B %Y}. Report ID: {document.report_id}",
        new_x=XPos.LMARGIN,
        new_y=YPos.NEXT,
    )
    if document.expires_at is not None:
        pdf.cell(0, 5, text=f"Valid until {document.expires_at:%d %B %Y}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    return bytes(pdf.output())


def report_filename(document: AnyReport) -> str:
    return f"rentledger-{document.report_type}-report-{document.report_id}.pdf"


__all__ = ["REPORT_TITLES", "render_report_pdf", "report_filename"]
