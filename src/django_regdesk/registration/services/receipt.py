"""PDF receipt generation for paid registrations.

:func:`extract_receipt_data` projects a registration and its payment into a
read-only :class:`ReceiptData`, accepting model objects or raw journal dicts
in any of the three historical payload shapes.  :func:`generate_receipt`
renders it with ReportLab into a downloadable :class:`ReceiptArtifact`.

Receipt generation is always secondary to the payment it documents.
Extraction returns ``None`` rather than raising, a logo that cannot be
fetched is replaced by its text label, and :func:`generate_receipt` never
raises past its caller.
"""

import io
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from django.http import HttpResponse
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from django_regdesk.registration.exceptions import ReceiptGenerationError
from django_regdesk.registration.models import (
    PaymentRecord,
    Registration,
    parse_registration_payload,
)
from django_regdesk.settings import LogoConfig, get_config

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r"[^a-z0-9]+")
_REGISTRATION_NUMBER_KEYS = ("registrationNumber", "registration_number", "srNo", "sr_no", "serial_number")

_MARGIN = 20 * mm
_LOGO_WIDTH = 25 * mm
_LOGO_HEIGHT = 15 * mm
_BOTTOM_RESERVE = 40 * mm

_TITLE_COLOR = colors.HexColor("#3b82f6")
_AMOUNT_COLOR = colors.HexColor("#059669")
_MUTED_COLOR = colors.HexColor("#808080")
_RULE_COLOR = colors.HexColor("#c8c8c8")


@dataclass(frozen=True, slots=True)
class ReceiptParticipant:
    """A participant block on the receipt; empty optional fields are omitted."""

    name: str
    department: str = ""
    semester: str = ""
    email: str = ""
    contact: str = ""


@dataclass(frozen=True, slots=True)
class ReceiptData:
    """Everything printed on a receipt.

    Attributes:
        event_name: Display name of the competition.
        leader_name: Primary participant (single participant or team leader).
        email: Primary participant's email.
        contact: Primary participant's phone number.
        institute: Institute of the primary participant.
        payment_id: Gateway payment id.
        order_id: Gateway order id.
        registration_number: Backend-issued serial number, if any.
        registration_id: Client-side registration id.
        amount_paid: Fee in whole currency units.
        participants: One entry per participant, primary first.
    """

    event_name: str
    leader_name: str
    email: str
    contact: str
    institute: str
    payment_id: str
    order_id: str = ""
    registration_number: str = ""
    registration_id: str = ""
    amount_paid: int | None = None
    participants: tuple[ReceiptParticipant, ...] = ()


@dataclass(frozen=True, slots=True)
class ReceiptArtifact:
    """A rendered receipt document."""

    filename: str
    content: bytes
    content_type: str = "application/pdf"

    def as_response(self) -> HttpResponse:
        """Return the receipt as a file download response."""
        response = HttpResponse(self.content, content_type=self.content_type)
        response["Content-Disposition"] = f'attachment; filename="{self.filename}"'
        return response

    def save(self, directory: str | Path) -> Path:
        """Write the receipt into *directory* and return the file path."""
        path = Path(directory) / self.filename
        path.write_bytes(self.content)
        logger.info("Saved receipt to %s", path)
        return path


def _registration_fields(registration: Registration | Mapping[str, Any]) -> tuple[Any, str, int | None]:
    """Return ``(payload, registration_id, amount_paid)`` from either form.

    Raises:
        ValueError: If the payload shape is not recognized.
    """
    if isinstance(registration, Registration):
        return registration.payload, registration.id, registration.amount_paid
    payload = parse_registration_payload(registration.get("payload"))
    amount = registration.get("amount_paid", registration.get("amountPaid"))
    return payload, str(registration.get("id") or ""), int(amount) if amount else None


def extract_receipt_data(
    registration: Registration | Mapping[str, Any] | None,
    payment_record: PaymentRecord | Mapping[str, Any] | None,
    event_name: str,
    *,
    registration_number: str = "",
) -> ReceiptData | None:
    """Project a registration and its payment into :class:`ReceiptData`.

    Args:
        registration: The registration, or a journal dict with a ``payload``
            in the ``participants[]``, flat ``name`` or nested ``leader`` shape.
        payment_record: The payment record or a dict carrying payment ids.
        event_name: Display name of the competition.
        registration_number: Backend serial number. When empty, the payment
            dict is searched for ``srNo``-style keys.

    Returns:
        The receipt data, or ``None`` when an input is missing, the payload
        shape is unknown, or no participant can be derived.
    """
    if not registration or not payment_record:
        logger.error("Cannot build receipt: missing registration or payment data")
        return None

    try:
        payload, registration_id, amount_paid = _registration_fields(registration)
    except (ValueError, TypeError):
        logger.exception("Cannot build receipt: unrecognized registration payload")
        return None

    if isinstance(payment_record, PaymentRecord):
        record = payment_record
    else:
        try:
            record = PaymentRecord.from_dict(payment_record)
        except (ValueError, TypeError):
            logger.exception("Cannot build receipt: malformed payment data")
            return None
        if not registration_number:
            registration_number = next(
                (str(payment_record[key]) for key in _REGISTRATION_NUMBER_KEYS if payment_record.get(key)),
                "",
            )

    participants = tuple(
        ReceiptParticipant(
            name=member.name,
            department=member.branch,
            semester=member.semester,
            email=member.email,
            contact=member.contact,
        )
        for member in payload.participants
    )
    if not participants:
        logger.error("Cannot build receipt: no participants found")
        return None

    primary = participants[0]
    return ReceiptData(
        event_name=event_name,
        leader_name=primary.name,
        email=primary.email,
        contact=primary.contact,
        institute=payload.institute,
        payment_id=record.payment_id,
        order_id=record.order_id,
        registration_number=registration_number,
        registration_id=registration_id,
        amount_paid=amount_paid,
        participants=participants,
    )


def receipt_filename(name: str, *, suffix: str | None = None, now: datetime | None = None) -> str:
    """Build a receipt filename from the primary participant's name.

    Runs of non-alphanumeric characters become ``_``, then the configured
    suffix and a timestamp are appended, e.g.
    ``asha_rao_Technocratz2.0_20270301T101500.pdf``.
    """
    if suffix is None:
        suffix = get_config().receipt.filename_suffix
    stamp = (now or timezone.now()).strftime("%Y%m%dT%H%M%S")
    base = _FILENAME_RE.sub("_", name.lower()).strip("_") or "participant"
    return f"{base}_{suffix}_{stamp}.pdf"


def load_logo(
    logo: LogoConfig,
    *,
    timeout: float | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ImageReader | None:
    """Fetch and decode a logo image, returning ``None`` on any failure.

    ``http(s)`` URLs are fetched with ``httpx``; anything else is read as a
    local file path.
    """
    if not logo.url:
        return None
    try:
        if logo.url.startswith(("http://", "https://")):
            with httpx.Client(timeout=timeout or get_config().receipt.fetch_timeout, transport=transport) as client:
                response = client.get(logo.url)
                response.raise_for_status()
                content = response.content
        else:
            content = Path(logo.url).read_bytes()
        image = ImageReader(io.BytesIO(content))
        image.getSize()
    except (httpx.HTTPError, OSError, ValueError, RuntimeError) as exc:
        logger.warning("Could not load receipt logo %s, using text label: %s", logo.url, exc)
        return None
    return image


class _ReceiptCanvas:
    """Top-down text cursor over a ReportLab canvas with page breaks."""

    def __init__(self, buffer: io.BytesIO, title: str) -> None:
        self.canvas = canvas.Canvas(buffer, pagesize=A4)
        self.canvas.setTitle(title)
        self.width, self.height = A4
        self.content_width = self.width - 2 * _MARGIN
        self.y = self.height - _MARGIN

    def ensure_space(self, needed: float = _BOTTOM_RESERVE) -> None:
        if self.y - needed < _MARGIN:
            self.canvas.showPage()
            self.y = self.height - _MARGIN

    def font(self, size: float, *, bold: bool = False, italic: bool = False, color: Any = colors.black) -> None:
        name = "Helvetica-Bold" if bold else "Helvetica-Oblique" if italic else "Helvetica"
        self.canvas.setFont(name, size)
        self.canvas.setFillColor(color)

    def text(self, value: str, *, x: float = 0, advance: float = 0) -> None:
        self.canvas.drawString(_MARGIN + x, self.y, value)
        self.y -= advance

    def centred(self, value: str, *, advance: float = 0) -> None:
        self.canvas.drawCentredString(self.width / 2, self.y, value)
        self.y -= advance

    def labelled(self, label: str, value: str, *, size: float, offset: float, advance: float) -> None:
        self.font(size, bold=True)
        self.canvas.drawString(_MARGIN, self.y, label)
        self.font(size)
        self.canvas.drawString(_MARGIN + offset, self.y, value)
        self.y -= advance

    def wrapped(self, value: str, *, size: float, x: float, width: float, leading: float) -> None:
        for line in simpleSplit(value, "Helvetica", size, width):
            self.canvas.drawString(_MARGIN + x, self.y, line)
            self.y -= leading


def _draw_logos(page: _ReceiptCanvas, logos: Sequence[tuple[LogoConfig, ImageReader | None]]) -> None:
    """Draw the logo row; positions without an image get the text label."""
    top = page.y
    for idx, (logo, image) in enumerate(logos):
        if idx == 0:
            x = _MARGIN
        elif idx == len(logos) - 1:
            x = page.width - _MARGIN - _LOGO_WIDTH
        else:
            x = (page.width - _LOGO_WIDTH) / 2
        if image is not None:
            page.canvas.drawImage(
                image,
                x,
                top - _LOGO_HEIGHT,
                width=_LOGO_WIDTH,
                height=_LOGO_HEIGHT,
                preserveAspectRatio=True,
                mask="auto",
            )
        else:
            page.font(10, color=_MUTED_COLOR)
            page.canvas.drawString(x, top - 5 * mm, logo.label)
    page.y = top - _LOGO_HEIGHT - 5 * mm


def _draw_participants(page: _ReceiptCanvas, data: ReceiptData) -> None:
    page.font(12, bold=True)
    page.text("Participant Details:", advance=8 * mm)
    for number, participant in enumerate(data.participants, start=1):
        page.ensure_space()
        page.font(11, bold=True)
        page.text(f"Participant {number}:", advance=6 * mm)
        page.font(10)
        lines = [
            ("Name", participant.name),
            ("Department", participant.department),
            ("Semester", participant.semester),
            ("Email", participant.email),
            ("Contact", participant.contact),
        ]
        for label, value in lines:
            if value:
                page.text(f"{label}: {value}", x=5 * mm, advance=6 * mm)
        page.y -= 3 * mm

    if data.institute:
        page.ensure_space()
        page.font(10)
        page.wrapped(
            f"Institute: {data.institute}",
            size=10,
            x=5 * mm,
            width=page.content_width - 10 * mm,
            leading=6 * mm,
        )


def render_receipt(
    data: ReceiptData,
    *,
    logos: Sequence[LogoConfig] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ReceiptArtifact:
    """Render *data* as a PDF receipt.

    Args:
        data: The receipt contents.
        logos: Header logos. Defaults to ``DJANGO_REGDESK["receipt"]["logos"]``.
        transport: Optional ``httpx`` transport used to fetch logos.

    Returns:
        The rendered receipt.

    Raises:
        ReceiptGenerationError: If the document cannot be rendered.
    """
    config = get_config()
    receipt_config = config.receipt
    if logos is None:
        logos = receipt_config.logos
    loaded = [(logo, load_logo(logo, transport=transport)) for logo in logos]

    buffer = io.BytesIO()
    try:
        page = _ReceiptCanvas(buffer, f"{receipt_config.title} {receipt_config.subtitle}")
        _draw_logos(page, loaded)

        page.font(20, bold=True, color=_TITLE_COLOR)
        page.centred(receipt_config.title, advance=10 * mm)
        page.font(16, bold=True)
        page.centred(receipt_config.subtitle, advance=15 * mm)

        if data.registration_number:
            page.labelled("Registration Number:", data.registration_number, size=12, offset=55 * mm, advance=10 * mm)

        page.font(14, bold=True)
        page.canvas.drawString(_MARGIN, page.y, "Event Name:")
        page.font(14)
        page.wrapped(
            data.event_name,
            size=14,
            x=35 * mm,
            width=page.content_width - 40 * mm,
            leading=7 * mm,
        )
        page.y -= 10 * mm

        _draw_participants(page, data)

        page.ensure_space()
        page.y -= 5 * mm
        page.labelled("Payment ID:", data.payment_id, size=11, offset=30 * mm, advance=7 * mm)
        if data.order_id:
            page.labelled("Order ID:", data.order_id, size=11, offset=30 * mm, advance=7 * mm)

        if data.amount_paid:
            page.y -= 5 * mm
            page.font(12, bold=True, color=_AMOUNT_COLOR)
            page.text(f"Amount Paid: {config.currency_symbol} {data.amount_paid}", advance=10 * mm)

        page.y -= 10 * mm
        page.canvas.setStrokeColor(_RULE_COLOR)
        page.canvas.line(_MARGIN, page.y, page.width - _MARGIN, page.y)
        page.y -= 10 * mm

        page.font(10, italic=True, color=_MUTED_COLOR)
        for line in receipt_config.footer_lines:
            page.centred(line, advance=5 * mm)

        page.canvas.save()
    except Exception as exc:
        msg = f"Could not render receipt for payment {data.payment_id}: {exc}"
        raise ReceiptGenerationError(msg) from exc

    filename = receipt_filename(data.leader_name, suffix=receipt_config.filename_suffix)
    logger.info("Rendered receipt %s", filename)
    return ReceiptArtifact(filename=filename, content=buffer.getvalue())


def generate_receipt(
    data: ReceiptData | None,
    *,
    logos: Sequence[LogoConfig] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ReceiptArtifact | None:
    """Render a receipt without ever raising.

    Returns:
        The rendered receipt, or ``None`` if *data* is missing or rendering
        failed (the failure is logged).
    """
    if data is None:
        logger.warning("No receipt data, skipping receipt generation")
        return None
    try:
        return render_receipt(data, logos=logos, transport=transport)
    except ReceiptGenerationError:
        logger.exception("Receipt generation failed")
        return None
