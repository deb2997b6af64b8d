import io
from dataclasses import dataclass
from typing import Optional

from aws_lambda_powertools import Logger
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from lambdas.config import get_timezone_name
from lambdas.swms_errors import AttachmentError, RenderError
from lambdas.swms_fields import SignatureImage, SubmissionRecord
from lambdas.swms_render import RenderedDocument, Renderer, generated_at

logger = Logger(child=True)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_SIZE = 12
LINE_STEP = FONT_SIZE + 6
SIGNATURE_WIDTH = 200
SIGNATURE_GAP = 10
RULE_STEP = 20
PRINTABLE_WIDTH = PAGE_WIDTH - 2 * MARGIN

SIGNATURE_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
}


@dataclass(frozen=True)
class EmbeddedSignature:
    image: ImageReader
    width: float
    height: float


def _open_signature(signature: SignatureImage) -> EmbeddedSignature:
    expected = SIGNATURE_FORMATS.get(signature.mime_type)
    if expected is None:
        raise AttachmentError(f"unsupported signature type {signature.mime_type}")

    try:
        img = Image.open(io.BytesIO(signature.data))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise AttachmentError(f"signature image could not be decoded: {e}") from e

    if img.format != expected:
        raise AttachmentError(f"signature declared as {signature.mime_type} but decoded as {img.format}")
    if not img.width or not img.height:
        raise AttachmentError("signature image has no pixels")

    if img.mode not in ("RGB", "RGBA", "L"):
        img = img.convert("RGBA")

    height = SIGNATURE_WIDTH * img.height / img.width
    return EmbeddedSignature(image=ImageReader(img), width=SIGNATURE_WIDTH, height=height)


def load_signature(signature: Optional[SignatureImage]) -> Optional[EmbeddedSignature]:
    """Best effort: a bad signature is logged and the PDF is drawn without it."""
    if signature is None:
        return None
    try:
        return _open_signature(signature)
    except AttachmentError as e:
        logger.warning(f"Signature not embedded: {e}")
        return None


def _standard_font_can_draw(value: str) -> bool:
    # Helvetica is one of the 14 standard fonts; ReportLab encodes it as WinAnsi
    try:
        value.encode("cp1252")
    except UnicodeEncodeError:
        return False
    return True


class PageWriter:
    """Top-down text cursor over a single ReportLab page."""

    def __init__(self, pdf, font_size: int = FONT_SIZE):
        self.pdf = pdf
        self.font_size = font_size
        self.y = PAGE_HEIGHT - MARGIN
        self.overflowed = False

    def _fits(self, height: float = 0) -> bool:
        """False once the cursor would pass the bottom margin; the page is full."""
        if self.y - height >= MARGIN:
            return True
        if not self.overflowed:
            logger.warning("SWMS content does not fit on one page; remaining lines dropped")
            self.overflowed = True
        return False

    def text(self, line: str, font: str = FONT):
        if not self._fits():
            return
        self.pdf.setFont(font, self.font_size)
        self.pdf.drawString(MARGIN, self.y, line)
        self.y -= self.font_size + 6

    def field(self, label: str, value: str):
        if not _standard_font_can_draw(value):
            logger.warning(f"{label} has characters outside the Helvetica character set; they will not render")
        wrapped = simpleSplit(f"{label}: {value}", FONT, self.font_size, PRINTABLE_WIDTH)
        for line in wrapped or [f"{label}:"]:
            self.text(line)

    def signature(self, embedded: EmbeddedSignature) -> bool:
        if not self._fits(embedded.height):
            return False
        try:
            self.pdf.drawImage(
                embedded.image,
                MARGIN,
                self.y - embedded.height,
                width=embedded.width,
                height=embedded.height,
                mask="auto",
            )
        except (OSError, ValueError) as e:
            logger.warning(f"Signature not embedded: {e}")
            return False
        self.y -= embedded.height + SIGNATURE_GAP
        return True

    def rule(self, length: float = SIGNATURE_WIDTH):
        if not self._fits():
            return
        self.pdf.setLineWidth(1)
        self.pdf.line(MARGIN, self.y, MARGIN + length, self.y)
        self.y -= RULE_STEP


class DrawnPdfRenderer(Renderer):

    def __init__(self, canvas_factory=canvas.Canvas, tz_name: Optional[str] = None):
        self.canvas_factory = canvas_factory
        self.tz_name = tz_name

    def draw(self, pdf, record: SubmissionRecord) -> PageWriter:
        writer = PageWriter(pdf)
        writer.text("Safe Work Method Statement", font=FONT_BOLD)
        for label, value in record.labelled_fields():
            writer.field(label, value)

        writer.text("Signature:")
        embedded = load_signature(record.signature_image)
        if embedded is None or not writer.signature(embedded):
            writer.rule()

        pdf.setFont(FONT, 8)
        pdf.drawString(MARGIN, MARGIN / 2, f"Generated {generated_at(self.tz_name or get_timezone_name())}")
        return writer

    def render(self, record):
        buffer = io.BytesIO()
        try:
            pdf = self.canvas_factory(buffer, pagesize=A4)
            pdf.setTitle(f"SWMS - {record.task_name}")
            self.draw(pdf, record)
            pdf.showPage()
            pdf.save()
        except (OSError, ValueError) as e:
            logger.error(f"Error drawing SWMS PDF: {e}")
            raise RenderError(f"Error generating PDF: {e}") from e
        finally:
            content = buffer.getvalue()
            buffer.close()

        logger.info(f"Drew SWMS PDF ({len(content)} bytes)")
        return RenderedDocument(content=content)
