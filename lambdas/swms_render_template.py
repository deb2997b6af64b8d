import html
import re
from pathlib import Path
from typing import Optional

from aws_lambda_powertools import Logger
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from lambdas.config import get_timezone_name
from lambdas.swms_errors import RenderError
from lambdas.swms_fields import SubmissionRecord
from lambdas.swms_render import RenderedDocument, Renderer, generated_at

logger = Logger(child=True)

TEMPLATE_PATH = Path(__file__).parent / "templates" / "swms.html"
PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

# Chromium in the Lambda image has no /dev/shm worth using and no sandbox support
CHROMIUM_ARGS = ["--no-sandbox", "--disable-dev-shm-usage", "--single-process"]


def fill_template(template: str, values: dict) -> str:
    """Replace {{name}} placeholders with HTML-escaped values; unknown names render empty."""
    def _sub(match):
        value = values.get(match.group(1))
        return "" if value is None else html.escape(str(value))
    return PLACEHOLDER_RE.sub(_sub, template)


def template_values(record: SubmissionRecord, tz_name: str) -> dict:
    signature = record.signature_image.data_url() if record.signature_image else ""
    return {
        "taskName": record.task_name,
        "location": record.location,
        "name": record.submitter_name,
        "email": record.email,
        "company": record.company,
        "phone": record.phone,
        "date": record.date,
        "swmsId": record.swms_id,
        "notes": record.notes,
        "signature": signature,
        "signatureDisplay": "block" if signature else "none",
        "ruleDisplay": "none" if signature else "block",
        "now": generated_at(tz_name),
    }


def html_to_pdf(page_html: str) -> bytes:
    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(args=CHROMIUM_ARGS)
            try:
                page = browser.new_page()
                page.set_content(page_html, wait_until="load")
                return page.pdf(format="A4", print_background=True)
            finally:
                browser.close()
    except PlaywrightError as e:
        logger.error(f"Headless Chromium failed to print SWMS PDF: {e}")
        raise RenderError(f"Error generating PDF: {e}") from e


class TemplatePdfRenderer(Renderer):

    def __init__(self, template_path: Path = TEMPLATE_PATH, tz_name: Optional[str] = None):
        self.template_path = template_path
        self.tz_name = tz_name

    def load_template(self) -> str:
        try:
            return self.template_path.read_text(encoding="utf-8")
        except OSError as e:
            raise RenderError(f"SWMS template unavailable: {e}") from e

    def render(self, record):
        tz_name = self.tz_name or get_timezone_name()
        page_html = fill_template(self.load_template(), template_values(record, tz_name))
        pdf_bytes = html_to_pdf(page_html)
        logger.info(f"Rendered SWMS PDF from template ({len(pdf_bytes)} bytes)")
        return RenderedDocument(content=pdf_bytes)
