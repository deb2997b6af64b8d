import html
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from aws_lambda_powertools import Logger

from lambdas.swms_fields import SubmissionRecord

logger = Logger(child=True)

PDF_CONTENT_TYPE = "application/pdf"
ATTACHED_PLAIN = "A SWMS form has been submitted. See attached PDF."
ATTACHED_HTML = "<p>A SWMS form has been submitted. See attached PDF.</p>"


@dataclass(frozen=True)
class RenderedDocument:
    content: bytes
    content_type: str = PDF_CONTENT_TYPE


@dataclass(frozen=True)
class EmailBody:
    plain_text: str
    html: str


def generated_at(tz_name: str, now: Optional[datetime] = None) -> str:
    """Human readable generation stamp in the site's timezone."""
    now = now or datetime.now(timezone.utc)
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, stamping in UTC")
        tz = timezone.utc
    return now.astimezone(tz).strftime("%d/%m/%Y, %I:%M:%S %p %Z")


class Renderer:
    """Turns a submission into an optional document plus the email body.

    One implementation is wired into each Lambda entry module.
    """

    def render(self, record: SubmissionRecord) -> Optional[RenderedDocument]:
        raise NotImplementedError

    def compose_body(self, record: SubmissionRecord) -> EmailBody:
        return EmailBody(plain_text=ATTACHED_PLAIN, html=ATTACHED_HTML)


class SummaryRenderer(Renderer):
    """No PDF; the submission itself is the email body."""

    def render(self, record):
        return None

    def compose_body(self, record):
        fields = record.labelled_fields()
        signed = "Yes" if record.signature_image else "No"

        lines = ["A SWMS form has been submitted.", ""]
        lines += [f"{label}: {value}" for label, value in fields]
        lines.append(f"Signature supplied: {signed}")

        rows = "".join(
            f"<tr><th align=\"left\">{html.escape(label)}</th><td>{html.escape(value)}</td></tr>"
            for label, value in fields + [("Signature supplied", signed)]
        )
        body_html = (
            "<p>A SWMS form has been submitted.</p>"
            f"<table cellpadding=\"4\">{rows}</table>"
        )
        return EmailBody(plain_text="\n".join(lines), html=body_html)
