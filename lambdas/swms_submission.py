"""Request handling shared by the three SWMS submission Lambdas.

Each entry module (swms_pdf_template, swms_email_summary, swms_pdf_draw)
wires one Renderer into handle_submission and exposes it as ``process``.
"""
import base64
import binascii
import json

from aws_lambda_powertools import Logger

from lambdas.config import load_email_settings
from lambdas.swms_email import build_message, get_ses_client, send_message
from lambdas.swms_errors import SwmsError, ValidationError
from lambdas.swms_fields import normalize_submission
from lambdas.swms_render import Renderer

logger = Logger()

GENERIC_ERROR = "Error generating PDF or sending email"


def _response(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def load_form(event):
    """Form fields from an API Gateway proxy event, or the event itself on direct invoke."""
    if not isinstance(event, dict) or "body" not in event:
        return event

    raw_body = event.get("body")
    if raw_body is None or raw_body == "":
        return {}
    if isinstance(raw_body, dict):
        return raw_body

    try:
        if event.get("isBase64Encoded"):
            raw_body = base64.b64decode(raw_body).decode("utf-8")
        return json.loads(raw_body)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError(f"Invalid JSON body: {e}") from e


def handle_submission(event, renderer: Renderer) -> dict:
    try:
        settings = load_email_settings()
        record = normalize_submission(load_form(event), settings.default_recipient)
        logger.append_keys(swms_id=record.swms_id or None, task_name=record.task_name)
        logger.info("SWMS submission normalised")

        document = renderer.render(record)
        message = build_message(record, renderer.compose_body(record), document, settings)
        message_id = send_message(message, get_ses_client(settings.region))
    except SwmsError as e:
        logger.error(f"SWMS submission failed ({type(e).__name__}): {e}")
        return _response(500, {"error": str(e)})
    except Exception:
        logger.exception("Unexpected error handling SWMS submission")
        return _response(500, {"error": GENERIC_ERROR})

    return _response(200, {"message": "Email sent successfully", "messageId": message_id})
