import base64
import time
from dataclasses import dataclass, field
from email.message import EmailMessage as MimeMessage
from email.utils import formataddr
from typing import List, Optional

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from lambdas.config import EmailSettings
from lambdas.swms_errors import DeliveryError
from lambdas.swms_fields import SubmissionRecord
from lambdas.swms_render import EmailBody, RenderedDocument

logger = Logger(child=True)

SUBJECT_PREFIX = "SWMS Form Submission: "

_ses_clients = {}  # region -> client, reused across warm invocations


def get_ses_client(region: str):
    client = _ses_clients.get(region)
    if client is None:
        client = boto3.client("ses", region_name=region)
        _ses_clients[region] = client
    return client


@dataclass(frozen=True)
class Recipient:
    address: str
    display_name: str = ""

    def formatted(self) -> str:
        return formataddr((self.display_name, self.address)) if self.display_name else self.address


@dataclass(frozen=True)
class Attachment:
    name: str
    content_type: str
    content_bytes: str  # base64


@dataclass
class EmailMessage:
    sender: str
    recipients: List[Recipient]
    subject: str
    plain_text: str
    html: str
    attachments: List[Attachment] = field(default_factory=list)

    def to_mime(self) -> MimeMessage:
        msg = MimeMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(r.formatted() for r in self.recipients)
        msg["Subject"] = self.subject
        msg.set_content(self.plain_text)
        msg.add_alternative(self.html, subtype="html")

        for att in self.attachments:
            maintype, _, subtype = att.content_type.partition("/")
            msg.add_attachment(
                base64.b64decode(att.content_bytes),
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=att.name,
            )
        return msg


def header_text(value: str) -> str:
    """Collapse line breaks and runs of whitespace; MIME headers must be single-line."""
    return " ".join(value.split())


def build_recipients(record: SubmissionRecord, settings: EmailSettings) -> List[Recipient]:
    recipients = [Recipient(record.email, header_text(record.submitter_name))]
    admin = settings.admin_recipient
    if admin.lower() != record.email.lower():
        recipients.append(Recipient(admin))
    return recipients


def build_message(
    record: SubmissionRecord,
    body: EmailBody,
    document: Optional[RenderedDocument],
    settings: EmailSettings,
    now_ms: Optional[int] = None,
) -> EmailMessage:
    attachments = []
    if document is not None:
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        attachments.append(Attachment(
            name=f"swms-{stamp}.pdf",
            content_type=document.content_type,
            content_bytes=base64.b64encode(document.content).decode("ascii"),
        ))

    return EmailMessage(
        sender=settings.sender,
        recipients=build_recipients(record, settings),
        subject=f"{SUBJECT_PREFIX}{header_text(record.task_name)}",
        plain_text=body.plain_text,
        html=body.html,
        attachments=attachments,
    )


def send_message(message: EmailMessage, client) -> Optional[str]:
    """Submit through SES; returns the provider message id when one is given."""
    try:
        response = client.send_raw_email(
            Source=message.sender,
            Destinations=[r.address for r in message.recipients],
            RawMessage={"Data": message.to_mime().as_bytes()},
        )
    except ClientError as e:
        error = e.response.get("Error", {})
        logger.error(f"SES rejected SWMS email: {error}")
        raise DeliveryError(error.get("Message") or str(e)) from e
    except BotoCoreError as e:
        logger.error(f"SES call failed: {e}")
        raise DeliveryError(str(e)) from e

    message_id = response.get("MessageId")
    logger.info(f"SWMS email sent to {len(message.recipients)} recipient(s), MessageId={message_id}")
    return message_id
