"""Maps loosely named SWMS form payloads onto one canonical record.

Form builders and older app versions post the same logical field under
different keys, so each field is resolved from an ordered list of accepted
source keys with a fixed default.
"""
import base64
import binascii
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from aws_lambda_powertools import Logger

from lambdas.swms_errors import AttachmentError, ValidationError

logger = Logger(child=True)

DEFAULT_SIGNATURE_MIME = "image/png"
DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^;,]*)*?;base64,(?P<payload>.*)$", re.DOTALL)


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


@dataclass(frozen=True)
class FieldRule:
    name: str
    label: str
    keys: Sequence[str]
    default: Union[str, Callable[[], str]] = ""

    def default_value(self) -> str:
        return self.default() if callable(self.default) else self.default


FIELD_RULES = (
    FieldRule("task_name", "Task", ("taskName", "job_description", "task"), "SWMS Task"),
    FieldRule("location", "Location", ("location", "job_location", "site"), "Unknown location"),
    FieldRule("submitter_name", "Name", ("name", "submitterName", "site_name"), "User"),
    FieldRule("company", "Company", ("company", "companyName", "company_name")),
    FieldRule("phone", "Phone", ("phone", "phoneNumber", "phone_number")),
    FieldRule("date", "Date", ("date", "submissionDate", "submission_date"), _today),
    FieldRule("swms_id", "SWMS ID", ("swmsId", "swms_id", "id")),
    FieldRule("notes", "Notes", ("notes", "description")),
)

EMAIL_KEYS = ("email", "userEmail", "submitterEmail", "email_address")
SIGNATURE_KEYS = ("signature", "signatureData", "signatureImage")


@dataclass(frozen=True)
class SignatureImage:
    data: bytes
    mime_type: str = DEFAULT_SIGNATURE_MIME

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


@dataclass(frozen=True)
class SubmissionRecord:
    task_name: str
    location: str
    submitter_name: str
    email: str
    company: str = ""
    phone: str = ""
    date: str = ""
    swms_id: str = ""
    notes: str = ""
    signature_image: Optional[SignatureImage] = None

    def labelled_fields(self):
        """(label, value) pairs in display order, email placed after the name."""
        pairs = []
        for rule in FIELD_RULES:
            pairs.append((rule.label, getattr(self, rule.name)))
            if rule.name == "submitter_name":
                pairs.append(("Email", self.email))
        return pairs


def first_value(raw: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    """First present, non-null, non-blank value among keys, as a stripped string."""
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def parse_signature(value: Optional[str]) -> Optional[SignatureImage]:
    """Decode a data URL or bare base64 signature, or None if it is unusable."""
    if not value:
        return None
    try:
        return _decode_signature(value)
    except AttachmentError as e:
        logger.warning(f"Ignoring signature: {e}")
        return None


def _decode_signature(value: str) -> SignatureImage:
    mime_type = DEFAULT_SIGNATURE_MIME
    payload = value
    match = DATA_URL_RE.match(value)
    if match:
        mime_type = (match.group("mime") or DEFAULT_SIGNATURE_MIME).lower()
        payload = match.group("payload")
    elif value.startswith("data:"):
        raise AttachmentError("signature data URL is not base64 encoded")

    try:
        data = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AttachmentError(f"signature is not valid base64: {e}") from e
    if not data:
        raise AttachmentError("signature is empty")
    return SignatureImage(data=data, mime_type=mime_type)


def normalize_submission(raw: Any, default_recipient: Optional[str] = None) -> SubmissionRecord:
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValidationError("Submission body must be a JSON object")

    values = {}
    for rule in FIELD_RULES:
        found = first_value(raw, rule.keys)
        values[rule.name] = found if found is not None else rule.default_value()

    email = first_value(raw, EMAIL_KEYS) or (default_recipient or "").strip()
    if not email:
        raise ValidationError("missing recipient email")

    return SubmissionRecord(
        email=email,
        signature_image=parse_signature(first_value(raw, SIGNATURE_KEYS)),
        **values,
    )
