import os
from dataclasses import dataclass
from typing import Optional

from lambdas.swms_errors import ConfigError

def get_email_sender():
    return os.getenv("EMAIL_SENDER")

def get_default_recipient():
    return os.getenv("EMAIL_RECIPIENT") or None

# SES_REGION falls back to the region the function runs in
def get_ses_region():
    return os.getenv("SES_REGION") or os.getenv("AWS_REGION")

def get_timezone_name():
    return os.getenv("SWMS_TIMEZONE", "Australia/Sydney")


@dataclass(frozen=True)
class EmailSettings:
    sender: str
    region: str
    default_recipient: Optional[str] = None

    @property
    def admin_recipient(self) -> str:
        return self.default_recipient or self.sender


def load_email_settings() -> EmailSettings:
    sender = get_email_sender()
    region = get_ses_region()

    missing = []
    if not sender:
        missing.append("EMAIL_SENDER")
    if not region:
        missing.append("SES_REGION")
    if missing:
        raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

    return EmailSettings(
        sender=sender,
        region=region,
        default_recipient=get_default_recipient(),
    )
