import base64
import io
import json
import os

import boto3
import pytest
from moto import mock_aws
from PIL import Image
from playwright.sync_api import Error as PlaywrightError

mp = pytest.MonkeyPatch()
mp.setenv("POWERTOOLS_SERVICE_NAME", "swms-submission")

SENDER = "swms@metrosafety.test"
ADMIN = "safety-admin@metrosafety.test"

@pytest.fixture(scope="session", autouse=True)
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"

@pytest.fixture(autouse=True)
def fresh_ses_clients():
    # import here as the client cache lives at module level
    from lambdas import swms_email
    swms_email._ses_clients.clear()
    yield
    swms_email._ses_clients.clear()

@pytest.fixture
def email_env(monkeypatch):
    monkeypatch.setenv("EMAIL_SENDER", SENDER)
    monkeypatch.setenv("EMAIL_RECIPIENT", ADMIN)
    monkeypatch.setenv("SES_REGION", "us-east-1")
    monkeypatch.setenv("SWMS_TIMEZONE", "Australia/Sydney")

@pytest.fixture
def ses_client(aws_credentials):
    with mock_aws():
        client = boto3.client("ses", region_name="us-east-1")
        client.verify_email_identity(EmailAddress=SENDER)
        yield client

class RecordingSes:
    """Passes calls through to the (moto) client and keeps the kwargs."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def send_raw_email(self, **kwargs):
        self.calls.append(kwargs)
        return self.client.send_raw_email(**kwargs)

@pytest.fixture
def recording_ses(ses_client, monkeypatch):
    recorder = RecordingSes(ses_client)
    monkeypatch.setattr("lambdas.swms_submission.get_ses_client", lambda region: recorder)
    return recorder

@pytest.fixture
def lambda_context():
    class LambdaContext:
        def __init__(self):
            self.function_name = "swms-submission"
            self.memory_limit_in_mb = 512
            self.invoked_function_arn = "arn:aws:lambda:ap-southeast-2:012345678910:function:swms-submission"
            self.aws_request_id = "899856cb-83d1-40d7-8611-9e78f15f32f4"

    return LambdaContext()

def _image_bytes(fmt, size=(120, 40), mode="RGB"):
    buffer = io.BytesIO()
    Image.new(mode, size, color=0).save(buffer, format=fmt)
    return buffer.getvalue()

@pytest.fixture(scope="session")
def png_signature():
    return _image_bytes("PNG", mode="RGBA")

@pytest.fixture(scope="session")
def jpeg_signature():
    return _image_bytes("JPEG")

@pytest.fixture(scope="session")
def png_data_url(png_signature):
    return "data:image/png;base64," + base64.b64encode(png_signature).decode("ascii")

@pytest.fixture
def api_event():
    def _build(body, base64_encoded=False):
        raw = json.dumps(body)
        if base64_encoded:
            raw = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        return {
            "resource": "/swms",
            "path": "/swms",
            "httpMethod": "POST",
            "headers": {"Content-Type": "application/json"},
            "requestContext": {"requestId": "c6af9ac6-7b61-11e6-9a41-93e8deadbeef", "stage": "prod"},
            "isBase64Encoded": base64_encoded,
            "body": raw,
        }

    return _build

class FakeBrowser:
    """Enough of playwright's Browser/Page pair for the template renderer."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.closed = False
        self.content = None
        self.pdf_options = None

    def new_page(self):
        return self

    def set_content(self, content, wait_until=None):
        if self.fail_on == "set_content":
            raise PlaywrightError("Target page, context or browser has been closed")
        self.content = content

    def pdf(self, **options):
        self.pdf_options = options
        return b"%PDF-1.4 fake"

    def close(self):
        self.closed = True

class FakePlaywright:
    def __init__(self, browser, launch_error=None):
        self.browser = browser
        self.launch_error = launch_error
        self.chromium = self

    def launch(self, **kwargs):
        if self.launch_error:
            raise self.launch_error
        return self.browser

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

@pytest.fixture
def playwright_stub(monkeypatch):
    def _install(fail_on=None, launch_error=None):
        browser = FakeBrowser(fail_on)
        monkeypatch.setattr(
            "lambdas.swms_render_template.sync_playwright",
            lambda: FakePlaywright(browser, launch_error),
        )
        return browser

    return _install
