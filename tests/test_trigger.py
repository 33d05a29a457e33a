import hashlib
import json
from types import SimpleNamespace

import httpx
import pytest
from botocore.auth import SigV4Auth
from botocore.credentials import Credentials
from botocore.exceptions import ProfileNotFound

from ab2.exceptions import SigningError, TriggerError
from ab2.trigger import (
    BotoSigningIdentity,
    Trigger,
    build_payload,
    payload_digest,
    sign_request,
)

URL = "https://abc123.execute-api.us-east-1.amazonaws.com/prod/m2c"


class StaticIdentity:
    def __init__(self, region: str | None = "us-east-1") -> None:
        self.region = region

    def credentials(self):
        return Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY").get_frozen_credentials()


def _factory(handler):
    def factory(**kwargs):
        return httpx.Client(transport=httpx.MockTransport(handler))

    return factory


def test_payload_is_deterministic():
    body = build_payload("ingest", "somekey")

    assert body == b'{"bucket":"ingest","key":"somekey"}'
    assert build_payload("ingest", "somekey") == body
    assert json.loads(body) == {"bucket": "ingest", "key": "somekey"}


def test_payload_digest_is_sha256_of_body():
    body = build_payload("ingest", "somekey")

    assert payload_digest(body) == hashlib.sha256(body).hexdigest()
    assert payload_digest(body) == payload_digest(build_payload("ingest", "somekey"))
    assert payload_digest(body) != hashlib.sha256(b"").hexdigest()


def test_sign_request_binds_service_region_and_payload():
    identity = StaticIdentity()
    body = build_payload("ingest", "somekey")

    request = sign_request(URL, body, identity)

    auth = request.headers["Authorization"]
    date = request.headers["X-Amz-Date"][:8]
    assert auth.startswith(f"AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/{date}/us-east-1/execute-api/aws4_request")
    assert "content-type" in auth
    assert request.headers["Content-Type"] == "application/json"
    assert SigV4Auth(identity.credentials(), "execute-api", "us-east-1").payload(request) == payload_digest(body)


def test_sign_request_requires_region():
    with pytest.raises(SigningError, match="region"):
        sign_request(URL, b"{}", StaticIdentity(region=None))


def test_boto_identity_without_credentials():
    session = SimpleNamespace(region_name="us-east-1", get_credentials=lambda: None)

    with pytest.raises(SigningError, match="credentials"):
        BotoSigningIdentity(session).credentials()


def test_send_posts_signed_payload_and_returns_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["content"] = request.content
        seen["headers"] = request.headers
        return httpx.Response(200, text='{"status": "started"}')

    body = Trigger(URL, StaticIdentity(), client_factory=_factory(handler)).send("ingest", "somekey")

    assert body == '{"status": "started"}'
    assert seen["method"] == "POST"
    assert seen["content"] == b'{"bucket":"ingest","key":"somekey"}'
    assert seen["headers"]["content-type"] == "application/json"
    assert seen["headers"]["authorization"].startswith("AWS4-HMAC-SHA256")
    assert "x-amz-date" in seen["headers"]


def test_non_200_reports_actual_status_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text='{"message":"Forbidden"}')

    with pytest.raises(TriggerError, match="403") as excinfo:
        Trigger(URL, StaticIdentity(), client_factory=_factory(handler)).send("ingest", "somekey")

    assert excinfo.value.details["status_code"] == "403"
    assert excinfo.value.details["body"] == '{"message":"Forbidden"}'


def test_accepted_status_is_not_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(202, text="queued")

    with pytest.raises(TriggerError):
        Trigger(URL, StaticIdentity(), client_factory=_factory(handler)).send("ingest", "somekey")


def test_transport_error_is_trigger_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    with pytest.raises(TriggerError, match="no route to host"):
        Trigger(URL, StaticIdentity(), client_factory=_factory(handler)).send("ingest", "somekey")


def test_broken_aws_profile_is_signing_error(monkeypatch):
    def broken_session(*args, **kwargs):
        raise ProfileNotFound(profile="does-not-exist")

    monkeypatch.setattr("boto3.session.Session", broken_session)

    with pytest.raises(SigningError, match="does-not-exist"):
        BotoSigningIdentity()
