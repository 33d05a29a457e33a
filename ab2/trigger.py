"""Signed processing trigger.

Notifies the processing endpoint that an object in the ingest bucket is
ready. The request body is a small JSON document naming the bucket and key;
it is signed with SigV4 for API Gateway (``execute-api``) using credentials
and region from the ambient AWS configuration.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Callable, Protocol

import boto3
import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError

from ab2.exceptions import SigningError, TriggerError
from ab2.logging_config import get_logger

logger = get_logger("trigger")

SERVICE_NAME = "execute-api"


class SigningIdentity(Protocol):
    region: str | None

    def credentials(self) -> Any:
        ...


class BotoSigningIdentity:
    """Resolves credentials and region through boto3's default chain."""

    def __init__(self, session: boto3.session.Session | None = None) -> None:
        if session is None:
            try:
                session = boto3.session.Session()
            except BotoCoreError as exc:
                raise SigningError(f"Cannot load AWS configuration: {exc}") from exc
        self.session = session

    @property
    def region(self) -> str | None:
        try:
            return self.session.region_name
        except BotoCoreError as exc:
            raise SigningError(f"Cannot resolve AWS region: {exc}") from exc

    def credentials(self) -> Any:
        try:
            creds = self.session.get_credentials()
        except BotoCoreError as exc:
            raise SigningError(f"Cannot resolve AWS credentials: {exc}") from exc
        if creds is None:
            raise SigningError("No AWS credentials found")
        return creds.get_frozen_credentials()


def build_payload(bucket: str, key: str) -> bytes:
    return json.dumps({"bucket": bucket, "key": key}, separators=(",", ":"), sort_keys=True).encode("utf-8")


def payload_digest(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


def sign_request(
    url: str,
    body: bytes,
    identity: SigningIdentity,
    *,
    service: str = SERVICE_NAME,
) -> AWSRequest:
    """Build a POST for ``url`` carrying ``body`` and sign it with SigV4.

    The payload hash used in the canonical request is the SHA-256 of
    ``body``. The signature is timestamped when this function runs.
    """
    region = identity.region
    if not region:
        raise SigningError("No AWS region configured")
    credentials = identity.credentials()

    request = AWSRequest(
        method="POST",
        url=url,
        data=body,
        headers={"Content-Type": "application/json"},
    )
    try:
        SigV4Auth(credentials, service, region).add_auth(request)
    except BotoCoreError as exc:
        raise SigningError(f"Signing request for {url} failed: {exc}", {"url": url}) from exc
    return request


class Trigger:
    def __init__(
        self,
        url: str,
        identity: SigningIdentity,
        *,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
    ) -> None:
        self.url = url
        self.identity = identity
        self.client_factory = client_factory

    def send(self, bucket: str, key: str) -> str:
        """Send the trigger for ``bucket``/``key`` and return the response body."""
        body = build_payload(bucket, key)
        logger.info("Trigger payload {}", body.decode("utf-8"))
        logger.info("Payload hash {}", payload_digest(body))

        signed = sign_request(self.url, body, self.identity)
        headers = dict(signed.headers.items())
        logger.debug("POST {} headers={}", self.url, headers)

        try:
            with self.client_factory() as client:
                response = client.post(self.url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise TriggerError(f"Failed to call remote service: {exc}", {"url": self.url}) from exc

        logger.debug("Response from {}: {} {}", self.url, response.status_code, response.reason_phrase)
        if response.status_code != 200:
            raise TriggerError(
                f"Processing trigger returned status {response.status_code}: {response.text}",
                {"url": self.url, "status_code": str(response.status_code), "body": response.text},
            )
        return response.text


__all__ = [
    "SERVICE_NAME",
    "SigningIdentity",
    "BotoSigningIdentity",
    "build_payload",
    "payload_digest",
    "sign_request",
    "Trigger",
]
