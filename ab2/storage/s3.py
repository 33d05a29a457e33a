from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ab2.exceptions import StorageError, UploadError
from ab2.logging_config import get_logger

logger = get_logger("storage")


class S3Storage:
    def __init__(self, bucket: str, region: Optional[str] = None, client: Any = None) -> None:
        self.bucket = bucket
        if client is None:
            try:
                session = boto3.session.Session(region_name=region) if region else boto3.session.Session()
                client = session.client("s3")
            except BotoCoreError as exc:
                raise StorageError(f"Cannot create S3 client for bucket {bucket}: {exc}", {"bucket": bucket}) from exc
        self.client = client

    def uri(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def put_file(self, key: str, src_path: Path) -> str:
        """Upload ``src_path`` under ``key``, replacing any existing object."""
        details = {"bucket": self.bucket, "key": key, "path": str(src_path)}
        try:
            fp = Path(src_path).open("rb")
        except OSError as exc:
            raise UploadError(f"Cannot open {src_path}: {exc}", details) from exc

        with fp:
            try:
                result = self.client.put_object(Bucket=self.bucket, Key=key, Body=fp)
            except (BotoCoreError, ClientError) as exc:
                raise UploadError(f"Upload of {src_path} to {self.uri(key)} failed: {exc}", details) from exc

        logger.debug("PutObject response for {}: {}", self.uri(key), result)
        return self.uri(key)


__all__ = ["S3Storage"]
