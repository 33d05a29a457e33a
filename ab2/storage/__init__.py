"""Object storage sink for fetched files."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .s3 import S3Storage


class ObjectStorage(Protocol):
    def put_file(self, key: str, src_path: Path) -> str:  # returns uri
        ...


__all__ = ["ObjectStorage", "S3Storage"]
