"""ab2 command line: upload files to the ingest bucket and trigger processing."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from ab2.exceptions import Ab2Error
from ab2.fetch import LOCAL, FetchTarget, Fetcher
from ab2.logging_config import get_logger, setup_logging
from ab2.settings import Settings, get_settings
from ab2.storage import ObjectStorage, S3Storage
from ab2.trigger import BotoSigningIdentity, Trigger

logger = get_logger("cli")

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def _default_log_level() -> str:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    return level if level in LOG_LEVELS else "INFO"


# -----------------------------
# Commands
# -----------------------------
def cmd_upload(args: argparse.Namespace, settings: Settings) -> None:
    """
    Fetch the file named by --path using --protocol and put it into the
    ingest bucket.
    """
    target = FetchTarget(protocol=args.protocol, path=args.path, filetype=args.filetype)
    fetcher = Fetcher(settings)
    fetcher.check(target)
    bucket = settings.require("ingest_bucket")
    logger.info("Uploading {} via {} to bucket {}", target.path, target.protocol, bucket)

    result = fetcher.fetch(target)
    try:
        storage: ObjectStorage = S3Storage(bucket)
        uri = storage.put_file(result.key, result.local_path)
    finally:
        result.cleanup()

    print(f"Upload result: {uri}")
    print("Succeeded")


def cmd_process(args: argparse.Namespace, settings: Settings) -> None:
    """
    Trigger downstream processing of an object already in the ingest bucket.
    """
    url = settings.require("m2c_url")
    bucket = settings.require("ingest_bucket")
    logger.info("Triggering processing of s3://{}/{}", bucket, args.path)

    body = Trigger(url, BotoSigningIdentity()).send(bucket, args.path)
    print(body)


# -----------------------------
# Argparse wiring
# -----------------------------
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ab2",
        description="ab2 command line",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Configuration file (default: $AB2_CONFIG or ~/go/bin/config.yaml)",
    )
    p.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=_default_log_level(),
        help="Log level (default: $LOG_LEVEL or INFO)",
    )

    sub = p.add_subparsers(dest="command", required=True)

    # upload
    p_upload = sub.add_parser("upload", aliases=["u"], help="upload to s3")
    p_upload.add_argument(
        "--filetype",
        "-f",
        default="csv",
        help="file type, possible values csv|png|jpg (default: csv)",
    )
    p_upload.add_argument(
        "--protocol",
        "-p",
        default=LOCAL,
        help="source protocol, possible values local|ipfs|http (default: local)",
    )
    p_upload.add_argument("--path", "-u", required=True, help="file path, IPFS identifier or URL")
    p_upload.set_defaults(func=cmd_upload)

    # process
    p_process = sub.add_parser("process", aliases=["p"], help="trigger m2c process")
    p_process.add_argument("--path", "-u", required=True, help="object key in the ingest bucket")
    p_process.set_defaults(func=cmd_process)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_file = os.getenv("LOG_FILE")
    setup_logging(
        level=args.log_level,
        json_format=os.getenv("JSON_LOGGING", "false").lower() in {"true", "1", "yes"},
        log_file=Path(log_file) if log_file else None,
    )

    try:
        settings = get_settings(str(args.config) if args.config else None)
        args.func(args, settings)
    except Ab2Error as exc:
        logger.error("{}: {}", type(exc).__name__, exc.message)
        if exc.details:
            logger.debug("Error details: {}", exc.details)
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
