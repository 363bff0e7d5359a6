#!/usr/bin/env python3
"""Upload a local file to a put URL with integrity digest and retries."""

from __future__ import annotations
import argparse
import json
import sys
from datetime import datetime, timedelta, timezone

from libs.artifact_upload.config import UploadConfig
from libs.artifact_upload.errors import ArtifactUploadError
from libs.artifact_upload.logging import log_to
from libs.artifact_upload.uploader import upload_artifact

DEFAULT_EXPIRY_DAYS = 28


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="artifact-upload", description=__doc__)
    p.add_argument("--task-id", required=True)
    p.add_argument("--run-id", required=True)
    p.add_argument("--name", required=True, help="Artifact name, e.g. public/logs/live.log")
    p.add_argument("--file", required=True, help="Path of the file to upload")
    p.add_argument("--put-url", required=True, help="Pre-signed URL to PUT the artifact to")
    p.add_argument("--content-type", default="application/octet-stream")
    p.add_argument("--compress", action="store_true", help="Gzip the payload before upload")
    p.add_argument("--expires", help="ISO-8601 expiration (default: now + 28 days)")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = UploadConfig.from_env()
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    expires = args.expires or (datetime.now(timezone.utc) + timedelta(days=DEFAULT_EXPIRY_DAYS)).isoformat()
    headers = {"content-type": args.content_type}
    if args.compress:
        headers["content-encoding"] = "gzip"

    try:
        # stdout carries the result document
        with log_to(sys.stderr), open(args.file, "rb") as fh:
            result = upload_artifact(
                None,
                args.task_id,
                args.run_id,
                fh,
                args.name,
                expires,
                headers,
                put_url=args.put_url,
                compress=args.compress,
                config=config,
            )
    except FileNotFoundError:
        print(f"ERROR: File not found: {args.file}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except ArtifactUploadError as e:
        print(f"ERROR: {e.code}: {e.message}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
