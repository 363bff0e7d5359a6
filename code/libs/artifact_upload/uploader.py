# libs/artifact_upload/uploader.py
"""
Upload one task artifact to object storage.

The source is materialized once into a temp file (hashing and, for streams,
optionally gzip-compressing on the way), a put URL is obtained from the
registrar unless one was supplied, and the file is PUT with bounded retries.
The temp file is removed on every exit path.
"""

from __future__ import annotations
import contextlib
import os
import random
import tempfile
import time
from datetime import datetime
from typing import Callable, Iterator, MutableMapping

from libs.artifact_upload.config import UploadConfig
from libs.artifact_upload.errors import ArtifactUploadError
from libs.artifact_upload.logging import debug, error, info, scope
from libs.artifact_upload.pipe import materialize
from libs.artifact_upload.registrar import ArtifactRegistrar, request_put_url
from libs.artifact_upload.retry import run_with_retries
from libs.artifact_upload.transfer import TransferExecutor, build_target
from libs.artifact_upload.types import (
    Source,
    TransportOptions,
    UploadRequest,
    UploadResult,
    normalize_expiration,
)


@contextlib.contextmanager
def durable_buffer(tmp_dir: str | None = None) -> Iterator[str]:
    """Yield a fresh, uniquely named temp file path; delete it on exit."""
    fd, path = tempfile.mkstemp(prefix="artifact-", suffix=".upload", dir=tmp_dir)
    os.close(fd)
    debug("upload.buffer.created", path=path)
    try:
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            # Never mask whatever is already propagating.
            error("upload.cleanup.error", path=path, err=e)


def upload_artifact(
    registrar: ArtifactRegistrar | None,
    task_id: str,
    run_id: int | str,
    source: Source,
    artifact_name: str,
    expiration: datetime | int | float | str,
    headers: MutableMapping[str, str] | None = None,
    put_url: str | None = None,
    transport_options: TransportOptions | None = None,
    compress: bool = False,
    *,
    config: UploadConfig | None = None,
    executor: TransferExecutor | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> UploadResult:
    """
    Upload ``source`` as ``artifact_name`` for the given task run.

    ``headers`` is updated in place with ``content-length``. Literal
    sources (``str``/``bytes``) are uploaded uncompressed even when
    ``compress`` is set.

    Returns:
        UploadResult with the SHA-256 of the raw bytes and the number of
        bytes sent

    Raises:
        MaterializationError: the source could not be buffered (no attempt made)
        RegistrarError: no put URL supplied and the registrar gave none
        RetryExhaustedError: every PUT attempt failed
    """
    request = UploadRequest(
        task_id=task_id,
        run_id=run_id,
        artifact_name=artifact_name,
        expiration=normalize_expiration(expiration),
        headers=headers if headers is not None else {},
        put_url=put_url,
        transport_options=transport_options,
        compress=compress,
    )
    return upload_request(registrar, request, source, config=config, executor=executor, sleep=sleep, rng=rng)


def upload_request(
    registrar: ArtifactRegistrar | None,
    request: UploadRequest,
    source: Source,
    *,
    config: UploadConfig | None = None,
    executor: TransferExecutor | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> UploadResult:
    cfg = config or UploadConfig()
    owns_executor = executor is None
    executor = executor or TransferExecutor(chunk_size=cfg.chunk_size)

    with scope(task_id=request.task_id, run_id=request.run_id, artifact_name=request.artifact_name):
        try:
            with durable_buffer(cfg.tmp_dir) as path:
                buf = materialize(
                    source,
                    path,
                    compress=request.compress,
                    headers=request.headers,
                    chunk_size=cfg.chunk_size,
                )

                put_url = request.put_url
                if not put_url:
                    if registrar is None:
                        raise ValueError("No put URL supplied and no registrar to request one from")
                    put_url = request_put_url(
                        registrar,
                        request.task_id,
                        request.run_id,
                        request.artifact_name,
                        expires=request.expiration,
                        content_type=request.headers.get("content-type"),
                    )

                target = build_target(
                    put_url,
                    request.headers,
                    request.transport_options,
                    default_timeout_s=cfg.attempt_timeout_s,
                )

                with scope(put_url=put_url):
                    info("upload.start", size=buf.size, compress=request.compress)
                    run_with_retries(
                        lambda attempt: executor.put(target, buf.path, attempt),
                        config=cfg,
                        sleep=sleep,
                        rng=rng,
                    )
                    info("upload.complete", hash=buf.digest, size=buf.size)
        except ArtifactUploadError as e:
            error("upload.failed", code=e.code, err=e.message)
            raise
        finally:
            if owns_executor:
                executor.close()

    return UploadResult(digest=buf.digest, size=buf.size)
