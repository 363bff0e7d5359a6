from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping
from urllib.parse import urlsplit

import requests

from libs.artifact_upload.errors import TransferAttemptError
from libs.artifact_upload.logging import error, info
from libs.artifact_upload.types import TransportOptions

DEFAULT_ATTEMPT_TIMEOUT_S = 5 * 60
_ALLOWED_SCHEMES = ("http", "https")


# --- Data structures ---------------------------------------------------------
@dataclass(frozen=True)
class TransferTarget:
    """Everything one PUT attempt needs besides the body."""

    scheme: str
    hostname: str
    path: str
    port: int | None = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S
    verify: bool | str = True
    cert: str | tuple[str, str] | None = None
    proxies: Dict[str, str] | None = None

    @property
    def url(self) -> str:
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        netloc = f"{host}:{self.port}" if self.port else host
        return f"{self.scheme}://{netloc}{self.path}"


def build_target(
    put_url: str,
    headers: Mapping[str, str],
    transport_options: TransportOptions | None = None,
    *,
    default_timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S,
) -> TransferTarget:
    """
    Merge caller transport overrides with the connection parameters of ``put_url``.

    Host, port and path always come from the URL; the caller controls
    timeout, TLS verification, client cert and proxies.
    """
    parsed = urlsplit(put_url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' not in allowed schemes: {_ALLOWED_SCHEMES}")
    if not parsed.hostname:
        raise ValueError("Put URL missing hostname")

    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"

    opts = transport_options or TransportOptions()
    return TransferTarget(
        scheme=parsed.scheme,
        hostname=parsed.hostname,
        path=path,
        port=parsed.port,
        headers={k: str(v) for k, v in headers.items()},
        timeout_s=opts.timeout_s if opts.timeout_s is not None else default_timeout_s,
        verify=opts.verify,
        cert=opts.cert,
        proxies=opts.proxies,
    )


# --- Executor ----------------------------------------------------------------
class TransferExecutor:
    """
    Performs single PUT attempts of a local buffer.

    Responsibilities:
      - Re-open the buffer and stream it as the request body.
      - Drain the response without keeping it in memory.
      - Classify the outcome: 200 is success, anything else is a
        TransferAttemptError (status, network or timeout).

    The timeout applies to connecting and to each socket read, so a
    transfer that keeps making progress is not cut off.
    """

    def __init__(self, session: requests.Session | None = None, *, chunk_size: int = 64 * 1024) -> None:
        self._session = session or requests.Session()
        self._chunk_size = chunk_size

    def close(self) -> None:
        self._session.close()

    def put(self, target: TransferTarget, buffer_path: str, attempt_number: int = 1) -> None:
        if attempt_number > 1:
            info("upload.retry", put_url=target.url, attempt_number=attempt_number)
        info("upload.attempt.start", put_url=target.url, attempt_number=attempt_number)

        try:
            body = open(buffer_path, "rb")
        except OSError as e:
            error("upload.buffer.read_error", attempt_number=attempt_number, err=e)
            raise TransferAttemptError(f"Could not open upload buffer: {e}", cause="network") from e

        with body:
            try:
                # requests sends an empty file object chunked; an empty bytes body keeps content-length: 0
                data = body if os.fstat(body.fileno()).st_size else b""
                resp = self._session.put(
                    target.url,
                    data=data,
                    headers=dict(target.headers),
                    timeout=target.timeout_s,
                    verify=target.verify,
                    cert=target.cert,
                    proxies=target.proxies,
                    stream=True,
                )
            except requests.exceptions.Timeout as e:
                error("upload.attempt.timeout", attempt_number=attempt_number, timeout_s=target.timeout_s, err=e)
                raise TransferAttemptError(f"Upload timed out after {target.timeout_s}s", cause="timeout") from e
            except requests.exceptions.RequestException as e:
                error("upload.attempt.network_error", attempt_number=attempt_number, err=e)
                raise TransferAttemptError(f"HTTP request failed: {e}", cause="network") from e
            except OSError as e:
                error("upload.buffer.read_error", attempt_number=attempt_number, err=e)
                raise TransferAttemptError(f"Could not read upload buffer: {e}", cause="network") from e

        with resp:
            try:
                for _ in resp.iter_content(chunk_size=self._chunk_size):
                    pass
            except requests.exceptions.RequestException as e:
                error("upload.attempt.network_error", attempt_number=attempt_number, err=e)
                raise TransferAttemptError(f"Failed reading upload response: {e}", cause="network") from e

            if resp.status_code != 200:
                raise TransferAttemptError(
                    f"Could not upload artifact. Status Code: {resp.status_code}",
                    cause="status",
                    status_code=resp.status_code,
                )
