from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Iterable, MutableMapping, Union

from libs.artifact_upload.errors import TransferAttemptError

# Literal payloads are buffered verbatim; anything else is read as a stream.
Source = Union[str, bytes, bytearray, memoryview, BinaryIO, Iterable[bytes]]


@dataclass(frozen=True)
class TransportOptions:
    """Caller overrides for the HTTP transfer."""

    timeout_s: float | None = None
    verify: bool | str = True
    cert: str | tuple[str, str] | None = None
    proxies: Dict[str, str] | None = None


@dataclass
class UploadRequest:
    task_id: str
    run_id: int | str
    artifact_name: str
    expiration: datetime
    headers: MutableMapping[str, str] = field(default_factory=dict)
    put_url: str | None = None
    transport_options: TransportOptions | None = None
    compress: bool = False


@dataclass(frozen=True)
class MaterializedBuffer:
    """The durable buffer once written: where it is, how big, and the raw-bytes digest."""

    path: str
    size: int
    digest: str


@dataclass(frozen=True)
class UploadResult:
    digest: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {"digest": self.digest, "size": self.size}


@dataclass
class RetryState:
    attempt_number: int = 0
    last_error: TransferAttemptError | None = None


def normalize_expiration(value: datetime | int | float | str) -> datetime:
    """
    Coerce an expiration into a timezone-aware UTC datetime.

    Accepts a datetime (naive values are taken as UTC), epoch milliseconds,
    or an ISO-8601 string.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise TypeError("expiration must be a datetime, epoch milliseconds or ISO-8601 string")
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    else:
        raise TypeError("expiration must be a datetime, epoch milliseconds or ISO-8601 string")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
