"""
Canonical error codes and exceptions for artifact uploads.

Every exception raised out of the upload pipeline carries a stable ``code``
so callers can branch on it without matching message text. The retry loop
consults ``is_retryable`` to decide whether a failure is transient.
"""

from __future__ import annotations

# Materialization errors
ERR_MATERIALIZATION = "ERR_MATERIALIZATION"

# Transfer errors (one attempt)
ERR_TRANSFER_STATUS = "ERR_TRANSFER_STATUS"
ERR_TRANSFER_NETWORK = "ERR_TRANSFER_NETWORK"
ERR_TRANSFER_TIMEOUT = "ERR_TRANSFER_TIMEOUT"

# Terminal errors
ERR_RETRY_EXHAUSTED = "ERR_RETRY_EXHAUSTED"
ERR_REGISTRAR = "ERR_REGISTRAR"

RETRYABLE = {
    # Transient errors - should retry (object store hiccups, network, timeouts)
    ERR_TRANSFER_STATUS: True,
    ERR_TRANSFER_NETWORK: True,
    ERR_TRANSFER_TIMEOUT: True,
    # Permanent errors - the source may not be re-readable, or the loop already ran
    ERR_MATERIALIZATION: False,
    ERR_RETRY_EXHAUSTED: False,
    ERR_REGISTRAR: False,
}


def is_retryable(code: str) -> bool:
    """Check if an error code indicates a retryable failure."""
    return RETRYABLE.get(code, False)


class ArtifactUploadError(Exception):
    """Base exception for artifact upload failures."""

    code = "ERR_UPLOAD"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MaterializationError(ArtifactUploadError):
    """Raised when the source cannot be turned into the local buffer."""

    code = ERR_MATERIALIZATION


class RegistrarError(ArtifactUploadError):
    """Raised when the artifact registrar does not hand back a put URL."""

    code = ERR_REGISTRAR


class TransferAttemptError(ArtifactUploadError):
    """
    One failed PUT attempt.

    ``cause`` is one of ``"status"``, ``"network"`` or ``"timeout"``;
    ``status_code`` is set only for ``"status"``.
    """

    _CODES = {
        "status": ERR_TRANSFER_STATUS,
        "network": ERR_TRANSFER_NETWORK,
        "timeout": ERR_TRANSFER_TIMEOUT,
    }

    def __init__(self, message: str, *, cause: str, status_code: int | None = None):
        if cause not in self._CODES:
            raise ValueError(f"Unknown transfer failure cause '{cause}'. Allowed: {sorted(self._CODES)}")
        super().__init__(message)
        self.cause = cause
        self.status_code = status_code
        self.code = self._CODES[cause]


class RetryExhaustedError(ArtifactUploadError):
    """Raised when every attempt failed; wraps the last attempt's error."""

    code = ERR_RETRY_EXHAUSTED

    def __init__(self, message: str, *, attempts: int, last_error: TransferAttemptError):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error

    @property
    def status_code(self) -> int | None:
        return self.last_error.status_code
