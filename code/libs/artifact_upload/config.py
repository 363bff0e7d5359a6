from __future__ import annotations
import os
from dataclasses import dataclass, replace
from typing import Mapping

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class UploadConfig:
    """Retry, timeout and buffering knobs for artifact uploads."""

    max_attempts: int = 10
    min_timeout_ms: int = 1000
    max_timeout_ms: int = 30000
    # 2 * 1000 * factor**10 ~= max_timeout_ms
    factor: float = 1.311
    randomize: bool = True
    attempt_timeout_s: float = 5 * 60
    chunk_size: int = 64 * 1024
    tmp_dir: str | None = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.attempt_timeout_s <= 0:
            raise ValueError(f"attempt_timeout_s must be > 0, got {self.attempt_timeout_s}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "UploadConfig":
        """
        Build config from ``ARTIFACT_UPLOAD_*`` environment variables.

        Unset variables keep their defaults. A value that does not parse
        raises ``ValueError`` naming the variable.
        """
        env = os.environ if environ is None else environ
        overrides = {}
        for name, (key, kind) in _ENV_FIELDS.items():
            raw = env.get(key)
            if raw is None or raw == "":
                continue
            overrides[name] = _parse(key, raw, kind)
        return replace(cls(), **overrides)


def _parse(key: str, raw: str, kind: type):
    if kind is bool:
        v = raw.strip().lower()
        if v in _TRUTHY:
            return True
        if v in _FALSY:
            return False
        raise ValueError(f"{key}: expected a boolean, got '{raw}'")
    if kind is str:
        return raw
    try:
        return kind(raw)
    except ValueError as e:
        raise ValueError(f"{key}: expected {kind.__name__}, got '{raw}'") from e


_ENV_FIELDS = {
    "max_attempts": ("ARTIFACT_UPLOAD_MAX_ATTEMPTS", int),
    "min_timeout_ms": ("ARTIFACT_UPLOAD_MIN_TIMEOUT_MS", int),
    "max_timeout_ms": ("ARTIFACT_UPLOAD_MAX_TIMEOUT_MS", int),
    "factor": ("ARTIFACT_UPLOAD_BACKOFF_FACTOR", float),
    "randomize": ("ARTIFACT_UPLOAD_RANDOMIZE", bool),
    "attempt_timeout_s": ("ARTIFACT_UPLOAD_ATTEMPT_TIMEOUT_S", float),
    "chunk_size": ("ARTIFACT_UPLOAD_CHUNK_SIZE", int),
    "tmp_dir": ("ARTIFACT_UPLOAD_TMP_DIR", str),
}
