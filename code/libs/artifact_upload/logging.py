from __future__ import annotations
import contextlib
import contextvars
import json
import os
import random
import sys
import time
import typing as t

from libs.artifact_upload.redaction import redact_msg

_ctx: contextvars.ContextVar[dict | None] = contextvars.ContextVar("upload_log_ctx", default=None)
_stream: contextvars.ContextVar[t.TextIO | None] = contextvars.ContextVar("upload_log_stream", default=None)


def _ts() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@contextlib.contextmanager
def scope(**fields) -> t.Iterator[None]:
    """Bind fields for the duration of a block, restoring the outer context afterwards."""
    ctx = dict(_ctx.get() or {})
    ctx.update({k: v for k, v in fields.items() if v is not None})
    token = _ctx.set(ctx)
    try:
        yield
    finally:
        _ctx.reset(token)


@contextlib.contextmanager
def log_to(stream: t.TextIO) -> t.Iterator[None]:
    """Send log lines to ``stream`` for the duration of a block, whatever LOG_STREAM says."""
    token = _stream.set(stream)
    try:
        yield
    finally:
        _stream.reset(token)


def _redact(s: str) -> str:
    return redact_msg(s)


def _sample(env_key: str, default: float = 0.0) -> bool:
    """Check if event should be sampled based on environment rate."""
    try:
        rate = float(os.getenv(env_key, default))
    except ValueError:
        rate = default
    return random.random() < rate


def _log_stream():
    override = _stream.get()
    if override is not None:
        return override
    stream_name = (os.getenv("LOG_STREAM") or "stdout").lower()
    return sys.stderr if stream_name == "stderr" else sys.stdout


def log(level: str, event: str, **fields):
    """Emit structured JSON log event with context binding."""
    use_json = os.getenv("JSON_LOGS", "1").lower() not in ("0", "false", "no")

    stream = _log_stream()

    base = {
        "ts": _ts(),
        "level": level,
        "event": event,
        "service": os.getenv("SERVICE", "artifact-upload"),
        "env": os.getenv("APP_ENV", "dev"),
        "version": os.getenv("RELEASE", ""),
    }
    base.update(_ctx.get() or {})

    for k, v in list(fields.items()):
        if isinstance(v, BaseException):
            v = f"{type(v).__name__}: {v}"
        if isinstance(v, str):
            fields[k] = _redact(v)[:2000]  # Field truncation at 2000 chars
    for k, v in list(base.items()):
        if isinstance(v, str) and k not in ("ts", "level", "event"):
            base[k] = _redact(v)
    base.update(fields)

    if use_json:
        json.dump(base, stream, separators=(",", ":"), sort_keys=True, default=str)
        stream.write("\n")
    else:
        ctx_fields = " ".join(f"{k}={v}" for k, v in base.items() if k not in ("ts", "level", "event"))
        stream.write(f"[{base['level'].upper()}] {base['event']} {ctx_fields}\n")

    stream.flush()


def info(event: str, **fields):
    log("info", event, **fields)


def warn(event: str, **fields):
    log("warn", event, **fields)


def error(event: str, **fields):
    log("error", event, **fields)


def debug(event: str, **fields):
    """Debug events with volume control via LOG_SAMPLE_DEBUG."""
    if _sample("LOG_SAMPLE_DEBUG", 0.0):
        log("debug", event, **fields)
