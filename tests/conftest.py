"""
Pytest configuration and shared fixtures for all test types.

Test lanes:
- tests/unit: pure library behavior, collaborators mocked
- tests/contracts: end-to-end upload scenarios against a local PUT server
"""

import json
import os
import pathlib
import sys

import pytest

# Ensure code/ is importable
_REPO_ROOT = pathlib.Path(__file__).resolve().parent.parent
_CODE_DIR = _REPO_ROOT / "code"
if str(_CODE_DIR) not in sys.path:
    sys.path.insert(0, str(_CODE_DIR))

from tests.tools.put_server import PutServer  # noqa: E402


# ============================================================================
# Auto-apply markers based on folder structure
# ============================================================================
FOLDER_MARKS = [
    (("tests", "unit"), ("unit",)),
    (("tests", "contracts"), ("contracts",)),
]


def _under(path_posix: str, *segments: str) -> bool:
    return f"/{'/'.join(segments)}/" in path_posix


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers from FOLDER_MARKS."""
    for item in items:
        p = pathlib.Path(str(item.fspath)).as_posix()
        for segs, marks in FOLDER_MARKS:
            if _under(p, *segs):
                for m in marks:
                    item.add_marker(getattr(pytest.mark, m))


# ============================================================================
# Global environment setup
# ============================================================================
_PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")


@pytest.fixture(autouse=True)
def _stable_env(monkeypatch: pytest.MonkeyPatch):
    """Set stable environment for all tests."""
    monkeypatch.setenv("TZ", "UTC")
    monkeypatch.setenv("PYTHONUNBUFFERED", "1")
    monkeypatch.setenv("LOG_STREAM", "stdout")
    monkeypatch.setenv("JSON_LOGS", "1")
    monkeypatch.setenv("LOG_SAMPLE_DEBUG", "0")

    # The local PUT server must be reached directly
    for var in _PROXY_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")

    for key in list(os.environ):
        if key.startswith("ARTIFACT_UPLOAD_"):
            monkeypatch.delenv(key)

    yield


# ============================================================================
# Shared fixtures
# ============================================================================
@pytest.fixture
def put_server():
    """Running local PUT server; script failures with ``put_server.script([...])``."""
    server = PutServer().start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def log_events(capsys):
    """
    Return a callable that parses JSON log lines written to stdout so far.

    Optionally filter by event name: ``log_events("upload.retry")``.
    """

    def _read(event: str | None = None) -> list[dict]:
        out = capsys.readouterr().out
        _read.seen.extend(json.loads(line) for line in out.splitlines() if line.startswith("{"))
        if event is None:
            return list(_read.seen)
        return [e for e in _read.seen if e.get("event") == event]

    _read.seen = []
    return _read


@pytest.fixture
def no_sleep():
    """Sleep stub recording requested delays in seconds."""
    delays: list[float] = []

    def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
