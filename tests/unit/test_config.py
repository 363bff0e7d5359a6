"""Tests for upload configuration defaults and environment overrides."""

import dataclasses

import pytest

from libs.artifact_upload.config import UploadConfig


def test_defaults():
    cfg = UploadConfig()
    assert cfg.max_attempts == 10
    assert cfg.min_timeout_ms == 1000
    assert cfg.max_timeout_ms == 30000
    assert cfg.factor == 1.311
    assert cfg.randomize is True
    assert cfg.attempt_timeout_s == 300
    assert cfg.chunk_size == 64 * 1024
    assert cfg.tmp_dir is None


def test_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        UploadConfig().max_attempts = 3


def test_from_env_without_overrides():
    assert UploadConfig.from_env({}) == UploadConfig()


def test_from_env_overrides():
    cfg = UploadConfig.from_env(
        {
            "ARTIFACT_UPLOAD_MAX_ATTEMPTS": "3",
            "ARTIFACT_UPLOAD_BACKOFF_FACTOR": "2",
            "ARTIFACT_UPLOAD_RANDOMIZE": "false",
            "ARTIFACT_UPLOAD_ATTEMPT_TIMEOUT_S": "12.5",
            "ARTIFACT_UPLOAD_TMP_DIR": "/var/tmp/uploads",
            "ARTIFACT_UPLOAD_CHUNK_SIZE": "",
        }
    )
    assert cfg.max_attempts == 3
    assert cfg.factor == 2.0
    assert cfg.randomize is False
    assert cfg.attempt_timeout_s == 12.5
    assert cfg.tmp_dir == "/var/tmp/uploads"
    assert cfg.chunk_size == 64 * 1024


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("ARTIFACT_UPLOAD_MAX_TIMEOUT_MS", "5000")
    assert UploadConfig.from_env().max_timeout_ms == 5000


@pytest.mark.parametrize(
    "key,value",
    [
        ("ARTIFACT_UPLOAD_MAX_ATTEMPTS", "ten"),
        ("ARTIFACT_UPLOAD_BACKOFF_FACTOR", "fast"),
        ("ARTIFACT_UPLOAD_RANDOMIZE", "sometimes"),
    ],
)
def test_from_env_invalid_value_names_variable(key, value):
    with pytest.raises(ValueError, match=key):
        UploadConfig.from_env({key: value})


@pytest.mark.parametrize(
    "kwargs,match",
    [
        ({"max_attempts": 0}, "max_attempts"),
        ({"chunk_size": 0}, "chunk_size"),
        ({"attempt_timeout_s": 0}, "attempt_timeout_s"),
    ],
)
def test_rejects_nonsense_values(kwargs, match):
    with pytest.raises(ValueError, match=match):
        UploadConfig(**kwargs)
