import os

import pytest

from blobstore.common import config
from blobstore.common.config import (
    DEFAULT_COPY_PART_SIZE_BYTES,
    DEFAULT_UPLOAD_PART_SIZE_BYTES,
    MAX_PART_SIZE_BYTES,
    MIN_PART_SIZE_BYTES,
    Settings,
    get_settings,
)

_ENV_KEYS = (
    "S3_BUCKET",
    "S3_KEY_PREFIX",
    "S3_ENDPOINT_URL",
    "S3_USE_SSL",
    "S3_ADDRESSING_STYLE",
    "S3_MAX_ATTEMPTS",
    "S3_MULTIPART_UPLOAD_PART_SIZE",
    "S3_MULTIPART_COPY_PART_SIZE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    saved = os.environ.copy()
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "ENV_FILE", tmp_path / ".env")
    yield
    # Values loaded from .env files are written straight into os.environ.
    os.environ.clear()
    os.environ.update(saved)


def test_defaults():
    settings = Settings.from_environment()

    assert settings.S3_BUCKET is None
    assert settings.S3_KEY_PREFIX == ""
    assert settings.S3_USE_SSL is True
    assert settings.S3_MULTIPART_UPLOAD_PART_SIZE == DEFAULT_UPLOAD_PART_SIZE_BYTES
    assert settings.S3_MULTIPART_COPY_PART_SIZE == DEFAULT_COPY_PART_SIZE_BYTES
    assert settings.LOG_LEVEL == "INFO"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "wiki")
    monkeypatch.setenv("S3_ENDPOINT_URL", "  ")
    monkeypatch.setenv("S3_USE_SSL", "false")
    monkeypatch.setenv("S3_ADDRESSING_STYLE", "PATH")
    monkeypatch.setenv("S3_MULTIPART_UPLOAD_PART_SIZE", str(16 * 1024 * 1024))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "wiki"
    assert settings.S3_ENDPOINT_URL is None
    assert settings.S3_USE_SSL is False
    assert settings.S3_ADDRESSING_STYLE == "path"
    assert settings.S3_MULTIPART_UPLOAD_PART_SIZE == 16 * 1024 * 1024
    assert settings.LOG_LEVEL == "DEBUG"


def test_env_file_does_not_override_environment(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text(
        "# local settings\nS3_BUCKET='from-file'\nS3_KEY_PREFIX=tenant\n", encoding="utf-8"
    )
    monkeypatch.setenv("S3_KEY_PREFIX", "from-env")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "from-file"
    assert settings.S3_KEY_PREFIX == "from-env"


@pytest.mark.parametrize(
    "field,value,message",
    [
        ("S3_MULTIPART_UPLOAD_PART_SIZE", MIN_PART_SIZE_BYTES - 1, "greater than or equal"),
        ("S3_MULTIPART_COPY_PART_SIZE", MAX_PART_SIZE_BYTES + 1, "less than or equal"),
    ],
)
def test_rejects_part_sizes_outside_limits(field, value, message):
    with pytest.raises(ValueError, match=message):
        Settings(**{field: value})


def test_rejects_unknown_addressing_style():
    with pytest.raises(ValueError, match="S3_ADDRESSING_STYLE"):
        Settings(S3_ADDRESSING_STYLE="sideways")


def test_rejects_zero_attempts():
    with pytest.raises(ValueError, match="S3_MAX_ATTEMPTS"):
        Settings(S3_MAX_ATTEMPTS=0)


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "first")
    first = get_settings()
    monkeypatch.setenv("S3_BUCKET", "second")

    assert get_settings() is first
    get_settings.cache_clear()  # type: ignore[attr-defined]
    assert get_settings().S3_BUCKET == "second"
