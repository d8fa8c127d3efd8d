from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

MIB = 1024 * 1024
GIB = 1024 * MIB

# S3 multipart limits: every part but the last must be at least 5 MiB and
# no part may exceed 5 GiB.
MIN_PART_SIZE_BYTES = 5 * MIB
MAX_PART_SIZE_BYTES = 5 * GIB

DEFAULT_UPLOAD_PART_SIZE_BYTES = 5 * MIB
DEFAULT_COPY_PART_SIZE_BYTES = 512 * MIB

ADDRESSING_STYLES: tuple[str, ...] = ("auto", "path", "virtual")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def _check_part_size(name: str, value: int) -> None:
    if value < MIN_PART_SIZE_BYTES:
        raise ValueError(f"{name} must be greater than or equal to {MIN_PART_SIZE_BYTES}")
    if value > MAX_PART_SIZE_BYTES:
        raise ValueError(f"{name} must be less than or equal to {MAX_PART_SIZE_BYTES}")


@dataclass
class Settings:
    S3_BUCKET: str | None = None
    S3_KEY_PREFIX: str = ""
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "auto"
    S3_MAX_ATTEMPTS: int = 3
    S3_CONNECT_TIMEOUT: int = 10
    S3_READ_TIMEOUT: int = 60
    S3_MULTIPART_UPLOAD_PART_SIZE: int = DEFAULT_UPLOAD_PART_SIZE_BYTES
    S3_MULTIPART_COPY_PART_SIZE: int = DEFAULT_COPY_PART_SIZE_BYTES
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        _check_part_size("S3_MULTIPART_UPLOAD_PART_SIZE", self.S3_MULTIPART_UPLOAD_PART_SIZE)
        _check_part_size("S3_MULTIPART_COPY_PART_SIZE", self.S3_MULTIPART_COPY_PART_SIZE)
        style = (self.S3_ADDRESSING_STYLE or "auto").strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}"
            )
        self.S3_ADDRESSING_STYLE = style
        if self.S3_MAX_ATTEMPTS < 1:
            raise ValueError("S3_MAX_ATTEMPTS must be at least 1")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_BUCKET=_as_optional(os.environ.get("S3_BUCKET")),
            S3_KEY_PREFIX=os.environ.get("S3_KEY_PREFIX", cls.S3_KEY_PREFIX),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=_as_optional(os.environ.get("S3_ACCESS_KEY_ID")),
            S3_SECRET_ACCESS_KEY=_as_optional(os.environ.get("S3_SECRET_ACCESS_KEY")),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_MAX_ATTEMPTS=int(os.environ.get("S3_MAX_ATTEMPTS", cls.S3_MAX_ATTEMPTS)),
            S3_CONNECT_TIMEOUT=int(
                os.environ.get("S3_CONNECT_TIMEOUT", cls.S3_CONNECT_TIMEOUT)
            ),
            S3_READ_TIMEOUT=int(os.environ.get("S3_READ_TIMEOUT", cls.S3_READ_TIMEOUT)),
            S3_MULTIPART_UPLOAD_PART_SIZE=int(
                os.environ.get(
                    "S3_MULTIPART_UPLOAD_PART_SIZE", cls.S3_MULTIPART_UPLOAD_PART_SIZE
                )
            ),
            S3_MULTIPART_COPY_PART_SIZE=int(
                os.environ.get(
                    "S3_MULTIPART_COPY_PART_SIZE", cls.S3_MULTIPART_COPY_PART_SIZE
                )
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
