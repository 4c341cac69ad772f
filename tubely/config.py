"""Application settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass


class MissingEnvironmentError(KeyError):
    """A required environment variable is unset or empty."""


def must_getenv(key: str) -> str:
    value = os.environ.get(key, "")
    if not value:
        raise MissingEnvironmentError(f"Environment variable {key} is not set")
    return value


@dataclass
class ApiConfig:
    db_path: str
    jwt_secret: str
    platform: str
    filepath_root: str
    assets_root: str
    s3_bucket: str
    s3_region: str
    s3_cf_distribution: str
    port: str

    def ensure_assets_dir(self) -> None:
        """Create the assets directory if it does not exist."""
        if not os.path.exists(self.assets_root):
            os.mkdir(self.assets_root, 0o755)


# Environment variable names, in the order of the ApiConfig fields.
_ENV_NAMES = (
    "DB_PATH",
    "JWT_SECRET",
    "PLATFORM",
    "FILEPATH_ROOT",
    "ASSETS_ROOT",
    "S3_BUCKET",
    "S3_REGION",
    "S3_CF_DISTRO",
    "PORT",
)


def load_config() -> ApiConfig:
    """Build the configuration from required environment variables."""
    return ApiConfig(*(must_getenv(name) for name in _ENV_NAMES))