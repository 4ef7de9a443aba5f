"""
Environment configuration loader for the artifact uploader.

Loads connection and runtime settings from a .env file or environment
variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from artifact_uploader.uploader.models import (
    DEFAULT_TRANSFER_TIMEOUT_SECONDS,
    ProxySettings,
    TransportCredentials,
)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_str(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


@dataclass
class UploaderSettings:
    """Uploader environment configuration."""

    # Storage service
    provider: str = "s3"
    region: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = field(default=None, repr=False)
    use_role: bool = False
    endpoint_url: Optional[str] = None
    gcs_project: Optional[str] = None

    # Proxy
    proxy_host: Optional[str] = None
    proxy_port: int = 8080
    proxy_user: Optional[str] = None
    proxy_password: Optional[str] = field(default=None, repr=False)

    # Runtime
    spill_dir: Optional[str] = None
    upload_timeout_seconds: int = DEFAULT_TRANSFER_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "UploaderSettings":
        """
        Load configuration from environment variables.

        Loads the project's .env file if present, then reads os.environ.

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        provider = (os.getenv("STORAGE_PROVIDER") or "s3").strip().lower()
        if provider not in ("s3", "gcs"):
            raise ValueError(
                f"STORAGE_PROVIDER must be 's3' or 'gcs', got {provider!r}. "
                "Set it in .env or export it."
            )

        try:
            proxy_port = int(os.getenv("UPLOAD_PROXY_PORT", "8080"))
            timeout = int(os.getenv("UPLOAD_TIMEOUT_SECONDS", "300"))
        except ValueError as e:
            raise ValueError(f"Invalid numeric setting: {e}") from e

        return cls(
            provider=provider,
            region=_env_str("AWS_REGION") or _env_str("AWS_DEFAULT_REGION"),
            access_key=_env_str("AWS_ACCESS_KEY_ID"),
            secret_key=_env_str("AWS_SECRET_ACCESS_KEY"),
            use_role=_env_flag("UPLOAD_USE_ROLE"),
            endpoint_url=_env_str("S3_ENDPOINT_URL"),
            gcs_project=_env_str("GCS_PROJECT"),
            proxy_host=_env_str("UPLOAD_PROXY_HOST"),
            proxy_port=proxy_port,
            proxy_user=_env_str("UPLOAD_PROXY_USER"),
            proxy_password=_env_str("UPLOAD_PROXY_PASSWORD"),
            spill_dir=_env_str("UPLOAD_SPILL_DIR"),
            upload_timeout_seconds=timeout,
        )

    def credentials(self) -> TransportCredentials:
        return TransportCredentials(
            provider=self.provider,
            access_key=self.access_key,
            secret_key=self.secret_key,
            use_role=self.use_role,
            endpoint_url=self.endpoint_url,
            project=self.gcs_project,
            timeout_seconds=self.upload_timeout_seconds,
        )

    def proxy(self) -> Optional[ProxySettings]:
        if not self.proxy_host:
            return None
        return ProxySettings(
            host=self.proxy_host,
            port=self.proxy_port,
            username=self.proxy_user,
            password=self.proxy_password,
        )


# Global settings instance (lazy-loaded)
_settings: Optional[UploaderSettings] = None


def get_settings() -> UploaderSettings:
    """
    Get or create the settings singleton.

    Example:
        >>> settings = get_settings()
        >>> settings.provider
        's3'
    """
    global _settings
    if _settings is None:
        _settings = UploaderSettings.from_env()
    return _settings
