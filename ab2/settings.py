from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ab2.exceptions import ConfigurationError

# AWS_* variables may be supplied through a .env file in the working directory
load_dotenv()

DEFAULT_CONFIG_PATH = Path.home() / "go" / "bin" / "config.yaml"
CONFIG_ENV = "AB2_CONFIG"


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    m2c_url: str | None = Field(default=None, alias="m2c-url")
    ingest_bucket: str | None = Field(default=None, alias="ingest-bucket")
    ipfs_gateway: str | None = Field(default=None, alias="ipfs-gateway")
    https_proxy: str | None = Field(default=None, alias="https-proxy")

    @field_validator("m2c_url", "ingest_bucket", "ipfs_gateway", "https_proxy", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from the YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                the AB2_CONFIG environment variable or ~/go/bin/config.yaml.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid.
        """
        config_path = path or Path(os.getenv(CONFIG_ENV, str(DEFAULT_CONFIG_PATH)))
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                {"path": str(config_path)},
            )
        try:
            with config_path.open("r", encoding="utf-8") as fp:
                payload = yaml.safe_load(fp) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Cannot read configuration {config_path}: {exc}",
                {"path": str(config_path)},
            ) from exc
        if not isinstance(payload, dict):
            raise ConfigurationError(
                f"Configuration {config_path} must be a mapping",
                {"path": str(config_path)},
            )
        try:
            return cls(**payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}", {"path": str(config_path)}) from exc

    def require(self, field: str) -> str:
        """Return a setting that the current operation cannot run without."""
        value = getattr(self, field)
        if not value:
            alias = type(self).model_fields[field].alias or field
            raise ConfigurationError(f"Missing required setting '{alias}'", {"setting": alias})
        return value


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = ["Settings", "get_settings", "DEFAULT_CONFIG_PATH", "CONFIG_ENV"]
