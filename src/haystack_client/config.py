"""Configuration management for Haystack Client."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".haystack-client"
DEFAULT_BUNDLED_DIR = Path(__file__).parent / "resources" / "bundled"
VALID_LOG_LEVELS = ["debug", "info", "warning", "error"]


class DaemonConfig(BaseModel):
    """Configuration for reaching the local Haystack daemon."""

    host: str = Field(default="127.0.0.1", description="Daemon loopback host")
    port: int = Field(default=13134, description="Daemon HTTP port")
    api_prefix: str = Field(default="/api/v1", description="API path prefix")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v):
        if not 0 < v < 65536:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("timeout")
    @classmethod
    def timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @property
    def base_url(self) -> str:
        """Full base URL of the daemon API."""
        return f"http://{self.host}:{self.port}{self.api_prefix.rstrip('/')}"


class ReleaseConfig(BaseModel):
    """Configuration for locating released daemon archives.

    Archives follow the naming convention
    ``<product>-<os>-<arch>-<version>.zip`` and are served from
    ``<download-root>/<version>/<archive-name>`` on both hosts.
    """

    product: str = Field(default="haystack", description="Daemon product name")
    version: str = Field(default="0.3.0", description="Daemon release version")
    primary_download_root: str = Field(
        default="https://github.com/haystack-search/haystack/releases/download",
        description="Primary download root URL",
    )
    fallback_download_root: str = Field(
        default="https://haystack-search.github.io/releases",
        description="Fallback download root URL with the same path shape",
    )

    @field_validator("product", "version")
    @classmethod
    def must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()

    def archive_name(self, target_id: str) -> str:
        """Archive file name for a platform target such as ``linux-amd64``."""
        return f"{self.product}-{target_id}-{self.version}.zip"

    def primary_url(self, target_id: str) -> str:
        return (
            f"{self.primary_download_root.rstrip('/')}/{self.version}/"
            f"{self.archive_name(target_id)}"
        )

    def fallback_url(self, target_id: str) -> str:
        return (
            f"{self.fallback_download_root.rstrip('/')}/{self.version}/"
            f"{self.archive_name(target_id)}"
        )


class StorageConfig(BaseModel):
    """Configuration for on-disk state owned by the client."""

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR, description="Root directory for client state"
    )
    bundled_dir: Path = Field(
        default=DEFAULT_BUNDLED_DIR,
        description="Read-only directory holding archives shipped with the client",
    )

    @property
    def bin_dir(self) -> Path:
        """Directory holding the installed daemon executable."""
        return self.data_dir / "bin"

    @property
    def download_cache_dir(self) -> Path:
        """Directory holding previously downloaded archives."""
        return self.data_dir / "downloads"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


class SyncConfig(BaseModel):
    """Configuration for workspace synchronization timing."""

    debounce_seconds: float = Field(
        default=0.5, description="Quiet period before a saved file is sent"
    )
    reconcile_interval_seconds: float = Field(
        default=24 * 60 * 60,
        description="Interval between full workspace reconciliation passes",
    )
    status_poll_interval_seconds: float = Field(
        default=3.0, description="Interval between workspace status polls"
    )

    @field_validator(
        "debounce_seconds",
        "reconcile_interval_seconds",
        "status_poll_interval_seconds",
    )
    @classmethod
    def intervals_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Intervals must be positive")
        return v


class SearchDefaults(BaseModel):
    """Default result limits applied by the CLI search command."""

    max_results: int = Field(default=5000, description="Global result cap")
    max_results_per_file: int = Field(default=1000, description="Per-file cap")

    @field_validator("max_results", "max_results_per_file")
    @classmethod
    def limits_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Limits must be positive")
        return v


class Config(BaseModel):
    """Main configuration for Haystack Client."""

    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    search: SearchDefaults = Field(default_factory=SearchDefaults)
    log_level: str = Field(default="warning", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v):
        v = v.lower()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return v


class ConfigManager:
    """Manages configuration loading, saving, and environment overrides."""

    DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file, or defaults if the file is missing."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self._config = Config(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
        else:
            logger.debug(f"No config at {self.config_path}, using defaults")
            self._config = Config()

        self._config = self.apply_env_overrides(self._config)
        return self._config

    def get_config(self) -> Config:
        if self._config is None:
            return self.load()
        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(mode="json"), f, indent=2)

    @staticmethod
    def apply_env_overrides(config: Config) -> Config:
        """Apply HAYSTACK_* environment variables on top of a configuration.

        Environment Variables:
            HAYSTACK_DAEMON_HOST: Daemon host
            HAYSTACK_DAEMON_PORT: Daemon port
            HAYSTACK_DATA_DIR: Client state directory
            HAYSTACK_VERSION: Daemon release version to install
            HAYSTACK_LOG_LEVEL: Logging level
        """
        data = config.model_dump()

        if "HAYSTACK_DAEMON_HOST" in os.environ:
            data["daemon"]["host"] = os.environ["HAYSTACK_DAEMON_HOST"]
        if "HAYSTACK_DAEMON_PORT" in os.environ:
            try:
                data["daemon"]["port"] = int(os.environ["HAYSTACK_DAEMON_PORT"])
            except ValueError:
                raise ValueError(
                    f"HAYSTACK_DAEMON_PORT must be an integer. "
                    f"Got: {os.environ['HAYSTACK_DAEMON_PORT']}"
                )
        if "HAYSTACK_DATA_DIR" in os.environ:
            data["storage"]["data_dir"] = Path(
                os.environ["HAYSTACK_DATA_DIR"]
            ).expanduser()
        if "HAYSTACK_VERSION" in os.environ:
            data["release"]["version"] = os.environ["HAYSTACK_VERSION"]
        if "HAYSTACK_LOG_LEVEL" in os.environ:
            data["log_level"] = os.environ["HAYSTACK_LOG_LEVEL"]

        return Config(**data)
