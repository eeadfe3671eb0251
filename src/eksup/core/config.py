"""Configuration management for eksup."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from eksup.core.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = "~/.eksup/config.yaml"


class AWSConfig(BaseModel):
    """AWS configuration."""

    region: str = "us-east-1"
    profile: str | None = None
    session_name: str = "eksup-session"


class StoreConfig(BaseModel):
    """Status store configuration."""

    class DynamoDBConfig(BaseModel):
        """DynamoDB configuration."""

        table_name: str = "eksup-upgrade-status"
        region: str = "us-east-1"

    backend: str = "file"  # file, dynamodb or memory
    path: str = "~/.eksup/state"
    dynamodb: DynamoDBConfig = Field(default_factory=DynamoDBConfig)


class ReconcilerConfig(BaseModel):
    """Requeue and retry policy for the reconciler."""

    transient_requeue_seconds: float = 10.0
    auth_requeue_seconds: float = 60.0
    store_retry_seconds: float = 5.0
    max_chained_steps: int = 10
    max_transient_retries: int = 60
    max_auth_failures: int = 3


class PollingConfig(BaseModel):
    """Poll intervals for asynchronous cloud steps."""

    control_plane_seconds: float = 30.0
    addon_seconds: float = 15.0
    nodegroup_seconds: float = 30.0
    blocking: bool = False  # wait inside the executor instead of requeueing


class MetricsConfig(BaseModel):
    """Prometheus metrics configuration."""

    enabled: bool = True
    port: int = 8081


class NotificationConfig(BaseModel):
    """Notification configuration."""

    slack_webhook_url: str | None = None
    timeout_seconds: float = 5.0

    def resolve_webhook_url(self) -> str | None:
        """Webhook URL from config, falling back to ``SLACK_WEBHOOK_URL``."""
        return self.slack_webhook_url or os.environ.get("SLACK_WEBHOOK_URL") or None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    output: str = "stdout"


class EksupConfig(BaseModel):
    """Main eksup configuration."""

    aws: AWSConfig = Field(default_factory=AWSConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    reconciler: ReconcilerConfig = Field(default_factory=ReconcilerConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "EksupConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            EksupConfig instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        config_path = Path(path).expanduser()

        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        try:
            return cls(**(data or {}))
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(cls, path: str | Path = DEFAULT_CONFIG_PATH) -> "EksupConfig":
        """Load configuration, using defaults when the default file is absent.

        An explicitly given path that does not exist is still an error.
        """
        config_path = Path(path).expanduser()
        if str(path) == DEFAULT_CONFIG_PATH and not config_path.exists():
            return cls()
        return cls.from_file(config_path)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation
        """
        return self.model_dump()
