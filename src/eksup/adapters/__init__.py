"""Adapter implementations for external services."""

from eksup.adapters.aws_adapter import AWSAdapter, AWSClientFactory
from eksup.adapters.dynamodb_store import DynamoDBStatusStore
from eksup.adapters.file_store import FileStatusStore
from eksup.adapters.memory_store import InMemoryStatusStore
from eksup.core.config import StoreConfig
from eksup.core.exceptions import ConfigurationError
from eksup.interfaces.state_store import StatusStore


def create_status_store(config: StoreConfig) -> StatusStore:
    """Build the status store selected by ``config.backend``.

    Raises:
        ConfigurationError: If the backend is unknown
    """
    if config.backend == "file":
        return FileStatusStore(config.path)
    if config.backend == "dynamodb":
        return DynamoDBStatusStore(config.dynamodb.table_name, config.dynamodb.region)
    if config.backend == "memory":
        return InMemoryStatusStore()
    raise ConfigurationError(f"Unknown status store backend: {config.backend}")


__all__ = [
    "AWSAdapter",
    "AWSClientFactory",
    "DynamoDBStatusStore",
    "FileStatusStore",
    "InMemoryStatusStore",
    "create_status_store",
]
