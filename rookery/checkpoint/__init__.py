"""Rookery checkpoint store — durable skip markers for multi-hour build stages."""

import logging

from .config import CheckpointConfig
from .models import Checkpoint, CheckpointKind, CheckpointStatus
from .store import (
    CheckpointError,
    CheckpointStore,
    MarkerReadIndeterminate,
    MarkerWriteFailed,
    StorageUnavailable,
)

logging.getLogger("rookery").addHandler(logging.NullHandler())

__all__ = [
    "CheckpointStore",
    "CheckpointConfig",
    "Checkpoint",
    "CheckpointKind",
    "CheckpointStatus",
    "CheckpointError",
    "StorageUnavailable",
    "MarkerWriteFailed",
    "MarkerReadIndeterminate",
]
