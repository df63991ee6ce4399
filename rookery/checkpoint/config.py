"""Checkpoint configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _default_checkpoint_dir() -> str:
    explicit = os.environ.get("CHECKPOINT_DIR", "")
    if explicit:
        return explicit
    return os.path.join(os.environ.get("ROOKERY", "/rookery"), ".checkpoints")


@dataclass(frozen=True)
class CheckpointConfig:
    """Immutable checkpoint configuration."""

    rookery_root: str = field(default_factory=lambda: os.environ.get("ROOKERY", "/rookery"))
    checkpoint_dir: str = field(default_factory=_default_checkpoint_dir)
    sources_dir: str = field(default_factory=lambda: os.environ.get("SOURCES_DIR", "/sources"))
    force: bool = field(default_factory=lambda: os.environ.get("FORCE", "0") == "1")
    service_name: str = field(default_factory=lambda: os.environ.get("SERVICE_NAME", "unknown"))
    target: str = field(default_factory=lambda: os.environ.get("ROOKERY_TGT", "unknown"))

    @classmethod
    def from_env(cls) -> CheckpointConfig:
        """Create config from environment, raising on unusable values."""
        cfg = cls()
        if not cfg.checkpoint_dir:
            raise RuntimeError("CHECKPOINT_DIR resolved to an empty path")
        if os.environ.get("FORCE", "0") not in ("0", "1", ""):
            raise RuntimeError("FORCE must be 0 or 1")
        return cfg
