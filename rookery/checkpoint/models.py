"""Checkpoint data models."""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any, Optional

CHECKPOINT_VERSION = "1.0"


class CheckpointKind(str, enum.Enum):
    PACKAGE = "package"   # one unit of work inside a stage
    GLOBAL = "global"     # whole-stage / pipeline milestone


@dataclass
class Checkpoint:
    key: str
    scope: str
    kind: CheckpointKind
    created_at: str
    epoch: int
    detail: Optional[str] = None
    source_hash: Optional[str] = None
    source: Optional[str] = None
    service_name: str = "unknown"
    target: str = "unknown"
    version: str = CHECKPOINT_VERSION

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Checkpoint:
        return cls(
            key=data["key"],
            scope=data["scope"],
            kind=CheckpointKind(data["kind"]),
            created_at=data["created_at"],
            epoch=int(data["epoch"]),
            detail=data.get("detail"),
            source_hash=data.get("source_hash"),
            source=data.get("source"),
            service_name=data.get("service_name", "unknown"),
            target=data.get("target", "unknown"),
            version=data.get("version", CHECKPOINT_VERSION),
        )


@dataclass
class CheckpointStatus:
    checkpoint: Checkpoint
    valid: bool
    path: str = ""
