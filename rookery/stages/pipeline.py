"""Pipeline description, ordered build stages and their completion markers."""
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from rookery.checkpoint import CheckpointConfig, CheckpointStore


@dataclass(frozen=True)
class PipelineStage:
    service: str
    description: str = ""
    duration: str = ""
    completion_key: str = ""
    checkpoint_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.completion_key:
            object.__setattr__(self, "completion_key", f"{self.service}-complete")


DEFAULT_DIST_DIR = "/dist"
DEFAULT_IMAGE_NAME = "rookery-os-1.0"


def default_stages(
    dist_dir: Optional[str] = None,
    image_name: Optional[str] = None,
) -> tuple[PipelineStage, ...]:
    """The six stages of the standard build. package-image keeps its marker under DIST_DIR."""
    dist_dir = dist_dir or os.environ.get("DIST_DIR", DEFAULT_DIST_DIR)
    image_name = image_name or os.environ.get("IMAGE_NAME", DEFAULT_IMAGE_NAME)
    return (
        PipelineStage("download-sources", "Downloading source packages (Chapter 3)", "5-10 minutes",
                      completion_key="download-complete"),
        PipelineStage("build-toolchain", "Building cross-compilation toolchain (Chapters 5-6)", "2-4 hours"),
        PipelineStage("build-basesystem", "Building base system (Chapters 7-8)", "3-6 hours"),
        PipelineStage("configure-system", "Configuring system files (Chapter 9)", "10-20 minutes"),
        PipelineStage("build-kernel", "Compiling Linux kernel (Chapter 10)", "20-60 minutes"),
        PipelineStage("package-image", "Creating bootable disk image (Chapter 11)", "15-30 minutes",
                      completion_key=f"image-{image_name}",
                      checkpoint_dir=os.path.join(dist_dir, ".checkpoints")),
    )


DEFAULT_STAGES: tuple[PipelineStage, ...] = default_stages(DEFAULT_DIST_DIR, DEFAULT_IMAGE_NAME)


@dataclass
class Pipeline:
    stages: list[PipelineStage] = field(default_factory=lambda: list(default_stages()))

    @classmethod
    def default(cls) -> Pipeline:
        return cls()

    @classmethod
    def from_yaml(cls, path: str) -> Pipeline:
        with open(path, "r") as f:
            raw: dict[str, Any] = yaml.safe_load(f) or {}
        entries = raw.get("stages")
        if not entries:
            raise ValueError(f"{path}: no stages defined")
        stages = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict) or not entry.get("service"):
                raise ValueError(f"{path}: stage #{i + 1} is missing 'service'")
            stages.append(PipelineStage(
                service=str(entry["service"]),
                description=str(entry.get("description", "")),
                duration=str(entry.get("duration", "")),
                completion_key=str(entry.get("completion_key", "")),
                checkpoint_dir=entry.get("checkpoint_dir"),
            ))
        return cls(stages=stages)

    def get(self, service: str) -> Optional[PipelineStage]:
        return next((s for s in self.stages if s.service == service), None)

    def status(self, config: CheckpointConfig) -> list[tuple[PipelineStage, bool]]:
        """Whether each stage's completion marker exists. Read-only, ignores FORCE."""
        results: list[tuple[PipelineStage, bool]] = []
        for stage in self.stages:
            cfg = config
            if stage.checkpoint_dir:
                cfg = dataclasses.replace(config, checkpoint_dir=stage.checkpoint_dir)
            store = CheckpointStore(cfg)
            results.append((stage, store.get_global(stage.completion_key) is not None))
        return results
