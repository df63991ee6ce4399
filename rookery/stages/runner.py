"""Stage runner: wraps package builds and whole-stage completion in checkpoints."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from rookery.checkpoint import CheckpointStore, MarkerWriteFailed


@dataclass
class StageResult:
    stage: str
    completion_key: str
    skipped: bool = False
    built: list[str] = field(default_factory=list)
    skipped_packages: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


class StageRunner:
    """Drives one build stage against an injected checkpoint store."""

    def __init__(
        self,
        store: CheckpointStore,
        stage: str,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.stage = stage
        self.logger = logger or logging.getLogger(f"rookery.stages.{stage}")
        self._built: list[str] = []
        self._skipped: list[str] = []

    def start(self) -> None:
        """Prepare checkpoint storage. StorageUnavailable propagates."""
        self.store.initialize()
        self.logger.info("Checkpoint system initialized at %s", self.store.root)

    def already_complete(self, key: str) -> bool:
        return self.store.should_skip_global(key)

    def build_package(
        self,
        key: str,
        build_fn: Callable[[], Any],
        scope: Optional[str] = None,
        source: Optional[str] = None,
    ) -> bool:
        """Run *build_fn* unless (key, scope) is checkpointed. Returns True if it ran.

        Invalid names raise ValueError before any work runs.
        """
        scope = scope or self.stage
        self.store.validate(key, scope)
        if self.store.should_skip(key, scope):
            self._skipped.append(key)
            return False

        self.logger.info("Building %s (scope: %s)...", key, scope)
        try:
            build_fn()
        except Exception:
            self.logger.error("Build failed for %s - no checkpoint created", key)
            raise

        try:
            self.store.create(key, scope, detail=self.stage, source=source)
        except MarkerWriteFailed as exc:
            self.logger.warning("%s built but not checkpointed (will rebuild next run): %s", key, exc)
        self._built.append(key)
        return True

    def complete(self, key: str) -> None:
        """Mark the whole stage done under the global namespace."""
        try:
            self.store.create_global(key, detail=self.stage)
        except MarkerWriteFailed as exc:
            self.logger.warning("Stage %s finished but completion marker was not saved: %s", self.stage, exc)

    def run(self, completion_key: str, body: Callable[[StageRunner], Any]) -> StageResult:
        """Run a stage body once; later invocations skip via the global marker."""
        t0 = time.monotonic()
        self._built, self._skipped = [], []
        self.start()

        if self.already_complete(completion_key):
            self.logger.info("Stage %s already completed - skipping", self.stage)
            return StageResult(stage=self.stage, completion_key=completion_key, skipped=True)

        body(self)
        self.complete(completion_key)

        duration_ms = (time.monotonic() - t0) * 1000
        self.logger.info(
            "Stage %s complete: %d built, %d skipped (%.1fs)",
            self.stage, len(self._built), len(self._skipped), duration_ms / 1000,
        )
        return StageResult(
            stage=self.stage,
            completion_key=completion_key,
            built=list(self._built),
            skipped_packages=list(self._skipped),
            duration_ms=round(duration_ms, 2),
        )
