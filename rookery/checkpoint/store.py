"""Core checkpoint store: initialize / should_skip / create, package and global."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import CheckpointConfig
from .models import CHECKPOINT_VERSION, Checkpoint, CheckpointKind, CheckpointStatus
from .sources import source_hash

logger = logging.getLogger("rookery.checkpoint")

MARKER_SUFFIX = ".checkpoint"
PACKAGES_DIR = "packages"
GLOBAL_DIR = "global"
GLOBAL_SCOPE = "global"
METADATA_FILE = "metadata.json"

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CheckpointError(Exception):
    """Base class for checkpoint store failures."""


class StorageUnavailable(CheckpointError):
    """Checkpoint root cannot be created or written. Fatal for the stage."""


class MarkerWriteFailed(CheckpointError):
    """Work succeeded but its completion marker could not be persisted."""


class MarkerReadIndeterminate(CheckpointError):
    """A marker exists but could not be read or parsed."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class CheckpointStore:
    """File-backed completion markers, one file per (key, scope)."""

    def __init__(
        self,
        config: CheckpointConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or CheckpointConfig.from_env()
        self._root = Path(self._config.checkpoint_dir)
        self._log = logger or logging.getLogger("rookery.checkpoint")

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> CheckpointConfig:
        return self._config

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def _ts() -> tuple[str, int]:
        now = datetime.now(timezone.utc)
        return now.isoformat(timespec="seconds"), int(now.timestamp())

    @staticmethod
    def _check_name(value: str, what: str) -> str:
        if not isinstance(value, str) or not _NAME_RE.fullmatch(value):
            raise ValueError(f"Invalid checkpoint {what}: {value!r}")
        return value

    def _package_path(self, key: str, scope: str) -> Path:
        self._check_name(key, "key")
        self._check_name(scope, "scope")
        return self._root / PACKAGES_DIR / scope / f"{key}{MARKER_SUFFIX}"

    def validate(self, key: str, scope: str) -> None:
        """Raise ValueError unless (key, scope) can name a package checkpoint."""
        self._package_path(key, scope)

    def _global_path(self, key: str) -> Path:
        self._check_name(key, "key")
        return self._root / GLOBAL_DIR / f"{key}{MARKER_SUFFIX}"

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            os.write(fd, data)
            os.fsync(fd)
            os.close(fd)
            fd = -1  # mark as closed
            os.rename(tmp, path)
        except BaseException:
            if fd >= 0:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    @staticmethod
    def _read_marker(path: Path) -> Checkpoint:
        try:
            return Checkpoint.from_dict(json.loads(path.read_bytes()))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise MarkerReadIndeterminate(f"{path}: {exc}") from exc

    def _probe(self, path: Path) -> Optional[Checkpoint]:
        """Read a marker if present. Unreadable markers count as absent."""
        try:
            if not path.is_file():
                return None
            return self._read_marker(path)
        except (MarkerReadIndeterminate, OSError) as exc:
            self._log.warning("Unreadable checkpoint treated as absent: %s", exc)
            return None

    def _write(self, path: Path, ckpt: Checkpoint) -> None:
        body = json.dumps(ckpt.to_dict(), indent=2, ensure_ascii=False).encode()
        try:
            self._atomic_write(path, body)
        except OSError as exc:
            raise MarkerWriteFailed(f"Could not write checkpoint {path}: {exc}") from exc

    def _new(
        self,
        key: str,
        scope: str,
        kind: CheckpointKind,
        detail: Optional[str],
        digest: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Checkpoint:
        created_at, epoch = self._ts()
        return Checkpoint(
            key=key,
            scope=scope,
            kind=kind,
            created_at=created_at,
            epoch=epoch,
            detail=detail,
            source_hash=digest,
            source=source,
            service_name=self._config.service_name,
            target=self._config.target,
        )

    def _force_delete(self, path: Path, name: str) -> None:
        if not path.exists():
            return
        self._log.warning("FORCE mode: deleting checkpoint for %s", name)
        try:
            path.unlink()
        except OSError as exc:
            self._log.warning("Could not delete checkpoint %s: %s", path, exc)

    def _is_current(self, ckpt: Checkpoint) -> bool:
        """False when the recorded source tarball changed or disappeared."""
        if ckpt.source_hash is None or not self._config.sources_dir:
            return True
        current = source_hash(ckpt.source or ckpt.key, self._config.sources_dir)
        return current == ckpt.source_hash

    # -- public API -----------------------------------------------------------

    def initialize(self) -> None:
        """Create the checkpoint root and namespaces. Safe to call repeatedly."""
        try:
            for d in (self._root, self._root / PACKAGES_DIR, self._root / GLOBAL_DIR):
                d.mkdir(parents=True, exist_ok=True)
            meta = self._root / METADATA_FILE
            if not meta.exists():
                created_at, _ = self._ts()
                body = json.dumps({
                    "name": "Rookery OS Checkpoint Metadata",
                    "version": CHECKPOINT_VERSION,
                    "created": created_at,
                }, indent=2).encode()
                self._atomic_write(meta, body)
        except OSError as exc:
            raise StorageUnavailable(f"Checkpoint storage unavailable at {self._root}: {exc}") from exc
        if not os.access(self._root, os.W_OK):
            raise StorageUnavailable(f"Checkpoint storage not writable: {self._root}")
        self._log.debug("Checkpoint storage ready at %s", self._root)

    def should_skip(self, key: str, scope: str) -> bool:
        """True if (key, scope) already completed. Never raises."""
        try:
            path = self._package_path(key, scope)
        except ValueError as exc:
            self._log.warning("%s; treating as not checkpointed", exc)
            return False

        if self._config.force:
            self._force_delete(path, key)
            return False

        ckpt = self._probe(path)
        if ckpt is None:
            return False
        if not self._is_current(ckpt):
            self._log.warning("Checkpoint for %s (scope: %s) is stale: source changed", key, scope)
            return False

        self._log.info("Skipping %s (scope: %s): already built, checkpoint valid", key, scope)
        return True

    def create(
        self,
        key: str,
        scope: str,
        detail: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Checkpoint:
        """Record that (key, scope) completed. Call only after the work is durable.

        If a sources directory is configured, the tarball named *source*
        (default: *key*) is hashed so a later source change invalidates the
        checkpoint. Raises MarkerWriteFailed if the marker cannot be persisted.
        """
        path = self._package_path(key, scope)
        src = source or key
        digest = source_hash(src, self._config.sources_dir) if self._config.sources_dir else None
        ckpt = self._new(key, scope, CheckpointKind.PACKAGE, detail, digest, src if digest else None)
        self._write(path, ckpt)
        self._log.info("Checkpoint created: %s (scope: %s)", key, scope)
        return ckpt

    def should_skip_global(self, key: str) -> bool:
        """True if the stage-level milestone *key* exists. Never raises."""
        try:
            path = self._global_path(key)
        except ValueError as exc:
            self._log.warning("%s; treating as not checkpointed", exc)
            return False

        if self._config.force:
            self._force_delete(path, key)
            return False

        if self._probe(path) is None:
            return False
        self._log.info("Skipping %s (checkpoint exists)", key)
        return True

    def create_global(self, key: str, detail: Optional[str] = None) -> Checkpoint:
        """Record a stage-level milestone. Raises MarkerWriteFailed on write failure."""
        path = self._global_path(key)
        ckpt = self._new(key, GLOBAL_SCOPE, CheckpointKind.GLOBAL, detail)
        self._write(path, ckpt)
        self._log.info("Global checkpoint created: %s", key)
        return ckpt

    def get(self, key: str, scope: str) -> Optional[Checkpoint]:
        return self._probe(self._package_path(key, scope))

    def get_global(self, key: str) -> Optional[Checkpoint]:
        return self._probe(self._global_path(key))

    def remove(self, key: str, scope: str) -> bool:
        """Delete one package marker. Returns whether it existed."""
        path = self._package_path(key, scope)
        if not path.exists():
            return False
        path.unlink()
        self._log.info("Checkpoint removed: %s (scope: %s)", key, scope)
        return True

    def remove_global(self, key: str) -> bool:
        path = self._global_path(key)
        if not path.exists():
            return False
        path.unlink()
        self._log.info("Global checkpoint removed: %s", key)
        return True

    def clear_all(self, confirm: bool = False) -> None:
        """Remove every marker in both namespaces and re-initialize."""
        if not confirm:
            raise ValueError("Refusing to clear all checkpoints without confirm=True")
        shutil.rmtree(self._root, ignore_errors=True)
        self.initialize()
        self._log.warning("All checkpoints cleared at %s", self._root)

    def list_checkpoints(self) -> list[CheckpointStatus]:
        """All readable markers from both namespaces, with source validity."""
        results: list[CheckpointStatus] = []
        paths = sorted((self._root / GLOBAL_DIR).glob(f"*{MARKER_SUFFIX}"))
        paths += sorted((self._root / PACKAGES_DIR).glob(f"*/*{MARKER_SUFFIX}"))
        for path in paths:
            ckpt = self._probe(path)
            if ckpt is None:
                continue
            valid = ckpt.kind is CheckpointKind.GLOBAL or self._is_current(ckpt)
            results.append(CheckpointStatus(checkpoint=ckpt, valid=valid, path=str(path)))
        return sorted(results, key=lambda s: (s.checkpoint.kind.value, s.checkpoint.scope, s.checkpoint.key))
