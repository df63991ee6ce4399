"""Source tarball lookup and hashing for package checkpoints."""
from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger("rookery.checkpoint.sources")

TARBALL_PATTERNS = ("{name}-*.tar.*", "{name}-*.tgz")
_CHUNK = 1024 * 1024


def find_source_tarball(package: str, sources_dir: str | Path) -> Optional[Path]:
    """Return the first tarball matching *package* in *sources_dir*, or None.

    Only the top level of the directory is searched. Matches are sorted so the
    result is stable across runs.
    """
    root = Path(sources_dir)
    if not root.is_dir():
        return None
    matches: list[Path] = []
    for pattern in TARBALL_PATTERNS:
        matches.extend(p for p in root.glob(pattern.format(name=package)) if p.is_file())
    if not matches:
        return None
    return sorted(matches)[0]


def source_hash(package: str, sources_dir: str | Path) -> Optional[str]:
    """MD5 of the package's source tarball, or None if it cannot be found or read."""
    tarball = find_source_tarball(package, sources_dir)
    if tarball is None:
        return None
    digest = hashlib.md5()
    try:
        with open(tarball, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK), b""):
                digest.update(chunk)
    except OSError as exc:
        logger.warning("Could not hash %s: %s", tarball, exc)
        return None
    return digest.hexdigest()
