"""Stage logging: per-service log, shared master log, console, and command capture."""
from __future__ import annotations

import getpass
import logging
import os
import socket
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .config import StageConfig

FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
RULE = "=" * 72

_HANDLER_TAG = "_rookery_stage_handler"


def _now() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def _tag(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def setup_logging(cfg: StageConfig) -> logging.Logger:
    """Configure service file + master file + console logging for one stage.

    Handlers go on the ``rookery`` logger so checkpoint store messages land in
    the same files. Calling it again replaces the previous stage handlers.
    """
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    with open(cfg.log_file, "w", encoding="utf-8") as f:
        f.write(
            f"{RULE}\n"
            f"Rookery OS Build Log - Service: {cfg.service_name}\n"
            f"Started: {_now()}\n"
            f"Hostname: {socket.gethostname()}\n"
            f"User: {getpass.getuser()} (UID: {os.getuid()})\n"
            f"{RULE}\n\n"
        )
    with open(cfg.master_log, "a", encoding="utf-8") as f:
        f.write(f"\n{RULE}\nService: {cfg.service_name} started at {_now()}\n{RULE}\n")

    root = logging.getLogger("rookery")
    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG, False):
            root.removeHandler(h)
            h.close()
    root.setLevel(getattr(logging, cfg.log_level.upper(), logging.INFO))

    fh = _tag(logging.FileHandler(cfg.log_file, encoding="utf-8"))
    fh.setFormatter(logging.Formatter(FORMAT))

    mh = _tag(logging.FileHandler(cfg.master_log, encoding="utf-8"))
    mh.setFormatter(logging.Formatter(f"%(asctime)s [%(levelname)s] [{cfg.service_name}] %(message)s"))

    ch = _tag(logging.StreamHandler(sys.stdout))
    ch.setFormatter(logging.Formatter(FORMAT))

    for h in (fh, mh, ch):
        root.addHandler(h)
    return logging.getLogger(f"rookery.stages.{cfg.service_name}")


def finalize_logging(logger: logging.Logger, cfg: StageConfig, exit_code: int = 0) -> None:
    """Write the completion banner to the service and master logs."""
    status = "SUCCESS" if exit_code == 0 else "FAILED"
    with open(cfg.log_file, "a", encoding="utf-8") as f:
        f.write(
            f"\n{RULE}\n"
            f"Service {cfg.service_name} completed with status: {status}\n"
            f"Finished: {_now()}\n"
            f"Exit code: {exit_code}\n"
            f"{RULE}\n"
        )
    with open(cfg.master_log, "a", encoding="utf-8") as f:
        f.write(f"Service: {cfg.service_name} finished at {_now()} - Status: {status}\n{'-' * 72}\n")

    if exit_code == 0:
        logger.info("Service completed successfully. Log saved to: %s", cfg.log_file)
    else:
        logger.error("Service failed. Check log for details: %s", cfg.log_file)


def run_command(
    cmd: Sequence[str],
    logger: logging.Logger,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    check: bool = True,
) -> int:
    """Run an external build tool, streaming its output into *logger*."""
    args = [str(c) for c in cmd]
    logger.info("Executing: %s", " ".join(args))
    with subprocess.Popen(
        args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    ) as proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            logger.info("  %s", line.rstrip())
        returncode = proc.wait()

    if returncode == 0:
        logger.info("Command completed successfully")
    else:
        logger.error("Command failed with exit code %d", returncode)
        if check:
            raise subprocess.CalledProcessError(returncode, args)
    return returncode
