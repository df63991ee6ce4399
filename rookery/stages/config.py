"""Stage harness configuration: logging and pipeline location from env vars."""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class StageConfig:
    service_name: str = field(default_factory=lambda: os.environ.get("SERVICE_NAME", "unknown"))
    log_dir: str = field(default_factory=lambda: os.environ.get("LOG_DIR", "/logs"))
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))
    pipeline_file: str = field(default_factory=lambda: os.environ.get("ROOKERY_PIPELINE", ""))

    @property
    def log_file(self) -> str:
        return os.path.join(self.log_dir, f"{self.service_name}.log")

    @property
    def master_log(self) -> str:
        return os.path.join(self.log_dir, "rookery-master.log")

    @classmethod
    def from_env(cls) -> StageConfig:
        cfg = cls()
        if not cfg.service_name or "/" in cfg.service_name:
            raise RuntimeError("SERVICE_NAME must be a plain, non-empty name")
        return cfg
