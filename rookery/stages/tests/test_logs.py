"""Tests for stage logging and command capture."""
from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from rookery.stages import logs
from rookery.stages.config import StageConfig


@pytest.fixture
def cfg(tmp_path: Path, monkeypatch) -> StageConfig:
    monkeypatch.setattr(logs.getpass, "getuser", lambda: "builder")
    return StageConfig(service_name="build-kernel", log_dir=str(tmp_path / "logs"),
                       log_level="DEBUG", pipeline_file="")


@pytest.fixture(autouse=True)
def _reset_rookery_logger():
    yield
    root = logging.getLogger("rookery")
    for h in list(root.handlers):
        if getattr(h, logs._HANDLER_TAG, False):
            root.removeHandler(h)
            h.close()
    root.setLevel(logging.NOTSET)


def _flush() -> None:
    for h in logging.getLogger("rookery").handlers:
        h.flush()


def test_setup_writes_banners(cfg: StageConfig):
    logs.setup_logging(cfg)

    service_log = Path(cfg.log_file).read_text()
    assert "Service: build-kernel" in service_log
    assert "User: builder" in service_log
    assert "Service: build-kernel started at" in Path(cfg.master_log).read_text()


def test_records_go_to_both_files(cfg: StageConfig):
    logger = logs.setup_logging(cfg)
    logger.info("Compiling kernel")
    logging.getLogger("rookery.checkpoint").warning("Checkpoint stale")
    _flush()

    service_log = Path(cfg.log_file).read_text()
    master_log = Path(cfg.master_log).read_text()
    assert "[INFO] Compiling kernel" in service_log
    assert "[WARNING] Checkpoint stale" in service_log
    assert "[INFO] [build-kernel] Compiling kernel" in master_log


def test_setup_twice_does_not_duplicate_handlers(cfg: StageConfig):
    logs.setup_logging(cfg)
    logs.setup_logging(cfg)
    tagged = [h for h in logging.getLogger("rookery").handlers if getattr(h, logs._HANDLER_TAG, False)]
    assert len(tagged) == 3


def test_master_log_accumulates_services(tmp_path: Path, cfg: StageConfig):
    logs.setup_logging(cfg)
    other = StageConfig(service_name="package-image", log_dir=cfg.log_dir, log_level="INFO", pipeline_file="")
    logs.setup_logging(other)

    master = Path(cfg.master_log).read_text()
    assert "build-kernel started" in master
    assert "package-image started" in master


def test_finalize_success_and_failure(cfg: StageConfig):
    logger = logs.setup_logging(cfg)
    logs.finalize_logging(logger, cfg, 0)
    assert "completed with status: SUCCESS" in Path(cfg.log_file).read_text()

    logs.finalize_logging(logger, cfg, 2)
    _flush()
    text = Path(cfg.log_file).read_text()
    assert "completed with status: FAILED" in text
    assert "Exit code: 2" in text
    assert "Status: FAILED" in Path(cfg.master_log).read_text()


def test_run_command_streams_output(caplog):
    logger = logging.getLogger("rookery.stages.test")
    with caplog.at_level(logging.INFO, logger="rookery.stages.test"):
        rc = logs.run_command([sys.executable, "-c", "print('make: Nothing to be done')"], logger)
    assert rc == 0
    assert "make: Nothing to be done" in caplog.text
    assert "Command completed successfully" in caplog.text


def test_run_command_failure_raises(caplog):
    logger = logging.getLogger("rookery.stages.test")
    with pytest.raises(subprocess.CalledProcessError) as exc:
        logs.run_command([sys.executable, "-c", "import sys; sys.exit(3)"], logger)
    assert exc.value.returncode == 3


def test_run_command_failure_unchecked():
    logger = logging.getLogger("rookery.stages.test")
    rc = logs.run_command([sys.executable, "-c", "import sys; sys.exit(4)"], logger, check=False)
    assert rc == 4


def test_run_command_reaps_process_on_interrupt():
    def output():
        yield "checking for gcc... yes\n"
        raise KeyboardInterrupt

    popen = MagicMock()
    popen.return_value.__enter__.return_value.stdout = output()
    popen.return_value.__exit__.return_value = False
    logger = logging.getLogger("rookery.stages.test")

    with patch.object(logs.subprocess, "Popen", popen):
        with pytest.raises(KeyboardInterrupt):
            logs.run_command(["make", "-j4"], logger)
    popen.return_value.__exit__.assert_called_once()
