"""Stage harness — runner, logging and pipeline description for build stages."""
from .config import StageConfig
from .logs import finalize_logging, run_command, setup_logging
from .pipeline import DEFAULT_STAGES, Pipeline, PipelineStage, default_stages
from .runner import StageResult, StageRunner

__all__ = [
    "StageRunner",
    "StageResult",
    "StageConfig",
    "Pipeline",
    "PipelineStage",
    "DEFAULT_STAGES",
    "default_stages",
    "setup_logging",
    "finalize_logging",
    "run_command",
]
