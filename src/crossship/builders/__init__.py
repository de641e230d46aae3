"""Build executor and process runner."""

from .executor import BuildExecutor, BuildPlan
from .process import ProcessResult, ProcessRunner, run_process

__all__ = [
    "BuildExecutor",
    "BuildPlan",
    "ProcessResult",
    "ProcessRunner",
    "run_process",
]
