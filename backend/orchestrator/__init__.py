"""Background worker orchestration package."""

from .exceptions import (
    OrchestratorError,
    WorkerAlreadyRunningError,
    WorkerNotFoundError,
)
from .orchestrator import WorkerOrchestrator
from .types import WorkerConfig, WorkerHandle, WorkerRunner

__all__ = [
    "OrchestratorError",
    "WorkerAlreadyRunningError",
    "WorkerNotFoundError",
    "WorkerConfig",
    "WorkerHandle",
    "WorkerOrchestrator",
    "WorkerRunner",
]
