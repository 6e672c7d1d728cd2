"""Custom exceptions for background worker orchestration."""


class OrchestratorError(Exception):
    """Base orchestrator exception."""


class WorkerAlreadyRunningError(OrchestratorError):
    """Raised when attempting to start a worker name that is already registered."""


class WorkerNotFoundError(OrchestratorError):
    """Raised when a worker does not exist in the registry."""
