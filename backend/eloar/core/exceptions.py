class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class RunNotFoundError(ResourceNotFoundError):
    """Raised when a run id is unknown to the job store (never created, or already purged)."""
    def __init__(self, run_id: str):
        super().__init__("Optimization run", run_id)
        self.run_id = run_id

class OptimizationError(AppError):
    """Base class for errors raised while preparing or executing an optimization run."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class InfeasibleProblemError(OptimizationError):
    """Raised when the input cannot be distributed (no students, no classes, not enough seats)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(f"INFEASIBLE: {message}", details=details)

class IndividualInvariantError(OptimizationError):
    """Raised when a candidate assignment is not a total assignment onto existing classes."""

class PersistenceError(AppError):
    """Raised when a finished optimization could not be written to the store."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)

class InvalidRunTransitionError(AppError):
    """Raised when a run status change would leave a terminal state or move backwards."""
    def __init__(self, run_id: str, current: str, requested: str):
        super().__init__(
            f"Run {run_id} cannot move from {current} to {requested}",
            status_code=409,
            details={"run_id": run_id, "current": current, "requested": requested},
        )
