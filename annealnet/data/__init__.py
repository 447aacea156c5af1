"""Training task registry."""

from . import tasks
from .tasks import TaskSpec, from_samples, get_task, validate_samples

__all__ = ["TaskSpec", "from_samples", "get_task", "tasks", "validate_samples"]
