"""Repository abstractions for database interactions."""

from .checkpoint_repository import CheckpointRepository
from .resolution_repository import ResolutionRepository

__all__ = [
    "CheckpointRepository",
    "ResolutionRepository",
]
