"""BlurRanker core: game lifecycle, settlement and standings."""

from blurranker.errors import (
    AuthorizationError,
    BlurRankerError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    StateError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    "BlurRankerError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "StateError",
    "ConflictError",
    "PersistenceError",
]
