"""Typed errors raised by BlurRanker services.

Callers receive these instead of silent failures. Pure functions
(settlement, simplification, standings) only ever raise ValidationError.
"""


class BlurRankerError(Exception):
    """Base class for all library errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthorizationError(BlurRankerError):
    """Actor lacks the role required for the operation."""


class ValidationError(BlurRankerError):
    """Malformed input: ranking set, stake, amount, names."""


class NotFoundError(BlurRankerError):
    """Referenced session, game or record does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StateError(BlurRankerError):
    """Transition not permitted from the current status."""


class ConflictError(BlurRankerError):
    """Concurrent mutation detected at the storage layer."""


class PersistenceError(BlurRankerError):
    """Underlying storage operation failed."""
