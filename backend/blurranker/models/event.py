"""Change notification model.

Events are triggers only: they say which kind of entity changed and how,
never what the new data is.
"""

from typing import Optional

from pydantic import BaseModel

from blurranker.models.common import ChangeOperation, EntityType


class ChangeEvent(BaseModel):
    """A row-level mutation notice scoped to a session when known."""

    model_config = {"frozen": True}

    entity: EntityType
    operation: ChangeOperation
    scope: Optional[str] = None
