"""Error taxonomy shared by the entity store and the traceability engine."""

from __future__ import annotations


class DevFlowError(Exception):
    """Base class for errors raised by the backend."""


class NotFoundError(DevFlowError):
    """Raised when a referenced project, story, RFC, epic or flow is absent."""

    def __init__(self, entity: str, item_id: str | None = None) -> None:
        self.entity = entity
        self.item_id = item_id
        super().__init__(f"{entity} not found")


class ValidationInputError(DevFlowError):
    """Raised when request input is missing or not acceptable."""


class DatabaseError(DevFlowError):
    """Raised when the relational store fails a query or connection."""
