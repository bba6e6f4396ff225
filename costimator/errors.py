"""Exception types raised by the Costimator core.

Batch calculations never raise for a single bad record; those failures are
collected into error lists on the result objects instead.
"""

from __future__ import annotations

from typing import Any


class CostimatorError(Exception):
    """Base class for all Costimator errors."""

    pass


class ConfigurationError(CostimatorError):
    """Configuration or reference dataset is invalid or missing."""

    pass


class ValidationError(CostimatorError):
    """Malformed or missing input. Nothing is processed when raised."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(CostimatorError):
    """A project, version, estimate, or calc run could not be resolved."""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class InvalidTransitionError(CostimatorError):
    """Workflow action is not legal from the record's current status.

    The record is left exactly as it was.
    """

    def __init__(self, action: str, current_status: str, entity: str | None = None):
        self.action = action
        self.current_status = current_status
        self.entity = entity
        subject = f" {entity}" if entity else ""
        super().__init__(
            f"Cannot {action}{subject} with status: {current_status}"
        )
