"""
Error taxonomy for the roast import pipeline.

InvalidInput is raised at the parse boundary. MalformedImport and
BackfillItemError are collected into result objects and returned to the
caller rather than raised.
"""

from typing import Any, Optional, Set


class RoastPipelineError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(RoastPipelineError, ValueError):
    """
    Import payload does not have the documented shape.

    Args:
        message: Human readable description
        field: Name of the payload field that violated the constraint
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MalformedImport(RoastPipelineError):
    """
    Milestone data is out of range or out of order.

    Instances are conditions attached to a resolution or import result.
    """

    OUT_OF_RANGE = "out_of_range"
    ORDER = "order"

    def __init__(
        self,
        message: str,
        slot: Optional[str] = None,
        reason: str = ORDER,
        conflicts_with: Optional[str] = None,
    ):
        super().__init__(message)
        self.slot = slot
        self.reason = reason
        # Earlier milestone an out-of-order slot precedes
        self.conflicts_with = conflicts_with

    @property
    def slots(self) -> Set[str]:
        """Every milestone named by this condition."""
        return {s for s in (self.slot, self.conflicts_with) if s is not None}

    def to_dict(self) -> dict:
        return {
            "slot": self.slot,
            "reason": self.reason,
            "conflicts_with": self.conflicts_with,
            "message": str(self),
        }


class BackfillItemError(RoastPipelineError):
    """Reconstructing or recomputing one roast failed during a backfill run."""

    def __init__(self, message: str, roast_id: Any = None):
        super().__init__(message)
        self.roast_id = roast_id

    def to_dict(self) -> dict:
        return {"roast_id": self.roast_id, "message": str(self)}


class StorageError(RoastPipelineError):
    """Storage collaborator could not satisfy a request."""
