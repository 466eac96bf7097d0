"""Custom exceptions for Convoscope."""

from typing import Optional


class ConvoscopeError(Exception):
    """Base class for Convoscope errors."""


class BatchValidationError(ConvoscopeError):
    """Raised when an ingestion batch is rejected before any write happens."""

    def __init__(
        self,
        reason: str,
        entity_index: Optional[int] = None,
        summary_id: Optional[str] = None,
    ):
        self.reason = reason
        self.entity_index = entity_index
        self.summary_id = summary_id
        message = reason
        if entity_index is not None:
            prefix = f"Entity {entity_index}"
            if summary_id:
                prefix += f" (summaryId={summary_id})"
            message = f"{prefix}: {reason}"
        super().__init__(message)
