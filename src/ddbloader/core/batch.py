"""
Batch model.

Represents the requests collected during one dispatch tick of a loader,
each paired with the future its callers are awaiting.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class BatchStatus(str, Enum):
    """Status of a batch."""
    COLLECTING = "collecting"     # Still accepting requests
    DISPATCHED = "dispatched"     # Batch function running
    RESOLVED = "resolved"         # Every future settled by the batch function
    FAILED = "failed"             # Batch function raised


@dataclass
class Batch:
    """
    The requests of one dispatch tick.

    Entries are keyed by cache key, so a batch never holds two requests
    with the same identity.

    Attributes:
        batch_id: Unique identifier for the batch
        entries: Cache key mapped to (request, future)
        status: Current processing status
        created_at: When the first request was collected
        dispatched_at: When the batch function was started
    """

    batch_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    entries: Dict[str, Tuple[Any, asyncio.Future]] = field(default_factory=dict)
    status: BatchStatus = BatchStatus.COLLECTING

    # Timestamps
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dispatched_at: Optional[datetime] = None

    # Error tracking
    error_message: Optional[str] = None

    def add(self, cache_key: str, request: Any, future: asyncio.Future) -> None:
        """
        Add a request to this batch.

        Args:
            cache_key: Normalized identity of the request
            request: The request to dispatch
            future: Future settled with the request's outcome

        Raises:
            RuntimeError: If the batch was already dispatched
        """
        if self.status != BatchStatus.COLLECTING:
            raise RuntimeError(f"Batch {self.batch_id[:8]} is no longer collecting")
        self.entries[cache_key] = (request, future)

    @property
    def size(self) -> int:
        """Get the number of requests in this batch."""
        return len(self.entries)

    @property
    def is_collecting(self) -> bool:
        return self.status == BatchStatus.COLLECTING

    @property
    def requests(self) -> List[Any]:
        """Requests in collection order."""
        return [request for request, _ in self.entries.values()]

    @property
    def futures(self) -> List[Tuple[str, asyncio.Future]]:
        """(cache key, future) pairs in collection order."""
        return [(key, future) for key, (_, future) in self.entries.items()]

    def mark_dispatched(self) -> None:
        """Mark batch as handed to the batch function."""
        self.status = BatchStatus.DISPATCHED
        self.dispatched_at = datetime.now(timezone.utc)

    def mark_resolved(self) -> None:
        """Mark batch as settled."""
        self.status = BatchStatus.RESOLVED

    def mark_failed(self, error: str) -> None:
        """Mark batch as failed."""
        self.status = BatchStatus.FAILED
        self.error_message = error

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "size": self.size,
            "created_at": self.created_at.isoformat(),
            "dispatched_at": self.dispatched_at.isoformat() if self.dispatched_at else None,
            "error_message": self.error_message,
        }

    def __repr__(self) -> str:
        return f"Batch(id={self.batch_id[:8]}..., status={self.status.value}, size={self.size})"
