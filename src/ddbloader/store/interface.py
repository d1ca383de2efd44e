"""
Abstract interface for DynamoDB access.

Defines the contract for the store operations the loaders need.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

# Attribute name -> typed attribute value, e.g. {"pk": {"S": "pk1"}}
AttributeMap = Dict[str, Dict[str, Any]]


@dataclass
class BatchGetResult:
    """Outcome of one BatchGetItem call."""
    responses: Dict[str, List[AttributeMap]] = field(default_factory=dict)
    unprocessed_keys: Dict[str, dict] = field(default_factory=dict)
    consumed_capacity: List[dict] = field(default_factory=list)

    def unprocessed_for(self, table_name: str) -> List[AttributeMap]:
        """Keys of a table the store did not process."""
        return list(self.unprocessed_keys.get(table_name, {}).get("Keys") or [])


class StoreClient(ABC):
    """
    Abstract interface for DynamoDB access.

    Batched gets work on typed attribute maps so keys can be compared
    across encodings. Query and scan pages carry native records.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the client.

        Raises:
            StoreConnectionError: If the client cannot be created
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the client."""
        pass

    @abstractmethod
    async def batch_get_item(
        self,
        request_items: Dict[str, dict],
        return_consumed_capacity: Optional[str] = None,
    ) -> BatchGetResult:
        """
        Fetch records by primary key.

        Args:
            request_items: Table name mapped to KeysAndAttributes
                ({"Keys": [...], "ConsistentRead": ..., ...})
            return_consumed_capacity: Capacity reporting mode

        Returns:
            Records per table plus the unprocessed residue

        Raises:
            StoreRequestError: If the call fails
        """
        pass

    @abstractmethod
    def paginate_query(self, params: dict) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Iterate the pages of a query until no continuation cursor remains.

        Args:
            params: Query parameters with native expression values

        Yields:
            Native records of each page
        """
        pass

    @abstractmethod
    def paginate_scan(self, params: dict) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Iterate the pages of a scan until no continuation cursor remains.

        Args:
            params: Scan parameters with native expression values

        Yields:
            Native records of each page
        """
        pass

    async def __aenter__(self) -> "StoreClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()


class StoreError(Exception):
    """Base class for store client failures."""
    pass


class StoreConnectionError(StoreError):
    """Raised when the store client cannot be created."""
    pass


class StoreRequestError(StoreError):
    """Raised when a store call fails."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code
