"""
Record Paginator - resolves query and scan requests page by page.

Unlike point-gets, distinct queries and scans are never merged into one
store call: each is followed to its last page on its own, concurrently
with the other requests of the batch.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import structlog

from ddbloader.core.request import QueryRequest, ScanRequest
from ddbloader.engine.primer import CachePrimer
from ddbloader.store.interface import StoreClient

logger = structlog.get_logger(__name__)


class Operation(str, Enum):
    """Paginated store operations."""
    QUERY = "query"
    SCAN = "scan"


class RecordPaginator:
    """
    Batch function of the query and scan loaders.

    After a request is exhausted, its records are handed to the primer when
    they carry every attribute of the item.
    """

    def __init__(
        self,
        store: StoreClient,
        operation: Operation,
        primer: Optional[CachePrimer] = None,
    ):
        """
        Initialize the paginator.

        Args:
            store: Store client to paginate with
            operation: Whether requests are queries or scans
            primer: Primer for the point-get cache (no priming if None)
        """
        self.store = store
        self.operation = Operation(operation)
        self.primer = primer

        self._stats = {
            "requests": 0,
            "pages": 0,
            "records": 0,
        }

    async def __call__(
        self,
        requests: List[Union[QueryRequest, ScanRequest]],
    ) -> List[Any]:
        """
        Resolve a batch of queries or scans.

        Returns:
            One record list or Exception per request
        """
        outcomes = await asyncio.gather(
            *[self._collect(request) for request in requests],
            return_exceptions=True,
        )
        for request, outcome in zip(requests, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "paginated_request_failed",
                    operation=self.operation.value,
                    table=request.table_name,
                    error=str(outcome),
                )
            elif isinstance(outcome, BaseException):
                raise outcome
        return outcomes

    def _pages(self, request: Union[QueryRequest, ScanRequest]):
        if self.operation == Operation.QUERY:
            return self.store.paginate_query(request.to_params())
        return self.store.paginate_scan(request.to_params())

    async def _collect(
        self,
        request: Union[QueryRequest, ScanRequest],
    ) -> List[Dict[str, Any]]:
        self._stats["requests"] += 1

        records: List[Dict[str, Any]] = []
        pages = 0
        async for page in self._pages(request):
            pages += 1
            records.extend(page)

        self._stats["pages"] += pages
        self._stats["records"] += len(records)
        logger.debug(
            "records_collected",
            operation=self.operation.value,
            table=request.table_name,
            index=request.index_name,
            pages=pages,
            records=len(records),
        )

        if self.primer is not None and request.returns_full_records:
            self.primer.prime_records(request.table_name, records)

        return records

    def get_stats(self) -> dict:
        """Get paginator statistics."""
        return dict(self._stats)
