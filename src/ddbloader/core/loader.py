"""
DynamoDB data loader.

Composes the point-get, query and scan loaders over one store client.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from ddbloader.config import GetOptions, LoaderConfig, get_config
from ddbloader.core.request import GetRequest, QueryRequest, ScanRequest, TableSchema
from ddbloader.engine.cache_key import get_cache_key, query_cache_key, scan_cache_key
from ddbloader.engine.getter import BatchGetter
from ddbloader.engine.paginator import Operation, RecordPaginator
from ddbloader.engine.primer import CachePrimer
from ddbloader.state.batch_loader import BatchLoader
from ddbloader.store.dynamodb import DynamoDBStoreClient
from ddbloader.store.interface import StoreClient

logger = structlog.get_logger(__name__)


class DynamodbDataLoader:
    """
    Batching, de-duplicating DynamoDB reader for one unit of work.

    Coordinates the three loaders:
    - getter: point-gets coalesced into BatchGetItem calls
    - querier: queries paginated to completion
    - scanner: scans paginated to completion

    Queries and scans returning full records prime the getter for every
    table with a registered schema. Create one instance per unit of work
    (e.g. per incoming request); nothing is ever evicted.

    Usage:
        ```python
        async with DynamodbDataLoader([TableSchema("Orders", ("pk", "sk"))]) as loader:
            orders = await loader.query(QueryRequest(
                table_name="Orders",
                key_condition_expression="pk = :pk",
                expression_attribute_values={":pk": "customer#1"},
            ))
            order = await loader.get(GetRequest("Orders", {"pk": "customer#1", "sk": "o#1"}))
        ```
    """

    def __init__(
        self,
        table_schemas: Optional[Iterable[TableSchema]] = None,
        store: Optional[StoreClient] = None,
        get_options: Optional[GetOptions] = None,
        config: Optional[LoaderConfig] = None,
    ):
        """
        Initialize the data loader.

        Args:
            table_schemas: Key layouts used to prime point-gets (no priming if None)
            store: Custom store client (an aiobotocore client is created if not provided)
            get_options: Options for every batched get (defaults to config.get_options)
            config: Loader configuration
        """
        self.config = config or get_config()
        self.store = store or DynamoDBStoreClient(self.config)

        self._batch_getter = BatchGetter(
            store=self.store,
            config=self.config,
            get_options=get_options,
        )
        self.getter: BatchLoader[GetRequest, Optional[Dict[str, Any]]] = BatchLoader(
            self._batch_getter,
            get_cache_key,
            name="getter",
        )

        self.primer: Optional[CachePrimer] = None
        if table_schemas is not None:
            self.primer = CachePrimer(self.getter, table_schemas)

        self._query_paginator = RecordPaginator(self.store, Operation.QUERY, self.primer)
        self._scan_paginator = RecordPaginator(self.store, Operation.SCAN, self.primer)
        self.querier: BatchLoader[QueryRequest, List[Dict[str, Any]]] = BatchLoader(
            self._query_paginator,
            query_cache_key,
            name="querier",
        )
        self.scanner: BatchLoader[ScanRequest, List[Dict[str, Any]]] = BatchLoader(
            self._scan_paginator,
            scan_cache_key,
            name="scanner",
        )

    @property
    def get_options(self) -> GetOptions:
        return self._batch_getter.get_options

    async def get(self, request: GetRequest) -> Optional[Dict[str, Any]]:
        """
        Load one record by primary key.

        Returns:
            The native record, or None if it does not exist
        """
        return await self.getter.load(request)

    async def query(self, request: QueryRequest) -> List[Dict[str, Any]]:
        """Load every record matching a query."""
        return await self.querier.load(request)

    async def scan(self, request: ScanRequest) -> List[Dict[str, Any]]:
        """Load every record matching a scan."""
        return await self.scanner.load(request)

    def prime(self, request: GetRequest, record: Optional[Dict[str, Any]]) -> bool:
        """
        Seed the point-get cache.

        Returns:
            True if inserted, False if the key was already cached or pending
        """
        return self.getter.prime(request, record)

    def clear_all(self) -> None:
        """Drop every cached entry of all three loaders."""
        self.getter.clear_all()
        self.querier.clear_all()
        self.scanner.clear_all()

    async def close(self) -> None:
        """Release the store client."""
        await self.store.disconnect()
        logger.debug("data_loader_closed", stats=self.get_stats())

    async def __aenter__(self) -> "DynamodbDataLoader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def get_stats(self) -> dict:
        """Get loader statistics."""
        return {
            "getter": {**self.getter.get_stats(), **self._batch_getter.get_stats()},
            "querier": {**self.querier.get_stats(), **self._query_paginator.get_stats()},
            "scanner": {**self.scanner.get_stats(), **self._scan_paginator.get_stats()},
            "table_schemas": self.primer.table_names if self.primer else [],
        }
