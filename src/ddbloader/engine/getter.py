"""
Batch Getter - resolves a batch of point-get requests with BatchGetItem.

Requests are grouped by table and each table's keys are fetched in chunks
of at most 100 keys. Unprocessed keys are resubmitted with exponential
backoff until the retry budget runs out.
"""

import asyncio
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog

from ddbloader.config import GetOptions, LoaderConfig, get_config
from ddbloader.core.request import GetRequest
from ddbloader.engine.matcher import find_matching_record
from ddbloader.store.codec import marshal, unmarshal
from ddbloader.store.interface import AttributeMap, StoreClient

logger = structlog.get_logger(__name__)


class UnprocessedKeysExhaustedError(Exception):
    """Raised when unprocessed keys remain after the last allowed retry."""

    def __init__(self, table_name: str, unprocessed_count: int, attempts: int):
        super().__init__(
            f"{unprocessed_count} key(s) of table {table_name} still unprocessed "
            f"after {attempts} retries"
        )
        self.table_name = table_name
        self.unprocessed_count = unprocessed_count
        self.attempts = attempts


class BatchGetter:
    """
    Batch function of the point-get loader.

    Each table forms its own failure domain unless the configuration asks
    for a failing table to fail the whole batch.
    """

    def __init__(
        self,
        store: StoreClient,
        config: Optional[LoaderConfig] = None,
        get_options: Optional[GetOptions] = None,
    ):
        """
        Initialize the getter.

        Args:
            store: Store client to fetch with
            config: Loader configuration
            get_options: Options for every batched get (defaults to config.get_options)
        """
        self.store = store
        self.config = config or get_config()
        self.get_options = get_options or self.config.get_options

        self._stats = {
            "store_calls": 0,
            "retries": 0,
            "keys_requested": 0,
            "consumed_capacity_units": Decimal(0),
        }

    async def __call__(self, requests: List[GetRequest]) -> List[Any]:
        """
        Resolve a batch of point-gets.

        Args:
            requests: Distinct point-get requests of one tick

        Returns:
            One native record, None, or Exception per request
        """
        by_table: Dict[str, List[int]] = OrderedDict()
        for index, request in enumerate(requests):
            by_table.setdefault(request.table_name, []).append(index)

        tables = list(by_table.items())
        outcomes = await asyncio.gather(
            *[
                self._load_table(table_name, [requests[i] for i in indexes])
                for table_name, indexes in tables
            ],
            return_exceptions=self.config.isolate_table_failures,
        )

        results: List[Any] = [None] * len(requests)
        for (table_name, indexes), outcome in zip(tables, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "table_batch_failed",
                    table=table_name,
                    requests=len(indexes),
                    error=str(outcome),
                )
                for i in indexes:
                    results[i] = outcome
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            for i, value in zip(indexes, outcome):
                results[i] = value
        return results

    async def _load_table(
        self,
        table_name: str,
        requests: List[GetRequest],
    ) -> List[Optional[Dict[str, Any]]]:
        keys = [marshal(request.key) for request in requests]
        size = self.config.batch_get_max_keys
        chunks = [keys[i:i + size] for i in range(0, len(keys), size)]

        pages = await asyncio.gather(
            *[self._fetch_chunk(table_name, chunk) for chunk in chunks]
        )
        records = [record for page in pages for record in page]

        logger.debug(
            "table_batch_loaded",
            table=table_name,
            requested=len(requests),
            found=len(records),
            chunks=len(chunks),
        )

        results = []
        for request in requests:
            record = find_matching_record(records, request.key)
            results.append(unmarshal(record) if record is not None else None)
        return results

    async def _fetch_chunk(
        self,
        table_name: str,
        keys: List[AttributeMap],
    ) -> List[AttributeMap]:
        options = self.get_options.keys_and_attributes()
        capacity_mode = (
            self.get_options.return_consumed_capacity.value
            if self.get_options.return_consumed_capacity is not None
            else None
        )

        records: List[AttributeMap] = []
        pending = keys
        attempts = 0
        self._stats["keys_requested"] += len(keys)

        while pending:
            self._stats["store_calls"] += 1
            result = await self.store.batch_get_item(
                {table_name: {"Keys": pending, **options}},
                return_consumed_capacity=capacity_mode,
            )
            records.extend(result.responses.get(table_name) or [])
            self._record_capacity(result.consumed_capacity)

            pending = result.unprocessed_for(table_name)
            if not pending:
                break

            if attempts >= self.config.max_retries:
                logger.error(
                    "unprocessed_keys_exhausted",
                    table=table_name,
                    unprocessed=len(pending),
                    attempts=attempts,
                )
                raise UnprocessedKeysExhaustedError(table_name, len(pending), attempts)

            attempts += 1
            self._stats["retries"] += 1
            delay = self.config.retry_delay(attempts)
            logger.info(
                "retrying_unprocessed_keys",
                table=table_name,
                unprocessed=len(pending),
                attempt=attempts,
                delay_seconds=delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)

        return records

    def _record_capacity(self, consumed_capacity: List[dict]) -> None:
        for entry in consumed_capacity:
            units = entry.get("CapacityUnits")
            if units is None:
                continue
            self._stats["consumed_capacity_units"] += Decimal(str(units))
            logger.debug(
                "consumed_capacity",
                table=entry.get("TableName"),
                capacity_units=units,
            )

    def get_stats(self) -> dict:
        """Get getter statistics."""
        return dict(self._stats)
