"""
Cache Primer - feeds records found by queries and scans into the point-get cache.
"""

from typing import Any, Dict, Iterable, List

import structlog

from ddbloader.core.request import GetRequest, TableSchema
from ddbloader.state.batch_loader import BatchLoader

logger = structlog.get_logger(__name__)


class CachePrimer:
    """
    Primes the point-get loader from full records.

    Records are addressed through the registered table schemas; tables
    without a schema are skipped with a warning.
    """

    def __init__(
        self,
        getter: BatchLoader,
        table_schemas: Iterable[TableSchema],
    ):
        """
        Initialize the primer.

        Args:
            getter: Point-get loader to prime
            table_schemas: Key layouts of the known tables
        """
        self.getter = getter
        self._schemas: Dict[str, TableSchema] = {}
        for schema in table_schemas:
            self.register(schema)

    def register(self, schema: TableSchema) -> None:
        """Register (or replace) the key layout of a table."""
        self._schemas[schema.table_name] = schema

    @property
    def table_names(self) -> List[str]:
        """Names of the tables with a registered schema."""
        return sorted(self._schemas)

    def prime_records(self, table_name: str, records: List[Dict[str, Any]]) -> int:
        """
        Prime the point-get cache with records of a table.

        Args:
            table_name: Table the records were read from
            records: Full native records

        Returns:
            Number of cache entries inserted
        """
        schema = self._schemas.get(table_name)
        if schema is None:
            logger.warning("table_schema_not_found", table=table_name)
            return 0

        primed = 0
        skipped = 0
        for record in records:
            key = schema.extract_key(record)
            if key is None:
                skipped += 1
                continue
            if self.getter.prime(GetRequest(table_name=table_name, key=key), record):
                primed += 1

        logger.debug(
            "records_primed",
            table=table_name,
            records=len(records),
            primed=primed,
            skipped=skipped,
        )
        return primed
