"""
Pytest configuration and shared fixtures for the test suite.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from ddbloader.config import LoaderConfig
from ddbloader.core.request import TableSchema
from ddbloader.store.codec import marshal, unmarshal
from ddbloader.store.interface import (
    AttributeMap,
    BatchGetResult,
    StoreClient,
    StoreRequestError,
)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> LoaderConfig:
    """Create a test configuration without backoff delays."""
    return LoaderConfig(
        region_name="us-east-1",
        max_retries=3,
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
        log_level="DEBUG",
    )


# ============================================================================
# Mock Store Client
# ============================================================================

class MockStoreClient(StoreClient):
    """
    In-memory store for testing.

    Records every call, and can leave keys unprocessed, fail tables, or
    return hand-made responses.
    """

    def __init__(self, page_size: int = 2):
        self.page_size = page_size
        self.key_names: Dict[str, Tuple[str, ...]] = {}
        self.items: Dict[str, List[AttributeMap]] = {}

        self.batch_get_calls: List[dict] = []
        self.query_calls: List[dict] = []
        self.scan_calls: List[dict] = []

        # Table -> number of upcoming calls that leave keys unprocessed
        self.unprocessed_rounds: Dict[str, int] = {}
        # Table -> error raised by batch_get_item
        self.failing_tables: Dict[str, Exception] = {}
        # Table -> records returned verbatim by batch_get_item
        self.forced_responses: Dict[str, List[AttributeMap]] = {}
        # (operation, table) -> error raised while paginating
        self.failing_ranges: Dict[Tuple[str, str], Exception] = {}

        self.connected = False
        self.disconnect_count = 0

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False
        self.disconnect_count += 1

    def add_table(self, table_name: str, key_names: Tuple[str, ...]) -> None:
        self.key_names[table_name] = tuple(key_names)
        self.items.setdefault(table_name, [])

    def put_item(self, table_name: str, record: Dict[str, Any]) -> None:
        self.items[table_name].append(marshal(record))

    def put_raw_item(self, table_name: str, attribute_map: AttributeMap) -> None:
        self.items[table_name].append(attribute_map)

    @property
    def store_calls(self) -> int:
        return len(self.batch_get_calls) + len(self.query_calls) + len(self.scan_calls)

    def _find(self, table_name: str, key: AttributeMap) -> Optional[AttributeMap]:
        wanted = unmarshal(key)
        for item in self.items.get(table_name, []):
            native = unmarshal({name: item[name] for name in wanted if name in item})
            if native == wanted:
                return item
        return None

    async def batch_get_item(
        self,
        request_items: Dict[str, dict],
        return_consumed_capacity: Optional[str] = None,
    ) -> BatchGetResult:
        self.batch_get_calls.append({
            "request_items": request_items,
            "return_consumed_capacity": return_consumed_capacity,
        })

        result = BatchGetResult()
        for table_name, keys_and_attributes in request_items.items():
            if table_name in self.failing_tables:
                raise self.failing_tables[table_name]

            keys = list(keys_and_attributes["Keys"])
            if len(keys) > 100:
                raise StoreRequestError("Too many items requested", "ValidationException")
            if len({repr(unmarshal(k)) for k in keys}) != len(keys):
                raise StoreRequestError("Provided list of item keys contains duplicates",
                                        "ValidationException")

            processed = keys
            if self.unprocessed_rounds.get(table_name, 0) > 0:
                self.unprocessed_rounds[table_name] -= 1
                cut = max(1, len(keys) // 2)
                processed, unprocessed = keys[:-cut], keys[-cut:]
                result.unprocessed_keys[table_name] = {
                    **{k: v for k, v in keys_and_attributes.items() if k != "Keys"},
                    "Keys": unprocessed,
                }

            if table_name in self.forced_responses:
                records = list(self.forced_responses[table_name])
            else:
                records = [r for r in (self._find(table_name, k) for k in processed) if r]

            # DynamoDB returns records in no particular order
            result.responses[table_name] = list(reversed(records))

            if return_consumed_capacity:
                result.consumed_capacity.append({
                    "TableName": table_name,
                    "CapacityUnits": 0.5 * len(processed),
                })
        return result

    def _project(self, record: Dict[str, Any], params: dict) -> Dict[str, Any]:
        projection = params.get("ProjectionExpression")
        if not projection:
            return record
        names = params.get("ExpressionAttributeNames") or {}
        wanted = [names.get(p.strip(), p.strip()) for p in projection.split(",")]
        return {k: v for k, v in record.items() if k in wanted}

    async def _pages(self, operation: str, records: List[Dict[str, Any]], params: dict):
        table_name = params["TableName"]
        error = self.failing_ranges.get((operation, table_name))
        if error is not None:
            raise error
        records = [self._project(r, params) for r in records]
        if not records:
            yield []
            return
        for start in range(0, len(records), self.page_size):
            yield records[start:start + self.page_size]

    async def paginate_query(self, params: dict):
        self.query_calls.append(params)
        table_name = params["TableName"]
        partition_key = self.key_names[table_name][0]
        wanted = (params.get("ExpressionAttributeValues") or {}).get(":pk")
        records = [
            unmarshal(item) for item in self.items.get(table_name, [])
            if unmarshal(item).get(partition_key) == wanted
        ]
        async for page in self._pages("query", records, params):
            yield page

    async def paginate_scan(self, params: dict):
        self.scan_calls.append(params)
        records = [unmarshal(item) for item in self.items.get(params["TableName"], [])]
        async for page in self._pages("scan", records, params):
            yield page


@pytest.fixture
def mock_store() -> MockStoreClient:
    """Create an empty mock store."""
    return MockStoreClient()


@pytest.fixture
def orders_store(mock_store) -> MockStoreClient:
    """Create a mock store with an Orders table (pk + binary sk)."""
    mock_store.add_table("Orders", ("pk", "sk"))
    mock_store.put_item("Orders", {"pk": "pk1", "sk": b"sk1", "attr": "attr1"})
    mock_store.put_item("Orders", {"pk": "pk1", "sk": b"sk2", "attr": "attr2"})
    mock_store.put_item("Orders", {"pk": "pk1", "sk": b"sk3", "attr": "attr3"})
    mock_store.put_item("Orders", {"pk": "pk2", "sk": b"sk1", "attr": "attr4"})
    return mock_store


@pytest.fixture
def users_store(orders_store) -> MockStoreClient:
    """Add a Users table (numeric partition key only)."""
    orders_store.add_table("Users", ("id",))
    for i in range(1, 6):
        orders_store.put_item("Users", {"id": i, "name": f"user{i}"})
    return orders_store


@pytest.fixture
def table_schemas() -> List[TableSchema]:
    """Schemas of the mock tables."""
    return [
        TableSchema("Orders", ("pk", "sk")),
        TableSchema("Users", ("id",)),
    ]
