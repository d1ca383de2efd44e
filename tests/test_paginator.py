"""
Test suite for query/scan pagination and cross-cache priming.
"""

import asyncio

import pytest
from structlog.testing import capture_logs

from ddbloader.core.request import GetRequest, QueryRequest, ScanRequest, Select, TableSchema
from ddbloader.engine.cache_key import get_cache_key, query_cache_key
from ddbloader.engine.getter import BatchGetter
from ddbloader.engine.paginator import Operation, RecordPaginator
from ddbloader.engine.primer import CachePrimer
from ddbloader.state.batch_loader import BatchLoader
from ddbloader.store.interface import StoreRequestError


# ============================================================================
# Helper Functions
# ============================================================================

def make_getter(store, config) -> BatchLoader:
    return BatchLoader(BatchGetter(store, config), get_cache_key, name="getter")


def orders_query(**overrides) -> QueryRequest:
    params = dict(
        table_name="Orders",
        key_condition_expression="pk = :pk",
        expression_attribute_values={":pk": "pk1"},
    )
    params.update(overrides)
    return QueryRequest(**params)


# ============================================================================
# Test Pagination
# ============================================================================

class TestPagination:
    """Tests for following requests to their last page."""

    @pytest.mark.asyncio
    async def test_query_collects_every_page(self, orders_store):
        """Test that a query spanning two pages returns all records."""
        paginator = RecordPaginator(orders_store, Operation.QUERY)

        [records] = await paginator([orders_query()])

        assert [r["attr"] for r in records] == ["attr1", "attr2", "attr3"]
        assert paginator.get_stats() == {"requests": 1, "pages": 2, "records": 3}

    @pytest.mark.asyncio
    async def test_query_params_are_rendered(self, orders_store):
        """Test that request fields reach the store under their DynamoDB names."""
        paginator = RecordPaginator(orders_store, Operation.QUERY)

        await paginator([orders_query(consistent_read=True, scan_index_forward=False, limit=5)])

        params = orders_store.query_calls[0]
        assert params["TableName"] == "Orders"
        assert params["KeyConditionExpression"] == "pk = :pk"
        assert params["ExpressionAttributeValues"] == {":pk": "pk1"}
        assert params["ConsistentRead"] is True
        assert params["ScanIndexForward"] is False
        assert params["Limit"] == 5

    @pytest.mark.asyncio
    async def test_empty_result(self, orders_store):
        """Test that a query without matches returns an empty list."""
        paginator = RecordPaginator(orders_store, Operation.QUERY)

        [records] = await paginator([orders_query(expression_attribute_values={":pk": "none"})])

        assert records == []

    @pytest.mark.asyncio
    async def test_scan_collects_every_page(self, orders_store):
        """Test that a scan returns the whole table."""
        paginator = RecordPaginator(orders_store, Operation.SCAN)

        [records] = await paginator([ScanRequest(table_name="Orders")])

        assert len(records) == 4
        assert len(orders_store.scan_calls) == 1

    @pytest.mark.asyncio
    async def test_failing_request_is_isolated(self, users_store):
        """Test that one failing scan does not fail the others of the batch."""
        error = StoreRequestError("no such table", "ResourceNotFoundException")
        users_store.failing_ranges[("scan", "Users")] = error
        paginator = RecordPaginator(users_store, Operation.SCAN)

        with capture_logs() as logs:
            results = await paginator([
                ScanRequest(table_name="Users"),
                ScanRequest(table_name="Orders"),
            ])

        assert results[0] is error
        assert len(results[1]) == 4
        assert any(log["event"] == "paginated_request_failed" for log in logs)

    @pytest.mark.asyncio
    async def test_distinct_queries_are_not_merged(self, orders_store):
        """Test that each distinct query gets its own store call."""
        paginator = RecordPaginator(orders_store, Operation.QUERY)

        results = await paginator([
            orders_query(),
            orders_query(expression_attribute_values={":pk": "pk2"}),
        ])

        assert len(orders_store.query_calls) == 2
        assert [len(r) for r in results] == [3, 1]


# ============================================================================
# Test De-duplication
# ============================================================================

class TestQueryDeduplication:
    """Tests for query identity inside a loader."""

    @pytest.mark.asyncio
    async def test_consistency_variants_share_one_call(self, orders_store):
        """Test that queries differing only in read consistency run once."""
        querier = BatchLoader(
            RecordPaginator(orders_store, Operation.QUERY),
            query_cache_key,
            name="querier",
        )

        first, second = await asyncio.gather(
            querier.load(orders_query()),
            querier.load(orders_query(consistent_read=True)),
        )

        assert first is second
        assert len(orders_store.query_calls) == 1


# ============================================================================
# Test Priming
# ============================================================================

class TestPriming:
    """Tests for priming the point-get cache from query and scan results."""

    @pytest.mark.asyncio
    async def test_full_records_prime_getter(self, orders_store, table_schemas, test_config):
        """Test that a full-record query serves later point-gets without a call."""
        getter = make_getter(orders_store, test_config)
        paginator = RecordPaginator(
            orders_store, Operation.QUERY, CachePrimer(getter, table_schemas)
        )

        [records] = await paginator([orders_query()])
        record = await getter.load(GetRequest("Orders", {"pk": "pk1", "sk": b"sk2"}))

        assert record is records[1]
        assert orders_store.batch_get_calls == []

    @pytest.mark.parametrize("overrides", [
        {"projection_expression": "pk, sk, attr"},
        {"select": Select.SPECIFIC_ATTRIBUTES},
        {"select": Select.ALL_PROJECTED_ATTRIBUTES},
        {"select": Select.COUNT},
        {"index_name": "byAttr"},
    ])
    @pytest.mark.asyncio
    async def test_partial_records_do_not_prime(
        self, orders_store, table_schemas, test_config, overrides
    ):
        """Test that records possibly missing attributes never prime the getter."""
        getter = make_getter(orders_store, test_config)
        paginator = RecordPaginator(
            orders_store, Operation.QUERY, CachePrimer(getter, table_schemas)
        )

        await paginator([orders_query(**overrides)])

        assert getter.get_stats()["primed"] == 0

    @pytest.mark.asyncio
    async def test_index_with_explicit_all_attributes_primes(
        self, orders_store, table_schemas, test_config
    ):
        """Test that an index query asking for all attributes primes."""
        getter = make_getter(orders_store, test_config)
        paginator = RecordPaginator(
            orders_store, Operation.QUERY, CachePrimer(getter, table_schemas)
        )

        await paginator([orders_query(index_name="byAttr", select=Select.ALL_ATTRIBUTES)])

        assert getter.get_stats()["primed"] == 3

    @pytest.mark.asyncio
    async def test_scan_primes_getter(self, users_store, table_schemas, test_config):
        """Test that a scan primes the getter for every returned record."""
        getter = make_getter(users_store, test_config)
        paginator = RecordPaginator(
            users_store, Operation.SCAN, CachePrimer(getter, table_schemas)
        )

        await paginator([ScanRequest(table_name="Users")])
        users = await getter.load_many([GetRequest("Users", {"id": i}) for i in range(1, 6)])

        assert [u["name"] for u in users] == [f"user{i}" for i in range(1, 6)]
        assert users_store.batch_get_calls == []

    @pytest.mark.asyncio
    async def test_table_without_schema_is_skipped(self, orders_store, test_config):
        """Test that a table without a schema is reported and not primed."""
        getter = make_getter(orders_store, test_config)
        primer = CachePrimer(getter, [TableSchema("Users", ("id",))])
        paginator = RecordPaginator(orders_store, Operation.QUERY, primer)

        with capture_logs() as logs:
            [records] = await paginator([orders_query()])

        assert len(records) == 3
        assert getter.get_stats()["primed"] == 0
        warnings = [log for log in logs if log["event"] == "table_schema_not_found"]
        assert warnings == [{"event": "table_schema_not_found", "table": "Orders",
                             "log_level": "warning"}]

    @pytest.mark.asyncio
    async def test_records_missing_key_are_skipped(self, mock_store, table_schemas, test_config):
        """Test that records lacking a key attribute are not primed."""
        primer = CachePrimer(make_getter(mock_store, test_config), table_schemas)

        primed = primer.prime_records("Orders", [
            {"pk": "pk1", "sk": b"sk1", "attr": "ok"},
            {"pk": "pk1", "attr": "no sort key"},
            {"pk": "pk1", "sk": None, "attr": "null sort key"},
        ])

        assert primed == 1

    @pytest.mark.asyncio
    async def test_priming_never_overwrites(self, orders_store, table_schemas, test_config):
        """Test that an already cached point-get keeps its value."""
        getter = make_getter(orders_store, test_config)
        request = GetRequest("Orders", {"pk": "pk1", "sk": b"sk1"})
        getter.prime(request, {"pk": "pk1", "sk": b"sk1", "attr": "earlier"})
        paginator = RecordPaginator(
            orders_store, Operation.QUERY, CachePrimer(getter, table_schemas)
        )

        await paginator([orders_query()])

        assert (await getter.load(request))["attr"] == "earlier"
        assert getter.get_stats()["primed"] == 3
