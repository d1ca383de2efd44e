"""
DynamoDB Data Loader

A request-scoped batching layer for DynamoDB reads.
Point-gets issued in the same event-loop tick are coalesced into BatchGetItem calls,
identical requests are de-duplicated, and queries and scans prime the point-get cache.
"""

__version__ = "0.1.0"

from ddbloader.core.loader import DynamodbDataLoader
from ddbloader.core.request import (
    GetRequest,
    QueryRequest,
    ReturnConsumedCapacity,
    ScanRequest,
    Select,
    TableSchema,
)
from ddbloader.config import GetOptions, LoaderConfig
from ddbloader.engine.getter import UnprocessedKeysExhaustedError
from ddbloader.engine.matcher import UncomparableKeyError
from ddbloader.store.interface import (
    StoreClient,
    StoreConnectionError,
    StoreError,
    StoreRequestError,
)

__all__ = [
    "DynamodbDataLoader",
    "GetRequest",
    "QueryRequest",
    "ScanRequest",
    "TableSchema",
    "Select",
    "ReturnConsumedCapacity",
    "GetOptions",
    "LoaderConfig",
    "StoreClient",
    "StoreError",
    "StoreConnectionError",
    "StoreRequestError",
    "UnprocessedKeysExhaustedError",
    "UncomparableKeyError",
]
