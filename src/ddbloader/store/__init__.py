"""
Store Integration Layer.

Provides abstracted access to DynamoDB and the value codec.
"""

from ddbloader.store.interface import (
    BatchGetResult,
    StoreClient,
    StoreConnectionError,
    StoreError,
    StoreRequestError,
)
from ddbloader.store.dynamodb import DynamoDBStoreClient

__all__ = [
    "BatchGetResult",
    "StoreClient",
    "StoreError",
    "StoreConnectionError",
    "StoreRequestError",
    "DynamoDBStoreClient",
]
