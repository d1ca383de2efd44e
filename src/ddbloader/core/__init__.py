"""
Core data loader components.

This module contains the request and batch models. The loader façade
lives in ddbloader.core.loader.
"""

from ddbloader.core.request import (
    GetRequest,
    QueryRequest,
    ScanRequest,
    Select,
    ReturnConsumedCapacity,
    TableSchema,
)
from ddbloader.core.batch import Batch, BatchStatus

__all__ = [
    "GetRequest",
    "QueryRequest",
    "ScanRequest",
    "Select",
    "ReturnConsumedCapacity",
    "TableSchema",
    "Batch",
    "BatchStatus",
]
