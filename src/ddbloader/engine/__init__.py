"""
Dispatch engine.

Batch functions and the helpers they share: cache keys, record matching,
priming.
"""

from ddbloader.engine.cache_key import get_cache_key, query_cache_key, scan_cache_key
from ddbloader.engine.matcher import UncomparableKeyError, find_matching_record
from ddbloader.engine.getter import BatchGetter, UnprocessedKeysExhaustedError
from ddbloader.engine.primer import CachePrimer
from ddbloader.engine.paginator import Operation, RecordPaginator

__all__ = [
    "get_cache_key",
    "query_cache_key",
    "scan_cache_key",
    "find_matching_record",
    "UncomparableKeyError",
    "BatchGetter",
    "UnprocessedKeysExhaustedError",
    "CachePrimer",
    "Operation",
    "RecordPaginator",
]
