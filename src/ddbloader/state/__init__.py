"""
Loader state.

Request-scoped batching cache shared by the three loaders.
"""

from ddbloader.state.batch_loader import BatchLoader, BatchLoaderError

__all__ = [
    "BatchLoader",
    "BatchLoaderError",
]
