"""
DynamoDB store adapter.

Provides store access via an aiobotocore DynamoDB client.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ddbloader.config import LoaderConfig, get_config
from ddbloader.store.codec import marshal, unmarshal
from ddbloader.store.interface import (
    BatchGetResult,
    StoreClient,
    StoreConnectionError,
    StoreRequestError,
)

logger = structlog.get_logger(__name__)


class DynamoDBStoreClient(StoreClient):
    """
    aiobotocore-backed store client.

    The underlying client is created on first use. A ready client can be
    injected instead, in which case it is never closed by this adapter.
    """

    def __init__(self, config: Optional[LoaderConfig] = None, client: Any = None):
        """
        Initialize the DynamoDB adapter.

        Args:
            config: Loader configuration. Uses global config if not provided.
            client: Existing aiobotocore DynamoDB client to use
        """
        self.config = config or get_config()
        self._session = get_session()
        self._client = client
        self._client_context = None

        # Serializes client creation between concurrent first calls
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Create the aiobotocore client."""
        async with self._lock:
            if self._client is not None:
                return

            try:
                client_context = self._session.create_client(
                    "dynamodb",
                    region_name=self.config.region_name,
                    endpoint_url=self.config.endpoint_url,
                )
                self._client = await client_context.__aenter__()
            except (BotoCoreError, ValueError) as e:
                raise StoreConnectionError(f"Failed to create DynamoDB client: {e}") from e
            self._client_context = client_context

            logger.info(
                "dynamodb_connected",
                region=self.config.region_name,
                endpoint_url=self.config.endpoint_url,
            )

    async def disconnect(self) -> None:
        """Close the client if this adapter created it."""
        async with self._lock:
            if self._client_context is not None:
                await self._client_context.__aexit__(None, None, None)
                self._client_context = None
                self._client = None
                logger.info("dynamodb_disconnected")

    async def _get_client(self) -> Any:
        if self._client is None:
            await self.connect()
        return self._client

    async def batch_get_item(
        self,
        request_items: Dict[str, dict],
        return_consumed_capacity: Optional[str] = None,
    ) -> BatchGetResult:
        """Issue one BatchGetItem call."""
        client = await self._get_client()

        kwargs: Dict[str, Any] = {"RequestItems": request_items}
        if return_consumed_capacity:
            kwargs["ReturnConsumedCapacity"] = return_consumed_capacity

        try:
            response = await client.batch_get_item(**kwargs)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            logger.error(
                "batch_get_item_failed",
                tables=list(request_items),
                error_code=error_code,
            )
            raise StoreRequestError(str(e), error_code=error_code) from e

        return BatchGetResult(
            responses=response.get("Responses") or {},
            unprocessed_keys=response.get("UnprocessedKeys") or {},
            consumed_capacity=response.get("ConsumedCapacity") or [],
        )

    async def paginate_query(self, params: dict) -> AsyncIterator[List[Dict[str, Any]]]:
        """Iterate the pages of a query."""
        async for page in self._paginate("query", params):
            yield page

    async def paginate_scan(self, params: dict) -> AsyncIterator[List[Dict[str, Any]]]:
        """Iterate the pages of a scan."""
        async for page in self._paginate("scan", params):
            yield page

    async def _paginate(
        self,
        operation: str,
        params: dict,
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        client = await self._get_client()

        params = dict(params)
        if params.get("ExpressionAttributeValues"):
            params["ExpressionAttributeValues"] = marshal(params["ExpressionAttributeValues"])

        paginator = client.get_paginator(operation)
        try:
            async for page in paginator.paginate(**params):
                if page.get("ConsumedCapacity"):
                    logger.debug(
                        "page_consumed_capacity",
                        operation=operation,
                        table=params.get("TableName"),
                        consumed_capacity=page["ConsumedCapacity"],
                    )
                yield [unmarshal(item) for item in page.get("Items") or []]
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            logger.error(
                "paginate_failed",
                operation=operation,
                table=params.get("TableName"),
                error_code=error_code,
            )
            raise StoreRequestError(str(e), error_code=error_code) from e
