"""
Configuration management for the DynamoDB data loader.

Supports configuration via environment variables and .env files.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ddbloader.core.request import ReturnConsumedCapacity


class GetOptions(BaseModel):
    """
    Options applied uniformly to every point-get dispatch.

    Read-only once the loader is constructed.
    """

    model_config = ConfigDict(frozen=True)

    consistent_read: Optional[bool] = Field(
        default=None,
        description="Use strongly consistent reads for batched gets"
    )
    projection_expression: Optional[str] = Field(
        default=None,
        description="Projection applied to batched gets"
    )
    expression_attribute_names: Optional[Dict[str, str]] = Field(
        default=None,
        description="Attribute name aliases used by the projection expression"
    )
    return_consumed_capacity: Optional[ReturnConsumedCapacity] = Field(
        default=None,
        description="Capacity reporting mode for batched gets"
    )

    def keys_and_attributes(self) -> dict:
        """Render the per-table options of a BatchGetItem request."""
        params = {}
        if self.consistent_read is not None:
            params["ConsistentRead"] = self.consistent_read
        if self.projection_expression is not None:
            params["ProjectionExpression"] = self.projection_expression
        if self.expression_attribute_names:
            params["ExpressionAttributeNames"] = dict(self.expression_attribute_names)
        return params


class LoaderConfig(BaseSettings):
    """
    Configuration settings for the DynamoDB data loader.

    All settings can be configured via environment variables with the DDBLOADER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DDBLOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Store client settings
    region_name: Optional[str] = Field(
        default=None,
        description="AWS region of the DynamoDB endpoint"
    )
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom DynamoDB endpoint URL (e.g. DynamoDB Local)"
    )

    # Point-get options
    get_options: GetOptions = Field(
        default_factory=GetOptions,
        description="Options applied to every batched get"
    )

    # Batching parameters
    batch_get_max_keys: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Maximum number of keys in a single BatchGetItem call"
    )
    isolate_table_failures: bool = Field(
        default=True,
        description="Fail only the requests of the table whose call failed"
    )

    # Retry settings for unprocessed keys
    max_retries: int = Field(
        default=8,
        ge=0,
        description="Maximum resubmissions of unprocessed keys"
    )
    retry_base_delay_seconds: float = Field(
        default=0.05,
        ge=0,
        description="Initial backoff delay before resubmitting unprocessed keys"
    )
    retry_max_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Upper bound of the backoff delay"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    def retry_delay(self, attempt: int) -> float:
        """Backoff delay before the given resubmission attempt (1-based)."""
        delay = self.retry_base_delay_seconds * (2.0 ** (attempt - 1))
        return min(delay, self.retry_max_delay_seconds)


# Global config instance
_config: Optional[LoaderConfig] = None


def get_config() -> LoaderConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = LoaderConfig()
    return _config


def set_config(config: LoaderConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
