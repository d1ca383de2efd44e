"""
Request models.

Point-get, query and scan requests as issued by callers, plus the table
schemas used to address records returned by queries and scans.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Select(str, Enum):
    """Attribute selection modes of a query or scan."""
    ALL_ATTRIBUTES = "ALL_ATTRIBUTES"
    ALL_PROJECTED_ATTRIBUTES = "ALL_PROJECTED_ATTRIBUTES"
    SPECIFIC_ATTRIBUTES = "SPECIFIC_ATTRIBUTES"
    COUNT = "COUNT"


class ReturnConsumedCapacity(str, Enum):
    """Capacity reporting modes."""
    INDEXES = "INDEXES"
    TOTAL = "TOTAL"
    NONE = "NONE"


@dataclass(frozen=True)
class GetRequest:
    """
    A request for exactly one record by its full primary key.

    Attributes:
        table_name: Table holding the record
        key: Primary key attribute names mapped to native scalar values
    """

    table_name: str
    key: Dict[str, Any]

    def __repr__(self) -> str:
        return f"GetRequest(table={self.table_name}, key={self.key!r})"


@dataclass(frozen=True)
class _RangeRequest:
    """Fields shared by queries and scans."""

    table_name: str
    index_name: Optional[str] = None
    filter_expression: Optional[str] = None
    projection_expression: Optional[str] = None
    expression_attribute_names: Optional[Dict[str, str]] = None
    expression_attribute_values: Optional[Dict[str, Any]] = None
    limit: Optional[int] = None
    select: Optional[Select] = None
    consistent_read: Optional[bool] = None
    return_consumed_capacity: Optional[ReturnConsumedCapacity] = None

    def __post_init__(self):
        """Normalize enum fields given as plain strings."""
        if isinstance(self.select, str) and not isinstance(self.select, Select):
            object.__setattr__(self, "select", Select(self.select))
        if (isinstance(self.return_consumed_capacity, str)
                and not isinstance(self.return_consumed_capacity, ReturnConsumedCapacity)):
            object.__setattr__(
                self,
                "return_consumed_capacity",
                ReturnConsumedCapacity(self.return_consumed_capacity),
            )

    @property
    def effective_select(self) -> Select:
        """
        Selection mode DynamoDB applies to this request.

        An unset select defaults to SPECIFIC_ATTRIBUTES when a projection is
        given, to ALL_PROJECTED_ATTRIBUTES on an index, and to ALL_ATTRIBUTES
        otherwise.
        """
        if self.select is not None:
            return self.select
        if self.projection_expression is not None:
            return Select.SPECIFIC_ATTRIBUTES
        if self.index_name is not None:
            return Select.ALL_PROJECTED_ATTRIBUTES
        return Select.ALL_ATTRIBUTES

    @property
    def returns_full_records(self) -> bool:
        """Whether returned records carry every attribute of the item."""
        return self.effective_select == Select.ALL_ATTRIBUTES

    def _common_params(self) -> dict:
        params: Dict[str, Any] = {"TableName": self.table_name}
        if self.index_name is not None:
            params["IndexName"] = self.index_name
        if self.filter_expression is not None:
            params["FilterExpression"] = self.filter_expression
        if self.projection_expression is not None:
            params["ProjectionExpression"] = self.projection_expression
        if self.expression_attribute_names:
            params["ExpressionAttributeNames"] = dict(self.expression_attribute_names)
        if self.expression_attribute_values:
            params["ExpressionAttributeValues"] = dict(self.expression_attribute_values)
        if self.limit is not None:
            params["Limit"] = self.limit
        if self.select is not None:
            params["Select"] = self.select.value
        if self.consistent_read is not None:
            params["ConsistentRead"] = self.consistent_read
        if self.return_consumed_capacity is not None:
            params["ReturnConsumedCapacity"] = self.return_consumed_capacity.value
        return params


@dataclass(frozen=True)
class QueryRequest(_RangeRequest):
    """
    A request for records sharing a partition key.

    Attributes:
        key_condition_expression: Partition (and optional sort) key condition
        scan_index_forward: Sort order of the returned records
    """

    key_condition_expression: Optional[str] = None
    scan_index_forward: Optional[bool] = None

    def to_params(self) -> dict:
        """Render DynamoDB Query parameters (native values, unset fields omitted)."""
        params = self._common_params()
        if self.key_condition_expression is not None:
            params["KeyConditionExpression"] = self.key_condition_expression
        if self.scan_index_forward is not None:
            params["ScanIndexForward"] = self.scan_index_forward
        return params


@dataclass(frozen=True)
class ScanRequest(_RangeRequest):
    """
    A request for records across a whole table or index.

    Attributes:
        segment: Segment of a parallel scan handled by this request
        total_segments: Number of segments of the parallel scan
    """

    segment: Optional[int] = None
    total_segments: Optional[int] = None

    def to_params(self) -> dict:
        """Render DynamoDB Scan parameters (native values, unset fields omitted)."""
        params = self._common_params()
        if self.segment is not None:
            params["Segment"] = self.segment
        if self.total_segments is not None:
            params["TotalSegments"] = self.total_segments
        return params


@dataclass(frozen=True)
class TableSchema:
    """
    Key layout of a table.

    Attributes:
        table_name: Table the schema describes
        key_attribute_names: Partition key name, optionally followed by the sort key name
    """

    table_name: str
    key_attribute_names: Tuple[str, ...]

    def __post_init__(self):
        """Validate the key layout."""
        names = tuple(self.key_attribute_names)
        if len(names) not in (1, 2):
            raise ValueError(
                f"Table {self.table_name} needs 1 or 2 key attributes, got {len(names)}"
            )
        object.__setattr__(self, "key_attribute_names", names)

    def extract_key(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Extract the primary key of a record.

        Args:
            record: Native record returned by a query or scan

        Returns:
            Key mapping, or None if any key attribute is missing or null
        """
        key = {}
        for name in self.key_attribute_names:
            value = record.get(name)
            if value is None:
                return None
            key[name] = value
        return key
