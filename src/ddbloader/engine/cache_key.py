"""
Cache key normalization.

Derives a stable string identity for each request. Values are marshalled to
DynamoDB attribute values and canonicalized before JSON encoding, so equal
logical values share a key and JSON escaping keeps distinct requests apart.
"""

import base64
import json
from decimal import Decimal
from typing import Any, Dict, Union

from ddbloader.core.request import GetRequest, QueryRequest, ScanRequest
from ddbloader.store.codec import to_attribute_value


def _canonical_number(number: str) -> str:
    value = Decimal(number)
    if value == 0:
        return "0"
    return str(value.normalize())


def _canonical_binary(value: Any) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


def canonical_attribute(attribute_value: Dict[str, Any]) -> Any:
    """
    Canonical JSON-ready form of a typed attribute value.

    Numbers are normalized, binaries base64-encoded, and sets sorted, so
    that logically equal values produce identical output.
    """
    (type_tag, value), = attribute_value.items()

    if type_tag == "N":
        return {"N": _canonical_number(value)}
    if type_tag == "B":
        return {"B": _canonical_binary(value)}
    if type_tag == "NS":
        return {"NS": sorted(_canonical_number(v) for v in value)}
    if type_tag == "SS":
        return {"SS": sorted(value)}
    if type_tag == "BS":
        return {"BS": sorted(_canonical_binary(v) for v in value)}
    if type_tag == "L":
        return {"L": [canonical_attribute(v) for v in value]}
    if type_tag == "M":
        return {"M": {k: canonical_attribute(v) for k, v in value.items()}}
    # S, BOOL, NULL are JSON-ready as-is
    return {type_tag: value}


def canonical_value(value: Any) -> Any:
    """Canonical JSON-ready form of a native value."""
    return canonical_attribute(to_attribute_value(value))


def _dumps(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def get_cache_key(request: GetRequest) -> str:
    """
    Cache key of a point-get: table plus sorted key attributes.

    Args:
        request: The point-get request

    Returns:
        Canonical string identity
    """
    pairs = [
        [name, canonical_value(request.key[name])]
        for name in sorted(request.key)
    ]
    return _dumps(["get", request.table_name, pairs])


def _range_fields(request: Union[QueryRequest, ScanRequest]) -> dict:
    values = request.expression_attribute_values
    return {
        "TableName": request.table_name,
        "IndexName": request.index_name,
        "FilterExpression": request.filter_expression,
        "ProjectionExpression": request.projection_expression,
        "ExpressionAttributeNames": request.expression_attribute_names or None,
        "ExpressionAttributeValues": (
            {name: canonical_value(value) for name, value in values.items()}
            if values else None
        ),
        "Limit": request.limit,
        "Select": request.select.value if request.select is not None else None,
    }


def query_cache_key(request: QueryRequest) -> str:
    """
    Cache key of a query.

    Consistency, sort direction and capacity reporting do not take part.
    """
    fields = _range_fields(request)
    fields["KeyConditionExpression"] = request.key_condition_expression
    return _dumps(["query", fields])


def scan_cache_key(request: ScanRequest) -> str:
    """
    Cache key of a scan.

    Segments take part since each covers a different slice of the table.
    Consistency and capacity reporting do not.
    """
    fields = _range_fields(request)
    fields["Segment"] = request.segment
    fields["TotalSegments"] = request.total_segments
    return _dumps(["scan", fields])
