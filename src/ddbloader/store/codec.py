"""
Key/value codec.

Converts between native Python values and DynamoDB attribute values using
boto3's type serializer and deserializer.
"""

from decimal import Decimal
from typing import Any, Dict

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _coerce(value: Any) -> Any:
    # TypeSerializer rejects floats
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _coerce(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_coerce(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_coerce(v) for v in value}
    return value


def to_attribute_value(value: Any) -> Dict[str, Any]:
    """
    Convert a native value to a DynamoDB attribute value.

    Args:
        value: str, number, bytes, bool, None, set, list or dict

    Returns:
        Typed attribute value such as {"S": "abc"} or {"N": "12"}

    Raises:
        TypeError: If the value has no DynamoDB representation
    """
    return _serializer.serialize(_coerce(value))


def from_attribute_value(attribute_value: Dict[str, Any]) -> Any:
    """Convert a DynamoDB attribute value to a native value."""
    return _deserializer.deserialize(attribute_value)


def marshal(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert a native mapping (key or record) to an attribute map."""
    return {name: to_attribute_value(value) for name, value in item.items()}


def unmarshal(attribute_map: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Convert an attribute map returned by DynamoDB to a native record."""
    return {name: from_attribute_value(value) for name, value in attribute_map.items()}
