"""
Record Matcher - pairs batched-get responses with the requests that asked for them.

BatchGetItem returns records in no particular order, so each request is
resolved by searching its table's records for one whose key attributes
equal the requested key.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import Binary

from ddbloader.store.codec import to_attribute_value
from ddbloader.store.interface import AttributeMap


class UncomparableKeyError(Exception):
    """Raised when a returned key attribute cannot be compared with the requested key."""

    def __init__(self, attribute_name: str, attribute_value: Any):
        super().__init__(
            f"Unexpected key attribute {attribute_name}: {attribute_value!r}"
        )
        self.attribute_name = attribute_name
        self.attribute_value = attribute_value


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, Binary):
        return value.value
    return bytes(value)


def attribute_values_equal(
    attribute_name: str,
    actual: Optional[Dict[str, Any]],
    expected: Dict[str, Any],
) -> bool:
    """
    Compare a returned key attribute with the requested one.

    Strings compare as text, numbers by value (so "1" equals "1.0"), and
    binaries by content regardless of container type.

    Args:
        attribute_name: Name of the key attribute (for error reporting)
        actual: Typed attribute value found on the record, None if absent
        expected: Typed attribute value of the requested key

    Returns:
        True if both encode the same logical value

    Raises:
        UncomparableKeyError: If the returned value is not a string, number or binary
    """
    if actual is None:
        return False
    if actual == expected:
        return True

    if "S" in actual:
        return actual["S"] == expected.get("S")
    if "N" in actual:
        if "N" not in expected:
            return False
        try:
            return Decimal(actual["N"]) == Decimal(expected["N"])
        except InvalidOperation as e:
            raise UncomparableKeyError(attribute_name, actual) from e
    if "B" in actual:
        if "B" not in expected:
            return False
        return _as_bytes(actual["B"]) == _as_bytes(expected["B"])

    raise UncomparableKeyError(attribute_name, actual)


def record_matches_key(
    record: AttributeMap,
    expected_key: AttributeMap,
) -> bool:
    """Check every requested key attribute against a returned record."""
    return all(
        attribute_values_equal(name, record.get(name), expected)
        for name, expected in expected_key.items()
    )


def find_matching_record(
    records: List[AttributeMap],
    key: Dict[str, Any],
) -> Optional[AttributeMap]:
    """
    Find the record addressed by a native key.

    Args:
        records: Typed records returned for the key's table
        key: Native key of the request

    Returns:
        The first matching record, or None if the key was not found
    """
    expected_key = {name: to_attribute_value(value) for name, value in key.items()}
    for record in records:
        if record_matches_key(record, expected_key):
            return record
    return None
