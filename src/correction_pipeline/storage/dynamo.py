"""Helpers shared by the DynamoDB adapters."""

from decimal import Decimal
from typing import Any, Callable, Dict, Iterator


def from_dynamo(value: Any) -> Any:
    """Converts the Decimals returned by the DynamoDB resource API back to ints/floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


def paginate(operation: Callable[..., Dict[str, Any]], **kwargs: Any) -> Iterator[Dict[str, Any]]:
    """Yields every item of a query/scan, following LastEvaluatedKey."""
    while True:
        response = operation(**kwargs)
        yield from response.get("Items", [])
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return
        kwargs["ExclusiveStartKey"] = last_key


def error_code(error: Exception) -> str:
    """The AWS error code of a botocore ClientError, or an empty string."""
    response = getattr(error, "response", None) or {}
    return str(response.get("Error", {}).get("Code", ""))
