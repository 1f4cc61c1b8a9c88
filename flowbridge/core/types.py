"""
Type mapping between external type tokens and the internal DataType set.

External documents spell types in many ways ("Text", "Phone Number",
"Long Integer", "Currency", ...). Mapping is a best-effort substring match in a
fixed priority order, so it always yields a type and never raises.
"""

from typing import Optional

from .models import DataType


# Order matters: longer tokens must be tested before their prefixes
# ("longinteger" before "integer", "datetime" before "date").
_TOKEN_PRIORITY: list[tuple[tuple[str, ...], DataType]] = [
    (("text", "phone", "email"), DataType.TEXT),
    (("longinteger",), DataType.LONG_INTEGER),
    (("integer",), DataType.INTEGER),
    (("decimal", "currency"), DataType.DECIMAL),
    (("boolean",), DataType.BOOLEAN),
    (("datetime",), DataType.DATETIME),
    (("date",), DataType.DATE),
    (("binary",), DataType.BINARY),
]


def map_external_type(token: Optional[str]) -> DataType:
    """
    Map an external type token to a DataType.

    Matching is case-insensitive and substring based. Unknown, empty or
    missing tokens map to Text.

    Args:
        token: Type token as found in the document (e.g. "LongInteger")

    Returns:
        The matching DataType
    """
    if not token:
        return DataType.TEXT

    lower = token.lower()
    for needles, data_type in _TOKEN_PRIORITY:
        if any(needle in lower for needle in needles):
            return data_type

    return DataType.TEXT


def to_external_type(data_type: DataType) -> str:
    """Canonical external label for a DataType."""
    return DataType(data_type).value
