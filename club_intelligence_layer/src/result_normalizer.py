"""Normalize graph driver rows into plain JSON-safe values.

Driver integers can arrive wrapped (objects exposing ``to_number``/``toNumber``
or 64-bit ``{low, high}`` pairs); temporal values arrive as driver types.
Nothing of that kind leaves this module.
"""

import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

_TWO_POW_32 = 2 ** 32


class ResponseType(Enum):
    SPECIFIC_ENTITY = "specific_entity"
    RANKING = "ranking"
    RELATIONSHIP = "relationship"
    HISTORICAL_AWARD = "historical_award"
    OPPOSITION_AGGREGATE = "opposition_aggregate"
    NO_CONTEXT = "no_context"
    PLAYER_NOT_FOUND = "player_not_found"
    UNKNOWN_METRIC = "unknown_metric"
    UNSUPPORTED_METRIC = "unsupported_metric"
    NO_DATA = "no_data"
    ERROR = "error"


def _finite(number: float) -> float:
    return 0 if math.isnan(number) or math.isinf(number) else number


def _integral(number: float):
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def to_number(value: Any):
    """Convert any driver value to a plain int or float. Never raises."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _finite(value)

    for method in ("to_number", "toNumber"):
        converter = getattr(value, method, None)
        if callable(converter):
            try:
                return to_number(converter())
            except (TypeError, ValueError, ArithmeticError):
                return 0

    if isinstance(value, Mapping) and "low" in value and "high" in value:
        return to_number(value["low"]) + to_number(value["high"]) * _TWO_POW_32
    if hasattr(value, "low") and hasattr(value, "high"):
        return to_number(value.low) + to_number(value.high) * _TWO_POW_32

    try:
        return _integral(_finite(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def _is_temporal(value: Any) -> bool:
    return callable(getattr(value, "iso_format", None)) or callable(getattr(value, "isoformat", None))


def _temporal_text(value: Any) -> str:
    formatter = getattr(value, "iso_format", None) or getattr(value, "isoformat")
    return formatter()


def normalize_value(value: Any, nullable: bool = False):
    if value is None:
        return None if nullable else 0
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return [normalize_value(v, nullable=True) for v in value]
    if isinstance(value, Mapping) and not ("low" in value and "high" in value):
        return {str(k): normalize_value(v, nullable=True) for k, v in value.items()}
    if _is_temporal(value) and not isinstance(value, (int, float)):
        return _temporal_text(value)
    return to_number(value)


def normalize_rows(rows: Iterable[Mapping[str, Any]],
                   nullable_fields: Sequence[str] = ()) -> List[Dict[str, Any]]:
    """Normalize every column of every row.

    Strings are kept, numbers are converted with ``to_number``. ``None`` is
    kept only in ``nullable_fields`` (and inside nested values); elsewhere it
    becomes 0.
    """
    nullable = set(nullable_fields)
    normalized = []
    for row in rows or []:
        normalized.append({
            key: normalize_value(value, nullable=key in nullable)
            for key, value in dict(row).items()
        })
    return normalized


def build_response(response_type: ResponseType, data: Any = None,
                   message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    """Assemble the response envelope."""
    response: Dict[str, Any] = {"type": response_type.value, "data": data if data is not None else []}
    if message:
        response["message"] = message
    response.update(extra)
    return response
