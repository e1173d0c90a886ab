"""Query-string parameter parsing.

HTTP query values arrive as strings (or lists of strings). These helpers turn
them into typed values and are deliberately lenient: malformed input becomes
the default instead of an error, and pagination is clamped rather than
rejected.
"""
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import ValidationError

DEFAULT_PAGE_INDEX = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
SORT_DIRECTIONS = ("ASC", "DESC")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

TRUE_STRINGS = ("true", "1", "yes")
FALSE_STRINGS = ("false", "0", "no")


def _is_blank(param: Any) -> bool:
    return param is None or param == ""


def parse_array_param(param: Any) -> Optional[List[Any]]:
    """Parse a list or comma separated string.

    >>> parse_array_param("a, b ,c")
    ['a', 'b', 'c']
    >>> parse_array_param(",,,") is None
    True
    """
    if param is None or param == "" or param == [] or param is False:
        return None
    if isinstance(param, (list, tuple)):
        return list(param)
    if isinstance(param, str):
        items = [item.strip() for item in param.split(",")]
        items = [item for item in items if item]
        return items or None
    return [param]


def parse_int_param(param: Any, default: Optional[int] = 0) -> Optional[int]:
    """Parse the leading integer of ``param`` (``"12abc"`` -> 12)."""
    if _is_blank(param):
        return default
    if isinstance(param, bool):
        return int(param)
    if isinstance(param, int):
        return param
    if isinstance(param, float):
        return default if math.isnan(param) or math.isinf(param) else int(param)
    match = _LEADING_INT.match(str(param))
    return int(match.group(1)) if match else default


def parse_float_param(param: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if _is_blank(param):
        return default
    if isinstance(param, (int, float)) and not isinstance(param, bool):
        return default if math.isnan(param) else float(param)
    match = _LEADING_FLOAT.match(str(param))
    return float(match.group(1)) if match else default


def parse_bool_param(param: Any, default: bool = False) -> bool:
    """Parse ``true/1/yes`` and ``false/0/no`` (case-insensitive)."""
    if _is_blank(param):
        return default
    if isinstance(param, str):
        lowered = param.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return bool(param)


def parse_string_param(param: Any, default: Optional[str] = None) -> Optional[str]:
    if param is None:
        return default
    text = str(param).strip()
    return text if text else default


def clamp(value: Any, minimum: int, maximum: Optional[int], default: int) -> int:
    """Clamp an integer-ish value into ``[minimum, maximum]``.

    This is intentionally lenient: anything unparsable becomes ``default``,
    anything out of range is pulled back into range. It never raises.
    """
    parsed = parse_int_param(value, None)
    if parsed is None:
        parsed = default
    parsed = max(minimum, parsed)
    if maximum is not None:
        parsed = min(maximum, parsed)
    return parsed


def parse_pagination(query: Mapping[str, Any]) -> Dict[str, int]:
    """Parse ``pageIndex``/``pageSize`` into a clamped page and row offset.

    >>> parse_pagination({"pageIndex": "0", "pageSize": "500"})
    {'pageIndex': 1, 'pageSize': 100, 'offset': 0}
    """
    page_index = clamp(query.get("pageIndex"), 1, None, DEFAULT_PAGE_INDEX)
    page_size = clamp(query.get("pageSize"), 1, MAX_PAGE_SIZE, DEFAULT_PAGE_SIZE)
    return {
        "pageIndex": page_index,
        "pageSize": page_size,
        "offset": (page_index - 1) * page_size,
    }


def parse_sort(order_by: Any, order_direction: Any,
               default_order_by: str = "id", default_direction: str = "DESC") -> Dict[str, str]:
    """Parse the sort column and an ``ASC``/``DESC`` direction (case-insensitive)."""
    column = parse_string_param(order_by, default_order_by)
    direction = (parse_string_param(order_direction, default_direction) or "").upper()
    if direction not in SORT_DIRECTIONS:
        direction = default_direction.upper()
    return {"orderBy": column, "orderDirection": direction}


def _parse_date(param: Any) -> Optional[datetime]:
    if not param:
        return None
    if isinstance(param, datetime):
        return param
    text = str(param).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_date_range(start_date: Any, end_date: Any) -> Dict[str, Optional[datetime]]:
    return {"startDate": _parse_date(start_date), "endDate": _parse_date(end_date)}


_TYPE_PARSERS = {
    "array": lambda value, default: parse_array_param(value),
    "int": parse_int_param,
    "float": parse_float_param,
    "boolean": parse_bool_param,
    "string": parse_string_param,
}


def parse_query_params(query: Mapping[str, Any], config: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    """Parse several parameters at once.

    Args:
        query: Raw query mapping.
        config: ``{name: {"type": "int", "default": 0, "required": False}}``.
            Types: ``array``, ``int``, ``float``, ``boolean``, ``string``;
            anything else passes the raw value through.

    Returns:
        Dict of parsed values keyed like ``config``.

    Raises:
        ValidationError: If a ``required`` parameter is missing.
    """
    result: Dict[str, Any] = {}
    for name, param_config in config.items():
        value = query.get(name)
        parser = _TYPE_PARSERS.get(param_config.get("type"))
        default = param_config.get("default")
        if parser is None:
            parsed = value
        elif default is None and param_config.get("type") in ("int", "float"):
            parsed = parser(value, None)
        elif default is None and param_config.get("type") == "boolean":
            parsed = None if _is_blank(value) else parser(value, False)
        else:
            parsed = parser(value, default)

        if param_config.get("required") and parsed is None:
            raise ValidationError(f"Parameter {name} is required")
        result[name] = parsed
    return result


def clean_empty_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop None, empty strings and empty lists."""
    return {
        key: value for key, value in params.items()
        if value is not None and value != "" and not (isinstance(value, (list, tuple)) and not value)
    }
