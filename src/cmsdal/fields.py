"""Outbound field conversion: database rows to API records.

Keys are renamed to camelCase and values go through the first matching field
processor, checked in the order time -> money -> status -> json. A malformed
value is returned as-is; it never aborts the conversion of the whole record.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from .case import to_camel

logger = logging.getLogger(__name__)

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"

EXPLICIT_TIME_FIELDS = ("create_time", "update_time", "created_at", "updated_at")

# These columns hold integer seconds, not timestamps.
DURATION_PATTERNS = (
    "audio_start_time",
    "audio_end_time",
    "audio_duration",
    "video_duration",
    "AudioStartTime",
    "AudioEndTime",
    "AudioDuration",
    "VideoDuration",
)

JSON_FIELD_MARKERS = ("_ids", "_data", "_config", "_json")


def is_time_field(key: str) -> bool:
    """Return True if ``key`` names a date/time column.

    >>> is_time_field("createTime")
    True
    >>> is_time_field("execution_rest_audio_end_time")
    False
    """
    for name in EXPLICIT_TIME_FIELDS:
        if key == name or key == to_camel(name):
            return True

    if any(pattern in key for pattern in DURATION_PATTERNS):
        return False

    return (
        (key.endswith("_time") or key.endswith("_at"))
        and "start_time" not in key
        and "end_time" not in key
        and "duration" not in key
    )


def _to_datetime(value: Any) -> Optional[datetime]:
    """Best-effort coercion to a local naive datetime; None if unparsable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime.combine(value, time())
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_datetime(value: Any) -> Any:
    """Render ``value`` as ``YYYY-MM-DD HH:mm:ss``; unparsable values pass through."""
    parsed = _to_datetime(value)
    return parsed.strftime(DATETIME_FORMAT) if parsed is not None else value


def format_date_only(value: Any) -> Any:
    parsed = _to_datetime(value)
    return parsed.strftime(DATE_FORMAT) if parsed is not None else value


def format_time_only(value: Any) -> Any:
    parsed = _to_datetime(value)
    return parsed.strftime(TIME_FORMAT) if parsed is not None else value


def format_timestamp(value: Any) -> Any:
    """Epoch milliseconds."""
    parsed = _to_datetime(value)
    return int(parsed.timestamp() * 1000) if parsed is not None else value


_TIME_FORMATTERS: Dict[str, Callable[[Any], Any]] = {
    "datetime": format_datetime,
    "date": format_date_only,
    "time": format_time_only,
    "timestamp": format_timestamp,
}


def format_time_by_type(value: Any, time_format: str = "datetime") -> Any:
    """Format a time value; unknown formats fall back to ``datetime``."""
    return _TIME_FORMATTERS.get(time_format, format_datetime)(value)


@dataclass(frozen=True)
class ConvertOptions:
    """Options for :func:`convert_to_api_format`.

    Attributes:
        time_format: One of ``datetime``, ``date``, ``time``, ``timestamp``.
        money_format: ``"yuan"`` renders numeric money fields as ``¥12.50``.
        status_map: Optional display mapping for status/state values.
        exclude_fields: Column names dropped from the output.
        custom_processors: Extra processors checked after the built-in ones.
    """
    time_format: str = "datetime"
    money_format: Optional[str] = None
    status_map: Optional[Dict[Any, Any]] = None
    exclude_fields: Sequence[str] = ()
    custom_processors: Sequence["FieldProcessor"] = field(default_factory=tuple)


@dataclass(frozen=True)
class FieldProcessor:
    """A value transform selected by field name."""
    name: str
    check: Callable[[str], bool]
    process: Callable[[Any, ConvertOptions], Any]


def _process_money(value: Any, options: ConvertOptions) -> Any:
    if options.money_format == "yuan" and isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"¥{value:.2f}"
    return value


def _process_status(value: Any, options: ConvertOptions) -> Any:
    if options.status_map:
        try:
            return options.status_map.get(value, value)
        except TypeError:
            return value
    return value


def _process_json(value: Any, options: ConvertOptions) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


TIME_PROCESSOR = FieldProcessor(
    "time", is_time_field, lambda value, options: format_time_by_type(value, options.time_format))
MONEY_PROCESSOR = FieldProcessor(
    "money", lambda key: "amount" in key or "price" in key or "money" in key, _process_money)
STATUS_PROCESSOR = FieldProcessor(
    "status", lambda key: "status" in key or "state" in key, _process_status)
JSON_PROCESSOR = FieldProcessor(
    "json", lambda key: any(marker in key for marker in JSON_FIELD_MARKERS), _process_json)

DEFAULT_PROCESSORS = (TIME_PROCESSOR, MONEY_PROCESSOR, STATUS_PROCESSOR, JSON_PROCESSOR)


def _apply_processor(processors: Iterable[FieldProcessor], key: str, value: Any, options: ConvertOptions):
    """Run the first matching processor. Returns ``(matched, value)``."""
    for processor in processors:
        if processor.check(key):
            try:
                return True, processor.process(value, options)
            except Exception:
                logger.warning("Field processor %s failed for %s; keeping raw value",
                               processor.name, key, exc_info=True)
                return True, value
    return False, value


def convert_to_api_format(data: Any, options: Optional[ConvertOptions] = None, **overrides: Any) -> Any:
    """Convert a row (or list of rows) to its API representation.

    Args:
        data: A dict, a list of dicts, or any other value (returned as-is).
        options: Conversion options; keyword ``overrides`` build one when omitted.

    Returns:
        The converted structure. The input is not modified.
    """
    if options is None:
        options = ConvertOptions(**overrides)
    processors = DEFAULT_PROCESSORS + tuple(options.custom_processors)
    return _convert(data, options, processors)


def _convert(data: Any, options: ConvertOptions, processors: Sequence[FieldProcessor]) -> Any:
    if isinstance(data, list):
        return [_convert(item, options, processors) for item in data]
    if not isinstance(data, dict):
        return data

    exclude = set(options.exclude_fields)
    converted: Dict[str, Any] = {}
    for key, value in data.items():
        if key in exclude:
            continue
        camel_key = to_camel(key)
        if value is None:
            converted[camel_key] = None
            continue

        matched, processed = _apply_processor(processors, key, value, options)
        if matched:
            converted[camel_key] = processed
        elif isinstance(value, (dict, list)):
            converted[camel_key] = _convert(value, options, processors)
        else:
            converted[camel_key] = value
    return converted


def convert_to_frontend_format(data: Any) -> Any:
    """Default outbound converter used by single-record lookups."""
    return convert_to_api_format(data)
