"""snake_case <-> camelCase key conversion.

Database columns are snake_case, API payloads are camelCase. These helpers only
rename keys; value processing for responses lives in :mod:`cmsdal.fields`.
"""
import re
from typing import Any

_SNAKE_SEGMENT = re.compile(r"_([a-z])")
_UPPER = re.compile(r"[A-Z]")


def to_camel(name: str) -> str:
    """Convert a snake_case name to camelCase.

    Only an underscore followed by a lowercase letter is folded, so
    ``stage_1_name`` keeps its ``_1``. This keeps :func:`to_snake` an exact
    inverse for schema field names.

    >>> to_camel("create_time")
    'createTime'
    """
    return _SNAKE_SEGMENT.sub(lambda m: m.group(1).upper(), name)


def to_snake(name: str) -> str:
    """Convert a camelCase name to snake_case.

    >>> to_snake("coverImgUrl")
    'cover_img_url'
    """
    return _UPPER.sub(lambda m: "_" + m.group(0).lower(), name)


def convert_keys_to_camel(data: Any) -> Any:
    """Recursively rename dict keys to camelCase."""
    if isinstance(data, list):
        return [convert_keys_to_camel(item) for item in data]
    if isinstance(data, dict):
        return {to_camel(k): convert_keys_to_camel(v) for k, v in data.items()}
    return data


def convert_keys_to_snake(data: Any) -> Any:
    """Recursively rename dict keys to snake_case."""
    if isinstance(data, list):
        return [convert_keys_to_snake(item) for item in data]
    if isinstance(data, dict):
        return {to_snake(k): convert_keys_to_snake(v) for k, v in data.items()}
    return data


def convert_request_data(data: Any) -> Any:
    """Convert an inbound request body to database column names.

    No value processors run here: a pre-formatted time string sent by a client
    must reach the database untouched.
    """
    return convert_keys_to_snake(data)
