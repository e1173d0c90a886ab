"""Read-only registry of named enumerations.

Definitions are loaded once at startup and never mutated. Unknown enum keys
resolve to an empty value set, so anything validated against them is rejected.
"""
import copy
import json
import logging
import os
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional

from .enum_data import ENUM_DEFINITIONS

logger = logging.getLogger(__name__)

ENUMS_FILE_ENV = "CMS_ENUMS_FILE"


class EnumValidation(NamedTuple):
    valid: bool
    invalid_values: List[Any]
    valid_values: List[Any]
    message: str


class EnumRegistry:
    """Lookup of ``{enum_key: {"datas": [{"enumName": ...}, ...]}}``."""

    def __init__(self, definitions: Mapping[str, Mapping[str, Any]]):
        self._definitions = MappingProxyType(copy.deepcopy(dict(definitions)))
        self._values = MappingProxyType({
            key: tuple(item["enumName"] for item in definition.get("datas") or ())
            for key, definition in self._definitions.items()
            if definition and definition.get("datas")
        })

    @classmethod
    def from_json_file(cls, path: str) -> "EnumRegistry":
        """Build a registry from a JSON file holding the definitions mapping."""
        with open(path, encoding="utf-8") as f:
            return cls(json.load(f))

    def keys(self) -> List[str]:
        return list(self._definitions.keys())

    def get_definition(self, enum_key: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the full definition, or None."""
        definition = self._definitions.get(enum_key)
        return copy.deepcopy(definition) if definition is not None else None

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self._definitions))

    def get_values(self, enum_key: str) -> List[Any]:
        """Return the ``enumName`` values of ``enum_key``; ``[]`` if unknown."""
        values = self._values.get(enum_key)
        if values is None:
            logger.warning("Enum definition %s does not exist", enum_key)
            return []
        return list(values)

    def is_valid(self, enum_key: str, value: Any) -> bool:
        return value in self.get_values(enum_key)

    def validate_array(self, enum_key: str, values: Iterable[Any]) -> EnumValidation:
        """Partition ``values`` into members and non-members of the enum.

        Args:
            enum_key: Registered enum name.
            values: List (or tuple) of candidate values.

        Returns:
            EnumValidation whose ``valid`` is True only when nothing is invalid.
        """
        if not isinstance(values, (list, tuple)):
            return EnumValidation(False, [], [], "value must be a list")

        allowed = self.get_values(enum_key)
        invalid = [value for value in values if value not in allowed]
        if invalid:
            message = "invalid values: {}, allowed values: {}".format(
                ", ".join(str(v) for v in invalid), ", ".join(str(v) for v in allowed))
        else:
            message = "ok"
        return EnumValidation(not invalid, invalid, allowed, message)


@lru_cache(maxsize=1)
def get_default_registry() -> EnumRegistry:
    """Process-wide registry built from ``CMS_ENUMS_FILE`` or the built-in definitions.

    The variable is read on the first call; ``get_default_registry.cache_clear()``
    makes the next call read it again.
    """
    path = os.environ.get(ENUMS_FILE_ENV)
    if path:
        logger.info("Loading enum definitions from %s", path)
        return EnumRegistry.from_json_file(path)
    return EnumRegistry(ENUM_DEFINITIONS)
