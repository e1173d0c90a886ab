"""Declarative field validation for save endpoints.

A validation config maps an api key (``"category"``, ``"template.draft"``,
``"<table>.create"``) to per-field rule lists::

    ValidationConfig({
        "category": {
            "name": [RuleSpec("required"), RuleSpec("string")],
            "status": [RuleSpec("required"), RuleSpec("enum_from_lib", ["BizStatusEnums"])],
        },
    })

Field names are the camelCase names of the request body. Type and format
rules are checked with pydantic type adapters; a whole body can also be
checked against a pydantic/SQLModel schema with :func:`apply_schema`.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from types import MappingProxyType
from typing import Annotated, Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence

from pydantic import AnyUrl, EmailStr, Field, Json, StrictStr, TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from .enums import EnumRegistry, get_default_registry
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

MD5_PATTERN = r"^[a-fA-F0-9]{32}$"


class RuleResult(NamedTuple):
    valid: bool
    message: Optional[str] = None


class ValidationResult(NamedTuple):
    valid: bool
    errors: List[str]


@dataclass(frozen=True)
class RuleSpec:
    """One rule applied to a field: rule name, extra params, custom message."""
    rule: str
    params: Sequence[Any] = field(default_factory=tuple)
    message: Optional[str] = None


OK = RuleResult(True)


def _constraints(**kwargs: Any) -> Any:
    return Field(**{key: value for key, value in kwargs.items() if value is not None})


_TYPES: Dict[str, Callable[..., Any]] = {
    "string": lambda: StrictStr,
    "length": lambda minimum, maximum: Annotated[StrictStr, _constraints(min_length=minimum, max_length=maximum)],
    "email": lambda: EmailStr,
    "url": lambda: AnyUrl,
    "number": lambda minimum, maximum: Annotated[float, _constraints(ge=minimum, le=maximum, allow_inf_nan=False)],
    "integer": lambda minimum, maximum: Annotated[int, _constraints(ge=minimum, le=maximum)],
    "date": lambda: date,
    "datetime": lambda: datetime,
    "json": lambda: Json[Any],
    "md5": lambda: Annotated[StrictStr, _constraints(pattern=MD5_PATTERN)],
    "array": lambda minimum, maximum: Annotated[
        List[Any], _constraints(strict=True, min_length=minimum, max_length=maximum)],
    "string_array": lambda minimum, maximum: Annotated[
        List[StrictStr], _constraints(strict=True, min_length=minimum, max_length=maximum)],
}


@lru_cache(maxsize=None)
def _adapter(kind: str, *params: Any) -> TypeAdapter:
    return TypeAdapter(_TYPES[kind](*params))


def _error(kind: str, value: Any, *params: Any) -> Optional[Dict[str, Any]]:
    """First pydantic error for ``value`` against the ``kind`` type, or None."""
    try:
        _adapter(kind, *params).validate_python(value)
    except SchemaValidationError as e:
        return e.errors()[0]
    return None


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _check(kind, value, message):
    return OK if _error(kind, value) is None else RuleResult(False, message)


def rule_required(value, name, enums):
    if _is_empty(value):
        return RuleResult(False, f"{name} is required")
    return OK


def rule_string(value, name, enums):
    return _check("string", value, f"{name} must be a string")


def rule_length(value, name, enums, minimum=0, maximum=255):
    error = _error("length", value, minimum, maximum)
    if error is None:
        return OK
    if error["type"] == "string_too_short":
        return RuleResult(False, f"{name} must be at least {minimum} characters")
    if error["type"] == "string_too_long":
        return RuleResult(False, f"{name} must be at most {maximum} characters")
    return RuleResult(False, f"{name} must be a string")


def rule_email(value, name, enums):
    return _check("email", value, f"{name} is not a valid email")


def rule_url(value, name, enums):
    return _check("url", value, f"{name} is not a valid URL")


def _range_result(error, name, kind, minimum, maximum):
    if error["type"] == "greater_than_equal":
        return RuleResult(False, f"{name} must not be less than {minimum}")
    if error["type"] == "less_than_equal":
        return RuleResult(False, f"{name} must not be greater than {maximum}")
    return RuleResult(False, f"{name} must be {kind}")


def rule_number(value, name, enums, minimum=None, maximum=None):
    error = _error("number", value, minimum, maximum)
    return OK if error is None else _range_result(error, name, "a number", minimum, maximum)


def rule_integer(value, name, enums, minimum=None, maximum=None):
    error = _error("integer", value, minimum, maximum)
    return OK if error is None else _range_result(error, name, "an integer", minimum, maximum)


def rule_enum(value, name, enums, allowed):
    if value not in allowed:
        return RuleResult(False, "{} must be one of: {}".format(name, ", ".join(str(v) for v in allowed)))
    return OK


def rule_date(value, name, enums):
    return _check("date", value, f"{name} is not a valid date")


def rule_datetime(value, name, enums):
    return _check("datetime", value, f"{name} is not a valid datetime")


def rule_json(value, name, enums):
    if isinstance(value, (dict, list)):
        return OK
    return _check("json", value, f"{name} is not valid JSON")


def rule_md5(value, name, enums):
    return _check("md5", value, f"{name} is not a valid MD5 digest")


def _array_result(error, name, min_length, max_length):
    if error["type"] == "too_short":
        return RuleResult(False, f"{name} must contain at least {min_length} items")
    if error["type"] == "too_long":
        return RuleResult(False, f"{name} must contain at most {max_length} items")
    if error["loc"]:
        return RuleResult(False, f"{name} must only contain strings")
    return RuleResult(False, f"{name} must be an array")


def rule_array(value, name, enums, min_length=0, max_length=None):
    error = _error("array", value, min_length, max_length)
    return OK if error is None else _array_result(error, name, min_length, max_length)


def rule_string_array(value, name, enums, min_length=0, max_length=None):
    error = _error("string_array", value, min_length, max_length)
    return OK if error is None else _array_result(error, name, min_length, max_length)


def rule_enum_array(value, name, enums, allowed):
    if _error("array", value, 0, None) is not None:
        return RuleResult(False, f"{name} must be an array")
    invalid = [item for item in value if item not in allowed]
    if invalid:
        return RuleResult(False, "{} contains invalid values: {}, allowed values: {}".format(
            name, ", ".join(str(v) for v in invalid), ", ".join(str(v) for v in allowed)))
    return OK


def rule_enum_from_lib(value, name, enums, enum_key):
    allowed = enums.get_values(enum_key)
    if not allowed:
        return RuleResult(False, f"Enum definition {enum_key} does not exist or is empty")
    return rule_enum(value, name, enums, allowed)


def rule_enum_array_from_lib(value, name, enums, enum_key):
    result = enums.validate_array(enum_key, value)
    if not result.valid:
        return RuleResult(False, f"{name} {result.message}")
    return OK


def rule_optional(value, name, enums, rule_name, *params):
    """Skip when empty, otherwise apply ``rule_name`` with ``params``."""
    if _is_empty(value):
        return OK
    rule = RULES.get(rule_name)
    if rule is None:
        return RuleResult(False, f"Unknown validation rule: {rule_name}")
    return rule(value, name, enums, *params)


def format_schema_error(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]


def apply_schema(schema: Any, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a request body with a pydantic (or SQLModel) schema.

    Args:
        schema: Model class; its field names or aliases are the body keys.
        data: The request body.

    Returns:
        The validated values of the fields present in ``data``, keyed by alias.

    Raises:
        ValidationError: One message per schema error.
    """
    try:
        model = schema.model_validate(dict(data))
    except SchemaValidationError as e:
        errors = [format_schema_error(error) for error in e.errors()]
        raise ValidationError(", ".join(errors), errors) from e
    return model.model_dump(exclude_unset=True, by_alias=True)


RuleFunction = Callable[..., RuleResult]

RULES: Mapping[str, RuleFunction] = MappingProxyType({
    "required": rule_required,
    "string": rule_string,
    "length": rule_length,
    "email": rule_email,
    "url": rule_url,
    "number": rule_number,
    "integer": rule_integer,
    "enum": rule_enum,
    "date": rule_date,
    "datetime": rule_datetime,
    "json": rule_json,
    "md5": rule_md5,
    "array": rule_array,
    "string_array": rule_string_array,
    "enum_array": rule_enum_array,
    "enum_from_lib": rule_enum_from_lib,
    "enum_array_from_lib": rule_enum_array_from_lib,
    "optional": rule_optional,
})


class ValidationConfig:
    """Immutable set of per-api-key field rules plus the rule functions."""

    def __init__(self, config: Optional[Mapping[str, Mapping[str, Sequence[RuleSpec]]]] = None,
                 rules: Optional[Mapping[str, RuleFunction]] = None,
                 enums: Optional[EnumRegistry] = None):
        self._config = MappingProxyType({
            key: MappingProxyType({name: tuple(specs) for name, specs in fields.items()})
            for key, fields in (config or {}).items()
        })
        self._rules = MappingProxyType(dict(RULES, **(rules or {})))
        self._enums = enums

    @property
    def enums(self) -> EnumRegistry:
        return self._enums if self._enums is not None else get_default_registry()

    def __contains__(self, api_key: str) -> bool:
        return api_key in self._config

    def with_rules(self, config: Optional[Mapping[str, Mapping[str, Sequence[RuleSpec]]]] = None,
                   rules: Optional[Mapping[str, RuleFunction]] = None) -> "ValidationConfig":
        """Return a new config extended with more api keys and/or rule functions."""
        merged = {key: dict(fields) for key, fields in self._config.items()}
        merged.update(config or {})
        extra_rules = dict(self._rules)
        extra_rules.update(rules or {})
        return ValidationConfig(merged, extra_rules, self._enums)

    def validate_field(self, value: Any, name: str, specs: Sequence[RuleSpec]) -> ValidationResult:
        errors = []
        for spec in specs:
            rule = self._rules.get(spec.rule)
            if rule is None:
                logger.warning("Unknown validation rule: %s", spec.rule)
                continue
            result = rule(value, name, self.enums, *spec.params)
            if not result.valid:
                errors.append(spec.message or result.message)
        return ValidationResult(not errors, errors)

    def validate(self, api_key: str, data: Mapping[str, Any]) -> ValidationResult:
        """Validate ``data`` against the rules registered under ``api_key``.

        Unknown api keys validate successfully. Absent fields without a
        ``required`` rule are skipped, as are empty fields with an
        ``optional`` rule.
        """
        fields = self._config.get(api_key)
        if not fields:
            return ValidationResult(True, [])

        errors: List[str] = []
        for name, specs in fields.items():
            value = data.get(name)
            has_required = any(spec.rule == "required" for spec in specs)
            has_optional = any(spec.rule == "optional" for spec in specs)
            if name not in data and not has_required:
                continue
            if has_optional and _is_empty(value):
                continue
            errors.extend(self.validate_field(value, name, specs).errors)
        return ValidationResult(not errors, errors)

    def validate_table(self, table: str, data: Mapping[str, Any], operation: str = "insert") -> ValidationResult:
        """Validate under ``<table>.create`` or ``<table>.update``."""
        suffix = "create" if operation == "insert" else "update"
        return self.validate(f"{table}.{suffix}", data)


def preprocess_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Trim strings and drop None values."""
    processed = {}
    for key, value in data.items():
        if value is None:
            continue
        processed[key] = value.strip() if isinstance(value, str) else value
    return processed
