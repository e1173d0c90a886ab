"""CMS data-access layer.

Provides the query condition builder, field conversion, parameter parsing and
validated CRUD/pagination used by every admin resource.
The FastAPI router lives in cmsdal.api and is optional.
"""

# Connection utilities
from .db import (
    DATABASE_URL,
    Database,
    get_engine,
    create_db_and_tables,
    lifespan,
)

# Exceptions
from .exceptions import (
    DatabaseError,
    NotFoundError,
    ValidationError,
    InvalidParamsError,
    EnumValidationError,
    UniqueConstraintError,
    UnsupportedOperatorError,
    UnsupportedMatchTypeError,
)

# Conditions and enums
from .conditions import Predicate, QueryConditionBuilder
from .enums import EnumRegistry, get_default_registry

# Field conversion
from .case import to_camel, to_snake, convert_keys_to_camel, convert_keys_to_snake, convert_request_data
from .fields import ConvertOptions, FieldProcessor, convert_to_api_format, convert_to_frontend_format, is_time_field

# Parameter parsing
from .params import (
    clamp,
    parse_array_param,
    parse_bool_param,
    parse_float_param,
    parse_int_param,
    parse_pagination,
    parse_sort,
    parse_string_param,
)

# Validation
from .validator import RuleSpec, ValidationConfig, apply_schema, preprocess_data

# CRUD operations
from .crud import CrudEngine, CrudResult, PageOptions, db_error
from .search import build_keyword_conditions

__all__ = [
    # Connection
    "DATABASE_URL",
    "Database",
    "get_engine",
    "create_db_and_tables",
    "lifespan",
    # Exceptions
    "DatabaseError",
    "NotFoundError",
    "ValidationError",
    "InvalidParamsError",
    "EnumValidationError",
    "UniqueConstraintError",
    "UnsupportedOperatorError",
    "UnsupportedMatchTypeError",
    # Conditions and enums
    "Predicate",
    "QueryConditionBuilder",
    "EnumRegistry",
    "get_default_registry",
    # Field conversion
    "to_camel",
    "to_snake",
    "convert_keys_to_camel",
    "convert_keys_to_snake",
    "convert_request_data",
    "ConvertOptions",
    "FieldProcessor",
    "convert_to_api_format",
    "convert_to_frontend_format",
    "is_time_field",
    # Parameters
    "clamp",
    "parse_array_param",
    "parse_bool_param",
    "parse_float_param",
    "parse_int_param",
    "parse_pagination",
    "parse_sort",
    "parse_string_param",
    # Validation
    "RuleSpec",
    "ValidationConfig",
    "preprocess_data",
    "apply_schema",
    # CRUD
    "CrudEngine",
    "CrudResult",
    "PageOptions",
    "db_error",
    "build_keyword_conditions",
]
