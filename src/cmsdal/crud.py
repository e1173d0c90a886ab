"""Validated CRUD and pagination over named tables.

Every operation returns a :class:`CrudResult` envelope. Expected outcomes
(validation failure, missing record, duplicate) are reported through the
envelope; unexpected driver failures are raised as :class:`DatabaseError`.
"""
import functools
import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel

from .case import convert_request_data, to_camel, to_snake
from .conditions import QueryConditionBuilder
from .db import ConnectionHandle, Database
from .enums import EnumRegistry
from .exceptions import (
    DatabaseError,
    InvalidParamsError,
    NotFoundError,
    UniqueConstraintError,
    ValidationError,
)
from .fields import ConvertOptions, FieldProcessor, convert_to_api_format, convert_to_frontend_format
from .params import parse_pagination, parse_sort
from .validator import ValidationConfig, apply_schema, preprocess_data

logger = logging.getLogger(__name__)

EXPECTED_ERRORS = (ValidationError, NotFoundError, UniqueConstraintError)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# A custom validation receives the snake_case row and returns an error message or None.
CustomValidation = Callable[[Dict[str, Any]], Optional[str]]


class CrudResult(SQLModel):
    """Uniform result envelope shared by all data-access operations."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None
    status_code: Optional[int] = None
    insert_id: Optional[int] = None

    @classmethod
    def failure(cls, exc: DatabaseError) -> "CrudResult":
        return cls(success=False, error=exc.error_code, message=exc.message, status_code=exc.status_code)

    def to_response(self) -> Dict[str, Any]:
        """camelCase dict without unset members, ready for JSON.

        ``data`` is passed through as-is so null columns inside it survive.
        """
        response: Dict[str, Any] = {"success": self.success}
        for name in ("data", "error", "message", "status_code", "insert_id"):
            value = getattr(self, name)
            if value is not None:
                response[to_camel(name)] = value
        return response


@dataclass
class PageOptions:
    """Options for :meth:`CrudEngine.paginate_with_validation`.

    ``where``/``where_params`` normally come from a
    :class:`~cmsdal.conditions.QueryConditionBuilder`. ``order_by`` overrides
    the sort parsed from the request. ``custom_sql`` must end in
    ``LIMIT ? OFFSET ?``; page size and offset are appended to ``sql_params``.
    """
    where: str = ""
    where_params: Sequence[Any] = ()
    fields: str = "*"
    order_by: Optional[str] = None
    default_order_by: str = "id"
    default_direction: str = "DESC"
    exclude_fields: Sequence[str] = ()
    time_format: str = "datetime"
    money_format: Optional[str] = None
    status_map: Optional[Dict[Any, Any]] = None
    custom_processors: Sequence[FieldProcessor] = field(default_factory=tuple)
    custom_sql: Optional[str] = None
    custom_count_sql: Optional[str] = None
    sql_params: Sequence[Any] = ()
    count_params: Sequence[Any] = ()

    def convert_options(self) -> ConvertOptions:
        return ConvertOptions(
            time_format=self.time_format,
            money_format=self.money_format,
            status_map=self.status_map,
            exclude_fields=tuple(self.exclude_fields),
            custom_processors=tuple(self.custom_processors),
        )


def db_error(func):
    """Decorator to wrap unexpected database errors."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError:
            raise
        except Exception as e:
            logger.exception("Database operation %s failed", func.__name__)
            raise DatabaseError(str(e)) from e
    return wrapper


def validate_id_list(id_list: Any, name: str = "idList") -> List[int]:
    """Return the positive integer ids of ``id_list``.

    Raises:
        InvalidParamsError: If the list is missing, empty or holds no valid id.
    """
    if not id_list or not isinstance(id_list, (list, tuple)):
        raise InvalidParamsError(f"{name} is invalid")
    ids = []
    for raw in id_list:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            continue
        if value > 0:
            ids.append(value)
    if not ids:
        raise InvalidParamsError(f"{name} contains no valid id")
    return ids


def _request_query(request: Any) -> Mapping[str, Any]:
    """Pull the query mapping out of a request-like object or dict."""
    for attr in ("query", "query_params"):
        value = getattr(request, attr, None)
        if value is not None:
            return dict(value)
    if isinstance(request, Mapping):
        return dict(request.get("query", request))
    return {}


def _serialize(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return int(value)
    return value


class CrudEngine:
    """Validated insert/update/find/paginate against named tables.

    Args:
        db: The query/transaction capability.
        validation: Field rules; defaults to an empty config (everything validates).
        enums: Enum registry handed to condition builders.
        soft_delete_field: Column flagging deleted rows; ``None`` disables soft delete.
        create_time_field: Column stamped on insert; ``None`` disables it.
        update_time_field: Column stamped on update; ``None`` disables it.
    """

    def __init__(self, db: Optional[Database] = None, validation: Optional[ValidationConfig] = None,
                 enums: Optional[EnumRegistry] = None, soft_delete_field: Optional[str] = "is_deleted",
                 create_time_field: Optional[str] = "create_time",
                 update_time_field: Optional[str] = "update_time"):
        self.db = db if db is not None else Database()
        self.enums = enums
        self.validation = validation if validation is not None else ValidationConfig(enums=enums)
        self.soft_delete_field = soft_delete_field
        self.create_time_field = create_time_field
        self.update_time_field = update_time_field

    def builder(self) -> QueryConditionBuilder:
        return QueryConditionBuilder(self.enums)

    def _active_builder(self) -> QueryConditionBuilder:
        builder = self.builder()
        if self.soft_delete_field:
            builder.add_number_condition(self.soft_delete_field, 0)
        return builder

    # Queries

    @db_error
    def count(self, table: str, where: str = "", params: Sequence[Any] = ()) -> int:
        sql = f"SELECT COUNT(*) AS total FROM {table}"
        if where:
            sql += f" WHERE {where}"
        row = self.db.query_one(sql, params)
        return int(row["total"]) if row else 0

    def exists(self, table: str, where: str = "", params: Sequence[Any] = ()) -> bool:
        return self.count(table, where, params) > 0

    @db_error
    def find_by_id_with_validation(self, table: str, id: Any, extra_where: Optional[Mapping[str, Any]] = None,
                                   converter: Optional[Callable[[Any], Any]] = None) -> CrudResult:
        """Fetch one row by id, merged with ``extra_where`` equality filters.

        Returns:
            CrudResult with the converted row, or ``RECORD_NOT_FOUND``. Query
            errors are raised, not reported as not-found.
        """
        builder = self.builder().add_predicate("id = ?", (id,))
        for column, value in (extra_where or {}).items():
            builder.add_predicate(f"{column} = ?", (value,))
        clause = builder.build()
        row = self.db.query_one(f"SELECT * FROM {table} WHERE {clause['where']}", clause["params"])
        if row is None:
            return CrudResult.failure(NotFoundError("Record not found"))
        return CrudResult(success=True, data=(converter or convert_to_frontend_format)(row))

    @db_error
    def paginate_with_validation(self, table: str, request: Any, options: Any = None) -> CrudResult:
        """Page through ``table`` using the request's ``pageIndex``/``pageSize``/sort.

        Args:
            table: Table name.
            request: Object with a ``query`` (or ``query_params``) mapping, or a
                ``{"query": {...}}`` dict.
            options: :class:`PageOptions` or a dict of its fields.

        Returns:
            CrudResult whose ``data`` is ``{"data", "total", "pageIndex",
            "pageSize", "totalPages"}``.
        """
        if options is None:
            options = PageOptions()
        elif isinstance(options, Mapping):
            options = PageOptions(**options)

        query = _request_query(request)
        page = parse_pagination(query)
        page_size, offset = page["pageSize"], page["offset"]

        if options.custom_sql and options.custom_count_sql:
            count_row = self.db.query_one(options.custom_count_sql, options.count_params)
            total = int(next(iter(count_row.values()))) if count_row else 0
            rows = self.db.query(options.custom_sql, list(options.sql_params) + [page_size, offset])
        else:
            total = self.count(table, options.where, options.where_params)
            sql = f"SELECT {options.fields} FROM {table}"
            if options.where:
                sql += f" WHERE {options.where}"
            sql += f" ORDER BY {self._order_by(query, options)} LIMIT ? OFFSET ?"
            rows = self.db.query(sql, list(options.where_params) + [page_size, offset])

        convert_options = options.convert_options()
        return CrudResult(success=True, data={
            "data": [convert_to_api_format(row, convert_options) for row in rows],
            "total": total,
            "pageIndex": page["pageIndex"],
            "pageSize": page_size,
            "totalPages": math.ceil(total / page_size),
        })

    def _order_by(self, query: Mapping[str, Any], options: PageOptions) -> str:
        if options.order_by:
            return options.order_by
        sort = parse_sort(query.get("orderBy"), query.get("orderDirection"),
                          options.default_order_by, options.default_direction)
        column = to_snake(sort["orderBy"])
        if not _IDENTIFIER.match(column):
            column = options.default_order_by
        return f"{column} {sort['orderDirection']}"

    # Writes

    def _prepare(self, table: str, data: Mapping[str, Any], operation: str, api_key: Optional[str],
                 custom_validations: Iterable[CustomValidation], schema: Any = None) -> Dict[str, Any]:
        """Trim, validate and convert an API body to a snake_case row."""
        processed = preprocess_data(data or {})
        if not processed:
            raise ValidationError(f"No valid data to {operation}")
        if schema is not None:
            processed = apply_schema(schema, processed)

        if api_key:
            result = self.validation.validate(api_key, processed)
        else:
            result = self.validation.validate_table(table, processed, operation)
        if not result.valid:
            raise ValidationError(", ".join(result.errors), result.errors)

        row = convert_request_data(processed)
        for check in custom_validations:
            error = check(row)
            if error:
                raise InvalidParamsError(error)
        return row

    def _check_unique(self, table: str, row: Mapping[str, Any], unique_fields: Iterable[str],
                      label: str, exclude_id: Any = None) -> None:
        for name in unique_fields:
            column = to_snake(name)
            if row.get(column) in (None, ""):
                continue
            builder = self._active_builder().add_predicate(f"{column} = ?", (row[column],))
            if exclude_id is not None:
                builder.add_predicate("id != ?", (exclude_id,))
            clause = builder.build()
            if self.count(table, clause["where"], clause["params"]):
                raise UniqueConstraintError(f"{label} {to_camel(column)} already exists", field=column)

    @db_error
    def insert_with_validation(self, table: str, data: Mapping[str, Any], unique_fields: Sequence[str] = (),
                               entity_label: Optional[str] = None, api_key: Optional[str] = None,
                               custom_validations: Sequence[CustomValidation] = (), schema: Any = None) -> CrudResult:
        """Validate ``data`` (camelCase API body) and insert it as one row.

        ``schema`` is an optional pydantic/SQLModel class the body must satisfy
        before the field rules run; only the fields it received are kept.

        Returns:
            ``CrudResult(success=True, insert_id=...)`` or a failure envelope
            (``VALIDATION_ERROR``, ``INVALID_PARAMS``, ``DUPLICATE_ENTRY``).
        """
        label = entity_label or table
        try:
            row = self._prepare(table, data, "insert", api_key, custom_validations, schema)
            self._check_unique(table, row, unique_fields, label)

            values = {k: _serialize(v) for k, v in row.items() if v is not None and v != ""}
            if self.create_time_field and not values.get(self.create_time_field):
                values[self.create_time_field] = datetime.now()
            columns = ", ".join(values)
            placeholders = ", ".join("?" for _ in values)
            try:
                result = self.db.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                                         list(values.values()))
            except IntegrityError as e:
                if "unique" in str(e).lower() or "duplicate" in str(e).lower():
                    raise UniqueConstraintError(f"{label} already exists") from e
                raise
        except EXPECTED_ERRORS as exc:
            return CrudResult.failure(exc)

        logger.debug("Inserted %s id=%s", table, result.lastrowid)
        return CrudResult(success=True, insert_id=result.lastrowid, message=f"{label} created")

    @db_error
    def update_with_validation(self, table: str, id: Any, data: Mapping[str, Any], unique_fields: Sequence[str] = (),
                               entity_label: Optional[str] = None, api_key: Optional[str] = None,
                               custom_validations: Sequence[CustomValidation] = (), schema: Any = None) -> CrudResult:
        """Validate ``data`` and update row ``id``.

        A missing (or soft-deleted) row yields ``RECORD_NOT_FOUND`` instead of
        a successful zero-row update.
        """
        label = entity_label or table
        try:
            row = self._prepare(table, data, "update", api_key, custom_validations, schema)
            row.pop("id", None)
            if not row:
                raise ValidationError("No valid data to update")

            target = self._active_builder().add_predicate("id = ?", (id,)).build()
            if not self.count(table, target["where"], target["params"]):
                raise NotFoundError(f"{label} {id} not found")
            self._check_unique(table, row, unique_fields, label, exclude_id=id)

            values = {k: _serialize(v) for k, v in row.items()}
            if self.update_time_field and not values.get(self.update_time_field):
                values[self.update_time_field] = datetime.now()
            assignments = ", ".join(f"{column} = ?" for column in values)
            try:
                result = self.db.execute(f"UPDATE {table} SET {assignments} WHERE {target['where']}",
                                         list(values.values()) + target["params"])
            except IntegrityError as e:
                if "unique" in str(e).lower() or "duplicate" in str(e).lower():
                    raise UniqueConstraintError(f"{label} already exists") from e
                raise
        except EXPECTED_ERRORS as exc:
            return CrudResult.failure(exc)

        return CrudResult(success=True, data={"affectedRows": result.rowcount}, message=f"{label} updated")

    # Batch operations behind enable/disable/delete/sort

    def _id_clause(self, ids: Sequence[int]) -> Dict[str, Any]:
        return self._active_builder().add_array_condition("id", list(ids)).build()

    def _stamp(self) -> Tuple[str, List[Any]]:
        if not self.update_time_field:
            return "", []
        return f", {self.update_time_field} = ?", [datetime.now()]

    @db_error
    def batch_update_status(self, table: str, id_list: Any, status: str) -> CrudResult:
        """Set ``status`` on every listed, non-deleted row."""
        try:
            ids = validate_id_list(id_list)
        except EXPECTED_ERRORS as exc:
            return CrudResult.failure(exc)
        clause = self._id_clause(ids)
        stamp_sql, stamp_params = self._stamp()
        result = self.db.execute(f"UPDATE {table} SET status = ?{stamp_sql} WHERE {clause['where']}",
                                 [status] + stamp_params + clause["params"])
        return CrudResult(success=True, data={"updatedCount": result.rowcount})

    @db_error
    def batch_logical_delete(self, table: str, id_list: Any) -> CrudResult:
        """Soft delete the listed rows and return what was deleted.

        Falls back to a physical ``DELETE`` when the engine has no
        ``soft_delete_field``.
        """
        try:
            ids = validate_id_list(id_list)
        except EXPECTED_ERRORS as exc:
            return CrudResult.failure(exc)
        clause = self._id_clause(ids)

        def delete(conn: ConnectionHandle) -> Tuple[List[Dict[str, Any]], int]:
            deleted = conn.query(f"SELECT * FROM {table} WHERE {clause['where']}", clause["params"])
            if self.soft_delete_field:
                stamp_sql, stamp_params = self._stamp()
                result = conn.execute(
                    f"UPDATE {table} SET {self.soft_delete_field} = 1{stamp_sql} WHERE {clause['where']}",
                    stamp_params + clause["params"])
            else:
                result = conn.execute(f"DELETE FROM {table} WHERE {clause['where']}", clause["params"])
            return deleted, result.rowcount

        deleted, rowcount = self.db.transaction(delete)
        exclude = (self.soft_delete_field,) if self.soft_delete_field else ()
        return CrudResult(success=True, data={
            "deletedCount": rowcount,
            "deletedData": convert_to_api_format(deleted, exclude_fields=exclude),
        })

    @db_error
    def batch_update_sort(self, table: str, id_list: Any, sort_field: str = "sort") -> CrudResult:
        """Store the list order (1-based) in ``sort_field`` in one transaction."""
        try:
            ids = validate_id_list(id_list)
            if not _IDENTIFIER.match(sort_field):
                raise InvalidParamsError(f"Invalid sort field: {sort_field}")
        except EXPECTED_ERRORS as exc:
            return CrudResult.failure(exc)

        def reorder(conn: ConnectionHandle) -> int:
            updated = 0
            stamp_sql, stamp_params = self._stamp()
            for position, row_id in enumerate(ids, start=1):
                clause = self._active_builder().add_predicate("id = ?", (row_id,)).build()
                result = conn.execute(f"UPDATE {table} SET {sort_field} = ?{stamp_sql} WHERE {clause['where']}",
                                      [position] + stamp_params + clause["params"])
                updated += result.rowcount
            return updated

        return CrudResult(success=True, data={"updatedCount": self.db.transaction(reorder)})
