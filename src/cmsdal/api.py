from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .conditions import QueryConditionBuilder
from .crud import CrudEngine, CrudResult, PageOptions
from .exceptions import DatabaseError
from .fields import convert_to_api_format
from .params import parse_array_param, parse_int_param
from .search import build_keyword_conditions


def respond(result: CrudResult) -> JSONResponse:
    """Render an envelope; failures use the envelope's status code."""
    status_code = 200 if result.success else (result.status_code or 500)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_response()))


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={
        "success": False,
        "error": exc.error_code,
        "message": exc.message,
        "statusCode": exc.status_code,
    })


def register_exception_handlers(app: FastAPI) -> None:
    """Turn :class:`DatabaseError` (and subclasses) raised by routes into JSON envelopes."""
    app.add_exception_handler(DatabaseError, database_error_handler)


def make_resource_router(
    crud: CrudEngine,
    table: str,
    prefix: str,
    tags: Optional[List[str]] = None,
    entity_label: Optional[str] = None,
    api_key: Optional[str] = None,
    unique_fields: Sequence[str] = ("name",),
    status_enum: Optional[str] = "BizStatusEnums",
    list_filters: Optional[Mapping[str, Tuple[str, Optional[str]]]] = None,
    number_filters: Optional[Mapping[str, str]] = None,
    exclude_fields: Sequence[str] = ("is_deleted",),
    create_schema: Any = None,
    update_schema: Any = None,
) -> APIRouter:
    """
    Create the standard save/detail/page/enable/disable/delete/sort router for a table.

    Args:
        crud (CrudEngine): Engine doing the validated data access.
        table (str): Table name.
        prefix (str): Router prefix, e.g. ``/api/playlist``.
        tags (list): OpenAPI tags.
        entity_label (str): Human readable name used in messages.
        api_key (str): Validation config key for save; defaults to ``<table>.create``/``.update``.
        unique_fields (list): Fields that must be unique among non-deleted rows.
        status_enum (str): Enum key checked for ``statusList``; None skips the check.
        list_filters (dict): ``{queryParam: (column, enumKey)}`` extra IN filters.
        number_filters (dict): ``{queryParam: column}`` extra equality filters.
        exclude_fields (list): Columns never returned to clients.
        create_schema (Any): Optional pydantic/SQLModel schema for new records.
        update_schema (Any): Optional pydantic/SQLModel schema for updates.

    Returns:
        APIRouter: The FastAPI router with the resource endpoints.
    """
    router = APIRouter(prefix=prefix, tags=tags)
    label = entity_label or table
    list_filters = dict(list_filters or {})
    number_filters = dict(number_filters or {})

    def detail_converter(row: Dict[str, Any]) -> Any:
        return convert_to_api_format(row, exclude_fields=tuple(exclude_fields))

    # SAVE (insert without id, update with id)
    @router.post("/save")
    def save(payload: Dict[str, Any] = Body(...)):
        body = dict(payload)
        record_id = body.pop("id", None)
        if record_id:
            result = crud.update_with_validation(table, record_id, body, unique_fields, label, api_key,
                                                 schema=update_schema)
            if result.success:
                result.data = {"id": record_id}
        else:
            result = crud.insert_with_validation(table, body, unique_fields, label, api_key,
                                                 schema=create_schema)
            if result.success:
                result.data = {"id": result.insert_id}
        return respond(result)

    # DETAIL
    @router.get("/detail/{id}")
    def detail(id: int):
        extra = {crud.soft_delete_field: 0} if crud.soft_delete_field else {}
        return respond(crud.find_by_id_with_validation(table, id, extra, detail_converter))

    # PAGE
    @router.get("/page")
    def page(request: Request):
        query = dict(request.query_params)
        status_list = parse_array_param(query.get("statusList"))
        parsed_lists = {param: parse_array_param(query.get(param)) for param in list_filters}
        parsed_numbers = {param: parse_int_param(query.get(param), None) for param in number_filters}

        def apply_filters(builder: QueryConditionBuilder) -> None:
            builder.add_array_condition("status", status_list, status_enum)
            for param, (column, enum_key) in list_filters.items():
                builder.add_array_condition(column, parsed_lists[param], enum_key)
            for param, column in number_filters.items():
                builder.add_number_condition(column, parsed_numbers[param])

        clause = build_keyword_conditions(crud, table, query.get("keywords"), apply_filters).build()
        options = PageOptions(where=clause["where"], where_params=clause["params"],
                              exclude_fields=tuple(exclude_fields))
        return respond(crud.paginate_with_validation(table, {"query": query}, options))

    # ENABLE / DISABLE
    @router.post("/enable")
    def enable(payload: Dict[str, Any] = Body(...)):
        return respond(crud.batch_update_status(table, payload.get("idList"), "ENABLED"))

    @router.post("/disable")
    def disable(payload: Dict[str, Any] = Body(...)):
        return respond(crud.batch_update_status(table, payload.get("idList"), "DISABLED"))

    # DELETE (logical)
    @router.post("/delete")
    def delete(payload: Dict[str, Any] = Body(...)):
        return respond(crud.batch_logical_delete(table, payload.get("idList")))

    # SORT
    @router.post("/sort")
    def sort(payload: Dict[str, Any] = Body(...)):
        return respond(crud.batch_update_sort(table, payload.get("idList")))

    return router
