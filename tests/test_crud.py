import pytest

from cmsdal.crud import CrudEngine, CrudResult, PageOptions, db_error, validate_id_list
from cmsdal.exceptions import DatabaseError, InvalidParamsError, NotFoundError


def test_result_envelope_response() -> None:
    result = CrudResult(success=True, data={"cover": None}, insert_id=4)

    assert result.to_response() == {"success": True, "data": {"cover": None}, "insertId": 4}
    assert CrudResult.failure(NotFoundError("gone")).to_response() == {
        "success": False,
        "error": "RECORD_NOT_FOUND",
        "message": "gone",
        "statusCode": 404,
    }


def test_db_error_wraps_unexpected_errors() -> None:
    @db_error
    def broken():
        raise KeyError("column")

    @db_error
    def expected():
        raise NotFoundError("missing")

    with pytest.raises(DatabaseError) as excinfo:
        broken()
    assert excinfo.value.status_code == 500
    assert isinstance(excinfo.value.__cause__, KeyError)

    with pytest.raises(NotFoundError):
        expected()


def test_validate_id_list() -> None:
    assert validate_id_list([3, "4", "x", -1, 0]) == [3, 4]
    for bad in (None, [], "1,2", ["x"]):
        with pytest.raises(InvalidParamsError):
            validate_id_list(bad)


def test_insert(crud: CrudEngine, db) -> None:
    result = crud.insert_with_validation(
        "playlist", {"name": " Leg Day ", "status": "ENABLED", "musicIds": [1, 2], "premium": 1}, ["name"], "Playlist")

    assert result.success
    assert result.insert_id == 1
    assert result.message == "Playlist created"
    row = db.query_one("SELECT * FROM playlist WHERE id = ?", [1])
    assert row["name"] == "Leg Day"
    assert row["music_ids"] == "[1, 2]"
    assert row["premium"] == 1
    assert row["is_deleted"] == 0
    assert row["create_time"] is not None


def test_insert_validation_error(crud: CrudEngine, db) -> None:
    result = crud.insert_with_validation("playlist", {"name": "Leg Day", "status": "ACTIVE"})

    assert not result.success
    assert result.error == "VALIDATION_ERROR"
    assert result.status_code == 400
    assert "status must be one of" in result.message
    assert db.query_one("SELECT COUNT(*) AS total FROM playlist")["total"] == 0


@pytest.mark.parametrize("premium", ["nan", "inf", float("nan"), float("-inf")])
def test_insert_non_finite_number_is_a_validation_error(crud: CrudEngine, db, premium) -> None:
    result = crud.insert_with_validation("playlist", {"name": "Leg Day", "status": "ENABLED", "premium": premium})

    assert not result.success
    assert result.error == "VALIDATION_ERROR"
    assert result.status_code == 400
    assert result.message == "premium must be an integer"
    assert db.query_one("SELECT COUNT(*) AS total FROM playlist")["total"] == 0


def test_insert_empty_body(crud: CrudEngine) -> None:
    result = crud.insert_with_validation("playlist", {"name": None})

    assert result.error == "VALIDATION_ERROR"
    assert result.message == "No valid data to insert"


def test_insert_duplicate(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="Leg Day")

    result = crud.insert_with_validation("playlist", {"name": "Leg Day", "status": "DRAFT"}, ["name"], "Playlist")

    assert not result.success
    assert result.error == "DUPLICATE_ENTRY"
    assert result.status_code == 409
    assert result.message == "Playlist name already exists"


def test_insert_duplicate_reported_by_database(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="Leg Day")

    result = crud.insert_with_validation("playlist", {"name": "Leg Day", "status": "DRAFT"})

    assert result.error == "DUPLICATE_ENTRY"
    assert result.message == "playlist already exists"


def test_custom_validation(crud: CrudEngine) -> None:
    def no_premium_dance(row):
        if row.get("type") == "DANCE" and row.get("premium"):
            return "Dance playlists cannot be premium"
        return None

    result = crud.insert_with_validation("playlist", {"name": "x", "status": "DRAFT", "type": "DANCE", "premium": 1},
                                         custom_validations=[no_premium_dance])

    assert result.error == "INVALID_PARAMS"
    assert result.message == "Dance playlists cannot be premium"


def test_unexpected_database_error_is_raised(crud: CrudEngine) -> None:
    with pytest.raises(DatabaseError):
        crud.insert_with_validation("no_such_table", {"name": "x"})


def test_update(crud: CrudEngine, add_playlist, db) -> None:
    playlist_id = add_playlist(name="Leg Day")

    result = crud.update_with_validation("playlist", playlist_id, {"id": 99, "name": "Arm Day", "status": "DISABLED"},
                                         ["name"], "Playlist")

    assert result.success
    assert result.data == {"affectedRows": 1}
    row = db.query_one("SELECT name, status, update_time FROM playlist WHERE id = ?", [playlist_id])
    assert row["name"] == "Arm Day"
    assert row["status"] == "DISABLED"
    assert row["update_time"] is not None


def test_update_keeps_own_name(crud: CrudEngine, add_playlist) -> None:
    playlist_id = add_playlist(name="Leg Day")

    assert crud.update_with_validation("playlist", playlist_id, {"name": "Leg Day"}, ["name"]).success


def test_update_duplicate_of_other_row(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="Leg Day")
    other_id = add_playlist(name="Arm Day")

    result = crud.update_with_validation("playlist", other_id, {"name": "Leg Day"}, ["name"], "Playlist")

    assert result.error == "DUPLICATE_ENTRY"


def test_update_missing_record(crud: CrudEngine) -> None:
    result = crud.update_with_validation("playlist", 999, {"name": "Ghost"}, entity_label="Playlist")

    assert not result.success
    assert result.error == "RECORD_NOT_FOUND"
    assert result.status_code == 404
    assert result.message == "Playlist 999 not found"


def test_update_soft_deleted_record(crud: CrudEngine, add_playlist) -> None:
    playlist_id = add_playlist(name="Gone", is_deleted=1)

    assert crud.update_with_validation("playlist", playlist_id, {"name": "Back"}).error == "RECORD_NOT_FOUND"


def test_find_by_id(crud: CrudEngine, add_playlist) -> None:
    playlist_id = add_playlist(name="Leg Day", music_ids="[3, 4]")

    result = crud.find_by_id_with_validation("playlist", playlist_id)

    assert result.success
    assert result.data["name"] == "Leg Day"
    assert result.data["musicIds"] == [3, 4]
    assert result.data["createTime"] == "2024-05-01 09:30:00"
    assert result.data["description"] is None


def test_find_by_id_with_extra_filter(crud: CrudEngine, add_playlist) -> None:
    playlist_id = add_playlist(name="Gone", is_deleted=1)

    assert crud.find_by_id_with_validation("playlist", playlist_id).success
    result = crud.find_by_id_with_validation("playlist", playlist_id, {"is_deleted": 0})
    assert result.error == "RECORD_NOT_FOUND"
    assert result.message == "Record not found"


def test_find_by_id_custom_converter(crud: CrudEngine, add_playlist) -> None:
    playlist_id = add_playlist(name="Leg Day")

    result = crud.find_by_id_with_validation("playlist", playlist_id, converter=lambda row: row["name"].upper())

    assert result.data == "LEG DAY"


def test_paginate(crud: CrudEngine, add_playlist) -> None:
    for index in range(1, 26):
        add_playlist(name=f"Playlist {index}", sort=index)

    result = crud.paginate_with_validation("playlist", {"query": {"pageIndex": "2", "pageSize": "10"}},
                                           PageOptions(exclude_fields=("is_deleted",)))

    assert result.success
    page = result.data
    assert page["total"] == 25
    assert page["pageIndex"] == 2
    assert page["pageSize"] == 10
    assert page["totalPages"] == 3
    assert [row["id"] for row in page["data"]] == list(range(15, 5, -1))
    assert "isDeleted" not in page["data"][0]
    assert page["data"][0]["createTime"] == "2024-05-01 09:30:00"


def test_paginate_with_where_and_sort(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="B", sort=2)
    add_playlist(name="A", sort=1)
    add_playlist(name="C", sort=3, status="DISABLED")
    clause = crud.builder().add_array_condition("status", ["ENABLED"], "BizStatusEnums").build()

    result = crud.paginate_with_validation(
        "playlist", {"query": {"orderBy": "sort", "orderDirection": "asc"}},
        {"where": clause["where"], "where_params": clause["params"]})

    assert [row["name"] for row in result.data["data"]] == ["A", "B"]
    assert result.data["total"] == 2


def test_paginate_rejects_unsafe_sort_column(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="A")
    add_playlist(name="B")

    result = crud.paginate_with_validation("playlist", {"query": {"orderBy": "id; DROP TABLE playlist"}})

    assert [row["name"] for row in result.data["data"]] == ["B", "A"]


def test_paginate_camel_case_sort_column(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="Old")
    add_playlist(name="New", create_time="2025-01-01 00:00:00")

    result = crud.paginate_with_validation("playlist", {"query": {"orderBy": "createTime", "orderDirection": "DESC"}})

    assert [row["name"] for row in result.data["data"]] == ["New", "Old"]


def test_paginate_empty(crud: CrudEngine) -> None:
    result = crud.paginate_with_validation("playlist", {"query": {}})

    assert result.data == {"data": [], "total": 0, "pageIndex": 1, "pageSize": 10, "totalPages": 0}


def test_paginate_custom_sql(crud: CrudEngine, add_playlist) -> None:
    for name in ("A", "B", "C"):
        add_playlist(name=name, premium=1 if name != "B" else 0)

    options = PageOptions(
        custom_sql="SELECT id, name FROM playlist WHERE premium = ? ORDER BY name LIMIT ? OFFSET ?",
        custom_count_sql="SELECT COUNT(*) AS cnt FROM playlist WHERE premium = ?",
        sql_params=[1],
        count_params=[1],
    )
    result = crud.paginate_with_validation("playlist", {"query": {"pageSize": "1", "pageIndex": "2"}}, options)

    assert result.data["total"] == 2
    assert result.data["totalPages"] == 2
    assert result.data["data"] == [{"id": 3, "name": "C"}]


def test_batch_update_status(crud: CrudEngine, add_playlist, db) -> None:
    first = add_playlist(name="A", status="DRAFT")
    second = add_playlist(name="B", status="DRAFT")
    deleted = add_playlist(name="C", status="DRAFT", is_deleted=1)

    result = crud.batch_update_status("playlist", [first, second, deleted], "ENABLED")

    assert result.data == {"updatedCount": 2}
    statuses = db.query("SELECT status FROM playlist ORDER BY id")
    assert [row["status"] for row in statuses] == ["ENABLED", "ENABLED", "DRAFT"]


def test_batch_update_status_invalid_ids(crud: CrudEngine) -> None:
    result = crud.batch_update_status("playlist", [], "ENABLED")

    assert result.error == "INVALID_PARAMS"
    assert result.status_code == 400


def test_batch_logical_delete(crud: CrudEngine, add_playlist, db) -> None:
    first = add_playlist(name="A")
    add_playlist(name="B")

    result = crud.batch_logical_delete("playlist", [first])

    assert result.data["deletedCount"] == 1
    assert [row["name"] for row in result.data["deletedData"]] == ["A"]
    assert "isDeleted" not in result.data["deletedData"][0]
    assert db.query_one("SELECT is_deleted FROM playlist WHERE id = ?", [first])["is_deleted"] == 1
    assert crud.count("playlist", "is_deleted = ?", [0]) == 1


def test_physical_delete_without_soft_delete_field(db, enums, add_playlist) -> None:
    engine = CrudEngine(db, enums=enums, soft_delete_field=None)
    first = add_playlist(name="A")

    result = engine.batch_logical_delete("playlist", [first])

    assert result.data["deletedCount"] == 1
    assert engine.count("playlist") == 0


def test_batch_update_sort(crud: CrudEngine, add_playlist, db) -> None:
    ids = [add_playlist(name=name) for name in ("A", "B", "C")]

    result = crud.batch_update_sort("playlist", [ids[2], ids[0], ids[1]])

    assert result.data == {"updatedCount": 3}
    rows = db.query("SELECT name FROM playlist ORDER BY sort")
    assert [row["name"] for row in rows] == ["C", "A", "B"]


def test_batch_update_sort_rejects_bad_column(crud: CrudEngine, add_playlist) -> None:
    playlist_id = add_playlist(name="A")

    assert crud.batch_update_sort("playlist", [playlist_id], "sort = 0; --").error == "INVALID_PARAMS"


def test_exists(crud: CrudEngine, add_playlist) -> None:
    add_playlist(name="A")

    assert crud.exists("playlist", "name = ?", ["A"])
    assert not crud.exists("playlist", "name = ?", ["Z"])
