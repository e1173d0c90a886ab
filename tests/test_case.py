from cmsdal.case import convert_keys_to_camel, convert_keys_to_snake, convert_request_data, to_camel, to_snake


def test_to_camel() -> None:
    assert to_camel("create_time") == "createTime"
    assert to_camel("cover_img_url") == "coverImgUrl"
    assert to_camel("id") == "id"


def test_to_snake() -> None:
    assert to_snake("coverImgUrl") == "cover_img_url"
    assert to_snake("isDeleted") == "is_deleted"
    assert to_snake("name") == "name"


def test_schema_names_survive_both_directions() -> None:
    for name in ("create_time", "music_ids", "audio_end_time", "stage_1_name", "is_deleted"):
        assert to_snake(to_camel(name)) == name


def test_nested_keys_are_converted() -> None:
    data = {"play_list": [{"music_id": 1}], "extra_info": {"cover_url": "x"}}

    camel = convert_keys_to_camel(data)

    assert camel == {"playList": [{"musicId": 1}], "extraInfo": {"coverUrl": "x"}}
    assert convert_keys_to_snake(camel) == data


def test_request_values_are_untouched() -> None:
    body = {"createTime": "2024-01-01 10:00:00", "musicIds": "[1, 2]"}

    assert convert_request_data(body) == {"create_time": "2024-01-01 10:00:00", "music_ids": "[1, 2]"}
