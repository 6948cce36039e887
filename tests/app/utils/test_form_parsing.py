"""Tests for PHP-style form body parsing."""

from app.utils.form_parsing import parse_nested_form


def test_crm_event_form_body():
    items = [
        ("event", "ONIMCONNECTORMESSAGEADD"),
        ("data[CONNECTOR]", "max_abc"),
        ("data[LINE]", "3"),
        ("data[MESSAGES][0][chat][id]", "max_11"),
        ("data[MESSAGES][0][message][text]", "first"),
        ("data[MESSAGES][1][chat][id]", "max_12"),
        ("data[MESSAGES][1][message][text]", "second"),
        ("auth[domain]", "alpha.bitrix24.ru"),
    ]
    payload = parse_nested_form(items)

    assert payload["event"] == "ONIMCONNECTORMESSAGEADD"
    assert payload["auth"] == {"domain": "alpha.bitrix24.ru"}
    messages = payload["data"]["MESSAGES"]
    assert isinstance(messages, list)
    assert [m["chat"]["id"] for m in messages] == ["max_11", "max_12"]
    assert messages[1]["message"]["text"] == "second"


def test_empty_brackets_append():
    payload = parse_nested_form([("ids[]", "a"), ("ids[]", "b")])
    assert payload == {"ids": ["a", "b"]}


def test_flat_keys():
    assert parse_nested_form([("a", "1"), ("b", "2")]) == {"a": "1", "b": "2"}


def test_files_numbered_out_of_order():
    items = [
        ("files[1][name]", "b.pdf"),
        ("files[0][name]", "a.jpg"),
    ]
    payload = parse_nested_form(items)
    assert [f["name"] for f in payload["files"]] == ["a.jpg", "b.pdf"]
