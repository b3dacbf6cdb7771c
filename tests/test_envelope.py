from __future__ import annotations

import pytest

from mpapps.ministry_platform.envelope import deep_parse_json, first_record, unwrap_procedure_result
from mpapps.ministry_platform.errors import EnvelopeError


def test_unwrap_joins_split_json_rows():
    raw = [[{"JsonResult": '[{"Project_ID": 1, '}, {"JsonResult": '"Title": "Camp"}]'}]]
    assert unwrap_procedure_result(raw) == [{"Project_ID": 1, "Title": "Camp"}]


def test_unwrap_accepts_guid_named_column():
    column = "JSON_F52E2B61-18A1-11d1-B105-00805F49916B"
    raw = [[{column: '{"ok": true}'}]]
    assert unwrap_procedure_result(raw) == {"ok": True}


def test_unwrap_returns_plain_rows_unchanged():
    raw = [[{"Congregation_ID": 1, "Congregation_Name": "Troy"}]]
    assert unwrap_procedure_result(raw) == [{"Congregation_ID": 1, "Congregation_Name": "Troy"}]


@pytest.mark.parametrize("raw", [None, [], [[]], [[{"JsonResult": ""}]]])
def test_unwrap_empty_results_use_default(raw):
    assert unwrap_procedure_result(raw, default=[]) == []


def test_unwrap_rejects_malformed_json():
    with pytest.raises(EnvelopeError):
        unwrap_procedure_result([[{"JsonResult": '{"broken": '}]])


def test_deep_parse_decodes_nested_json_strings():
    value = {"Budgets": '[{"Amount": 10, "Lines": "[1, 2]"}]', "Title": "[not json", "Note": "plain"}
    assert deep_parse_json(value) == {
        "Budgets": [{"Amount": 10, "Lines": [1, 2]}],
        "Title": "[not json",
        "Note": "plain",
    }


def test_first_record():
    assert first_record([{"a": 1}, {"a": 2}]) == {"a": 1}
    assert first_record([]) is None
    assert first_record({"a": 1}) == {"a": 1}
    assert first_record("nope") is None
