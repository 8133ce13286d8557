import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from sqlscope.scan import columns, scan_rows, value_to_string


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


def test_columns_names_blank(conn):
    cur = conn.execute('SELECT 1 AS a, 2 AS " "')
    assert columns(cur) == ["a", "col1"]


def test_columns_without_result_set(conn):
    cur = conn.execute("CREATE TABLE t (x)")
    with pytest.raises(ValueError, match="cannot get query columns"):
        columns(cur)


def test_scan_rows(conn):
    cur = conn.execute("SELECT 1, 'x', NULL")
    assert scan_rows(cur, 3) == [["1", "x", ""]]


def test_scan_rows_length_mismatch(conn):
    cur = conn.execute("SELECT 1, 2")
    with pytest.raises(ValueError):
        scan_rows(cur, 3)


def test_simple_values():
    assert value_to_string(None) == ""
    assert value_to_string(b"abc") == "abc"
    assert value_to_string("text") == "text"
    assert value_to_string(42) == "42"


def test_bool_value():
    assert value_to_string(True) == "true"
    assert value_to_string(False) == "false"


def test_json_round_trip():
    data = {"b": [1, 2], "a": {"c": "d"}}
    assert json.loads(value_to_string(data)) == data
    assert json.loads(value_to_string([1, "x"])) == [1, "x"]


def test_utc_datetime_round_trip():
    moment = datetime(2021, 5, 4, 3, 2, 1, 500000, tzinfo=timezone.utc)
    text = value_to_string(moment)
    assert text.endswith("Z")
    assert "500000" not in text
    assert datetime.fromisoformat(text.replace("Z", "+00:00")) == moment


def test_offset_datetime_round_trip():
    moment = datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=-5)))
    text = value_to_string(moment)
    assert datetime.fromisoformat(text) == moment
    assert "." not in text


def test_integral_float_without_fraction():
    assert value_to_string(3.0) == "3"
    assert float(value_to_string(0.25)) == 0.25