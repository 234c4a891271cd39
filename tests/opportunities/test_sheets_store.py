from __future__ import annotations

import base64
import json

import pytest

pytest.importorskip("pytest_httpx")

from opportunities.models.domain import CandidateRecord, LogLevel
from opportunities.repositories.sheets import (
    PersistError,
    SheetsError,
    SheetsStore,
    load_service_account_credentials,
    parse_source_row,
    record_to_row,
)
from opportunities.settings import ConfigError

BASE = "https://sheets.googleapis.com/v4/spreadsheets/sheet-123/values"


@pytest.fixture
def store(settings):
    s = SheetsStore(settings, token_provider=lambda: "test-token")
    yield s
    s.close()


def _record(n: int) -> CandidateRecord:
    return CandidateRecord(
        source_id="SRC001",
        title_th=f"ประกาศทุนวิจัยรอบที่ {n} สำหรับนักศึกษา",
        description_th="รายละเอียด",
        url=f"https://www.facebook.com/a/posts/{n}",
        deadline="15/03/2025",
        grant_amount="50000",
    )


def test_list_active_sources_skips_header_and_inactive(store, httpx_mock):
    httpx_mock.add_response(
        method="GET",
        json={
            "values": [
                ["source_id", "source_name", "source_type", "url", "scrape_selector", "is_active", "last_scraped", "notes"],
                ["SRC001", "ทุนวิจัย", "facebook_page", "https://www.facebook.com/a", "", "TRUE", "", ""],
                ["SRC002", "Inactive", "facebook_page", "pageb", "", "FALSE"],
                ["SRC003", "Lowercase", "facebook_group", "pagec", "", "true"],
            ]
        },
    )

    sources = store.list_active_sources()

    assert [s.source_id for s in sources] == ["SRC001", "SRC003"]
    assert sources[1].page_url == "https://www.facebook.com/pagec"
    request = httpx_mock.get_requests()[0]
    assert request.url.path.endswith("/values/Sources!A:H")
    assert request.headers["Authorization"] == "Bearer test-token"


def test_list_active_sources_empty_sheet(store, httpx_mock):
    httpx_mock.add_response(method="GET", json={"values": [["source_id"]]})
    assert store.list_active_sources() == []


def test_list_existing_keys(store, httpx_mock):
    httpx_mock.add_response(
        method="GET",
        json={"values": [["url"], ["https://x/1"], [], [""], ["https://x/2"], ["https://x/1"]]},
    )

    assert store.list_existing_keys() == {"https://x/1", "https://x/2"}
    assert httpx_mock.get_requests()[0].url.path.endswith("/values/Items!G:G")


def test_persist_appends_rows_in_column_order(store, httpx_mock):
    httpx_mock.add_response(method="POST", json={"updates": {"updatedRows": 2}})

    saved = store.persist([_record(1), _record(2)])

    assert saved == 2
    request = httpx_mock.get_requests()[0]
    assert request.url.path.endswith("/values/Items!A:P:append")
    assert request.url.params["valueInputOption"] == "USER_ENTERED"
    assert request.url.params["insertDataOption"] == "INSERT_ROWS"
    rows = json.loads(request.content)["values"]
    assert len(rows) == 2
    row = rows[0]
    assert len(row) == 16
    assert row[0].startswith("ITM") and row[0] == row[0].upper()
    assert row[1:3] == ["SRC001", "ประกาศทุนวิจัยรอบที่ 1 สำหรับนักศึกษา"]
    assert row[3] == "" and row[5] == ""
    assert row[6] == "https://www.facebook.com/a/posts/1"
    assert row[7] == "pending"
    assert row[8:10] == ["15/03/2025", "50000"]
    assert row[10:12] == ["", ""]
    assert len(row[12]) == len("2025-01-01 00:00:00")
    assert row[13:] == ["FALSE", "FALSE", ""]


def test_persist_empty_batch_sends_nothing(store, httpx_mock):
    assert store.persist([]) == 0
    assert httpx_mock.get_requests() == []


def test_persist_failure_raises_persist_error(store, httpx_mock):
    httpx_mock.add_response(method="POST", status_code=500, json={"error": {"message": "backend"}})

    with pytest.raises(PersistError):
        store.persist([_record(1)])


def test_read_failure_raises_sheets_error(store, httpx_mock):
    httpx_mock.add_response(method="GET", status_code=403, json={"error": {"message": "denied"}})

    with pytest.raises(SheetsError):
        store.list_existing_keys()


def test_touch_source_timestamp_updates_matching_row(store, httpx_mock):
    httpx_mock.add_response(method="GET", json={"values": [["source_id"], ["SRC001"], ["SRC002"]]})
    httpx_mock.add_response(method="PUT", json={"updatedCells": 1})

    assert store.touch_source_timestamp("SRC002", "2025-03-01 09:00:00") is True

    put = httpx_mock.get_requests()[1]
    assert put.url.path.endswith("/values/Sources!G3")
    assert json.loads(put.content) == {"values": [["2025-03-01 09:00:00"]]}


def test_touch_unknown_source_is_ignored(store, httpx_mock):
    httpx_mock.add_response(method="GET", json={"values": [["source_id"], ["SRC001"]]})

    assert store.touch_source_timestamp("MISSING") is False
    assert len(httpx_mock.get_requests()) == 1


def test_append_log_row_layout(store, httpx_mock):
    httpx_mock.add_response(method="POST", json={"updates": {"updatedRows": 1}})

    store.append_log("github-actions", LogLevel.ERROR, "Failed: timeout", "SRC001")

    request = httpx_mock.get_requests()[0]
    assert request.url.path.endswith("/values/Logs!A:F:append")
    (row,) = json.loads(request.content)["values"]
    assert row[0].startswith("LOG")
    assert row[2:] == ["github-actions", "SRC001", "error", "Failed: timeout"]


def test_parse_source_row_pads_short_rows():
    source = parse_source_row(["SRC9", "Name"])
    assert source.source_id == "SRC9"
    assert source.is_active is False
    assert source.notes == ""


def test_record_to_row_is_sixteen_columns():
    row = record_to_row(_record(3), item_id="ITM1", scraped_at="2025-01-01 00:00:00")
    assert len(row) == 16
    assert row[0] == "ITM1" and row[12] == "2025-01-01 00:00:00"


def test_invalid_credentials_raise_config_error():
    with pytest.raises(ConfigError):
        load_service_account_credentials("not base64 json!!")
    with pytest.raises(ConfigError):
        load_service_account_credentials(base64.b64encode(b"{}").decode())
