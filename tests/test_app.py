import pytest

import app as app_module
from fiscal.source import CalendarSourceError

from conftest import ROWS, TODAY


@pytest.fixture
def client(monkeypatch):
    app_module._cache.clear()
    monkeypatch.setitem(app_module.app.config, "FISCAL_ROWS_LOADER", lambda: [dict(row) for row in ROWS])
    monkeypatch.setitem(app_module.app.config, "FISCAL_TODAY", lambda: TODAY)
    yield app_module.app.test_client()
    app_module._cache.clear()


def test_calendar_summary(client):
    body = client.get("/api/calendar").get_json()
    assert (body["minYear"], body["maxYear"]) == (2024, 2025)
    assert body["currentFiscalYear"] == 2024
    assert body["years"][1] == {
        "year": 2025,
        "startDate": "2025-02-01",
        "endDate": "2025-03-31",
        "periodCount": 2,
        "weekCount": 9,
    }


def test_calendar_is_cached(client, monkeypatch):
    calls = []

    def loader():
        calls.append(1)
        return [dict(row) for row in ROWS]

    monkeypatch.setitem(app_module.app.config, "FISCAL_ROWS_LOADER", loader)
    client.get("/api/calendar")
    client.get("/api/years/2024")
    assert len(calls) == 1


def test_year_view(client):
    body = client.get("/api/years/2024?view=Q2").get_json()
    assert [period["id"] for period in body["periods"]] == [4, 5, 6]
    assert body["weeks"][0]["weekNum"] == 14
    assert body["quickPresets"][0] == {"id": "thisWeek", "label": "This Week"}

    assert client.get("/api/years/2024?view=Q9").status_code == 400
    assert client.get("/api/years/1999").status_code == 400


def test_bad_rows_are_reported(client, monkeypatch):
    monkeypatch.setitem(app_module.app.config, "FISCAL_ROWS_LOADER", lambda: [])
    response = client.get("/api/calendar")
    assert response.status_code == 502
    assert "invalid" in response.get_json()["error"]


def test_source_failure_is_bad_gateway(client, monkeypatch):
    def loader():
        raise CalendarSourceError("card not found")

    monkeypatch.setitem(app_module.app.config, "FISCAL_ROWS_LOADER", loader)
    response = client.get("/api/calendar")
    assert response.status_code == 502
    assert response.get_json() == {"error": "card not found"}


def test_select_periods(client):
    body = client.post("/api/selection/periods", json={"year": 2024, "periodIds": [2, 1]}).get_json()
    assert body["selection"]["meta"] == {"periodIds": [1, 2]}
    assert body["filter"]["values"] == ["2024-02-04", "2024-03-30"]

    cleared = client.post("/api/selection/periods", json={"year": 2024, "periodIds": []}).get_json()
    assert cleared["selection"] is None
    assert cleared["filter"] is None


def test_toggle_period(client):
    body = client.post(
        "/api/selection/periods/toggle",
        json={"year": 2024, "selectedIds": [1, 2, 3, 4], "periodId": 2},
    ).get_json()
    assert body["periodIds"] == [1]

    body = client.post(
        "/api/selection/periods/toggle",
        json={"year": 2024, "selectedIds": [3], "periodId": 1},
    ).get_json()
    assert body["periodIds"] == [1, 2, 3]

    body = client.post("/api/selection/periods/toggle", json={"year": 2024, "all": True}).get_json()
    assert body["periodIds"] == [1, 2, 3, 4, 5, 6]


def test_week_range_and_click(client):
    body = client.post("/api/selection/weeks", json={"year": 2024, "startWeek": 6, "endWeek": 2}).get_json()
    assert body["selection"]["label"] == "Weeks 2-6"

    shrink = client.post(
        "/api/selection/week-click",
        json={"year": 2024, "weekNum": 6, "shift": True, "anchor": 6, "selection": body["selection"]},
    ).get_json()
    assert shrink["selection"]["meta"] == {"weekRange": [2, 5]}
    assert shrink["anchor"] == 2

    same = client.post(
        "/api/selection/week-click",
        json={"year": 2024, "weekNum": 4, "shift": False, "anchor": 4},
    ).get_json()
    assert same["selection"] is None
    assert same["anchor"] is None


def test_quick_select(client):
    body = client.post("/api/selection/quick", json={"preset": "fullYear", "year": 2024}).get_json()
    assert body["changed"] is True
    assert body["selection"]["startDate"] == "2024-02-04"
    assert body["selection"]["endDate"] == "2024-08-03"

    assert client.post("/api/selection/quick", json={"preset": "tomorrow"}).status_code == 400


def test_quick_select_failure_keeps_selection(client):
    current = {"type": "custom", "startDate": "2024-03-01", "endDate": "2024-03-02", "label": "Custom Range"}
    body = client.post(
        "/api/selection/quick",
        json={"preset": "thisWeek", "year": 2031, "selection": current},
    ).get_json()
    assert body["changed"] is False
    assert "error" in body
    assert body["selection"]["startDate"] == "2024-03-01"


def test_drag_commit(client):
    body = client.post("/api/selection/drag", json={"anchor": "2024-03-15", "current": "2024-03-10"}).get_json()
    assert body["selection"]["type"] == "custom"
    assert (body["selection"]["startDate"], body["selection"]["endDate"]) == ("2024-03-10", "2024-03-15")
    assert body["fiscalYear"] == 2024

    assert client.post("/api/selection/drag", json={"anchor": "yesterday"}).status_code == 400


def test_filter_round_trip(client):
    body = client.post("/api/selection/filter", json={"parameter": "2025-02-01~2025-02-10"}).get_json()
    assert body["selection"]["label"] == "Selected Range"
    assert body["fiscalYear"] == 2025
    assert body["parameter"] == "2025-02-01~2025-02-10"

    assert client.post("/api/selection/filter", json={"parameter": "oops"}).status_code == 400


def test_download_csv(client):
    response = client.get("/download/2025?range=2025-02-01~2025-02-07")
    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    text = response.data.decode("utf-8-sig")
    lines = text.strip().splitlines()
    assert lines[0] == "Week,Label,Period,Quarter,Start,End,Selected"
    assert lines[1].startswith(",P01 (W1-4),P01,Q1")
    assert lines[2].startswith("1,P01-W01,P01,Q1") and lines[2].endswith("yes")
    assert not lines[3].endswith("yes")


@pytest.mark.parametrize(
    "url, payload",
    [
        ("/api/selection/filter", {"parameter": 5}),
        ("/api/selection/filter", {"filter": [1, 2]}),
        ("/api/selection/filter", {"selection": ["x"]}),
        ("/api/selection/week-click", {"year": 2024, "weekNum": 3, "selection": ["x"]}),
        ("/api/selection/quick", {"preset": "fullYear", "year": 2024, "selection": "abc"}),
    ],
)
def test_wrongly_shaped_selections_are_rejected(client, url, payload):
    response = client.post(url, json=payload)
    assert response.status_code == 400
    assert "error" in response.get_json()
