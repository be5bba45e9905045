"""Tests for the position endpoints."""

from fastapi import status
from fastapi.testclient import TestClient



def _seed(record_event, days_ago):
    """Closed AAPL cycle, open F put and F shares held via assignment."""
    aapl = record_event("AAPL", "SELL_TO_OPEN_PUT", 150, premium=1.2,
                        occurred_at=days_ago(40)).json()["id"]
    record_event("AAPL", "EXPIRED_WORTHLESS", 150, occurred_at=days_ago(30), position_id=aapl)

    f = record_event("F", "SELL_TO_OPEN_PUT", 10, premium=0.25,
                     occurred_at=days_ago(20)).json()["id"]
    record_event("F", "ASSIGNMENT", 10, occurred_at=days_ago(10), position_id=f)
    return aapl, f


def test_list_positions(client: TestClient, record_event, days_ago):
    """Test GET /api/v1/positions returns all positions oldest first."""
    _seed(record_event, days_ago)

    response = client.get("/api/v1/positions")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert [p["ticker"] for p in data["positions"]] == ["AAPL", "F"]
    assert data["positions"][0]["events"] is None


def test_list_positions_filters(client: TestClient, record_event, days_ago):
    """Test ticker, status and open_only filters."""
    _seed(record_event, days_ago)

    open_only = client.get("/api/v1/positions", params={"open_only": True}).json()
    by_status = client.get("/api/v1/positions", params={"status": "put_expired"}).json()
    by_ticker = client.get("/api/v1/positions", params={"ticker": "f"}).json()

    assert [p["ticker"] for p in open_only["positions"]] == ["F"]
    assert [p["ticker"] for p in by_status["positions"]] == ["AAPL"]
    assert [p["status"] for p in by_ticker["positions"]] == ["ASSIGNED"]


def test_invalid_status_filter_returns_400(client: TestClient):
    """Test that an unknown status filter is rejected."""
    response = client.get("/api/v1/positions", params={"status": "SOLD"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_get_position_with_events(client: TestClient, record_event, days_ago):
    """Test GET /api/v1/positions/{id} includes the event history."""
    aapl, _ = _seed(record_event, days_ago)

    response = client.get(f"/api/v1/positions/{aapl}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "PUT_EXPIRED"
    assert [e["eventType"] for e in data["events"]] == ["SELL_TO_OPEN_PUT", "EXPIRED_WORTHLESS"]


def test_get_missing_position_returns_404(client: TestClient):
    """Test that an unknown position id returns 404."""
    response = client.get("/api/v1/positions/unknown")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "NotFound"


def test_positions_overview(client: TestClient, record_event, days_ago):
    """Test GET /api/v1/positions/overview prices held shares.

    Asserts:
        - F shares marked at the static price of 11
        - Nothing is stale
    """
    _seed(record_event, days_ago)

    response = client.get("/api/v1/positions/overview")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert data["stale"] is False
    f_row = next(p for p in data["positions"] if p["ticker"] == "F")
    assert f_row["unrealizedPL"] == 100.0
    assert f_row["totalPL"] == 125.0


def test_positions_overview_missing_price(
    client: TestClient, record_event, price_table, days_ago
):
    """Test that a missing price makes unrealized P&L unavailable."""
    _seed(record_event, days_ago)
    price_table.remove_price("F")

    data = client.get("/api/v1/positions/overview", params={"ticker": "F"}).json()

    assert data["stale"] is True
    assert data["positions"][0]["unrealizedPL"] is None
    assert data["positions"][0]["totalPL"] == 25.0


def test_upcoming_expirations(client: TestClient, record_event, days_ago):
    """Test GET /api/v1/positions/expirations lists open legs soonest first.

    Asserts:
        - Legs past expiration are included and flagged overdue
        - Legs beyond the window are left out
        - byDate groups position ids under each expiration date
    """
    overdue = record_event("F", "SELL_TO_OPEN_PUT", 10, premium=0.25, occurred_at=days_ago(20),
                           expiration_date=days_ago(1)).json()["id"]
    soon = record_event("AAPL", "SELL_TO_OPEN_PUT", 150, premium=1.2, occurred_at=days_ago(5),
                        expiration_date=days_ago(-7)).json()["id"]
    record_event("MSFT", "SELL_TO_OPEN_PUT", 400, premium=3.0, occurred_at=days_ago(5),
                 expiration_date=days_ago(-60))

    response = client.get("/api/v1/positions/expirations", params={"days": 14})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert data["overdue"] == 1
    assert [leg["positionId"] for leg in data["expirations"]] == [overdue, soon]
    assert data["expirations"][0]["daysUntil"] == -1
    assert data["expirations"][1]["premium"] == 120.0
    assert data["byDate"] == {days_ago(1): [overdue], days_ago(-7): [soon]}
    assert data["nextExpiration"] == days_ago(-7)


def test_upcoming_expirations_invalid_window_returns_400(client: TestClient):
    """Test that the look-ahead window is bounded."""
    response = client.get("/api/v1/positions/expirations", params={"days": 400})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
