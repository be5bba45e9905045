"""Tests for the click CLI."""

import json

import pytest
from click.testing import CliRunner

from src.tracker.cli import cli


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("WHEEL_TRACKER_DB_PATH", raising=False)
    monkeypatch.delenv("FINNHUB_API_KEY", raising=False)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_args(tmp_path):
    return ["--db", str(tmp_path / "ledger.db")]


def _open_put(runner, db_args):
    result = runner.invoke(
        cli,
        db_args + [
            "--json", "record", "AAPL", "SELL_TO_OPEN_PUT",
            "--strike", "150", "--premium", "2.00", "--date", "2025-01-06",
        ],
    )
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestRecord:
    """Tests for the record command."""

    def test_open_position(self, runner, db_args) -> None:
        """Recording a put without --position opens a position."""
        body = _open_put(runner, db_args)

        assert body["ticker"] == "AAPL"
        assert body["status"] == "PUT_OPEN"
        assert body["premiumCollected"] == 200.0
        assert len(body["events"]) == 1

    def test_full_cycle(self, runner, db_args) -> None:
        """A full wheel cycle can be recorded step by step."""
        position_id = _open_put(runner, db_args)["id"]

        steps = [
            ["ASSIGNMENT", "--strike", "150", "--date", "2025-01-17"],
            ["SELL_TO_OPEN_CALL", "--strike", "155", "--premium", "1.00", "--date", "2025-01-21"],
            ["CALLED_AWAY", "--strike", "155", "--date", "2025-01-31"],
        ]
        for step in steps:
            result = runner.invoke(
                cli, db_args + ["record", "AAPL"] + step + ["--position", position_id]
            )
            assert result.exit_code == 0, result.output

        result = runner.invoke(cli, db_args + ["--json", "positions"])
        (position,) = json.loads(result.output)
        assert position["status"] == "CALLED_AWAY"
        assert position["realizedPL"] == 500.0

    def test_invalid_transition_exits_nonzero(self, runner, db_args) -> None:
        """A transition the position does not allow exits with status 1."""
        position_id = _open_put(runner, db_args)["id"]

        result = runner.invoke(
            cli,
            db_args + [
                "record", "AAPL", "CALLED_AWAY", "--strike", "155",
                "--date", "2025-01-31", "--position", position_id,
            ],
        )

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_stale_version(self, runner, db_args) -> None:
        """An out-of-date --expected-version is reported."""
        position_id = _open_put(runner, db_args)["id"]

        result = runner.invoke(
            cli,
            db_args + [
                "record", "AAPL", "ASSIGNMENT", "--strike", "150", "--date", "2025-01-17",
                "--position", position_id, "--expected-version", "3",
            ],
        )

        assert result.exit_code == 1
        assert "version" in result.output

    def test_bad_ticker(self, runner, db_args) -> None:
        """Invalid tickers are rejected before anything is stored."""
        result = runner.invoke(
            cli,
            db_args + ["record", "TOOLONG", "SELL_TO_OPEN_PUT", "--strike", "10",
                       "--premium", "1", "--date", "2025-01-06"],
        )
        assert result.exit_code == 1


class TestPositions:
    """Tests for the positions command."""

    def test_empty(self, runner, db_args) -> None:
        """An empty ledger says so."""
        result = runner.invoke(cli, db_args + ["positions"])
        assert result.exit_code == 0
        assert "No positions found" in result.output

    def test_open_only(self, runner, db_args) -> None:
        """Ticker and open-only filters apply to the listing."""
        _open_put(runner, db_args)
        result = runner.invoke(cli, db_args + ["positions", "--open-only", "--ticker", "aapl"])
        assert result.exit_code == 0
        assert "AAPL" in result.output
        assert "PUT_OPEN" in result.output


class TestReport:
    """Tests for the report command."""

    def test_json_report(self, runner, db_args) -> None:
        """The JSON report carries metrics and deposits."""
        _open_put(runner, db_args)
        runner.invoke(cli, db_args + ["deposit", "10000", "--date", "2025-01-02"])

        result = runner.invoke(cli, db_args + ["--json", "report", "--range", "All"])

        assert result.exit_code == 0, result.output
        body = json.loads(result.output)
        assert body["timeRange"] == "All"
        assert body["metrics"]["premiumPL"] == 200.0
        assert body["metrics"]["cashDeposits"] == 10000.0

    def test_text_report(self, runner, db_args) -> None:
        """The text report prints its heading."""
        _open_put(runner, db_args)
        result = runner.invoke(cli, db_args + ["report"])
        assert result.exit_code == 0
        assert "Dashboard (All)" in result.output

    def test_invalid_range(self, runner, db_args) -> None:
        """Unknown ranges exit with status 1."""
        result = runner.invoke(cli, db_args + ["report", "--range", "2W"])
        assert result.exit_code == 1
        assert "Invalid time range" in result.output


class TestDeposits:
    """Tests for the deposit commands."""

    def test_deposit_and_withdraw(self, runner, db_args) -> None:
        """Deposits and withdrawals net out in the summary."""
        assert runner.invoke(cli, db_args + ["deposit", "5000", "--date", "2025-01-02"]).exit_code == 0
        assert runner.invoke(cli, db_args + ["withdraw", "750", "--date", "2025-02-01"]).exit_code == 0

        result = runner.invoke(cli, db_args + ["--json", "deposits"])

        body = json.loads(result.output)
        assert body["netInvested"] == 4250.0
        assert body["depositCount"] == 1
        assert body["withdrawalCount"] == 1

    def test_non_positive_amount(self, runner, db_args) -> None:
        """A zero amount is rejected."""
        result = runner.invoke(cli, db_args + ["deposit", "0"])
        assert result.exit_code == 1


class TestRoll:
    """Tests for the roll command."""

    def test_put_roll(self, runner, db_args) -> None:
        """Rolling a put closes the position and opens the next one."""
        position_id = _open_put(runner, db_args)["id"]

        result = runner.invoke(
            cli,
            db_args + [
                "--json", "roll", position_id, "--strike", "145",
                "--expiration", "2025-02-21", "--close-premium", "2.50",
                "--open-premium", "1.50", "--date", "2025-01-15",
            ],
        )

        assert result.exit_code == 0, result.output
        body = json.loads(result.output)
        assert body["netPremium"] == -100.0
        assert body["rolledFrom"]["id"] == position_id
        assert body["rolledFrom"]["status"] == "CLOSED"
        assert body["position"]["status"] == "PUT_OPEN"

    def test_text_output(self, runner, db_args) -> None:
        """The text form reports the net debit or credit."""
        position_id = _open_put(runner, db_args)["id"]

        result = runner.invoke(
            cli,
            db_args + [
                "roll", position_id, "--strike", "145", "--expiration", "2025-02-21",
                "--close-premium", "1.00", "--open-premium", "1.50", "--date", "2025-01-15",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "net credit $50.00" in result.output

    def test_nothing_to_roll(self, runner, db_args) -> None:
        """An assigned position has no open leg to roll."""
        position_id = _open_put(runner, db_args)["id"]
        runner.invoke(
            cli,
            db_args + ["record", "AAPL", "ASSIGNMENT", "--strike", "150", "--date",
                       "2025-01-17", "--position", position_id],
        )

        result = runner.invoke(
            cli,
            db_args + ["roll", position_id, "--strike", "155", "--expiration", "2025-02-21",
                       "--close-premium", "1", "--open-premium", "1", "--date", "2025-01-20"],
        )

        assert result.exit_code == 1
        assert "only an open put or call" in result.output


class TestExpirations:
    """Tests for the expirations command."""

    def test_overdue_leg_listed(self, runner, db_args) -> None:
        """A past expiration with no outcome recorded shows as overdue."""
        result = runner.invoke(
            cli,
            db_args + ["record", "AAPL", "SELL_TO_OPEN_PUT", "--strike", "150",
                       "--premium", "2.00", "--date", "2025-01-06", "--expiration", "2025-01-17"],
        )
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, db_args + ["expirations"])

        assert result.exit_code == 0
        assert "2025-01-17" in result.output
        assert "OVERDUE" in result.output

    def test_none(self, runner, db_args) -> None:
        """Legs without an expiration date are not listed."""
        _open_put(runner, db_args)
        result = runner.invoke(cli, db_args + ["expirations", "--days", "7"])
        assert result.exit_code == 0
        assert "No expirations in the next 7 days" in result.output

    def test_invalid_window(self, runner, db_args) -> None:
        """The window is bounded."""
        result = runner.invoke(cli, db_args + ["expirations", "--days", "-1"])
        assert result.exit_code == 1


class TestExport:
    """Tests for the export command."""

    def test_pl_to_stdout(self, runner, db_args) -> None:
        """The P&L export is written to stdout by default."""
        _open_put(runner, db_args)

        result = runner.invoke(cli, db_args + ["export", "pl"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0].startswith("Date Opened,Date Closed,Ticker")
        assert lines[1].startswith("2025-01-06,,AAPL,PUT_OPEN,1,200.00")

    def test_deposits_to_file(self, runner, db_args, tmp_path) -> None:
        """With --output the CSV goes to a file."""
        runner.invoke(cli, db_args + ["deposit", "5000", "--date", "2025-01-02"])
        target = tmp_path / "deposits.csv"

        result = runner.invoke(cli, db_args + ["export", "deposits", "-o", str(target)])

        assert result.exit_code == 0, result.output
        assert target.read_text().splitlines()[1] == "2025-01-02,DEPOSIT,5000.00,"

    def test_inverted_range(self, runner, db_args) -> None:
        """A start after the end is rejected."""
        result = runner.invoke(
            cli, db_args + ["export", "pl", "--start", "2025-03-01", "--end", "2025-02-01"]
        )
        assert result.exit_code == 1
