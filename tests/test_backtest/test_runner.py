"""Tests for the backtest runner and its command-line entry point."""

import asyncio
import logging

import pytest

from conftest import utc
from cryptosignal.backtest.models import BacktestMetrics, BacktestOptions, BacktestReport
from cryptosignal.backtest.runner import format_report, main, run_backtest
from cryptosignal.data.database import SignalDatabase
from cryptosignal.data.models import SignalSnapshotRecord
from cryptosignal.data.store import SqliteSignalSnapshotStore


async def _seed(db_path: str, records: list[SignalSnapshotRecord]) -> None:
    async with SignalDatabase(db_path) as database:
        store = SqliteSignalSnapshotStore(database)
        for record in records:
            await store.insert_snapshot(record)


def _labelled(day: int, signal: str, direction: str, magnitude: float) -> SignalSnapshotRecord:
    return SignalSnapshotRecord(
        symbol="BTC",
        generated_at=utc(2024, 1, day),
        signal_rule=signal,
        price_now=100.0,
        price_future=100.0 + magnitude,
        label_direction=direction,
        label_magnitude=magnitude,
    )


@pytest.fixture(autouse=True)
def restore_root_logging():
    """main() installs its own root handler; put the previous ones back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def seeded_db(tmp_path) -> str:
    db_path = str(tmp_path / "signals.db")
    asyncio.run(
        _seed(
            db_path,
            [
                _labelled(10, "BUY", "UP", 4.0),
                _labelled(11, "SELL", "UP", 2.0),
                _labelled(12, "NEUTRAL", "DOWN", -1.0),
            ],
        )
    )
    return db_path


class TestFormatReport:
    """Tests for the plain-text report table."""

    def test_table(self) -> None:
        report = BacktestReport(
            symbol="BTC",
            start=utc(2024, 1, 1),
            end=utc(2024, 2, 1),
            total=4,
            metrics=BacktestMetrics(0.5, 2, 1, 1, 1.25, -2.0, 0.167, -3.5, 0.167),
        )
        text = format_report(report)
        lines = text.splitlines()

        assert lines[0] == "Backtest BTC 2024-01-01T00:00:00Z -> 2024-02-01T00:00:00Z (4 snapshots)"
        assert "| Win Rate" in text
        assert "50.00%" in text
        assert "-3.50%" in text
        # every table row has the same width
        assert len({len(line) for line in lines[1:]}) == 1

    def test_empty_report_is_header_only(self) -> None:
        report = BacktestReport(symbol="ETH", start=utc(2024, 1, 1), end=utc(2024, 1, 2), total=0)
        assert format_report(report).endswith("(0 snapshots)")


class TestRunBacktest:
    """Tests for run_backtest() against SQLite."""

    def test_reads_labelled_snapshots(self, seeded_db: str) -> None:
        report = asyncio.run(
            run_backtest(
                BacktestOptions(symbol="btc", start="2024-01-01", end="2024-01-31"),
                db_path=seeded_db,
            )
        )

        assert report.total == 3
        assert report.metrics is not None
        assert report.metrics.win_rate == 0.5
        assert report.metrics.avg_return_all_pct == 1.0
        assert [p.signal for p in report.timeline] == ["BUY", "SELL"]


class TestMain:
    """Tests for the CLI exit codes and output."""

    def test_prints_table(self, seeded_db: str, capsys: pytest.CaptureFixture) -> None:
        code = main(
            ["--db-path", seeded_db, "--symbol", "BTC", "--start", "2024-01-01", "--end", "2024-01-31"]
        )

        assert code == 0
        out = capsys.readouterr().out
        assert "Backtest BTC" in out
        assert "(3 snapshots)" in out
        assert "Neutral Trades" in out

    def test_empty_window(self, seeded_db: str, capsys: pytest.CaptureFixture) -> None:
        code = main(["--db-path", seeded_db, "--start", "2023-01-01", "--end", "2023-02-01"])

        assert code == 0
        captured = capsys.readouterr()
        assert "Backtest" not in captured.out
        assert "No labeled snapshots" in captured.err

    def test_invalid_date(self, tmp_path, capsys: pytest.CaptureFixture) -> None:
        code = main(["--db-path", str(tmp_path / "signals.db"), "--start", "yesterday"])

        assert code == 2
        assert "Invalid start date" in capsys.readouterr().err
