"""Shared pytest fixtures for the mongo-log-normalizer test suite."""

from datetime import datetime, timezone

import pytest

from lognorm.clock import FixedClock

ENV_VARS = ("LOG_FILE", "OUTPUT_FILE", "LOG_PARTIALS", "QUEUE_SIZE",
            "FROM_BEGINNING", "LOG_LEVEL")


class StubLineParser:
    """LineParser double: maps each line to a dict of fields or an exception."""

    def __init__(self, outcomes: dict):
        self._outcomes = outcomes
        self.calls: list[str] = []

    def parse_log_line(self, line: str) -> dict:
        self.calls.append(line)
        outcome = self._outcomes[line]
        if isinstance(outcome, Exception):
            raise outcome
        return dict(outcome)


class CountingClock(FixedClock):
    def __init__(self, instant: datetime):
        super().__init__(instant)
        self.calls = 0

    def now(self) -> datetime:
        self.calls += 1
        return super().now()


@pytest.fixture()
def now() -> datetime:
    return datetime(2021, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def clock(now) -> CountingClock:
    return CountingClock(now)


@pytest.fixture()
def clean_env(monkeypatch):
    """Remove every env var the config layer reads."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def mongo_lines() -> list[str]:
    """A mix of good, partial and broken mongod log lines."""
    return [
        '2017-01-02T15:04:05.123-0500 I NETWORK  [initandlisten] waiting for connections on port 27017',
        'Wed Oct 29 12:00:00.123 [conn12] query test.users query: { name: "x" } nscanned:10 nreturned:1 5ms',
        'this is not a mongo log line',
        'Mon Jan  2 08:30:00.500 [conn7] update test.orders query: { _id: 1 } update: { $set',
        '2017-01-02T15:04:06Z I COMMAND  [conn3] command admin.$cmd command: isMaster { isMaster: 1 } reslen:178 0ms',
        '2017-01-02T15:04:07.250Z I NETWORK  [conn1] end connection 127.0.0.1:51000 (0 connections now open)',
    ]


@pytest.fixture()
def stub_parser():
    """Factory for StubLineParser: stub_parser(line=outcome, ...)."""
    def _make(**outcomes) -> StubLineParser:
        return StubLineParser(outcomes)
    return _make
