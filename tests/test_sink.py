"""Tests for the EventWriter sink and the event model."""

import io
import json
import queue
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from lognorm.models import ResolvedEvent, event_to_dict
from lognorm.sink import EventWriter


def _event(seq: int) -> ResolvedEvent:
    return ResolvedEvent(
        timestamp=datetime(2021, 1, 2, 10, 0, seq, tzinfo=timezone.utc),
        data={"seq": seq, "context": "conn1"},
    )


class TestEventToDict:
    def test_iso_timestamp_and_data(self):
        assert event_to_dict(_event(5)) == {
            "timestamp": "2021-01-02T10:00:05+00:00",
            "data": {"seq": 5, "context": "conn1"},
        }

    def test_offset_preserved(self):
        tz = timezone(timedelta(hours=-5))
        event = ResolvedEvent(timestamp=datetime(2017, 1, 2, 15, 4, 5, 123000, tzinfo=tz))
        assert event_to_dict(event)["timestamp"] == "2017-01-02T15:04:05.123000-05:00"
        assert event_to_dict(event)["data"] == {}

    def test_event_is_frozen(self):
        with pytest.raises(FrozenInstanceError):
            _event(1).timestamp = datetime.now(timezone.utc)


class TestEventWriter:
    def test_writes_json_lines_in_order(self):
        q = queue.Queue()
        out = io.StringIO()
        writer = EventWriter(q, out)
        writer.start()
        for i in range(3):
            q.put(_event(i))
        writer.stop()
        writer.join(timeout=5)

        assert not writer.is_alive()
        records = [json.loads(line) for line in out.getvalue().splitlines()]
        assert [r["data"]["seq"] for r in records] == [0, 1, 2]
        assert writer.total_events == 3

    def test_non_json_values_rendered_as_strings(self):
        q = queue.Queue()
        out = io.StringIO()
        writer = EventWriter(q, out)
        writer.start()
        q.put(ResolvedEvent(timestamp=datetime(2021, 1, 1, tzinfo=timezone.utc),
                            data={"when": datetime(2020, 1, 1)}))
        writer.stop()
        writer.join(timeout=5)
        record = json.loads(out.getvalue())
        assert record["data"]["when"] == "2020-01-01 00:00:00"

    def test_empty_stream(self):
        q = queue.Queue()
        out = io.StringIO()
        writer = EventWriter(q, out)
        writer.start()
        writer.stop()
        writer.join(timeout=5)
        assert out.getvalue() == ""
        assert writer.total_events == 0

    def test_write_error_stops_writer_and_is_kept(self):
        class _ClosedPipe(io.StringIO):
            def write(self, s):
                raise BrokenPipeError("reader went away")

        q = queue.Queue()
        writer = EventWriter(q, _ClosedPipe())
        writer.start()
        q.put(_event(0))
        writer.join(timeout=5)

        assert not writer.is_alive()
        assert isinstance(writer.error, BrokenPipeError)
        assert writer.total_events == 0

    def test_no_error_after_clean_stop(self):
        writer = EventWriter(queue.Queue(), io.StringIO())
        writer.start()
        writer.stop()
        writer.join(timeout=5)
        assert writer.error is None
