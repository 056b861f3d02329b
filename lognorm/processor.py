"""LineProcessor: turns raw log lines into ResolvedEvents, dropping bad lines."""

import logging
import queue
import threading
from typing import Callable, Iterable, Iterator

from lognorm.clock import Clock, RealClock
from lognorm.config import Options
from lognorm.models import ResolvedEvent
from lognorm.mongo_parser import LineParser, MongoLineParser, is_partial_log_line
from lognorm.timestamps import TimestampError, resolve_timestamp

logger = logging.getLogger(__name__)

# Put on a queue to tell its consumer that the producer is done.
END_OF_STREAM = object()


def iter_lines(q: queue.Queue) -> Iterator:
    """Yield items from q, blocking while it is empty, until END_OF_STREAM."""
    while True:
        item = q.get()
        if item is END_OF_STREAM:
            return
        yield item


def put_while_alive(q: queue.Queue, item, consumer: threading.Thread,
                    poll_interval: float = 0.5) -> bool:
    """Blocking put that gives up once the consumer thread has died.

    Returns False if the item could not be delivered.
    """
    while True:
        try:
            q.put(item, timeout=poll_interval)
            return True
        except queue.Full:
            if not consumer.is_alive():
                return False


class LineProcessor:
    def __init__(self, options: Options, line_parser: LineParser | None = None,
                 clock: Clock | None = None):
        self._options = options
        self._line_parser = line_parser or MongoLineParser()
        self._clock = clock or RealClock()
        self._lines_seen = 0
        self._events_emitted = 0

    @property
    def lines_seen(self) -> int:
        return self._lines_seen

    @property
    def events_emitted(self) -> int:
        return self._events_emitted

    @property
    def lines_dropped(self) -> int:
        return self._lines_seen - self._events_emitted

    def _parse(self, line: str) -> dict | None:
        """Return the line's fields, or None if the line must be dropped."""
        try:
            return self._line_parser.parse_log_line(line)
        except Exception as e:
            # any parser error is a hard failure unless it's an accepted partial
            if self._options.log_partials and is_partial_log_line(e):
                return e.fields
            logger.debug("logline didn't parse, skipping: %r (line=%r)", e, line)
            return None

    def process_line(self, line: str) -> ResolvedEvent | None:
        """Parse and resolve a single line. Returns None when it is dropped."""
        values = self._parse(line)
        if values is None:
            return None

        try:
            timestamp = resolve_timestamp(values, self._clock.now())
        except TimestampError as e:
            logger.debug("couldn't parse logline timestamp, skipping: %s (line=%r)", e, line)
            return None
        logger.debug("Successfully parsed line %r -> %r", line, values)

        # the timestamp lives on the event, not in its data
        data = dict(values)
        del data["timestamp"]
        return ResolvedEvent(timestamp=timestamp, data=data)

    def process_lines(self, lines: Iterable[str],
                      send: Callable[[ResolvedEvent], None]) -> None:
        """Process lines in order until the source is exhausted.

        send may block (e.g. a bounded Queue.put); exceptions from send
        or from the source propagate.
        """
        for line in lines:
            self._lines_seen += 1
            event = self.process_line(line)
            if event is None:
                continue
            send(event)
            self._events_emitted += 1
        logger.debug("lines stream is closed, ending processor (%d seen, %d emitted)",
                     self._lines_seen, self._events_emitted)
