"""EventWriter: consumer thread that drains resolved events to JSON lines."""

import json
import logging
import queue
from threading import Thread
from typing import TextIO

from lognorm.models import event_to_dict
from lognorm.processor import END_OF_STREAM, iter_lines

logger = logging.getLogger(__name__)


class EventWriter(Thread):
    def __init__(self, q: queue.Queue, stream: TextIO):
        super().__init__(daemon=True)
        self._queue = q
        self._stream = stream
        self._total_events = 0
        self._error: Exception | None = None

    @property
    def total_events(self) -> int:
        return self._total_events

    @property
    def error(self) -> Exception | None:
        """The exception that stopped run(), if any."""
        return self._error

    def run(self):
        try:
            for event in iter_lines(self._queue):
                self._stream.write(json.dumps(event_to_dict(event), default=str))
                self._stream.write("\n")
                self._stream.flush()
                self._total_events += 1
        except Exception as e:
            logger.error("Event writer stopped after %d events: %s", self._total_events, e)
            self._error = e
            return
        logger.debug("Event queue closed after %d events", self._total_events)

    def stop(self):
        """Signal end of stream; run() returns once the queue is drained."""
        self._queue.put(END_OF_STREAM)
