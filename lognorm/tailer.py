"""Line sources: one-shot file reads and a watchdog-driven file follower."""

import logging
import os
import queue
import threading

from watchdog.events import FileSystemEventHandler

from lognorm.processor import END_OF_STREAM, put_while_alive

logger = logging.getLogger(__name__)


def read_batch(path: str) -> list[str]:
    """Read all non-empty stripped lines from a file."""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.strip() for line in f if line.strip()]


class LogTailer(FileSystemEventHandler):
    """Feeds new lines of one file into a queue.

    put() blocks when the queue is full, so a slow consumer slows the
    reader down instead of growing memory. With a consumer thread given,
    reading stops once that thread has died. close() ends the stream.
    """

    def __init__(self, path: str, q: queue.Queue, from_beginning: bool = False,
                 consumer: threading.Thread | None = None):
        super().__init__()
        self._path = os.path.abspath(path)
        self._queue = q
        self._consumer = consumer
        self._from_beginning = from_beginning
        self._file = None
        self._partial_line = ""

    def _enqueue(self, item) -> bool:
        if self._consumer is None:
            self._queue.put(item)
            return True
        return put_while_alive(self._queue, item, self._consumer)

    @property
    def path(self) -> str:
        return self._path

    @property
    def watched_dir(self) -> str:
        return os.path.dirname(self._path)

    def _open_file(self, seek_end: bool):
        if self._file:
            self._file.close()
            self._file = None
        try:
            self._file = open(self._path, "r", encoding="utf-8", errors="replace")
        except FileNotFoundError:
            logger.debug("File not found: %s", self._path)
            return
        if seek_end:
            self._file.seek(0, os.SEEK_END)
        self._partial_line = ""
        logger.debug("Opened %s at offset %d", self._path, self._file.tell())

    def _read_new_lines(self):
        """Read from current position to EOF, enqueue complete lines."""
        if self._file is None:
            self._open_file(seek_end=False)
        if self._file is None:
            return

        try:
            size = os.path.getsize(self._path)
        except FileNotFoundError:
            size = None
        if size is not None and size < self._file.tell():
            logger.info("File truncated: %s", self._path)
            self._file.seek(0)
            self._partial_line = ""

        data = self._file.read()
        if not data:
            return
        data = self._partial_line + data
        lines = data.split("\n")

        # last element is either "" or an incomplete line
        self._partial_line = lines.pop()

        for line in lines:
            stripped = line.strip()
            if stripped and not self._enqueue(stripped):
                logger.warning("Line consumer stopped, no longer reading %s", self._path)
                return

    def startup_read(self):
        """Open the file; enqueue its current contents if from_beginning."""
        self._open_file(seek_end=not self._from_beginning)
        if self._file is not None and self._from_beginning:
            logger.info("Startup read: %s", self._path)
            self._read_new_lines()

    def on_modified(self, event):
        if not event.is_directory and os.path.abspath(event.src_path) == self._path:
            self._read_new_lines()

    def on_created(self, event):
        if not event.is_directory and os.path.abspath(event.src_path) == self._path:
            logger.info("Watched file created: %s", self._path)
            self._open_file(seek_end=False)
            self._read_new_lines()

    def close(self):
        """Close the file and signal end of stream to the consumer."""
        if self._file:
            self._file.close()
            self._file = None
        self._enqueue(END_OF_STREAM)
