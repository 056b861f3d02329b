#!/usr/bin/env python3
"""MongoDB log normalizer — entry point.

Wiring: LogTailer -> lines queue -> LineProcessor -> events queue -> EventWriter
"""

import logging
import os
import queue
import signal
import sys
import threading
from typing import TextIO

from watchdog.observers import Observer

from lognorm.clock import Clock
from lognorm.config import Config, load_config
from lognorm.processor import END_OF_STREAM, LineProcessor, iter_lines, put_while_alive
from lognorm.sink import EventWriter
from lognorm.tailer import LogTailer, read_batch

logger = logging.getLogger(__name__)


def _start_pipeline(config: Config, stream: TextIO, clock: Clock | None):
    lines: queue.Queue = queue.Queue(maxsize=config.queue_size)
    events: queue.Queue = queue.Queue(maxsize=config.queue_size)
    processor = LineProcessor(config.options(), clock=clock)
    writer = EventWriter(events, stream)
    failures: list[BaseException] = []

    def _send(event):
        if not put_while_alive(events, event, writer):
            raise RuntimeError("event writer stopped")

    def _process():
        try:
            processor.process_lines(iter_lines(lines), _send)
        except Exception as e:
            logger.error("Line processor stopped: %s", e)
            failures.append(e)
        finally:
            put_while_alive(events, END_OF_STREAM, writer)

    worker = threading.Thread(target=_process, name="line-processor", daemon=True)
    writer.start()
    worker.start()
    return lines, processor, worker, writer, failures


def _finish(processor: LineProcessor, worker: threading.Thread, writer: EventWriter,
            failures: list[BaseException]) -> LineProcessor:
    worker.join()
    writer.join()
    if writer.error is not None:
        raise writer.error
    if failures:
        raise failures[0]
    return processor


def run_batch(config: Config, stream: TextIO, clock: Clock | None = None) -> LineProcessor:
    """Normalize every line currently in config.log_file, then return."""
    lines, processor, worker, writer, failures = _start_pipeline(config, stream, clock)
    try:
        for line in read_batch(config.log_file):
            if not put_while_alive(lines, line, worker):
                break
    finally:
        put_while_alive(lines, END_OF_STREAM, worker)
    return _finish(processor, worker, writer, failures)


def run_follow(config: Config, stream: TextIO, stop_event: threading.Event,
               clock: Clock | None = None) -> LineProcessor:
    """Follow config.log_file until stop_event is set."""
    lines, processor, worker, writer, failures = _start_pipeline(config, stream, clock)
    tailer = LogTailer(config.log_file, lines, from_beginning=config.from_beginning,
                       consumer=worker)
    tailer.startup_read()

    os.makedirs(tailer.watched_dir, exist_ok=True)
    observer = Observer()
    observer.schedule(tailer, tailer.watched_dir, recursive=False)
    observer.start()
    logger.info("Following %s", tailer.path)

    while not stop_event.is_set() and worker.is_alive():
        stop_event.wait(1)

    observer.stop()
    # the tailer may still be enqueueing from the observer thread
    observer.join()
    tailer.close()
    return _finish(processor, worker, writer, failures)


def main(argv=None) -> int:
    config = load_config(argv)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [NORMALIZER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    if not config.log_file:
        logger.error("No log file given (--log-file or LOG_FILE)")
        return 2
    logger.info("Config: log_file=%s, log_partials=%s, queue_size=%d, follow=%s",
                config.log_file, config.log_partials, config.queue_size, config.follow)

    stop_event = threading.Event()

    def _signal_handler(sig, frame):
        logger.info("Shutdown signal received, stopping...")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    out = open(config.output_file, "a", encoding="utf-8") if config.output_file else sys.stdout
    try:
        if config.follow:
            processor = run_follow(config, out, stop_event)
        else:
            processor = run_batch(config, out)
    finally:
        if out is not sys.stdout:
            out.close()

    logger.info("Stats: %d lines read, %d events emitted, %d dropped",
                processor.lines_seen, processor.events_emitted, processor.lines_dropped)
    return 0


if __name__ == "__main__":
    sys.exit(main())
