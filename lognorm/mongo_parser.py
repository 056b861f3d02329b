"""Field extraction for MongoDB (mongod/mongos) text log lines.

Two header layouts are understood:

    Wed Oct 29 12:00:00.123 [conn12] query test.users query: { ... } nreturned:1 5ms
    2017-01-02T15:04:05.123-0500 I COMMAND  [conn12] command test.$cmd ... 5ms

An unrecognizable header is a hard failure. A recognizable header whose
operation message breaks off before its duration is a partial failure:
the fields read so far travel on the exception.
"""

import re
from typing import Any, Protocol

_CTIME_HEADER_RE = re.compile(
    r'^(?P<timestamp>(?:[A-Z][a-z]{2} )?[A-Z][a-z]{2} +\d{1,2} '
    r'\d{2}:\d{2}:\d{2}(?:\.\d+)?)\s+(?P<rest>.*)$'
)

_ISO_HEADER_RE = re.compile(
    r'^(?P<timestamp>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\S*)\s+(?P<rest>.*)$'
)

_CONTEXT_RE = re.compile(
    r'^(?:(?P<severity>[FEWI]|D[1-5]?)\s+(?P<component>-|[A-Z_]+)\s+)?'
    r'\[(?P<context>[^\]]+)\]\s*(?P<message>.*)$'
)

_DURATION_RE = re.compile(r'\s(?P<duration>\d+)ms$')
_COUNTER_RE = re.compile(r'(?<![\w.])(?P<key>[A-Za-z_]\w*):(?P<value>\d+)\b')

OPERATIONS = frozenset({
    "query", "getmore", "insert", "update", "remove", "command", "killcursors",
})

_HEADER_KEYS = frozenset({
    "timestamp", "severity", "component", "context", "message",
    "operation", "namespace", "duration_ms",
})


class LineParseError(ValueError):
    """The line does not match the log grammar."""


class PartialLogLineError(LineParseError):
    """The grammar matched up to a point; ``fields`` holds what was read."""

    def __init__(self, message: str, fields: dict[str, Any]):
        super().__init__(message)
        self.fields = fields


def is_partial_log_line(err: Exception | None) -> bool:
    return isinstance(err, PartialLogLineError)


class LineParser(Protocol):
    def parse_log_line(self, line: str) -> dict[str, Any]: ...


def _split_header(line: str) -> tuple[str, str]:
    for header_re in (_ISO_HEADER_RE, _CTIME_HEADER_RE):
        m = header_re.match(line)
        if m:
            return m.group("timestamp"), m.group("rest")
    raise LineParseError(f"no timestamp at start of line: {line[:40]!r}")


def _parse_operation(message: str, fields: dict[str, Any]) -> None:
    """Add operation, namespace, counters and duration_ms to fields."""
    parts = message.split(None, 2)
    fields["operation"] = parts[0]
    if len(parts) < 2:
        raise PartialLogLineError(f"{parts[0]} entry without namespace", fields)
    fields["namespace"] = parts[1]

    m = _DURATION_RE.search(message)
    if not m:
        raise PartialLogLineError(f"{parts[0]} entry without duration", fields)

    body = message[:m.start()]
    for counter in _COUNTER_RE.finditer(body):
        key = counter.group("key")
        if key not in _HEADER_KEYS:
            fields[key] = int(counter.group("value"))
    fields["duration_ms"] = int(m.group("duration"))


def parse_log_line(line: str) -> dict[str, Any]:
    """Parse one mongod log line into a dict of fields."""
    stripped = line.strip()
    if not stripped:
        raise LineParseError("empty line")

    timestamp, rest = _split_header(stripped)
    m = _CONTEXT_RE.match(rest)
    if not m:
        raise LineParseError(f"no [context] after timestamp: {rest[:40]!r}")

    fields: dict[str, Any] = {"timestamp": timestamp}
    if m.group("severity"):
        fields["severity"] = m.group("severity")
        fields["component"] = m.group("component")
    fields["context"] = m.group("context")

    message = m.group("message")
    first_word = message.split(None, 1)[0] if message else ""
    if first_word in OPERATIONS:
        _parse_operation(message, fields)

    fields["message"] = message
    return fields


class MongoLineParser:
    """LineParser backed by parse_log_line."""

    def parse_log_line(self, line: str) -> dict[str, Any]:
        return parse_log_line(line)
