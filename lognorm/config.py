"""Configuration from CLI args, env vars, and an optional YAML file.

Precedence: CLI flag > env var > YAML > dataclass default.
"""

import argparse
import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Options:
    # Send what was parsed from a line even if its message didn't parse.
    log_partials: bool = False


@dataclass(frozen=True)
class Config:
    log_file: str | None = None
    output_file: str | None = None   # None = stdout
    log_partials: bool = False
    queue_size: int = 1000
    from_beginning: bool = False
    follow: bool = True
    log_level: str = "INFO"

    def options(self) -> Options:
        return Options(log_partials=self.log_partials)


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MongoDB log normalizer")
    parser.add_argument("--log-file", default=None, help="MongoDB log file to read")
    parser.add_argument("--output", default=None,
                        help="Write JSON events here instead of stdout")
    parser.add_argument("--log-partials", action="store_true", default=None,
                        help="Send what was successfully parsed from a line "
                             "(only if the error occurred in the line's message)")
    parser.add_argument("--queue-size", type=int, default=None)
    parser.add_argument("--from-beginning", action="store_true", default=None,
                        help="Read the existing file contents before following it")
    parser.add_argument("--no-follow", action="store_true", default=False,
                        help="Read the file once and exit")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    return parser


def load_config(argv=None) -> Config:
    """Build Config from CLI args, env vars and YAML.

    Pass argv for testability; when None, argparse reads sys.argv.
    """
    args = build_cli_parser().parse_args(argv)
    yaml_data = load_yaml_config(args.config)

    def pick(cli_value, env_name: str, yaml_key: str, default):
        if cli_value is not None:
            return cli_value
        if env_name in os.environ:
            return os.environ[env_name]
        return yaml_data.get(yaml_key, default)

    return Config(
        log_file=pick(args.log_file, "LOG_FILE", "log_file", Config.log_file),
        output_file=pick(args.output, "OUTPUT_FILE", "output_file", Config.output_file),
        log_partials=_parse_bool(
            pick(args.log_partials, "LOG_PARTIALS", "log_partials", Config.log_partials)),
        queue_size=int(pick(args.queue_size, "QUEUE_SIZE", "queue_size", Config.queue_size)),
        from_beginning=_parse_bool(
            pick(args.from_beginning, "FROM_BEGINNING", "from_beginning", Config.from_beginning)),
        follow=not args.no_follow and _parse_bool(yaml_data.get("follow", Config.follow)),
        log_level=str(pick(args.log_level, "LOG_LEVEL", "log_level", Config.log_level)).upper(),
    )
