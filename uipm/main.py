from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from uipm.agent import TelemetryAgent
from uipm.config import default_config, load_config
from uipm.errors import SourceUnavailable
from uipm.logging_utils import configure_logging, resolve_log_level
from uipm.ports import NullPortMapper
from uipm.schema import validate_snapshot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="uipm telemetry agent")
    parser.add_argument(
        "--config",
        help="Path to CFG configuration file (defaults are used when omitted)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect a single set of snapshots, then exit",
    )
    parser.add_argument(
        "--no-wifi",
        action="store_true",
        help="Skip the wireless scan (it powers on the radio and takes a while)",
    )
    parser.add_argument(
        "--dump-json",
        help="Write the JSON snapshots to a file (overwrites on each loop)",
    )
    return parser


def _check_schema(logger: logging.Logger, payload: dict) -> None:
    for kind, snapshot in payload.items():
        schema_errors = validate_snapshot(kind, snapshot)
        if schema_errors:
            logger.warning(
                "Schema validation failed for %s with %s errors.", kind, len(schema_errors)
            )
            logger.debug("Schema errors: %s", schema_errors)


def _emit(payload: dict, pretty: bool, dump_path: str | None) -> None:
    payload_json = json.dumps(payload, indent=2) if pretty else json.dumps(payload)
    if dump_path:
        with open(dump_path, "w", encoding="utf-8") as handle:
            handle.write(payload_json)
    print(payload_json, flush=True)


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("uipm")
    config = load_config(args.config) if args.config else default_config()
    pretty_print = level <= logging.DEBUG

    agent = TelemetryAgent(config)
    try:
        agent.seed()
    except SourceUnavailable as exc:
        logger.critical("Failed to read initial CPU stat: %s", exc)
        return 1

    NullPortMapper().apply_ports(None, config.agent.ports)

    if args.once:
        payload = agent.collect_all(include_wifi=not args.no_wifi)
        _check_schema(logger, payload)
        _emit(payload, pretty_print, args.dump_json)
        return 0

    interval = max(1, config.agent.interval_s)
    logger.info("uipm agent started. Sampling every %s seconds.", interval)
    try:
        while True:
            time.sleep(interval)
            payload = agent.collect_all(include_wifi=not args.no_wifi)
            _check_schema(logger, payload)
            _emit(payload, pretty_print, args.dump_json)
    except KeyboardInterrupt:
        logger.info("uipm agent stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
