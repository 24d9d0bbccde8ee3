"""Command-line entrypoint for querying a terminal."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Protocol, cast

import dotenv
import uvloop
import yaml

from zk_attendance.const import LOCAL_TZ, ZK_VERSION
from zk_attendance.correlation import correlation_context
from zk_attendance.device import ZKDevice
from zk_attendance.logging_abstraction import configure_logging, get_logger
from zk_attendance.metrics import start_metrics_server
from zk_attendance.protocol.exceptions import ZKError
from zk_attendance.settings import ZKSettings, load_config_file

logger = get_logger(__name__)

COMMANDS = ("info", "sizes", "users", "attendance", "time")


class _CLIArgs(Protocol):
    debug: bool
    env: Path | None
    config: Path | None
    host: str | None
    port: int | None
    password: int | None
    timeout: float | None
    output: str
    command: str
    from_date: date | None
    to_date: date | None
    sort: str
    sync: bool


def parse_cli(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="zk-attendance", description="ZKTeco attendance terminal client")
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument("--config", help="Path to a YAML settings file", default=None, type=Path)
    _ = parser.add_argument("--host", help="Terminal address", default=None)
    _ = parser.add_argument("--port", help="Terminal TCP port", default=None, type=int)
    _ = parser.add_argument("--password", help="Numeric comm key", default=None, type=int)
    _ = parser.add_argument("--timeout", help="Connect and command timeout (seconds)", default=None, type=float)
    _ = parser.add_argument("--output", choices=("json", "yaml"), default="json", help="Output format")
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {ZK_VERSION}")

    commands = parser.add_subparsers(dest="command", required=True)
    _ = commands.add_parser("info", help="Firmware, identity and network details")
    _ = commands.add_parser("sizes", help="User / fingerprint / record counters and capacities")
    _ = commands.add_parser("users", help="List enrolled users")

    attendance = commands.add_parser("attendance", help="List attendance records")
    _ = attendance.add_argument("--from", dest="from_date", type=date.fromisoformat, default=None)
    _ = attendance.add_argument("--to", dest="to_date", type=date.fromisoformat, default=None)
    _ = attendance.add_argument("--sort", default="desc", help="asc, desc, or none for device order")

    time_cmd = commands.add_parser("time", help="Show the device clock")
    _ = time_cmd.add_argument("--sync", action="store_true", help="Set the device clock to local time first")

    return parser.parse_args(argv)


def load_env_file(env_file: Path) -> bool:
    """Load a dotenv file into os.environ. Returns True when anything was loaded."""
    env_path = env_file.expanduser().resolve()
    if not env_path.exists():
        logger.error("Environment file not found", extra={"path": str(env_path)})
        return False
    loaded_any = dotenv.load_dotenv(env_path, override=True)
    if loaded_any:
        logger.info("Environment variables loaded", extra={"source": str(env_path)})
    else:
        logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})
    return loaded_any


def resolve_settings(args: _CLIArgs) -> ZKSettings:
    """Merge settings: CLI flags > config file > environment.

    Raises:
        ConfigError: Config file unreadable or a value fails validation

    """
    settings = ZKSettings()
    if args.env is not None and load_env_file(args.env):
        settings = ZKSettings.from_env()
    if args.config is not None:
        settings = settings.merged(load_config_file(args.config))
    overrides: dict[str, object] = {
        "host": args.host,
        "port": args.port,
        "password": args.password,
        "timeout": args.timeout,
    }
    if args.debug:
        overrides["debug"] = True
    return settings.merged(overrides)


async def _collect_info(device: ZKDevice) -> dict[str, object]:
    return {
        "firmware_version": await device.get_firmware_version(),
        "serial_number": await device.get_serial_number(),
        "platform": await device.get_platform(),
        "mac": await device.get_mac(),
        "device_name": await device.get_device_name(),
        "face_version": await device.get_face_version(),
        "fingerprint_version": await device.get_fingerprint_version(),
        "network": await device.get_network_params(),
    }


async def run_command(device: ZKDevice, args: _CLIArgs) -> object:
    """Execute one CLI command against a connected device and return printable data."""
    match args.command:
        case "info":
            return await _collect_info(device)
        case "sizes":
            return (await device.read_sizes()).as_dict()
        case "users":
            return [asdict(user) for user in await device.get_users()]
        case "attendance":
            records = await device.get_attendance(args.from_date, args.to_date, args.sort)
            return [asdict(record) for record in records]
        case "time":
            if args.sync:
                await device.set_time(datetime.now(LOCAL_TZ).replace(tzinfo=None))
            return {"device_time": await device.get_time()}
        case _:
            msg = f"unknown command {args.command!r}"
            raise ValueError(msg)


async def _run(settings: ZKSettings, args: _CLIArgs) -> object:
    device = ZKDevice(
        settings.host,
        settings.port,
        password=settings.password,
        timeout=settings.timeout,
        chunk_delay_ms=settings.chunk_delay_ms,
    )
    async with device:
        return await run_command(device, args)


def render(result: object, output: str) -> str:
    if output == "yaml":
        return yaml.safe_dump(result, sort_keys=False, allow_unicode=True)
    return json.dumps(result, indent=2, default=str, ensure_ascii=False)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI. Returns the process exit code."""
    args = cast("_CLIArgs", cast("object", parse_cli(argv)))

    with correlation_context():  # one id for the whole invocation
        try:
            settings = resolve_settings(args)
        except ZKError as e:
            print(f"zk-attendance: {e}", file=sys.stderr)
            return 2

        _ = configure_logging(
            level=logging.DEBUG if settings.debug else logging.INFO,
            log_format=settings.log_format,
            json_file=settings.log_json_file,
            human_output=settings.log_human_output,
        )
        if settings.debug:
            logger.info("Debug logging enabled")
        if settings.metrics_enabled:
            start_metrics_server(settings.metrics_port)

        logger.debug(
            "Running %s against %s:%d",
            args.command,
            settings.host,
            settings.port,
            extra={"version": ZK_VERSION, "timeout": settings.timeout},
        )
        try:
            result = uvloop.run(_run(settings, args))
        except ZKError as e:
            logger.error("%s failed: %s", args.command, e, extra={"error_type": type(e).__name__})
            return 1

    print(render(result, args.output))
    return 0


if __name__ == "__main__":
    sys.exit(main())
