import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from batteryhub.batteries import BatteryType, battery_for_type
from batteryhub.config import BatteryInfoConfig, LoggingConfig, build_config, load_config_file
from batteryhub.errors import BatteryHubError, ConfigError
from batteryhub.modbus.protocols import Protocol, framer_for, resolve_protocol
from batteryhub.modbus.reader import reader_from_protocol
from batteryhub.poller import BatteryPoller, RunOutcome
from batteryhub.report import ReportWriter
from batteryhub.transport.backoff import BackoffPolicy
from batteryhub.transport.port import DeviceType, Port

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def _resolve_config_path(cli_path: Optional[str]) -> Optional[Path]:
    """
    Resolve config path with the following precedence:
    1) CLI: --config /path/to/config.yaml
    2) ENV: BATTERYHUB_CONFIG=/path/to/config.yaml
    3) None: flags only
    """
    if cli_path:
        return Path(cli_path).expanduser().resolve()
    env = os.getenv("BATTERYHUB_CONFIG")
    if env:
        return Path(env).expanduser().resolve()
    return None


def configure_logging(log_config: LoggingConfig) -> None:
    root_logger = logging.getLogger()
    log_level = getattr(logging, log_config.level.upper())
    root_logger.setLevel(log_level)
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_config.format))
        root_logger.addHandler(handler)
    for handler in root_logger.handlers:
        handler.setLevel(log_level)
    logging.getLogger("batteryhub").setLevel(log_level)
    # pymodbus logs its own connection noise; failures reach us as exceptions
    logging.getLogger("pymodbus").setLevel(logging.CRITICAL)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="batteryhub", description="Read telemetry from batteries on a shared Modbus bus")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("battery-info", help="Print info and extra info of each battery")
    info.add_argument("-p", "--address", help="Serial port or host[:port] used for communication")
    info.add_argument("-i", "--battery-ids", type=int, nargs="+", help="IDs of the batteries to get info from")
    info.add_argument("-t", "--read-timeout", help="Timeout when reading from the port (e.g. 500ms, 2s; default 500ms)")
    info.add_argument("-B", "--baud-rate", type=int, help="Baud rate (default 9600)")
    info.add_argument("--battery-type", choices=[t.value for t in BatteryType],
                      help=f"One of {', '.join(t.value for t in BatteryType)} (default {BatteryType.EG4LLV2.value})")
    info.add_argument("--protocol", choices=[p.value for p in Protocol],
                      help=f"One of {', '.join(p.value for p in Protocol)} (default auto)")
    info.add_argument("-T", "--device-type", choices=[d.value for d in DeviceType],
                      help="One of serial, tcp (default serial)")
    info.add_argument("--config", help="YAML config file (overrides BATTERYHUB_CONFIG)")
    info.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL (default INFO)")
    return parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    port: Dict[str, Any] = {}
    if args.address is not None:
        port["address"] = args.address
    if args.baud_rate is not None:
        port["baudrate"] = args.baud_rate
    if args.device_type is not None:
        port["device_type"] = args.device_type
    if port:
        overrides["port"] = port
    if args.battery_ids is not None:
        overrides["battery_ids"] = args.battery_ids
    if args.read_timeout is not None:
        overrides["read_timeout"] = args.read_timeout
    if args.battery_type is not None:
        overrides["battery_type"] = args.battery_type
    if args.protocol is not None:
        overrides["protocol"] = args.protocol
    if args.log_level is not None:
        overrides["logging"] = {"level": args.log_level}
    return overrides


def load_battery_info_config(args: argparse.Namespace) -> BatteryInfoConfig:
    path = _resolve_config_path(args.config)
    file_data = load_config_file(path) if path else {}
    return build_config(file_data, _cli_overrides(args))


async def run_battery_info(cfg: BatteryInfoConfig, stream: Optional[TextIO] = None,
                           client_factory=None) -> RunOutcome:
    """
    Open the port, poll every configured battery and close the port.

    Raises:
        ConfigError: unsupported protocol for the selected battery/port
        TransportError: the port could not be opened, or reopened mid-run
    """
    battery = battery_for_type(cfg.battery_type)
    protocol = resolve_protocol(cfg.protocol, battery)
    port = Port(
        cfg.port,
        framer=framer_for(protocol),
        backoff=BackoffPolicy.from_config(cfg.backoff),
        client_factory=client_factory,
        read_timeout=cfg.read_timeout,
    )
    log.info("Reading %s batteries %s on %s using %s",
             battery.name, cfg.battery_ids, port, protocol.value)
    await port.open()
    try:
        reader = reader_from_protocol(port, protocol)
        poller = BatteryPoller(port, reader, battery, cfg.read_timeout, ReportWriter(stream))
        return await poller.poll(cfg.battery_ids)
    finally:
        await port.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_battery_info_config(args)
    except ConfigError as e:
        configure_logging(LoggingConfig())
        log.error("Invalid configuration: %s", e)
        return EXIT_FAILED
    configure_logging(cfg.logging)

    try:
        outcome = asyncio.run(run_battery_info(cfg))
        outcome.raise_for_failures()
    except BatteryHubError as e:
        log.error("%s", e)
        return EXIT_FAILED
    except KeyboardInterrupt:
        log.info("Interrupted by user")
        return EXIT_FAILED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
