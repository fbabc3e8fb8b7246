from __future__ import annotations

import argparse
import logging
import signal
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

from .adapters import HwmonAdapter, PlatformAdapter, SimulatedAdapter
from .calibration import CalibrationEngine
from .cancellation import Cancellation
from .config import ConfigStore, DaemonConfig
from .data import CSVLogger, format_calibration
from .engine import ControlLoop
from .errors import ConfigError, OperationCancelled
from .models import PowerEvent
from .platform import MonitoringPlatform
from .policies import available_policies, build_policy
from .policies import base as policy_base

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.json"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

EXIT_OK = 0
EXIT_FAILURE = 1


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, verbose: bool = False) -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        try:
            file_handler = RotatingFileHandler(log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
        except OSError as e:
            logger.warning("Cannot open log file %s: %s", log_file, e)
            return
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def build_adapter(config: DaemonConfig, simulate: bool = False) -> PlatformAdapter:
    if simulate:
        return SimulatedAdapter.from_config(config)
    return HwmonAdapter(config.hwmon_root)


def install_signal_handlers(cancellation: Cancellation, loop: Optional[ControlLoop] = None) -> None:
    def handle_stop(signum, frame):
        logger.info("Received signal %s, shutting down...", signum)
        cancellation.cancel()

    signal.signal(signal.SIGTERM, handle_stop)
    signal.signal(signal.SIGINT, handle_stop)

    if loop is not None:
        # system sleep hooks signal us before suspend and after resume
        signal.signal(signal.SIGUSR1, lambda signum, frame: loop.post_event(PowerEvent.SUSPEND))
        signal.signal(signal.SIGUSR2, lambda signum, frame: loop.post_event(PowerEvent.RESUME))


def run_daemon(config: DaemonConfig, simulate: bool = False) -> int:
    csv_logger = CSVLogger.from_config(config) if config.csv_log else None
    policy = build_policy(config.policy, config)
    adapter = build_adapter(config, simulate)
    try:
        platform = MonitoringPlatform(config, adapter)
    except Exception:
        adapter.close()
        policy.close()
        raise
    cancellation = Cancellation()
    loop = ControlLoop(platform, policy, cancellation, csv_logger)
    install_signal_handlers(cancellation, loop)
    loop.run()
    return EXIT_OK


def run_calibration(config: DaemonConfig, store: ConfigStore, target: str = "all", simulate: bool = False) -> int:
    aliases = None if target == "all" else [target]
    cancellation = Cancellation()
    install_signal_handlers(cancellation)
    with build_adapter(config, simulate) as adapter:
        engine = CalibrationEngine(config, adapter, store, cancellation)
        try:
            ok = engine.run(aliases)
        except OperationCancelled:
            return EXIT_OK
    if not ok:
        return EXIT_FAILURE
    for control in config.controls:
        if aliases is None or control.alias in aliases:
            print(format_calibration(control))
    return EXIT_OK


def list_sensors(config: DaemonConfig, simulate: bool = False) -> int:
    logger.info("Listing all available sensors")
    with build_adapter(config, simulate) as adapter:
        adapter.list_all_sensors()
    logger.info("Sensor listing complete")
    return EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fan control daemon with rate limiting, start/stop hysteresis and calibration.")
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to the JSON configuration file",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use simulated fans instead of hardware",
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("run", help="Run the control loop (default)")
    calibrate = commands.add_parser("calibrate", help="Calibrate min start/stop and rpm curve")
    calibrate.add_argument("control", nargs="?", default="all", help="Control alias or 'all'")
    commands.add_parser("list-sensors", help="List all available sensors and exit")
    commands.add_parser("list-policies", help="List available control policies and exit")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    command = args.command or "run"

    if command == "list-policies":
        print("Available policies:")
        for name in available_policies():
            print(f"- {name}: {policy_base.POLICY_REGISTRY[name].description}")
        return EXIT_OK

    setup_logging(verbose=args.verbose)
    store = ConfigStore(args.config)
    try:
        config = store.load()
    except ConfigError as exc:
        logger.error("Failed to load configuration: %s", exc)
        return EXIT_FAILURE
    setup_logging(config.log_level, config.log_file, args.verbose)

    try:
        if command == "list-sensors":
            return list_sensors(config, args.simulate)
        if command == "calibrate":
            return run_calibration(config, store, args.control, args.simulate)
        return run_daemon(config, args.simulate)
    except (ConfigError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE
    except Exception:
        logger.exception("Unexpected error")
        return EXIT_FAILURE


__all__ = ["main", "build_arg_parser", "run_daemon", "run_calibration", "setup_logging"]
