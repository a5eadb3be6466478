"""CLI entry point: run a dev node until interrupted."""

import argparse
import signal
import threading
from pathlib import Path

import structlog

from .config import Config, find_config, load_config
from .exceptions import LaunchError, TerminationFailure
from .supervisor import ProcessSupervisor


def setup_signal_handlers(stop: threading.Event) -> None:
    """Set ``stop`` on SIGINT or SIGTERM."""
    logger = structlog.get_logger()

    def handler(signum: int, frame) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("signal_received", signal=sig_name)
        stop.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Launch a local dev node and keep it running until interrupted"
    )
    parser.add_argument("--config", type=str, help="Path or name of TOML config file")
    parser.add_argument("--executable", type=str, default=None, help="Node binary (overrides config)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (default: probe)")
    parser.add_argument("--block-time", type=float, default=None, help="Seconds between blocks")
    parser.add_argument("--mnemonic", type=str, default=None, help="Seed phrase for accounts")
    parser.add_argument("--fork", type=str, default=None, help="Fork URL, optionally URL@block")
    parser.add_argument("--timeout-ms", type=int, default=None, help="Startup timeout")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("extra", nargs=argparse.REMAINDER, help="Extra node args after --")
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Return ``config`` with CLI flags applied on top."""
    supervisor = config.supervisor.model_copy()
    if args.executable is not None:
        supervisor.executable = args.executable
    if args.timeout_ms is not None:
        supervisor.startup_timeout_ms = args.timeout_ms

    launch_update = {}
    if args.port is not None:
        launch_update["port"] = args.port
    if args.block_time is not None:
        launch_update["block_time"] = args.block_time
    if args.mnemonic is not None:
        launch_update["mnemonic"] = args.mnemonic
    if args.fork is not None:
        launch_update["fork"] = args.fork
    extra = args.extra[1:] if args.extra[:1] == ["--"] else args.extra
    if extra:
        launch_update["args"] = (*config.launch.args, *extra)

    return Config(supervisor=supervisor, launch=config.launch.model_copy(update=launch_update))


def main(argv: list[str] | None = None) -> None:
    """Run the dev node CLI."""
    args = build_parser().parse_args(argv)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if args.verbose else 20),
    )

    logger = structlog.get_logger()

    if args.config:
        try:
            config_path = find_config(args.config)
        except FileNotFoundError:
            config_path = Path(args.config)
            if not config_path.exists():
                logger.error("config_not_found", path=args.config)
                raise SystemExit(1)

        config = load_config(config_path)
        logger.info("config_loaded", path=str(config_path))
    else:
        config = Config()
        logger.info("using_default_config")

    config = apply_overrides(config, args)

    try:
        node = ProcessSupervisor(config.supervisor).spawn(config.launch)
    except LaunchError as e:
        logger.error("launch_failed", error=str(e), error_type=type(e).__name__)
        raise SystemExit(1)

    stop = threading.Event()
    setup_signal_handlers(stop)

    try:
        with node:
            print(f"HTTP endpoint: {node.endpoint}")
            print(f"WS endpoint:   {node.ws_endpoint}")
            for i, key in enumerate(node.keys):
                print(f"({i}) {key.address} {key.secret_key_hex}")

            try:
                stop.wait()
            except KeyboardInterrupt:
                logger.info("keyboard_interrupt")
    except TerminationFailure as e:
        logger.error("termination_failed", error=str(e))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
