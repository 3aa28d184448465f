import argparse
from pathlib import Path
from typing import NamedTuple

from pactd.daemon.daemon import Daemon
from pactd.logging_config import get_logger, setup_structured_logging
from pactd.service.protocols import ServiceManagerConfig

logger = get_logger(__name__)


class CliArgs(NamedTuple):
    port: int
    host: str
    bin_dir: Path | None
    log_file: Path | None
    log_level: str
    console_output: bool
    stop_grace_seconds: float


def parse_args(argv: list[str] | None = None) -> CliArgs:
    parser = argparse.ArgumentParser(description="Pact daemon: manages mock services and provider verification")
    parser.add_argument("--port", "-p", type=int, default=6666, help="Port to run the daemon on (default: 6666)")
    parser.add_argument("--host", default="localhost", help="Address to bind (default: localhost)")
    parser.add_argument("--bin-dir", type=Path, help="Directory containing the pact-* executables")
    parser.add_argument("--log-file", type=Path, help="Path to log file for structured logging with rotation")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level (default: INFO)")
    parser.add_argument("--no-console", action="store_true", help="Disable console logging output")
    parser.add_argument("--stop-grace-seconds", type=float, default=5.0,
                        help="Seconds to wait for a process to exit before killing it (default: 5)")

    args = parser.parse_args(argv)

    return CliArgs(
        port=args.port,
        host=args.host,
        bin_dir=args.bin_dir,
        log_file=args.log_file,
        log_level=args.log_level,
        console_output=not args.no_console,
        stop_grace_seconds=args.stop_grace_seconds,
    )


def main(argv: list[str] | None = None) -> None:
    cli_args = parse_args(argv)

    setup_structured_logging(
        log_file_path=cli_args.log_file,
        log_level=cli_args.log_level,
        console_output=cli_args.console_output,
    )

    if cli_args.bin_dir is not None and not cli_args.bin_dir.is_dir():
        raise SystemExit(f"--bin-dir must be a directory: {cli_args.bin_dir}")

    daemon = Daemon(
        config=ServiceManagerConfig(
            bin_dir=cli_args.bin_dir,
            stop_grace_seconds=cli_args.stop_grace_seconds,
        ),
    )
    daemon.start_daemon(port=cli_args.port, host=cli_args.host)
    logger.info("Daemon exited")


if __name__ == "__main__":
    main()
