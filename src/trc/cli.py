"""TRC CLI - start the remote cache server or inspect its configuration.

Usage:
    trc [-c PATH]                 Start the server
    trc [-c PATH] --print-config  Print the resolved config (secrets masked)
    trc [-c PATH] --check-config  Validate the config and exit
    trc -v                        Print version

Config source precedence: TRC_CONFIG (inline text), TRC_CONFIG_PATH,
--config, ./trc.yaml.

Exit codes:
    0: Success
    1: Invalid configuration
    2: Usage error / Internal error
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping

import uvicorn

from trc import __version__
from trc.api.main import create_app
from trc.config.errors import ConfigError
from trc.config.loader import load_resolved_config, resolve_config_input, serialize_config
from trc.config.models import TrcConfig
from trc.observability.logs import configure_logging

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="trc",
        description="TRC - remote build cache server",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        default=None,
        help="Path to config file (YAML or JSON)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--print-config",
        action="store_true",
        help="Print resolved config and exit",
    )
    mode.add_argument(
        "--check-config",
        action="store_true",
        help="Validate config and exit",
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=__version__,
        help="Print version",
    )
    return parser


def serve(config: TrcConfig) -> None:
    """Configure logging, build the app and run it until interrupted."""
    configure_logging(config.logging)
    app = create_app(config)

    host, port = config.server.host, config.server.port
    print(f"TRC server running on http://{host}:{port}")
    logger.info("Starting server", extra={"host": host, "port": port})

    uvicorn.run(app, host=host, port=port, log_config=None)


def main(argv: list[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
        env: Environment mapping (defaults to a copy of os.environ).

    Returns:
        Process exit code.
    """
    parser = create_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 2

    env = dict(os.environ) if env is None else env

    try:
        resolved = resolve_config_input(args.config, env)
        for warning in resolved.warnings:
            print(warning, file=sys.stderr)

        config = load_resolved_config(resolved.input, env)

        if args.print_config:
            output = serialize_config(config)
            sys.stdout.write(output if output.endswith("\n") else f"{output}\n")
            return 0

        if args.check_config:
            print("Config OK")
            return 0

        serve(config)
        return 0

    except ConfigError as e:
        print(e.format(), file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
