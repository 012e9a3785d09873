"""CLI entrypoint for running and checking the warehouse gateway."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Iterable

import uvicorn

from warehouse_gateway.serving.http.fastapi import load_api_config

LOG = logging.getLogger("warehouse_gateway.cli")

APP_FACTORY = "warehouse_gateway.serving.http.fastapi:create_app"

CommandHandler = Callable[..., int]


def _setup_logging(verbosity: int) -> None:
    """
    Configure logging based on -v/--verbose count.

    0 -> WARNING, 1 -> INFO, 2+ -> DEBUG.
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _register_serve_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
    p_serve.add_argument(
        "--host",
        default=None,
        help="Listen host (default: HOST or 0.0.0.0).",
    )
    p_serve.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port (default: PORT or 3000).",
    )
    p_serve.add_argument(
        "--forwarded-allow-ips",
        default=None,
        help="Comma separated proxy addresses trusted for X-Forwarded-For.",
    )
    p_serve.set_defaults(func=_cmd_serve)


def _register_check_config_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    p_check = subparsers.add_parser(
        "check-config",
        help="Validate environment configuration and print it with secrets masked.",
    )
    p_check.set_defaults(func=_cmd_check_config)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="warehouse-gateway",
        description="HTTP gateway for warehouse queries and catalog discovery",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    _register_serve_command(subparsers)
    _register_check_config_command(subparsers)

    return parser


def make_parser() -> argparse.ArgumentParser:
    """
    Public helper to construct the CLI parser (for tests/tools).

    Returns
    -------
    argparse.ArgumentParser
        Configured parser with all subcommands registered.
    """
    return _make_parser()


def _cmd_serve(args: argparse.Namespace) -> int:
    cfg = load_api_config()
    host = args.host or cfg.host
    port = args.port or cfg.port
    LOG.info("Starting API on %s:%s for project %s", host, port, cfg.project_id)
    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=host,
        port=port,
        proxy_headers=True,
        forwarded_allow_ips=args.forwarded_allow_ips,
        log_config=None,
    )
    return 0


def _cmd_check_config(_args: argparse.Namespace) -> int:
    try:
        cfg = load_api_config()
    except ValueError as exc:
        LOG.error("Invalid configuration: %s", exc)  # noqa: TRY400
        return 1
    sys.stdout.write(json.dumps(cfg.redacted(), indent=2, sort_keys=True) + "\n")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """
    CLI entrypoint for the warehouse gateway.

    Parameters
    ----------
    argv:
        Optional argument list (defaults to sys.argv).

    Returns
    -------
    int
        Exit code (0 on success).
    """
    parser = _make_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    _setup_logging(args.verbose)

    try:
        func: CommandHandler = args.func
        return int(func(args))
    except Exception as exc:  # noqa: BLE001
        LOG.error("Command %s failed: %s", args.command, exc)  # noqa: TRY400
        return 1


if __name__ == "__main__":
    sys.exit(main())
