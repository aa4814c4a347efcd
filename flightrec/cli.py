"""Command line interface of the network flight recorder."""

from __future__ import annotations

import argparse
import logging
import os
import posixpath
import sys
from email.utils import parseaddr
from typing import Any, Optional, Sequence

from flightrec.api.client import VERSION, AlphaSOCClient
from flightrec.config import Config, load_config

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def default_config_path() -> str:
    """Location of the configuration file when none is given."""
    base = "/etc/"
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA", "")
    return posixpath.join(base, "nfr", "config.yml")


def _configure_logging(file: str, level: str) -> None:
    if file == "stdout":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif file == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(file, mode="a")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger = logging.getLogger("flightrec")
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler)
    logger.setLevel(_LOG_LEVELS.get(level, logging.INFO))


def create_config_and_client(config_path: Optional[str], check_key: bool) -> tuple[Config, AlphaSOCClient]:
    """Load the configuration, set up logging and build the API client.

    With ``check_key`` the API key is verified against the engine.
    """
    cfg = load_config(config_path)
    _configure_logging(cfg.log.file, cfg.log.level)
    client = AlphaSOCClient(cfg.engine.host, cfg.engine.api_key)
    if check_key:
        client.check_key()
    return cfg, client


def account_status(client: Any) -> None:
    """Print whether the account is registered and whether it has expired."""
    try:
        status = client.account_status()
    except Exception as exc:
        raise RuntimeError(f"get account status failed: {exc}") from exc
    print(f"Account registered: {str(bool(status.registered)).lower()}")
    print(f"Account expired: {str(bool(status.expired)).lower()}")


def account_key_reset(client: Any, email: str) -> None:
    """Ask the engine to send an API key reset link to the address."""
    client.key_reset(email)
    print("Check your email and click the reset link to get new API key")


def _parse_email(text: str) -> str:
    _, address = parseaddr(text)
    local, at, domain = address.rpartition("@")
    if not at or not local or not domain or " " in address:
        raise ValueError(f"invalid email {text}")
    return address


def _run_version(args: argparse.Namespace) -> None:
    print(f"nfr version {VERSION}")


def _run_account_status(args: argparse.Namespace) -> None:
    _, client = create_config_and_client(args.config, False)
    account_status(client)


def _run_account_reset(args: argparse.Namespace) -> None:
    if len(args.email) != 1:
        raise ValueError("email is required")
    address = _parse_email(args.email[0])
    _, client = create_config_and_client(args.config, False)
    account_key_reset(client, address)


def _show_help(parser: argparse.ArgumentParser):
    def handler(args: argparse.Namespace) -> None:
        parser.print_help()

    return handler


def build_parser() -> argparse.ArgumentParser:
    """The argument parser with every command."""
    config_flag = argparse.ArgumentParser(add_help=False)
    config_flag.add_argument(
        "-c", "--config", default=argparse.SUPPRESS, help="Config path for nfr"
    )

    parser = argparse.ArgumentParser(
        prog="nfr",
        description=(
            "Network Flight Recorder (NFR) is an application which captures network traffic "
            "and provides deep analysis and alerting of suspicious events, identifying gaps "
            "in your security controls, highlighting targeted attacks and policy violations."
        ),
    )
    parser.add_argument("-c", "--config", default=default_config_path(), help="Config path for nfr")
    parser.set_defaults(handler=_show_help(parser))
    commands = parser.add_subparsers(dest="command", metavar="account|version")

    version = commands.add_parser(
        "version", parents=[config_flag], help="Show the NFR binary version"
    )
    version.set_defaults(handler=_run_version)

    account = commands.add_parser("account", parents=[config_flag], help="Manage AlphaSOC account")
    account.set_defaults(handler=_show_help(account))
    account_commands = account.add_subparsers(dest="account_command", metavar="status|reset")

    status = account_commands.add_parser(
        "status",
        parents=[config_flag],
        help="Show the status of your AlphaSOC API key and license",
    )
    status.set_defaults(handler=_run_account_status)

    reset = account_commands.add_parser(
        "reset",
        parents=[config_flag],
        help="Reset the API key associated with a given email address",
    )
    reset.add_argument("email", nargs="*")
    reset.set_defaults(handler=_run_account_reset)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.handler(args)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())