# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SharedKey CLI.

Subcommands:

* ``init``          — create a stub config file
* ``check``         — load and validate the config file
* ``canonicalize``  — print the canonical string for a request
* ``sign``          — print the headers a signed request carries
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from sharedkey.canonical import canonicalize_request
from sharedkey.config import (
    ConfigError,
    SharedKeyConfig,
    decode_secret,
    get_config_path,
)
from sharedkey.logging import configure_logging
from sharedkey.request import HttpRequest
from sharedkey.signing import sign_request


_USAGE = """\
usage: sharedkey <command> [args]

commands:
  init              Create a stub config file
  check             Load and validate the config file
  canonicalize      Print the canonical string for a request
  sign              Print the headers for a signed request

Run 'sharedkey <command> --help' for command-specific help.\
"""

#: Stub configuration template written by ``sharedkey init``.
_STUB_CONFIG = """\
# SharedKey configuration
#
# Secrets are base64-encoded keys.  Use !env to read them from the
# environment (or from ~/.config/sharedkey/.env).

validation:
  max_message_age: 300
  clock_skew: 0

accounts:
  my-account:
    secret: !env MY_ACCOUNT_SECRET

# client:
#   account: my-account
#   secret: !env MY_ACCOUNT_SECRET
"""


def _request_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("method", help="HTTP method")
    parser.add_argument("url", help="request URL or /path?query")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="request header (repeatable)",
    )
    body = parser.add_mutually_exclusive_group()
    body.add_argument("-d", "--data", help="request body")
    body.add_argument(
        "--data-file", type=Path, help="read the request body from a file"
    )
    parser.add_argument("--account", help="account id (default: from config)")
    parser.add_argument("--config", type=Path, help="config file path")
    return parser


def _build_request(args: argparse.Namespace) -> HttpRequest:
    headers: list[tuple[str, str]] = []
    for raw in args.header:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise ConfigError(
                f"Malformed header (expected 'Name: value'): {raw}"
            )
        headers.append((name.strip(), value.strip()))

    if args.data_file is not None:
        try:
            body = args.data_file.read_bytes()
        except OSError as e:
            raise ConfigError(f"Cannot read {args.data_file}: {e}") from e
    elif args.data is not None:
        body = args.data.encode("utf-8")
    else:
        body = b""
    return HttpRequest.from_url(args.method, args.url, headers, body)


def _client_credentials(
    args: argparse.Namespace, secret: str | None = None
) -> tuple[str, bytes | None]:
    """Resolve the account id and key from arguments or the config file.

    Returns:
        ``(account_id, key)``; the key is None if the account is unknown.

    Raises:
        ConfigError: If the config cannot be loaded or names no account.
    """
    if secret is not None:
        if not args.account:
            raise ConfigError("--secret requires --account")
        return args.account, decode_secret(secret, name="--secret")

    config = SharedKeyConfig.from_yaml(args.config)
    client = config.client
    if args.account is None:
        if client is None:
            raise ConfigError(
                "No account given and no 'client' section in the config"
            )
        return client.account_id, client.secret
    if client is not None and client.account_id == args.account:
        return client.account_id, client.secret
    account = config.accounts.get(args.account)
    return args.account, account.secret if account else None


def cmd_init(argv: list[str]) -> int:
    """Create a stub config file if none exists.

    Returns:
        Exit code (always 0).
    """
    parser = argparse.ArgumentParser(prog="sharedkey init")
    parser.add_argument("--config", type=Path, help="config file path")
    args = parser.parse_args(argv)

    config_path = args.config or get_config_path()
    if config_path.exists():
        print(f"Config already exists: {config_path}")
        return 0

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STUB_CONFIG)
    print(f"Created stub config: {config_path}")
    return 0


def cmd_check(argv: list[str]) -> int:
    """Load the config file and report what it contains.

    Returns:
        0 if the config loads, 1 otherwise.
    """
    parser = argparse.ArgumentParser(prog="sharedkey check")
    parser.add_argument("--config", type=Path, help="config file path")
    args = parser.parse_args(argv)

    config_path = args.config or get_config_path()
    print(f"Config file: {config_path}")
    try:
        config = SharedKeyConfig.from_yaml(config_path)
    except ConfigError as e:
        print(f"Status:      error — {e}")
        return 1

    accounts = ", ".join(sorted(config.accounts)) or "none"
    print("Status:      ok")
    print(f"Accounts:    {len(config.accounts)} ({accounts})")
    print(f"Max age:     {config.validation.max_message_age}")
    print(f"Clock skew:  {config.validation.clock_skew}")
    if config.client is not None:
        print(f"Client:      {config.client.account_id}")
    return 0


def cmd_canonicalize(argv: list[str]) -> int:
    """Print the canonical string for a request.

    Lines are printed as-is; an empty line marks an absent field.

    Returns:
        0 on success, 1 on invalid input.
    """
    parser = _request_parser(
        "sharedkey canonicalize", "Print the canonical string for a request."
    )
    args = parser.parse_args(argv)
    try:
        request = _build_request(args)
        account_id = args.account or _client_credentials(args)[0]
    except ConfigError as e:
        print(f"sharedkey: {e}", file=sys.stderr)
        return 1

    sys.stdout.write(canonicalize_request(request, account_id))
    return 0


def cmd_sign(argv: list[str]) -> int:
    """Print the headers a signed request carries.

    Returns:
        0 on success, 1 on invalid input or unknown account.
    """
    parser = _request_parser(
        "sharedkey sign", "Print the headers for a signed request."
    )
    parser.add_argument(
        "--secret",
        help="base64 key (default: from config; prefer the config's !env)",
    )
    args = parser.parse_args(argv)
    try:
        request = _build_request(args)
        account_id, key = _client_credentials(args, args.secret)
        if key is None:
            raise ConfigError(f"No key configured for account '{account_id}'")
        signed = sign_request(request, account_id, key)
    except ConfigError as e:
        print(f"sharedkey: {e}", file=sys.stderr)
        return 1

    for name in ("Date", "Content-MD5", "Authorization"):
        value = signed.header(name)
        if value is not None:
            print(f"{name}: {value}")
    return 0


# ── CLI plumbing ────────────────────────────────────────────────────


_DISPATCH: dict[str, str] = {
    "init": "cmd_init",
    "check": "cmd_check",
    "canonicalize": "cmd_canonicalize",
    "sign": "cmd_sign",
}


def main(argv: list[str] | None = None) -> int:
    """Run a subcommand and return its exit code."""
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] == "--help":
        print(_USAGE)
        return 0

    if argv[0] not in _DISPATCH:
        print(f"sharedkey: unknown command '{argv[0]}'", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        return 2

    configure_logging(level=logging.WARNING)

    # Look up handler by name so tests can mock individual commands.
    import sharedkey.cli as _self

    handler = getattr(_self, _DISPATCH[argv[0]])
    return handler(argv[1:])


def cli() -> None:
    """Entry point for the ``sharedkey`` console script."""
    sys.exit(main())
