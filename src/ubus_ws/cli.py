#!/usr/bin/env python3
"""
ubus-ws CLI

Run ubus calls against a WebSocket daemon from the shell.

Usage:
    ubus-ws login HOST                         - Check that login succeeds
    ubus-ws call HOST OBJECT METHOD [ARGS]     - Call a method, print the reply as JSON
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click

from .client import UbusClient
from .config import configure_from_env
from .errors import UbusError


# Color codes for terminal output
class Colors:
    RESET = "\x1b[0m"
    GREEN = "\x1b[32m"
    RED = "\x1b[31m"


def print_error(message: str, error: Exception | None = None) -> None:
    """Print error message."""
    click.echo(f"{Colors.RED}Error:{Colors.RESET} {message}", err=True)
    if error and str(error):
        click.echo(str(error), err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.echo(f"{Colors.GREEN}[ok]{Colors.RESET} {message}")


def run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


def connection_options(fn: Any) -> Any:
    """Options shared by every command that opens a session."""
    fn = click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=None,
        help="Login timeout in seconds",
    )(fn)
    fn = click.option(
        "--password", envvar="UBUS_WS_PASSWORD", required=True, help="ubus session password"
    )(fn)
    fn = click.option(
        "--username", envvar="UBUS_WS_USERNAME", required=True, help="ubus session user"
    )(fn)
    fn = click.option("--secure", is_flag=True, help="Use wss://")(fn)
    fn = click.option("--port", type=int, default=None, help="WebSocket port")(fn)
    return fn


@click.group()
@click.option("--debug", is_flag=True, help="Show debug information")
def cli(debug: bool) -> None:
    """
    ubus-ws CLI - call ubus over a WebSocket bridge
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG)

    configure_from_env()


@cli.command()
@click.argument("host")
@connection_options
def login(
    host: str,
    port: int | None,
    secure: bool,
    username: str,
    password: str,
    timeout: float | None,
) -> None:
    """Log in to HOST and report whether a session was established."""
    client = UbusClient(
        host, username, password, port=port, secure=secure or None, connect_timeout=timeout
    )
    run_async(login_command(client))


@cli.command()
@click.argument("host")
@click.argument("object_path")
@click.argument("method")
@click.argument("args", required=False, default="{}")
@connection_options
def call(
    host: str,
    object_path: str,
    method: str,
    args: str,
    port: int | None,
    secure: bool,
    username: str,
    password: str,
    timeout: float | None,
) -> None:
    """Call METHOD on ubus object OBJECT_PATH with JSON ARGS."""
    try:
        call_args = json.loads(args)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="ARGS") from e
    if not isinstance(call_args, dict):
        raise click.BadParameter("must be a JSON object", param_hint="ARGS")

    client = UbusClient(
        host, username, password, port=port, secure=secure or None, connect_timeout=timeout
    )
    run_async(call_command(client, object_path, method, call_args))


async def login_command(client: UbusClient) -> None:
    """Login command."""
    try:
        await client.connect()
        print_success(f"Session established with {client.url}")
        await client.close()
    except UbusError as e:
        print_error("Login failed", e)
        sys.exit(1)


async def call_command(
    client: UbusClient,
    object_path: str,
    method: str,
    args: dict[str, Any],
) -> None:
    """Call command - print the reply payload or status label."""
    try:
        await client.connect()
        try:
            result = await client.call(object_path, method, args)
        finally:
            await client.close()
    except UbusError as e:
        print_error(f"Call {object_path} {method} failed", e)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
