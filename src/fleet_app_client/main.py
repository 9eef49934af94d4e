"""
Command-line entry point for the fleet App Service client.

This module is responsible for:
- Parsing command-line arguments and loading the YAML configuration.
- Configuring logging for the whole application.
- Opening the RPC connection and running one command against the service:
  `tree` prints every organization with its locations, robots and parts,
  `tail` follows the logs of one robot part until interrupted.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from fleet_app_client.client.app import AppClient
from fleet_app_client.client.connection import RPCConnection
from fleet_app_client.config_loader import DEFAULT_CONFIG_PATH, load_config
from fleet_app_client.errors import RPCError
from fleet_app_client.models import LogEntry


def setup_logging(level: int = logging.INFO):
    """
    Configures the global logging settings for the entire application.
    This should be called as early as possible during startup.
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)-8s] %(name)s.%(funcName)s: %(message)s'
    )

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleet-app-client", description="Query the fleet App Service.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the YAML configuration file.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("tree", help="Print organizations, locations, robots and parts.")

    tail = commands.add_parser("tail", help="Follow the logs of a robot part.")
    tail.add_argument("part_id")
    tail.add_argument("--errors-only", action="store_true")
    return parser


def format_log_entry(entry: LogEntry) -> str:
    timestamp = entry.time.isoformat() if entry.time else "-"
    return f"{timestamp} {entry.level.upper():<7} {entry.logger_name}: {entry.message}"


async def print_tree(app: AppClient):
    """Walks the organization hierarchy, one remote call per level and parent."""
    for organization in await app.list_organizations():
        print(f"{organization.name} ({organization.id})")
        for location in await app.list_locations(organization):
            print(f"  {location.name} ({location.id})")
            for robot in await app.list_robots(location):
                print(f"    {robot.name} ({robot.id})")
                for part in await app.list_robot_parts(robot):
                    marker = " [main]" if part.main_part else ""
                    print(f"      {part.name} ({part.id}){marker}")


async def tail_part_logs(app: AppClient, part_id: str, errors_only: bool = False):
    """Prints log batches of one part until cancelled or the service closes the stream."""
    part = await app.get_robot_part(part_id)
    logger.info(f"Tailing logs of {part.name} ({part.id}). Press Ctrl+C to exit.")

    stream = app.tail_logs(part, errors_only=errors_only)
    async with stream.subscribe() as subscription:
        async for batch in subscription:
            # Batches arrive newest first; print them in reading order.
            for entry in reversed(batch):
                print(format_log_entry(entry))


async def shutdown(signal_name: str, task: asyncio.Task):
    """Graceful shutdown handler: cancels the running command."""
    logger.info(f"Received exit signal {signal_name}...")
    task.cancel()


async def run_command(app: AppClient, args: argparse.Namespace):
    if args.command == "tree":
        await print_tree(app)
        return

    loop = asyncio.get_running_loop()
    tail_task = asyncio.create_task(tail_part_logs(app, args.part_id, errors_only=args.errors_only))

    # Setup Signal Handlers for OS interrupts
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(
            sig,
            lambda s=sig: asyncio.create_task(shutdown(s.name, tail_task))
        )
    try:
        await tail_task
    except asyncio.CancelledError:
        logger.info("Stopped tailing logs.")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


async def main_application_runner(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config)
    try:
        async with RPCConnection(config) as connection:
            await run_command(AppClient.from_connection(connection), args)
    except RPCError as e:
        logger.error(f"Request failed: {e}")
        return 1
    return 0


def run():
    try:
        sys.exit(asyncio.run(main_application_runner()))
    except KeyboardInterrupt:
        # Handled by the signal handler, but good to catch here just in case.
        pass


if __name__ == "__main__":
    run()
