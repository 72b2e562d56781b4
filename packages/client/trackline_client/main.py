"""
Client CLI entry point.

Loads configuration, configures logging, and runs one command against the API.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog

from .api import TrackerAPIError, TrackerClient
from .config import ClientConfig, load_config
from .optimistic import OptimisticMutationCoordinator


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


async def cmd_search(client: TrackerClient, query: str) -> int:
    results = await client.search(query)
    for r in results:
        print(f"[{r.type}] {r.title} ({r.id})")
    if not results:
        print("No results.")
    return 0


async def cmd_favorite(
    client: TrackerClient, config: ClientConfig, project_id: str
) -> int:
    # No local state to update, so only the durable half of the protocol runs.
    coordinator = OptimisticMutationCoordinator(
        None, name="cli", mutation_timeout=config.optimistic.mutation_timeout_seconds
    )
    result = await coordinator.submit_durable_mutation(
        lambda: client.toggle_favorite(project_id)
    )
    if result.success:
        state = "favorited" if (result.data or {}).get("isFavorite") else "unfavorited"
        print(f"Project {project_id} {state}.")
        return 0
    print(f"Error: {result.error}", file=sys.stderr)
    return 1


async def _run_command(args: argparse.Namespace, config: ClientConfig) -> int:
    async with TrackerClient.from_config(config) as client:
        if args.command == "search":
            return await cmd_search(client, " ".join(args.query))
        return await cmd_favorite(client, config, args.project_id)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trackline command line client")
    parser.add_argument(
        "-c", "--config",
        default="trackline.yaml",
        help="Path to configuration file (default: trackline.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search issues, projects and teams")
    search.add_argument("query", nargs="+")

    favorite = sub.add_parser("favorite", help="Toggle a project favorite")
    favorite.add_argument("project_id")
    return parser


def run(argv: list[str] | None = None) -> None:
    """CLI entry point for the client."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.debug("client.config_loaded", config_path=args.config, server=config.server.url)

    try:
        code = asyncio.run(_run_command(args, config))
    except TrackerAPIError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        code = 1
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    run()
