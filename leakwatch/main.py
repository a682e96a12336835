from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import logging
import sys

import httpx
from opentelemetry import trace

from leakwatch.checks.prober import Prober
from leakwatch.core.config import Settings, get_settings
from leakwatch.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from leakwatch.schemas.commands import (
    CheckOrigin,
    ClearFindings,
    Command,
    CommandResult,
    ListFindings,
    RemoveFinding,
    SetPipelineEnabled,
)
from leakwatch.services.commands import CommandDispatcher
from leakwatch.services.coordinator import PipelineCoordinator
from leakwatch.services.settings_source import SettingsSource
from leakwatch.services.sink import LoggingSink
from leakwatch.services.store import FindingsStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leakwatch", description="Probe visited origins for exposed .git and .env files.")
    subcommands = parser.add_subparsers(dest="command", required=True)

    scan = subcommands.add_parser("scan", help="check the origins of the given page URLs")
    scan.add_argument("urls", nargs="+", help="page URLs, or '-' to read one URL per line from stdin")
    subcommands.add_parser("list", help="print stored findings")
    remove = subcommands.add_parser("remove", help="delete one finding by id")
    remove.add_argument("finding_id")
    subcommands.add_parser("clear", help="delete every stored finding")
    subcommands.add_parser("enable", help="turn the pipeline on")
    subcommands.add_parser("disable", help="turn the pipeline off")
    return parser


def commands_from_args(args: argparse.Namespace, stdin: Sequence[str] = ()) -> list[Command]:
    if args.command == "scan":
        urls: list[str] = []
        for value in args.urls:
            if value == "-":
                urls.extend(line.strip() for line in stdin if line.strip())
            else:
                urls.append(value)
        return [CheckOrigin(url=url) for url in urls]
    if args.command == "list":
        return [ListFindings()]
    if args.command == "remove":
        return [RemoveFinding(finding_id=args.finding_id)]
    if args.command == "clear":
        return [ClearFindings()]
    if args.command in {"enable", "disable"}:
        return [SetPipelineEnabled(enabled=args.command == "enable")]
    raise ValueError(f"unknown command: {args.command}")


async def run(commands: Sequence[Command], settings: Settings) -> list[CommandResult]:
    store = FindingsStore(settings.store_path)
    await store.load()
    async with httpx.AsyncClient(timeout=settings.probe_timeout_seconds, follow_redirects=False) as client:
        prober = Prober(
            client=client,
            timeout_seconds=settings.probe_timeout_seconds,
            user_agent=settings.user_agent,
            strict_env=settings.env_strict_identifiers,
        )
        coordinator = PipelineCoordinator(store=store, prober=prober, sink=LoggingSink())
        dispatcher = CommandDispatcher(coordinator, SettingsSource(settings))
        with tracer.start_as_current_span("cli.run"):
            return list(await asyncio.gather(*(dispatcher.dispatch(command) for command in commands)))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(debug=settings.debug)
    telemetry_runtime = setup_telemetry(settings)
    try:
        stdin = sys.stdin if args.command == "scan" and "-" in args.urls else ()
        results = asyncio.run(run(commands_from_args(args, stdin), settings))
    finally:
        shutdown_telemetry(telemetry_runtime)

    for result in results:
        for finding in result.findings:
            print(f"{finding.id}\t{finding.kind.value}\t{finding.url}\t{finding.discovered_at.isoformat()}")
        if not result.ok:
            logger.error("command failed: %s", result.error)
    return 0 if all(result.ok for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
