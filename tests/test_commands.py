from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from leakwatch.checks.prober import Prober
from leakwatch.core.config import Settings
from leakwatch.schemas.commands import CheckOrigin, CommandResult, ListFindings, RemoveFinding
from leakwatch.schemas.findings import CheckKind
from leakwatch.services.commands import CommandDispatcher
from leakwatch.services.coordinator import PipelineCoordinator
from leakwatch.services.settings_source import SettingsSource
from leakwatch.services.sink import RecordingSink, badge_text
from leakwatch.services.store import FindingsStore


async def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/.env":
        return httpx.Response(status_code=200, text="SECRET_KEY=abc\n", request=request)
    return httpx.Response(status_code=404, request=request)


def _run(tmp_path: Path, scenario: Callable[[CommandDispatcher], Awaitable[Any]]) -> tuple[Any, CommandDispatcher]:
    settings = Settings(config_path=str(tmp_path / "config.json"), store_path=str(tmp_path / "findings.json"))

    async def run() -> tuple[Any, CommandDispatcher]:
        transport = httpx.MockTransport(_handler)
        async with httpx.AsyncClient(transport=transport, follow_redirects=False) as client:
            store = FindingsStore(settings.store_path)
            await store.load()
            coordinator = PipelineCoordinator(store=store, prober=Prober(client=client), sink=RecordingSink())
            dispatcher = CommandDispatcher(coordinator, SettingsSource(settings))
            return await scenario(dispatcher), dispatcher

    return asyncio.run(run())


def _replay(payloads: list[dict[str, Any]]) -> Callable[[CommandDispatcher], Awaitable[list[CommandResult]]]:
    async def scenario(dispatcher: CommandDispatcher) -> list[CommandResult]:
        return [await dispatcher.dispatch_raw(payload) for payload in payloads]

    return scenario


def test_check_list_and_remove(tmp_path: Path) -> None:
    async def scenario(dispatcher: CommandDispatcher) -> list[CommandResult]:
        check = await dispatcher.dispatch(CheckOrigin(url="https://app.example.com/login"))
        listing = await dispatcher.dispatch(ListFindings())
        finding_id = check.findings[0].id
        removed = await dispatcher.dispatch(RemoveFinding(finding_id=finding_id))
        removed_again = await dispatcher.dispatch(RemoveFinding(finding_id=finding_id))
        return [check, listing, removed, removed_again]

    [check, listing, removed, removed_again], dispatcher = _run(tmp_path, scenario)

    assert check.ok and [finding.kind for finding in check.findings] == [CheckKind.ENV]
    assert [finding.id for finding in listing.findings] == [check.findings[0].id]
    assert removed.ok
    assert removed_again.error == "finding_not_removed"
    assert dispatcher.coordinator.sink.badges == [(1, True), (0, True)]
    assert ("https://app.example.com", CheckKind.ENV) not in dispatcher.coordinator.ledger


def test_findings_are_reloaded_in_next_session(tmp_path: Path) -> None:
    _run(tmp_path, _replay([{"type": "check_origin", "url": "https://app.example.com/"}]))

    [listing, recheck], _ = _run(
        tmp_path,
        _replay([{"type": "list_findings"}, {"type": "check_origin", "url": "https://app.example.com/"}]),
    )

    assert [finding.target for finding in listing.findings] == ["https://app.example.com"]
    assert recheck.ok and recheck.findings == []


def test_toggle_commands_persist_config_and_update_badge(tmp_path: Path) -> None:
    results, dispatcher = _run(
        tmp_path,
        _replay(
            [
                {"type": "set_pipeline_enabled", "enabled": False},
                {"type": "check_origin", "url": "https://app.example.com/"},
                {"type": "set_pipeline_enabled", "enabled": True},
                {"type": "set_check_enabled", "kind": "env", "enabled": False},
                {"type": "check_origin", "url": "https://app.example.com/"},
                {"type": "refresh_badge"},
            ]
        ),
    )

    assert all(result.ok for result in results)
    assert all(result.findings == [] for result in results)
    badges = dispatcher.coordinator.sink.badges
    assert badges == [(0, False), (0, True), (0, True)]
    assert badge_text(*badges[0]) == "OFF"
    config = dispatcher.settings_source.load()
    assert config is not None
    assert config.enabled_kinds == frozenset({CheckKind.GIT})
    assert config.pipeline_enabled is True


def test_clear_empties_store_and_allows_reprobe(tmp_path: Path) -> None:
    results, dispatcher = _run(
        tmp_path,
        _replay(
            [
                {"type": "check_origin", "url": "https://app.example.com/"},
                {"type": "clear_findings"},
                {"type": "check_origin", "url": "https://app.example.com/"},
            ]
        ),
    )

    assert [len(result.findings) for result in results] == [1, 0, 1]
    assert len(dispatcher.coordinator.store) == 1


def test_malformed_command_and_config_are_rejected(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text('{"enabled_kinds": ["git"]}', encoding="utf-8")

    results, dispatcher = _run(
        tmp_path,
        _replay(
            [
                {"type": "explode"},
                {"type": "remove_finding"},
                {"type": "check_origin", "url": "https://app.example.com/"},
            ]
        ),
    )

    assert [result.error for result in results] == ["invalid_command", "invalid_command", "config_unavailable"]
    assert dispatcher.settings_source.load() is None
    assert len(dispatcher.coordinator.store) == 0


def test_store_commands_work_with_unreadable_config(tmp_path: Path) -> None:
    async def scenario(dispatcher: CommandDispatcher) -> list[CommandResult]:
        check = await dispatcher.dispatch(CheckOrigin(url="https://app.example.com/"))
        (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
        listing = await dispatcher.dispatch(ListFindings())
        removed = await dispatcher.dispatch(RemoveFinding(finding_id=check.findings[0].id))
        cleared = await dispatcher.dispatch_raw({"type": "clear_findings"})
        toggled = await dispatcher.dispatch_raw({"type": "set_check_enabled", "kind": "git", "enabled": False})
        return [check, listing, removed, cleared, toggled]

    [check, listing, removed, cleared, toggled], dispatcher = _run(tmp_path, scenario)

    assert [finding.id for finding in listing.findings] == [check.findings[0].id]
    assert removed.ok and cleared.ok
    assert toggled.error == "config_unavailable"
    assert len(dispatcher.coordinator.store) == 0
