from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, assert_never

from pydantic import ValidationError

from leakwatch.schemas.commands import (
    COMMAND_ADAPTER,
    CheckOrigin,
    ClearFindings,
    Command,
    CommandResult,
    ListFindings,
    RefreshBadge,
    RemoveFinding,
    SetCheckEnabled,
    SetPipelineEnabled,
)
from leakwatch.schemas.findings import CandidateOriginEvent
from leakwatch.services.coordinator import PipelineCoordinator
from leakwatch.services.settings_source import SettingsSource

logger = logging.getLogger(__name__)


class CommandDispatcher:
    def __init__(self, coordinator: PipelineCoordinator, settings_source: SettingsSource) -> None:
        self.coordinator = coordinator
        self.settings_source = settings_source

    async def dispatch_raw(self, payload: Mapping[str, Any]) -> CommandResult:
        try:
            command = COMMAND_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            logger.debug("rejected malformed command %r: %s", payload, exc)
            return CommandResult(ok=False, error="invalid_command")
        return await self.dispatch(command)

    async def dispatch(self, command: Command) -> CommandResult:
        config = self.settings_source.load()
        if config is None:
            if isinstance(command, (CheckOrigin, SetCheckEnabled)):
                return CommandResult(ok=False, error="config_unavailable")
            # store management only needs the enabled flag for the badge
            config = self.settings_source.defaults()

        if isinstance(command, CheckOrigin):
            created = await self.coordinator.handle_event(CandidateOriginEvent(url=command.url), config)
            return CommandResult(ok=True, findings=created)
        if isinstance(command, ListFindings):
            return CommandResult(ok=True, findings=self.coordinator.store.list_all())
        if isinstance(command, RemoveFinding):
            removed = await self.coordinator.remove(command.finding_id, enabled=config.pipeline_enabled)
            return CommandResult(ok=removed, error=None if removed else "finding_not_removed")
        if isinstance(command, ClearFindings):
            cleared = await self.coordinator.clear(enabled=config.pipeline_enabled)
            return CommandResult(ok=cleared, error=None if cleared else "store_write_failed")
        if isinstance(command, SetPipelineEnabled):
            updated = self.settings_source.update(pipeline_enabled=command.enabled)
            if updated is None:
                return CommandResult(ok=False, error="config_write_failed")
            self.coordinator.refresh_badge(updated.pipeline_enabled)
            return CommandResult(ok=True)
        if isinstance(command, SetCheckEnabled):
            kinds = set(config.enabled_kinds)
            if command.enabled:
                kinds.add(command.kind)
            else:
                kinds.discard(command.kind)
            updated = self.settings_source.update(enabled_kinds=kinds)
            return CommandResult(ok=updated is not None, error=None if updated is not None else "config_write_failed")
        if isinstance(command, RefreshBadge):
            self.coordinator.refresh_badge(config.pipeline_enabled)
            return CommandResult(ok=True)
        assert_never(command)
