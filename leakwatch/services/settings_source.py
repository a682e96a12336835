from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from leakwatch.core.config import Settings
from leakwatch.schemas.findings import PipelineConfig
from leakwatch.services.store import write_atomic

logger = logging.getLogger(__name__)


class SettingsSource:
    """Pipeline configuration read from disk on every call."""

    def __init__(self, settings: Settings, path: str | Path | None = None) -> None:
        self.settings = settings
        self.path = Path(path if path is not None else settings.config_path)

    def defaults(self) -> PipelineConfig:
        return PipelineConfig(
            enabled_kinds=frozenset(self.settings.default_enabled_kinds),
            max_stored_findings=self.settings.default_max_stored_findings,
            notify_on_new=self.settings.default_notify_on_new,
            pipeline_enabled=self.settings.default_pipeline_enabled,
        )

    def load(self) -> PipelineConfig | None:
        try:
            if not self.path.exists():
                return self.defaults()
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return PipelineConfig.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("ignoring unreadable pipeline config %s: %s", self.path, exc)
            return None

    def update(self, **fields: Any) -> PipelineConfig | None:
        current = self.load()
        if current is None:
            return None
        try:
            updated = PipelineConfig.model_validate({**current.model_dump(), **fields})
        except ValidationError as exc:
            logger.warning("rejected pipeline config update %s: %s", sorted(fields), exc)
            return None
        try:
            write_atomic(self.path, updated.model_dump_json(indent=2).encode("utf-8"))
        except OSError:
            logger.exception("could not persist pipeline config to %s", self.path)
            return None
        return updated
