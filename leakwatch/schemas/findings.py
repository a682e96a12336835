from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
import itertools
import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ProbeReason = Literal["matched", "no_match", "redirect", "timeout", "network_error"]

_ID_SEQUENCE = itertools.count(1)


class CheckKind(StrEnum):
    GIT = "git"
    ENV = "env"

    @property
    def label(self) -> str:
        return KIND_LABELS[self]


KIND_LABELS = {
    CheckKind.GIT: "Git repository",
    CheckKind.ENV: "Environment file",
}


@dataclass(slots=True)
class ProbeOutcome:
    kind: CheckKind
    matched: bool
    source_url: str
    reason: ProbeReason
    status_code: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    target: str
    kind: CheckKind
    url: str
    discovered_at: datetime
    secrets: dict[str, Any] | None = None

    @classmethod
    def from_outcome(cls, target: str, outcome: ProbeOutcome, *, secrets: dict[str, Any] | None = None) -> Finding:
        return cls(
            id=new_finding_id(),
            target=target,
            kind=outcome.kind,
            url=outcome.source_url,
            discovered_at=outcome.timestamp,
            secrets=secrets,
        )

    @property
    def dedup_key(self) -> tuple[str, CheckKind]:
        return (self.target, self.kind)


class PipelineConfig(BaseModel):
    enabled_kinds: frozenset[CheckKind]
    max_stored_findings: int = Field(gt=0)
    notify_on_new: bool
    pipeline_enabled: bool

    def ordered_kinds(self) -> list[CheckKind]:
        return [kind for kind in CheckKind if kind in self.enabled_kinds]


class CandidateOriginEvent(BaseModel):
    url: str


def new_finding_id() -> str:
    return f"fnd_{int(time.time() * 1000)}_{next(_ID_SEQUENCE)}"
