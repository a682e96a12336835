from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
import logging
from typing import Protocol

from leakwatch.schemas.findings import Finding

logger = logging.getLogger(__name__)

DISABLED_BADGE_TEXT = "OFF"


class SideEffectSink(Protocol):
    def report_new_findings(self, findings: Sequence[Finding]) -> None: ...

    def set_badge(self, count: int, enabled: bool) -> None: ...


def summarize_findings(findings: Sequence[Finding]) -> tuple[str, str]:
    if not findings:
        raise ValueError("nothing to summarize")
    if len(findings) == 1:
        finding = findings[0]
        return f"{finding.kind.label} found!", f"Found at: {finding.url}"
    return "Multiple exposures found!", f"Found {len(findings)} exposures at: {findings[0].target}"


def badge_text(count: int, enabled: bool) -> str:
    if not enabled:
        return DISABLED_BADGE_TEXT
    return str(count) if count > 0 else ""


class NotificationSink(ABC):
    """Base sink: turns a batch of findings into one notification."""

    def report_new_findings(self, findings: Sequence[Finding]) -> None:
        if not findings:
            return
        title, body = summarize_findings(findings)
        self.notify(title, body)

    @abstractmethod
    def notify(self, title: str, body: str) -> None: ...

    @abstractmethod
    def set_badge(self, count: int, enabled: bool) -> None: ...


class LoggingSink(NotificationSink):
    def notify(self, title: str, body: str) -> None:
        logger.warning("notification title=%r body=%r", title, body)

    def set_badge(self, count: int, enabled: bool) -> None:
        logger.info("badge text=%r count=%s enabled=%s", badge_text(count, enabled), count, enabled)


class RecordingSink(NotificationSink):
    """Keeps every side effect in memory; used by embedders and tests."""

    def __init__(self) -> None:
        self.notifications: list[tuple[str, str]] = []
        self.badges: list[tuple[int, bool]] = []

    def notify(self, title: str, body: str) -> None:
        self.notifications.append((title, body))

    def set_badge(self, count: int, enabled: bool) -> None:
        self.badges.append((count, enabled))

    @property
    def last_badge(self) -> tuple[int, bool] | None:
        return self.badges[-1] if self.badges else None
