"""Capacity-bounded findings list persisted as a JSON document."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
import tempfile

from pydantic import TypeAdapter, ValidationError

from leakwatch.schemas.findings import CheckKind, Finding

logger = logging.getLogger(__name__)

_FINDINGS_ADAPTER = TypeAdapter(list[Finding])


class FindingsStore:
    """Ordered findings, at most one per (target, kind).

    Every mutation holds the lock while it builds the new list, writes it to
    disk and only then swaps it in, so a failed write leaves both the file
    and the in-memory view untouched.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._findings: list[Finding] = []
        self._lock = asyncio.Lock()

    async def load(self) -> list[Finding]:
        async with self._lock:
            if self.path is None:
                return list(self._findings)
            try:
                self._findings = await asyncio.to_thread(_read_findings, self.path)
            except (OSError, ValueError, ValidationError):
                logger.exception("could not load findings from %s; starting empty", self.path)
                self._findings = []
            return list(self._findings)

    def list_all(self) -> list[Finding]:
        return list(self._findings)

    def get(self, finding_id: str) -> Finding | None:
        return next((finding for finding in self._findings if finding.id == finding_id), None)

    def has(self, target: str, kind: CheckKind) -> bool:
        return any(finding.dedup_key == (target, kind) for finding in self._findings)

    def __len__(self) -> int:
        return len(self._findings)

    async def append(self, finding: Finding) -> bool:
        async with self._lock:
            if self.has(finding.target, finding.kind):
                return False
            return await self._commit([*self._findings, finding])

    async def evict_if_over_capacity(self, max_findings: int) -> list[Finding]:
        if max_findings <= 0:
            raise ValueError("max_findings must be positive")
        async with self._lock:
            overflow = len(self._findings) - max_findings
            if overflow <= 0:
                return []
            evicted = self._findings[:overflow]
            if not await self._commit(self._findings[overflow:]):
                return []
            logger.info("evicted %s oldest findings (capacity=%s)", len(evicted), max_findings)
            return evicted

    async def remove(self, finding_id: str) -> Finding | None:
        async with self._lock:
            removed = self.get(finding_id)
            if removed is None:
                return None
            remaining = [finding for finding in self._findings if finding.id != finding_id]
            if not await self._commit(remaining):
                return None
            return removed

    async def clear(self) -> bool:
        async with self._lock:
            return await self._commit([])

    async def _commit(self, updated: list[Finding]) -> bool:
        if self.path is not None:
            try:
                await asyncio.to_thread(_write_findings, self.path, updated)
            except OSError:
                logger.exception("could not persist %s findings to %s", len(updated), self.path)
                return False
        self._findings = updated
        return True


def _read_findings(path: Path) -> list[Finding]:
    if not path.exists():
        return []
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return []
    return _FINDINGS_ADAPTER.validate_python(json.loads(raw))


def _write_findings(path: Path, findings: list[Finding]) -> None:
    payload = _FINDINGS_ADAPTER.dump_json(findings, indent=2)
    write_atomic(path, payload)


def write_atomic(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise
