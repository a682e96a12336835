from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import json
import os
from pathlib import Path

import pytest

from leakwatch.schemas.findings import CheckKind, Finding
from leakwatch.services.store import FindingsStore

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _finding(index: int, *, kind: CheckKind = CheckKind.GIT, target: str | None = None) -> Finding:
    target = target or f"https://site{index}.example.com"
    return Finding(
        id=f"fnd_{index}",
        target=target,
        kind=kind,
        url=f"{target}/.git/config",
        discovered_at=BASE_TIME + timedelta(minutes=index),
    )


def test_append_rejects_duplicate_target_and_kind(tmp_path: Path) -> None:
    async def run() -> None:
        store = FindingsStore(tmp_path / "findings.json")
        first = _finding(1)
        assert await store.append(first)
        duplicate = first.model_copy(update={"id": "fnd_other", "url": f"{first.target}/.git/HEAD"})
        assert not await store.append(duplicate)
        assert await store.append(_finding(1, kind=CheckKind.ENV))
        assert [finding.id for finding in store.list_all()] == ["fnd_1", "fnd_1"]
        assert len(store) == 2

    asyncio.run(run())


def test_eviction_keeps_newest_in_order() -> None:
    async def run() -> list[str]:
        store = FindingsStore()
        for index in range(1, 6):
            await store.append(_finding(index))
        evicted = await store.evict_if_over_capacity(3)
        assert [finding.id for finding in evicted] == ["fnd_1", "fnd_2"]
        return [finding.id for finding in store.list_all()]

    assert asyncio.run(run()) == ["fnd_3", "fnd_4", "fnd_5"]


def test_eviction_is_noop_within_capacity() -> None:
    async def run() -> None:
        store = FindingsStore()
        await store.append(_finding(1))
        assert await store.evict_if_over_capacity(3) == []
        with pytest.raises(ValueError):
            await store.evict_if_over_capacity(0)

    asyncio.run(run())


def test_findings_survive_reload(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "findings.json"

    async def run() -> list[Finding]:
        store = FindingsStore(path)
        await store.append(_finding(1))
        await store.append(_finding(2, kind=CheckKind.ENV))
        assert await store.remove("fnd_1") is not None
        assert await store.remove("missing") is None

        reloaded = FindingsStore(path)
        return await reloaded.load()

    findings = asyncio.run(run())
    assert [(finding.id, finding.kind) for finding in findings] == [("fnd_2", CheckKind.ENV)]
    assert findings[0].secrets is None
    persisted = json.loads(path.read_text(encoding="utf-8"))
    assert set(persisted[0]) == {"id", "target", "kind", "url", "discovered_at", "secrets"}


def test_failed_write_leaves_store_and_file_untouched(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "findings.json"

    async def run() -> FindingsStore:
        store = FindingsStore(path)
        await store.append(_finding(1))

        def broken_replace(src: str, dst: str) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        assert not await store.append(_finding(2))
        assert not await store.clear()
        return store

    store = asyncio.run(run())
    assert [finding.id for finding in store.list_all()] == ["fnd_1"]
    assert [item["id"] for item in json.loads(path.read_text(encoding="utf-8"))] == ["fnd_1"]
    assert [entry.name for entry in tmp_path.iterdir()] == ["findings.json"]


def test_corrupt_file_loads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "findings.json"
    path.write_text("{not json", encoding="utf-8")

    assert asyncio.run(FindingsStore(path).load()) == []
