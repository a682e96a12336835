from __future__ import annotations

from collections.abc import Callable

from leakwatch.schemas.findings import CheckKind

FindingLookup = Callable[[str, CheckKind], bool]


class TargetLedger:
    """Session-scoped record of which (target, kind) pairs were already probed.

    `should_probe` claims the pair synchronously, before the caller awaits
    anything, so a second trigger for the same origin that arrives while the
    first probe is in flight sees the claim and backs off.
    """

    def __init__(self, has_finding: FindingLookup | None = None) -> None:
        self._probed: set[tuple[str, CheckKind]] = set()
        self._has_finding = has_finding

    def should_probe(self, target: str, kind: CheckKind) -> bool:
        key = (target, kind)
        if key in self._probed:
            return False
        if self._has_finding is not None and self._has_finding(target, kind):
            return False
        self._probed.add(key)
        return True

    def forget(self, target: str) -> None:
        self._probed = {key for key in self._probed if key[0] != target}

    def clear(self) -> None:
        self._probed.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._probed

    def __len__(self) -> int:
        return len(self._probed)
