from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
import logging
from typing import Any

from opentelemetry import trace
from pydantic import ValidationError

from leakwatch.checks.prober import Prober
from leakwatch.core.telemetry import PIPELINE_SPAN_NAME, annotate_pipeline_span
from leakwatch.core.urls import Origin, parse_origin
from leakwatch.schemas.findings import CandidateOriginEvent, Finding, PipelineConfig, ProbeOutcome
from leakwatch.services.ledger import TargetLedger
from leakwatch.services.sink import SideEffectSink
from leakwatch.services.store import FindingsStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SecretExtractor = Callable[[ProbeOutcome], dict[str, Any] | None]


class PipelineCoordinator:
    """Runs the enabled checks for an origin and records what they find.

    Calls for different origins may overlap freely. Overlapping calls for the
    same origin are kept apart by the ledger claim, not by a lock here.
    """

    def __init__(
        self,
        *,
        store: FindingsStore,
        prober: Prober,
        sink: SideEffectSink,
        ledger: TargetLedger | None = None,
        secret_extractor: SecretExtractor | None = None,
    ) -> None:
        self.store = store
        self.prober = prober
        self.sink = sink
        self.ledger = ledger if ledger is not None else TargetLedger(has_finding=store.has)
        self.secret_extractor = secret_extractor

    async def handle(self, origin: Origin, config: PipelineConfig) -> list[Finding]:
        if not config.pipeline_enabled:
            return []

        kinds = [kind for kind in config.ordered_kinds() if self.ledger.should_probe(origin.key, kind)]
        if not kinds:
            return []

        with tracer.start_as_current_span(PIPELINE_SPAN_NAME) as span:
            outcomes = await asyncio.gather(*(self.prober.probe(origin, kind) for kind in kinds))

            created: list[Finding] = []
            for outcome in outcomes:
                if not outcome.matched:
                    continue
                secrets = self.secret_extractor(outcome) if self.secret_extractor is not None else None
                finding = Finding.from_outcome(origin.key, outcome, secrets=secrets)
                if await self.store.append(finding):
                    logger.info("new finding kind=%s url=%s", finding.kind.value, finding.url)
                    created.append(finding)
            annotate_pipeline_span(span, origin.key, probed_kinds=len(kinds), new_findings=len(created))

        evicted = await self.store.evict_if_over_capacity(config.max_stored_findings)
        if created or evicted:
            self.refresh_badge(config.pipeline_enabled)
        if created and config.notify_on_new:
            self.sink.report_new_findings(created)
        return created

    async def handle_event(self, event: CandidateOriginEvent | Mapping[str, Any], config: PipelineConfig) -> list[Finding]:
        try:
            parsed_event = event if isinstance(event, CandidateOriginEvent) else CandidateOriginEvent.model_validate(event)
        except ValidationError:
            logger.debug("ignoring malformed candidate-origin event: %r", event)
            return []
        origin = parse_origin(parsed_event.url)
        if origin is None:
            logger.debug("ignoring candidate url without http(s) origin: %r", parsed_event.url)
            return []
        return await self.handle(origin, config)

    async def remove(self, finding_id: str, *, enabled: bool = True) -> bool:
        removed = await self.store.remove(finding_id)
        if removed is None:
            return False
        self.ledger.forget(removed.target)
        self.refresh_badge(enabled)
        return True

    async def clear(self, *, enabled: bool = True) -> bool:
        cleared = await self.store.clear()
        if cleared:
            self.ledger.clear()
            self.refresh_badge(enabled)
        return cleared

    def refresh_badge(self, enabled: bool) -> None:
        self.sink.set_badge(len(self.store), enabled)
