from __future__ import annotations

import asyncio
import logging

import httpx
from opentelemetry import trace

from leakwatch.checks.classifier import probe_plan
from leakwatch.core.telemetry import PROBE_SPAN_NAME, annotate_probe_span
from leakwatch.core.urls import Origin
from leakwatch.schemas.findings import CheckKind, ProbeOutcome, ProbeReason

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

REDIRECT_STATUS_CODES = {301, 302, 303, 307, 308}
DEFAULT_TIMEOUT_SECONDS = 8.0
DEFAULT_USER_AGENT = "leakwatch-probe/1.0"


class Prober:
    """Fetches the well-known paths for one check kind and classifies them.

    Every failure mode resolves to a non-matching outcome. There are no
    retries: one attempt per path per invocation.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        strict_env: bool = True,
    ) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.strict_env = strict_env

    async def probe(self, origin: Origin, kind: CheckKind, timeout_seconds: float | None = None) -> ProbeOutcome:
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        with tracer.start_as_current_span(PROBE_SPAN_NAME) as span:
            if self.client is not None:
                outcome = await self._run_plan(self.client, origin, kind, timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as temp_client:
                    outcome = await self._run_plan(temp_client, origin, kind, timeout)
            annotate_probe_span(span, origin.key, outcome)
        return outcome

    async def _run_plan(
        self,
        client: httpx.AsyncClient,
        origin: Origin,
        kind: CheckKind,
        timeout: float,
    ) -> ProbeOutcome:
        plan = probe_plan(kind, strict_env=self.strict_env)
        for index, (path, rule) in enumerate(plan, start=1):
            url = origin.url_for(path)
            status_code, body, reason = await self._fetch(client, url, timeout)
            matched = status_code is not None and rule(status_code, body)
            logger.debug("probe kind=%s url=%s status=%s reason=%s", kind.value, url, status_code, reason)
            if matched or index == len(plan):
                return ProbeOutcome(
                    kind=kind,
                    matched=matched,
                    source_url=url,
                    reason="matched" if matched else reason,
                    status_code=status_code,
                )
        raise ValueError(f"empty probe plan for kind: {kind!r}")

    async def _fetch(self, client: httpx.AsyncClient, url: str, timeout: float) -> tuple[int | None, str, ProbeReason]:
        try:
            response = await asyncio.wait_for(
                client.get(url, headers={"User-Agent": self.user_agent}, follow_redirects=False),
                timeout=timeout,
            )
        except (TimeoutError, httpx.TimeoutException):
            logger.debug("probe timed out url=%s after %.1fs", url, timeout)
            return None, "", "timeout"
        except (httpx.HTTPError, httpx.InvalidURL, OSError, UnicodeError) as exc:
            # UnicodeError covers hosts httpx cannot IDNA-encode
            logger.debug("probe request failed url=%s error=%s", url, exc)
            return None, "", "network_error"

        if response.status_code in REDIRECT_STATUS_CODES:
            return response.status_code, "", "redirect"
        return response.status_code, response.text, "no_match"
