from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

SUPPORTED_SCHEMES = {"http", "https"}


@dataclass(frozen=True, slots=True)
class Origin:
    """Scheme and hostname of a site. The port is deliberately not part of it."""

    scheme: str
    host: str

    @property
    def key(self) -> str:
        return f"{self.scheme}://{self._netloc}"

    @property
    def base_url(self) -> str:
        return self.key

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @property
    def _netloc(self) -> str:
        # urlparse strips the brackets from IPv6 literals
        return f"[{self.host}]" if ":" in self.host else self.host


def parse_origin(raw_url: str | None) -> Origin | None:
    if not isinstance(raw_url, str):
        return None
    candidate = raw_url.strip()
    if not candidate:
        return None
    try:
        parsed = urlparse(candidate)
        host = parsed.hostname
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES or not host:
        return None
    host = host.rstrip(".")
    if not host:
        return None
    return Origin(scheme=scheme, host=host)
