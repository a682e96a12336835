"""Heuristic rules deciding whether a probed response is a real exposed file.

Every rule is a pure function of the HTTP status and the body text. Anything
other than a 200 is a miss, which covers 3xx responses since redirects are
never followed when probing.
"""

from __future__ import annotations

from collections.abc import Callable
import re

from leakwatch.schemas.findings import CheckKind

GIT_HEAD_PATH = "/.git/HEAD"
GIT_CONFIG_PATH = "/.git/config"
ENV_PATH = "/.env"

GIT_HEAD_PREFIX = "ref: refs/heads/"
GIT_OBJECT_ID_RE = re.compile(r"[0-9a-f]{40}")
GIT_CONFIG_SECTIONS = ("[gc", "[core", "[user", "[http", "[remote", "[branch", "[credentials")
HTML_MARKERS = ("<html", "<body")

# A line, optionally indented, that starts with an identifier followed by "=".
# Comment and blank lines before it are simply other lines.
ENV_ASSIGNMENT_STRICT_RE = re.compile(r"^[ \t]*[A-Z_][A-Z0-9_]*[ \t]*=", re.MULTILINE)
ENV_ASSIGNMENT_RELAXED_RE = re.compile(r"^[ \t]*[A-Za-z_][A-Za-z0-9_]*[ \t]*=", re.MULTILINE)

PathRule = Callable[[int, str], bool]


def looks_like_html(body: str) -> bool:
    lowered = body.lower()
    return any(marker in lowered for marker in HTML_MARKERS)


def is_git_head(status_code: int, body: str) -> bool:
    if status_code != 200 or looks_like_html(body):
        return False
    return body.startswith(GIT_HEAD_PREFIX) or GIT_OBJECT_ID_RE.search(body) is not None


def is_git_config(status_code: int, body: str) -> bool:
    if status_code != 200 or looks_like_html(body):
        return False
    return any(section in body for section in GIT_CONFIG_SECTIONS)


def is_env_file(status_code: int, body: str, *, strict: bool = True) -> bool:
    if status_code != 200:
        return False
    pattern = ENV_ASSIGNMENT_STRICT_RE if strict else ENV_ASSIGNMENT_RELAXED_RE
    return pattern.search(body) is not None


def classify(kind: CheckKind, status_code: int, body: str, *, strict_env: bool = True) -> bool:
    """Verdict for a kind as a whole, without knowing which sub-path served the body."""
    if kind is CheckKind.GIT:
        return is_git_head(status_code, body) or is_git_config(status_code, body)
    if kind is CheckKind.ENV:
        return is_env_file(status_code, body, strict=strict_env)
    raise ValueError(f"unsupported check kind: {kind!r}")


def probe_plan(kind: CheckKind, *, strict_env: bool = True) -> list[tuple[str, PathRule]]:
    """Ordered (path, rule) pairs to try for a kind; the first match wins."""
    if kind is CheckKind.GIT:
        return [(GIT_HEAD_PATH, is_git_head), (GIT_CONFIG_PATH, is_git_config)]
    if kind is CheckKind.ENV:
        return [(ENV_PATH, lambda status_code, body: is_env_file(status_code, body, strict=strict_env))]
    raise ValueError(f"unsupported check kind: {kind!r}")
