"""
Sandbox policy: what the script host can see and how much it may consume.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping

# Globals copied from the host into the candidate's vm context. Language
# built-ins (Math, JSON, Array, ...) are always present; require, process
# and the module system are not. Names the running node lacks are skipped.
EXPOSED_GLOBALS = [
    "setTimeout",
    "clearTimeout",
    "setInterval",
    "clearInterval",
    "queueMicrotask",
    "TextEncoder",
    "TextDecoder",
    "URL",
    "URLSearchParams",
    "performance",
    "structuredClone",
    "crypto",
]

# Only these variables reach the host process, so credentials such as
# OPENAI_API_KEY never become visible to candidate code.
PASSTHROUGH_ENV_VARS = [
    "PATH",
    "HOME",
    "LANG",
    "LC_ALL",
    "TZ",
    "TMPDIR",
    "TEMP",
    "TMP",
    "SYSTEMROOT",
]

DEFAULT_MEMORY_LIMIT_MB = 512


def build_host_env(
    base_env: Mapping[str, str] | None = None,
    passthrough: Iterable[str] | None = None,
) -> dict[str, str]:
    source = os.environ if base_env is None else base_env
    names = passthrough if passthrough is not None else PASSTHROUGH_ENV_VARS
    return {name: source[name] for name in names if name in source}


def node_flags(memory_limit_mb: int | None) -> list[str]:
    if not memory_limit_mb:
        return []
    return [f"--max-old-space-size={int(memory_limit_mb)}"]


def cpu_limiter(timeout_ms: int) -> Callable[[], None] | None:
    """Return a preexec_fn capping CPU time just past the wall-clock budget (POSIX only)."""
    if os.name == "nt":
        return None

    def _apply_limits() -> None:
        try:
            import resource
        except ImportError:
            return
        cpu_seconds = max(1, timeout_ms // 1000 + 1)
        resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds + 1))

    return _apply_limits
