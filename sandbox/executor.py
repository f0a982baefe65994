"""
Subprocess-based sandbox executor for untrusted JavaScript candidates.
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from types import TracebackType
from typing import cast

from sandbox import policy
from sandbox import protocol

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60_000


class SandboxError(Exception):
    """Base class for failures inside a sandbox host."""


class SandboxTimeoutError(SandboxError):
    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Evaluation timed out after {timeout_ms} ms")
        self.timeout_ms = timeout_ms


class SandboxRuntimeError(SandboxError):
    """The candidate threw while being evaluated."""


class SandboxHostError(SandboxError):
    """The host process could not start, crashed, or answered garbage."""


@dataclass(frozen=True)
class SandboxResult:
    log: str
    failed: bool = False
    failure_reason: str | None = None
    timed_out: bool = False
    runtime_ms: float = 0.0


class NodeHost:
    """One disposable ``node`` process. Use as a context manager; exit always kills it."""

    node_binary: str
    memory_limit_mb: int | None
    exposed_globals: Sequence[str]

    def __init__(
        self,
        node_binary: str = "node",
        memory_limit_mb: int | None = policy.DEFAULT_MEMORY_LIMIT_MB,
        exposed_globals: Sequence[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.node_binary = node_binary
        self.memory_limit_mb = memory_limit_mb
        self.exposed_globals = exposed_globals if exposed_globals is not None else policy.EXPOSED_GLOBALS
        self._env = env if env is not None else policy.build_host_env()
        self._process: subprocess.Popen[str] | None = None

    def __enter__(self) -> "NodeHost":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.kill()

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self, timeout_ms: int) -> None:
        command = [self.node_binary, *policy.node_flags(self.memory_limit_mb), "-e", protocol.HARNESS_SOURCE]
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._env,
                preexec_fn=policy.cpu_limiter(timeout_ms),
            )
        except OSError as exc:
            raise SandboxHostError(f"Sandbox host could not start ({self.node_binary}): {exc}") from exc

    def evaluate(self, script: str, timeout_ms: int) -> str:
        """Run ``script`` and return its completion value as text.

        The host process races the timer: whichever settles first decides
        the outcome, and a timer win kills the process before raising.
        """
        if self._process is None:
            self.start(timeout_ms)
        process = cast("subprocess.Popen[str]", self._process)
        payload = protocol.encode_payload(script, self.exposed_globals)
        try:
            stdout, stderr = process.communicate(payload, timeout=timeout_ms / 1000)
        except subprocess.TimeoutExpired as exc:
            self.kill()
            raise SandboxTimeoutError(timeout_ms) from exc

        for line in stderr.splitlines():
            logger.debug(f"[candidate] {line}")

        if not stdout:
            detail = stderr.strip() or f"Sandbox host exited with code {process.returncode} without a result"
            raise SandboxHostError(detail)
        try:
            loaded = cast(object, json.loads(stdout))
        except json.JSONDecodeError as exc:
            raise SandboxHostError(f"Invalid JSON from sandbox host: {exc}") from exc
        if not isinstance(loaded, dict):
            raise SandboxHostError("Invalid response type from sandbox host")
        data = cast(dict[str, object], loaded)

        if not data.get("success"):
            raise SandboxRuntimeError(str(data.get("error") or "Unknown error in candidate"))
        result = data.get("result")
        return "" if result is None else str(result)

    def kill(self) -> None:
        process = self._process
        if process is None or process.poll() is not None:
            return
        process.kill()
        # Reap the process and close its pipes.
        process.communicate()


HostFactory = Callable[[], NodeHost]


class SandboxRunner:
    """
    Execute a candidate in a fresh script host and return everything it logged.

    Failures never propagate: a timeout, a thrown error or a crashed host all
    come back as a ``SandboxResult`` whose log is the failure message.
    """

    timeout_ms: int

    def __init__(
        self,
        node_binary: str = "node",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        memory_limit_mb: int | None = policy.DEFAULT_MEMORY_LIMIT_MB,
        host_factory: HostFactory | None = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self._host_factory: HostFactory = host_factory or (
            lambda: NodeHost(node_binary=node_binary, memory_limit_mb=memory_limit_mb)
        )

    def run(self, code: str, timeout_ms: int | None = None) -> SandboxResult:
        budget_ms = timeout_ms if timeout_ms is not None else self.timeout_ms
        script = protocol.build_script(code)
        start = time.perf_counter()
        host = self._host_factory()
        try:
            with host:
                log = host.evaluate(script, budget_ms)
        except Exception as exc:  # noqa: BLE001 - every candidate failure becomes log text
            runtime_ms = (time.perf_counter() - start) * 1000
            host.kill()
            message = str(exc) or exc.__class__.__name__
            timed_out = isinstance(exc, SandboxTimeoutError)
            if timed_out:
                logger.info(f"Candidate timed out after {budget_ms} ms; host killed")
            else:
                logger.info(f"Candidate failed: {message}")
            return SandboxResult(
                log=message,
                failed=True,
                failure_reason=message,
                timed_out=timed_out,
                runtime_ms=runtime_ms,
            )
        runtime_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Candidate finished in {runtime_ms:.0f} ms with {len(log.splitlines())} log line(s)")
        return SandboxResult(log=log, runtime_ms=runtime_ms)
