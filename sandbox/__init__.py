"""
Sandbox Module

Disposable execution host for LLM-generated JavaScript.

This module provides:
- One fresh Node.js process per candidate, killed on every exit path
- Capture of console.log output as the evaluation result
- Wall-clock timeout enforced from the parent process
- Environment scrubbing and best-effort resource limits

WARNING: This sandbox is NOT a security boundary. It isolates well-behaved
candidates from each other and from this process's credentials; it does not
defend against deliberately malicious code.
"""

__version__ = "0.1.0"
