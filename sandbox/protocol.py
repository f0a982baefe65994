"""
Host-side protocol for sandbox execution.

The parent starts ``node -e HARNESS_SOURCE`` and writes one JSON payload to
its stdin: ``{"script": ..., "globals": [...]}``. The harness evaluates the
script inside a fresh ``vm`` context and writes one JSON envelope to stdout:
``{"success": bool, "result": str | null, "error": str | null}``.
The candidate gets a full ``console`` whose every method writes to the
host's stderr; the capture shim then replaces only ``console.log``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

CAPTURE_SHIM = """\
const __capturedLog = [];
const __originalLog = console.log;
console.log = function (...args) {
  __capturedLog.push(args.map(String).join(' '));
  __originalLog.apply(console, args);
};
"""

RESULT_EXPRESSION = "__capturedLog.join('\\n');"

HARNESS_SOURCE = """\
'use strict';
const vm = require('vm');

function formatError(err) {
  if (err !== null && typeof err === 'object' && 'message' in err) {
    return `${err.name || 'Error'}: ${err.message}`;
  }
  return `Uncaught ${String(err)}`;
}

function respond(response) {
  process.stdout.write(JSON.stringify(response), () => process.exit(0));
}

let raw = '';
process.stdin.setEncoding('utf8');
process.stdin.on('data', (chunk) => { raw += chunk; });
process.stdin.on('end', () => {
  let response;
  try {
    const payload = JSON.parse(raw || '{}');
    const sandbox = {
      console: new console.Console({ stdout: process.stderr, stderr: process.stderr }),
    };
    for (const name of payload.globals || []) {
      if (name in globalThis) {
        sandbox[name] = globalThis[name];
      }
    }
    const context = vm.createContext(sandbox);
    const result = vm.runInContext(String(payload.script || ''), context, {
      filename: 'candidate.js',
    });
    response = {
      success: true,
      result: result === undefined || result === null ? '' : String(result),
      error: null,
    };
  } catch (err) {
    response = { success: false, result: null, error: formatError(err) };
  }
  respond(response);
});
"""


def build_script(code: str) -> str:
    """Wrap candidate code so its completion value is the joined captured log."""
    return f"{CAPTURE_SHIM}\n{code}\n;\n{RESULT_EXPRESSION}\n"


def encode_payload(script: str, exposed_globals: Sequence[str]) -> str:
    return json.dumps({"script": script, "globals": list(exposed_globals)})
