"""Isolated execution of generated code.

Each call gets a fresh V8 isolate. Before the code runs, every global that is
not on the whitelist is deleted and ``console`` is replaced with a recorder,
so the only ways out of the isolate are the return value and the log lines.
The code runs as the body of a function that receives ``input``: it may
``return`` a value, which must be JSON-serialisable.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field

from py_mini_racer import JSEvalException, JSTimeoutException, MiniRacer

from jitphone.errors import ExecutionError, ExecutionTimeoutError

logger = logging.getLogger(__name__)

ALLOWED_GLOBALS = (
    "Math", "Date", "JSON", "Array", "Object", "String", "Number", "Boolean",
    "parseInt", "parseFloat", "isNaN", "isFinite",
    "Error", "TypeError", "RangeError", "SyntaxError", "ReferenceError", "EvalError", "URIError",
    "undefined", "NaN", "Infinity",
)

# Runs before the user code. ES5 only; the recorder must not rely on
# anything that the pruning loop removes.
_PRELUDE = """
(function (global, allowed) {
  var keep = {};
  for (var i = 0; i < allowed.length; i++) { keep[allowed[i]] = true; }
  var names = Object.getOwnPropertyNames(global);
  for (var j = 0; j < names.length; j++) {
    if (!keep[names[j]]) {
      try { delete global[names[j]]; } catch (e) { /* non-configurable */ }
    }
  }
})(this, %(allowed)s);
var __jitphone_logs = [];
var console = (function (logs) {
  function record(level) {
    return function () {
      var parts = [];
      for (var i = 0; i < arguments.length; i++) {
        var value = arguments[i];
        parts.push(typeof value === 'string' ? value : JSON.stringify(value));
      }
      logs.push((level === 'log' ? '' : '[' + level + '] ') + parts.join(' '));
    };
  }
  return { log: record('log'), info: record('info'), warn: record('warn'), error: record('error') };
})(__jitphone_logs);
"""

_RUNNER = """
(function (input, stringify) {
  var outcome;
  try {
    var value = (function (input) {
      'use strict';
%(code)s
    })(input);
    outcome = { ok: true, value: value === undefined ? null : value };
  } catch (e) {
    outcome = { ok: false, error: (e && e.message) ? String(e.message) : String(e) };
  }
  outcome.logs = __jitphone_logs;
  return stringify(outcome);
})(JSON.parse(%(input)s), JSON.stringify);
"""


@dataclass
class ExecutionResult:
    success: bool
    result: object = None
    error: dict | None = None
    logs: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "result": self.result,
            "error": dict(self.error) if self.error else None,
            "logs": list(self.logs),
            "duration_ms": self.duration_ms,
        }


class SandboxExecutor:
    """Runs code in a fresh isolate with a wall-clock budget."""

    def __init__(self, default_timeout: float = 10.0, max_timeout: float = 30.0, memory_limit_mb: int = 128):
        self.default_timeout = default_timeout
        self.max_timeout = max_timeout
        self.memory_limit_mb = memory_limit_mb

    def _budget(self, timeout: float | None) -> float:
        if timeout is None or timeout <= 0:
            timeout = self.default_timeout
        return min(float(timeout), self.max_timeout)

    def run(self, code: str, input=None, timeout: float | None = None, memory_limit: int | None = None):
        """Execute ``code`` and return ``(value, logs)``.

        Raises :class:`ExecutionTimeoutError` when the budget runs out and
        :class:`ExecutionError` for anything the code throws.
        """
        budget = self._budget(timeout)
        memory_limit = memory_limit or self.memory_limit_mb
        # Accepted for the record only; V8 heap limits are not applied.
        logger.debug("Sandbox run: timeout=%.1fs memory_limit=%dMB (not enforced)", budget, memory_limit)

        try:
            payload = json.dumps(input if input is not None else {})
        except (TypeError, ValueError) as exc:
            raise ExecutionError(f"Input is not JSON-serialisable: {exc}") from exc

        script = _PRELUDE % {"allowed": json.dumps(list(ALLOWED_GLOBALS))}
        script += _RUNNER % {"code": code, "input": json.dumps(payload)}

        ctx = MiniRacer()
        try:
            raw = ctx.eval(script, timeout_sec=budget)
        except JSTimeoutException as exc:
            raise ExecutionTimeoutError(f"Execution exceeded {budget:g}s") from exc
        except JSEvalException as exc:
            raise ExecutionError(f"Execution failed: {exc}") from exc

        try:
            outcome = json.loads(raw)
            ok, logs = bool(outcome["ok"]), outcome.get("logs")
            logs = [str(line) for line in logs] if isinstance(logs, list) else []
            detail = outcome["value"] if ok else outcome.get("error")
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise ExecutionError(f"Execution produced an unreadable result: {exc}") from exc
        if not ok:
            error = ExecutionError(f"Execution failed: {detail}")
            error.logs = logs
            raise error
        return detail, logs

    def execute(
        self, code: str, input=None, timeout: float | None = None, memory_limit: int | None = None
    ) -> ExecutionResult:
        """Execute ``code``; failures come back as a structured result."""
        start = time.perf_counter()
        try:
            value, logs = self.run(code, input, timeout, memory_limit)
        except ExecutionError as exc:
            duration = round((time.perf_counter() - start) * 1000, 3)
            logger.info("Sandbox %s after %.1fms: %s", exc.kind, duration, exc.message)
            return ExecutionResult(
                success=False,
                error=exc.to_dict(),
                logs=list(getattr(exc, "logs", [])),
                duration_ms=duration,
            )
        duration = round((time.perf_counter() - start) * 1000, 3)
        return ExecutionResult(success=True, result=value, logs=logs, duration_ms=duration)


def execute(code: str, input=None, timeout: float | None = None, memory_limit: int | None = None) -> ExecutionResult:
    """Execute with a default-configured executor."""
    return SandboxExecutor().execute(code, input, timeout, memory_limit)
