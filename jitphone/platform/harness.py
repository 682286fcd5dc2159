"""Profile harnesses and the polyfill preamble.

A harness wraps adapted code in an ES5 IIFE that exposes the host's bridge
API and returns the profile's result envelope. User code reports its value
by assigning the harness-scoped ``result`` variable. The harness captures the
host's own ``Promise`` as ``__host_Promise`` before the user code's scope can
shadow it; the Promise polyfill defers to it when present.
"""

from __future__ import annotations

from jitphone.platform.profiles import Profile

GUARD_PREFIX = "__guarded_"
_CODE = "/*@@code@@*/"

# --- Guarded stand-ins ---

_THROWING_GUARD = (
    'var {guard} = function () {{ throw new Error("{name} is not available on this host"); }};'
)

_GUARD_DEFINITIONS = {
    "setTimeout": (
        "var __guarded_setTimeout = function (callback) {"
        ' if (typeof callback === "function") { callback(); } return 0; };'
    ),
    "setInterval": "var __guarded_setInterval = function () { return 0; };",
    "document": "var __guarded_document = {};",
    "window": "var __guarded_window = {};",
}


def guard_name(identifier: str) -> str:
    return GUARD_PREFIX + identifier


def guard_definition(identifier: str) -> str:
    if identifier in _GUARD_DEFINITIONS:
        return _GUARD_DEFINITIONS[identifier]
    return _THROWING_GUARD.format(guard=guard_name(identifier), name=identifier)


# --- Feature polyfills ---

FEATURE_POLYFILLS = {
    "Promise": """var Promise = __host_Promise || (function () {
  var Promise = function (executor) {
    var self = this;
    self.state = "pending";
    self.value = undefined;
    self.handlers = [];
    function settle(state, value) {
      if (self.state !== "pending") { return; }
      self.state = state;
      self.value = value;
      for (var i = 0; i < self.handlers.length; i++) { self.handlers[i](); }
    }
    try {
      executor(function (v) { settle("fulfilled", v); }, function (e) { settle("rejected", e); });
    } catch (e) {
      settle("rejected", e);
    }
  };
  Promise.prototype.then = function (onFulfilled, onRejected) {
    var self = this;
    return new Promise(function (resolve, reject) {
      function run() {
        var handler = self.state === "fulfilled" ? onFulfilled : onRejected;
        if (typeof handler !== "function") {
          (self.state === "fulfilled" ? resolve : reject)(self.value);
          return;
        }
        try { resolve(handler(self.value)); } catch (e) { reject(e); }
      }
      if (self.state === "pending") { self.handlers.push(run); } else { run(); }
    });
  };
  Promise.resolve = function (v) { return new Promise(function (resolve) { resolve(v); }); };
  Promise.reject = function (e) { return new Promise(function (resolve, reject) { reject(e); }); };
  return Promise;
})();""",
    "Object.assign": """if (typeof Object.assign !== "function") {
  Object.assign = function (target) {
    for (var i = 1; i < arguments.length; i++) {
      var source = arguments[i];
      if (source == null) { continue; }
      for (var key in source) {
        if (Object.prototype.hasOwnProperty.call(source, key)) { target[key] = source[key]; }
      }
    }
    return target;
  };
}""",
    "Array.prototype.includes": """if (!Array.prototype.includes) {
  Array.prototype.includes = function (item) { return this.indexOf(item) !== -1; };
}""",
    "Array.prototype.find": """if (!Array.prototype.find) {
  Array.prototype.find = function (predicate) {
    for (var i = 0; i < this.length; i++) {
      if (predicate(this[i], i, this)) { return this[i]; }
    }
    return undefined;
  };
}""",
    "String.prototype.includes": """if (!String.prototype.includes) {
  String.prototype.includes = function (part) { return this.indexOf(part) !== -1; };
}""",
}


def polyfill_preamble(profile: Profile, guarded: list[str]) -> str:
    """Definitions for the guarded stand-ins plus the profile's missing features."""
    lines = ["/* jitphone polyfills */"]
    lines.extend(guard_definition(name) for name in guarded)
    for feature in profile.missing_features:
        if feature in FEATURE_POLYFILLS:
            lines.append(FEATURE_POLYFILLS[feature])
    return "\n".join(lines) + "\n"


# --- Harnesses ---

_AUTOMATION = """(function () {
  'use strict';
  var shortcuts = {
    run: function (name, input) { return { success: true, shortcut: name, result: input }; },
    ask: function (question) { return ""; },
    choose: function (options) { return options && options.length ? options[0] : null; }
  };
  var __host_Promise = typeof Promise === "undefined" ? undefined : Promise;
  var result = null;
  var error = null;
  try {
    (function () {
/*@@code@@*/
    })();
  } catch (e) {
    error = { name: e.name, message: e.message };
  }
  return { success: error === null, result: result, error: error, target: "@@profile@@" };
})();"""

_WEBVIEW = """(function () {
  'use strict';
  var __host_Promise = typeof Promise === "undefined" ? undefined : Promise;
  var result = null;
  var error = null;
  try {
    (function () {
/*@@code@@*/
    })();
  } catch (e) {
    error = { name: e.name, message: e.message };
  }
  var envelope = { type: "execution_complete", success: error === null, result: result, error: error, timestamp: Date.now() };
  if (typeof window !== "undefined" && window.webkit && window.webkit.messageHandlers && window.webkit.messageHandlers.jitphone) {
    window.webkit.messageHandlers.jitphone.postMessage(envelope);
  }
  return envelope;
})();"""

_SCRIPT = """(function (host) {
  'use strict';
  function emit(prefix, args) {
    if (typeof print === "function") { print(prefix + " " + Array.prototype.slice.call(args).join(" ")); }
  }
  var console = (host && host.console) || {
    log: function () { emit("[LOG]", arguments); },
    error: function () { emit("[ERROR]", arguments); }
  };
  var __host_Promise = typeof Promise === "undefined" ? undefined : Promise;
  var result = null;
  var error = null;
  try {
    (function () {
/*@@code@@*/
    })();
  } catch (e) {
    error = e.message;
  }
  return { ok: error === null, value: result, error: error };
})(this);"""

HARNESSES = {
    "automation": _AUTOMATION,
    "webview": _WEBVIEW,
    "script": _SCRIPT,
}


def wrap(code: str, profile: Profile) -> str:
    """Embed ``code`` in the profile's harness."""
    try:
        template = HARNESSES[profile.harness]
    except KeyError:
        raise ValueError(f"Profile '{profile.name}' names unknown harness '{profile.harness}'") from None
    return template.replace("@@profile@@", profile.name).replace(_CODE, code)
