"""
Self-contained sandbox documents for module instances.

Each module renders in its own iframe with ``sandbox="allow-scripts"`` and
the document below as ``srcdoc``. Without ``allow-same-origin`` the frame
has an opaque origin: no host cookies, storage or DOM. The CSP limits
scripts to the runtime CDN plus the inline bootstrap, and network access
to the bridge origin.

The only channel back to the host is ``postMessage``:
    {"type": "MODULE_READY", "moduleId": ...}
    {"type": "MODULE_ERROR", "moduleId": ..., "error": ...}
"""

import json
import re
import logging
from typing import Any, Dict, Optional

from jinja2 import Environment, StrictUndefined
from markupsafe import Markup

from core.config import settings
from runtime.transpiler import DEFAULT_BINDING, transpile
from schemas.catalog import RenderableModule
from schemas.runtime import SandboxDocument, TranspileResult

logger = logging.getLogger(__name__)

IFRAME_SANDBOX = "allow-scripts"

_SCRIPT_CLOSE = re.compile(r"</(script)", re.IGNORECASE)
_STYLE_CLOSE = re.compile(r"</(style)", re.IGNORECASE)
_HTML_COMMENT_OPEN = re.compile(r"<!--")

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_env = Environment(autoescape=True, undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True)

_DOCUMENT_TEMPLATE = _env.from_string("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<meta http-equiv="Content-Security-Policy" content="{{ csp }}">
<meta name="referrer" content="no-referrer">
<title>{{ name }}</title>
<script src="{{ cdn }}/react@18/umd/react.production.min.js" crossorigin></script>
<script src="{{ cdn }}/react-dom@18/umd/react-dom.production.min.js" crossorigin></script>
<script src="{{ cdn }}/@babel/standalone/babel.min.js" crossorigin></script>
<style>
*, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
html, body { font-family: system-ui, -apple-system, sans-serif; }
.module-error { color: #991b1b; background: #fef2f2; border: 1px dashed #dc2626; border-radius: 6px; padding: 12px; font-size: 14px; }
{{ styles }}
</style>
</head>
<body>
<div id="module-root" data-module-id="{{ module_id }}"></div>
<script>
(function () {
  "use strict";
  function deepFreeze(value) {
    if (value && typeof value === "object" && !Object.isFrozen(value)) {
      Object.getOwnPropertyNames(value).forEach(function (key) { deepFreeze(value[key]); });
      Object.freeze(value);
    }
    return value;
  }
  var config = deepFreeze({{ config_json }});
  var reported = false;
  function report(type, error) {
    if (reported) { return; }
    reported = true;
    var message = { type: type, moduleId: config.moduleId, siteId: config.siteId, version: config.version };
    if (error) { message.error = String(error && error.message ? error.message : error).slice(0, 500); }
    window.parent.postMessage(message, "*");
  }
  function showPlaceholder() {
    var root = document.getElementById("module-root");
    var box = document.createElement("div");
    box.className = "module-error";
    box.setAttribute("role", "alert");
    box.setAttribute("data-module-error", "true");
    box.textContent = "This module failed to load.";
    root.replaceChildren(box);
  }
  function fail(error) {
    showPlaceholder();
    report("MODULE_ERROR", error);
  }
  var bridgeOrigin = {{ bridge_origin_json }};
  var bridge = Object.freeze({
    request: function (path, options) {
      if (!bridgeOrigin) { return Promise.reject(new Error("No bridge API is configured")); }
      var init = Object.assign({}, options || {}, { credentials: "omit", mode: "cors" });
      return fetch(bridgeOrigin + "/" + String(path).replace(/^\\/+/, ""), init);
    }
  });
  var ErrorBoundary = (function () {
    function Boundary(props) { React.Component.call(this, props); this.state = { failed: false }; }
    Boundary.prototype = Object.create(React.Component.prototype);
    Boundary.prototype.constructor = Boundary;
    Boundary.getDerivedStateFromError = function () { return { failed: true }; };
    Boundary.prototype.componentDidCatch = function (error) { report("MODULE_ERROR", error); };
    Boundary.prototype.componentDidMount = function () {
      if (!this.state.failed) { report("MODULE_READY"); }
    };
    Boundary.prototype.render = function () {
      if (this.state.failed) {
        return React.createElement("div", { className: "module-error", role: "alert", "data-module-error": "true" }, "This module failed to load.");
      }
      return this.props.children;
    };
    return Boundary;
  })();
  window.addEventListener("error", function (event) { fail(event.error || event.message); });
  window.addEventListener("unhandledrejection", function (event) { fail(event.reason); });
  window.__moduleRuntime = Object.freeze({ config: config, bridge: bridge, ErrorBoundary: ErrorBoundary, fail: fail });
  if (typeof React === "undefined" || typeof ReactDOM === "undefined" || typeof Babel === "undefined") {
    fail("Module runtime failed to load");
  }
})();
</script>
<script type="text/babel" data-presets="react">
(function (runtime) {
  const { useState, useEffect, useMemo, useCallback, useRef, useReducer, Fragment } = React;
  const settings = runtime.config.settings;
  const bridge = runtime.bridge;
  try {
{{ code }}
    const root = ReactDOM.createRoot(document.getElementById("module-root"));
    root.render(
      React.createElement(
        runtime.ErrorBoundary,
        null,
        React.createElement({{ binding }}, { settings: settings, config: runtime.config, bridge: bridge })
      )
    );
  } catch (error) {
    runtime.fail(error);
  }
})(window.__moduleRuntime);
</script>
</body>
</html>
""")

_PLACEHOLDER_TEMPLATE = _env.from_string(
    '<div class="module-placeholder module-placeholder--error" role="status" '
    'data-module-id="{{ module_id }}" data-module-error="{{ message }}">'
    '<strong>{{ name }}</strong> could not be loaded.</div>'
)


def escape_script(code: str) -> str:
    """Neutralise sequences that would end or confuse an inline <script>."""
    code = _SCRIPT_CLOSE.sub(r"<\\/\1", code)
    return _HTML_COMMENT_OPEN.sub(lambda m: "<\\!--", code)


def escape_style(css: str) -> str:
    return _STYLE_CLOSE.sub(r"<\\/\1", css or "")


def safe_json(value: Any) -> str:
    """JSON that is safe to inline in a <script> element."""
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    for char, replacement in _JSON_ESCAPES.items():
        text = text.replace(char, replacement)
    return text


def build_csp(runtime_cdn: str, bridge_origin: str) -> str:
    connect = f"'self' {bridge_origin}".strip() if bridge_origin else "'none'"
    return "; ".join([
        "default-src 'none'",
        f"script-src {runtime_cdn} 'unsafe-inline'",
        "style-src 'unsafe-inline'",
        "img-src https: data:",
        "font-src https: data:",
        f"connect-src {connect}",
        "form-action 'none'",
        "base-uri 'none'",
    ])


def render_placeholder(module_id: str, name: Optional[str], message: str = "") -> str:
    """Inert, visibly-marked stand-in for a module that failed to prepare."""
    return _PLACEHOLDER_TEMPLATE.render(
        module_id=module_id,
        name=name or module_id,
        message=message,
    )


class SandboxDocumentBuilder:
    """Builds the srcdoc document and iframe attributes for one module instance."""

    def __init__(self, runtime_cdn: Optional[str] = None, bridge_origin: Optional[str] = None):
        self.runtime_cdn = (runtime_cdn or settings.SANDBOX_RUNTIME_CDN).rstrip("/")
        self.bridge_origin = (settings.BRIDGE_API_ORIGIN if bridge_origin is None else bridge_origin).rstrip("/")

    def build_config(self, module: RenderableModule, site_id: str) -> Dict[str, Any]:
        return {
            "moduleId": module.id,
            "name": module.name,
            "version": module.version,
            "siteId": site_id,
            "settings": module.merged_settings,
        }

    def build(
        self,
        module: RenderableModule,
        site_id: str,
        transpiled: Optional[TranspileResult] = None,
    ) -> SandboxDocument:
        """
        Render the document for ``module``.

        Raises:
            TranspileError: If ``transpiled`` is not given and the code
                cannot be transpiled
        """
        if transpiled is None:
            transpiled = transpile(module.code, filename=f"{module.id}.tsx")

        config = self.build_config(module, site_id)
        html = _DOCUMENT_TEMPLATE.render(
            csp=build_csp(self.runtime_cdn, self.bridge_origin),
            name=module.name,
            module_id=module.id,
            cdn=self.runtime_cdn,
            styles=Markup(escape_style(module.styles)),
            config_json=Markup(safe_json(config)),
            bridge_origin_json=Markup(safe_json(self.bridge_origin)),
            code=Markup(escape_script(transpiled.code)),
            binding=Markup(DEFAULT_BINDING),
        )

        return SandboxDocument(
            module_id=module.id,
            html=html,
            iframe_attributes={
                "sandbox": IFRAME_SANDBOX,
                "referrerpolicy": "no-referrer",
                "loading": "lazy",
                "title": module.name,
                "data-module-id": module.id,
            },
            config=config,
        )
