"""Isolated preview document construction.

The preview content runs in a sandboxed context (opaque origin, no access to
host state). The only way out is a one-way console bridge: an injected script
replaces the document's ``onerror``/``console.error`` hooks and forwards
``{kind: "error", message}`` notifications tagged with the render key.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import re
from typing import Any, Mapping, Optional

BRIDGE_SOURCE = "transcript-viewer-sandbox"
SANDBOX_FLAGS = ("allow-scripts",)
RELAXED_SANDBOX_FLAGS = ("allow-forms", "allow-popups", "allow-modals")
CONSOLE_KINDS = frozenset({"error"})
MAX_MESSAGE_LENGTH = 4000

_HEAD_OPEN_RE = re.compile(r"<head(\s[^>]*)?>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html(\s[^>]*)?>", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"^\s*<!doctype[^>]*>", re.IGNORECASE)

HIDE_SCROLLBARS_STYLE = (
    "<style data-sandbox=\"scrollbars\">"
    "html,body{scrollbar-width:none;-ms-overflow-style:none;}"
    "html::-webkit-scrollbar,body::-webkit-scrollbar{display:none;}"
    "</style>"
)

_BRIDGE_SCRIPT = """<script data-sandbox="bridge">
(function () {
  var config = %(config)s;
  function send(kind, message) {
    var payload = {source: config.source, renderKey: config.renderKey, kind: kind, message: String(message)};
    try {
      if (window.parent && window.parent !== window) {
        window.parent.postMessage(payload, "*");
        return;
      }
      if (config.beaconUrl) {
        var body = JSON.stringify(payload);
        if (!(navigator.sendBeacon && navigator.sendBeacon(config.beaconUrl, body))) {
          fetch(config.beaconUrl, {method: "POST", mode: "no-cors", body: body});
        }
      }
    } catch (err) {}
  }
  window.onerror = function (message, source, line, column) {
    send("error", message + (line ? " (line " + line + ":" + (column || 0) + ")" : ""));
    return false;
  };
  window.addEventListener("unhandledrejection", function (event) {
    send("error", "Unhandled rejection: " + (event.reason && event.reason.message ? event.reason.message : event.reason));
  });
  var originalError = console.error;
  console.error = function () {
    send("error", Array.prototype.map.call(arguments, String).join(" "));
    if (originalError) { originalError.apply(console, arguments); }
  };
})();
</script>"""


@dataclass(frozen=True)
class SandboxDocument:
    """One instance of the isolated document, identified by its render key."""

    render_key: int
    html: str
    sandbox_flags: tuple[str, ...]

    @property
    def sandbox_attribute(self) -> str:
        return " ".join(self.sandbox_flags)

    @property
    def csp_header(self) -> str:
        return f"sandbox {self.sandbox_attribute}"


@dataclass(frozen=True)
class ConsoleNotification:
    render_key: int
    kind: str
    message: str


def sandbox_flags(relaxed: bool = False) -> tuple[str, ...]:
    if relaxed:
        return SANDBOX_FLAGS + RELAXED_SANDBOX_FLAGS
    return SANDBOX_FLAGS


def bridge_script(render_key: int, beacon_url: Optional[str] = None) -> str:
    config = json.dumps(
        {"source": BRIDGE_SOURCE, "renderKey": render_key, "beaconUrl": beacon_url}
    )
    # Keep "</" out of the inline script body.
    config = config.replace("</", "<\\/")
    return _BRIDGE_SCRIPT % {"config": config}


def inject_into_head(content: str, snippet: str) -> str:
    """Insert ``snippet`` at the start of ``<head>``, creating one when absent."""
    head = _HEAD_OPEN_RE.search(content)
    if head:
        return content[: head.end()] + snippet + content[head.end() :]
    opening = _HTML_OPEN_RE.search(content)
    if opening:
        return (
            content[: opening.end()]
            + f"<head>{snippet}</head>"
            + content[opening.end() :]
        )
    doctype = _DOCTYPE_RE.match(content)
    if doctype:
        return content[: doctype.end()] + snippet + content[doctype.end() :]
    return snippet + content


def build_sandbox_document(
    content: str,
    *,
    render_key: int,
    hide_scrollbars: bool = False,
    beacon_url: Optional[str] = None,
    relaxed: bool = False,
) -> SandboxDocument:
    snippet = bridge_script(render_key, beacon_url)
    if hide_scrollbars:
        snippet = HIDE_SCROLLBARS_STYLE + snippet
    return SandboxDocument(
        render_key=render_key,
        html=inject_into_head(content, snippet),
        sandbox_flags=sandbox_flags(relaxed),
    )


def parse_console_payload(
    payload: Any, *, render_key: Optional[int] = None
) -> Optional[ConsoleNotification]:
    """Validate an untrusted bridge payload; return None when it is unusable.

    ``render_key`` is the key the transport associated with the message, used
    when the payload itself does not carry one.
    """
    if not isinstance(payload, Mapping):
        return None
    source = payload.get("source")
    if source is not None and source != BRIDGE_SOURCE:
        return None
    kind = payload.get("kind")
    if kind not in CONSOLE_KINDS:
        return None
    key = payload.get("renderKey", render_key)
    if isinstance(key, bool) or not isinstance(key, int):
        return None
    if render_key is not None and key != render_key:
        return None
    message = payload.get("message", "")
    if not isinstance(message, str):
        message = str(message)
    return ConsoleNotification(
        render_key=key, kind=kind, message=message[:MAX_MESSAGE_LENGTH]
    )
