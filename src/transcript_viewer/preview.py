"""Preview controller: session state for the sandboxed HTML preview panel.

States::

    Closed --open()--> Open(tab=preview|source) --close()--> Closed

``refresh`` (preview tab only) bumps the render key and clears the console
log, so the isolated document is rebuilt as a new instance. Messages that
still arrive from a superseded instance are ignored. Render keys never repeat
for the lifetime of the controller, across sessions included.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import time
from typing import Any, Callable, Optional

from transcript_viewer.event_bus import EventBus, SubscriptionScope
from transcript_viewer.sandbox import (
    SandboxDocument,
    build_sandbox_document,
    parse_console_payload,
)
from transcript_viewer.sandbox_server import Deliver, SandboxEngine
from transcript_viewer.sidebar import (
    CLOSE_TRANSITION_SECONDS,
    POINTER_MOVE,
    POINTER_UP,
    ResizeDrag,
    SidebarGeometry,
)

logger = logging.getLogger(__name__)

PREVIEW_CHANGED = "preview.changed"
PREVIEW_ERROR = "preview.error"
SANDBOX_MESSAGE = "sandbox.message"

Scheduler = Callable[[float, Callable[[], None]], Any]
EngineFactory = Callable[[Deliver], SandboxEngine]


class PreviewTab(str, Enum):
    PREVIEW = "preview"
    SOURCE = "source"


class DeviceMode(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"


@dataclass(frozen=True)
class ConsoleEntry:
    kind: str
    message: str
    timestamp: float


@dataclass
class PreviewSession:
    content: str
    active_tab: PreviewTab = PreviewTab.PREVIEW
    device_mode: DeviceMode = DeviceMode.DESKTOP
    source_content: Optional[str] = None
    show_controls: bool = True
    web_analysis_mode: bool = False
    preview_url: Optional[str] = None
    render_key: int = 0
    console_log: list[ConsoleEntry] = field(default_factory=list)
    closing: bool = False

    @property
    def source_text(self) -> str:
        """Text shown in the source tab and used for copy/download."""
        if self.source_content is not None:
            return self.source_content
        return self.content


class PreviewController:
    """Owns the single preview session and its isolated document engine."""

    def __init__(
        self,
        *,
        geometry: Optional[SidebarGeometry] = None,
        bus: Optional[EventBus] = None,
        engine_factory: Optional[EngineFactory] = None,
        schedule: Optional[Scheduler] = None,
        now: Callable[[], float] = time.time,
        relaxed_sandbox: bool = False,
    ) -> None:
        self.geometry = geometry or SidebarGeometry(width_percent=50.0)
        self.bus = bus or EventBus()
        self._engine_factory = engine_factory
        self._schedule = schedule
        self._now = now
        self._relaxed_sandbox = relaxed_sandbox
        self._session: Optional[PreviewSession] = None
        self._session_scope: Optional[SubscriptionScope] = None
        self._engine: Optional[SandboxEngine] = None
        self._next_render_key = 0
        self._close_token = 0
        self._drag = ResizeDrag(self.bus, self.geometry, on_change=self._width_changed)

    # --- Queries ---
    @property
    def session(self) -> Optional[PreviewSession]:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closing

    @property
    def is_visible(self) -> bool:
        return self._session is not None

    @property
    def is_resizing(self) -> bool:
        return self._drag.active

    @property
    def hides_scrollbars(self) -> bool:
        session = self._session
        if session is None:
            return self.geometry.is_mobile_layout
        return (
            self.geometry.is_mobile_layout
            or session.device_mode is DeviceMode.MOBILE
        )

    def document_url(self) -> Optional[str]:
        if self._engine is None or self._session is None:
            return None
        return self._engine.document_url()

    def external_url(self) -> Optional[str]:
        session = self._session
        if session is None or not session.web_analysis_mode:
            return None
        return session.preview_url or None

    # --- Session lifecycle ---
    def open(
        self,
        content: str,
        tab: PreviewTab | str = PreviewTab.PREVIEW,
        source_content: Optional[str] = None,
        show_controls: bool = True,
        web_analysis_mode: bool = False,
        preview_url: Optional[str] = None,
    ) -> PreviewSession:
        """Open (or replace) the preview session."""
        self._close_token += 1
        previous = self._session
        session = PreviewSession(
            content=content,
            active_tab=PreviewTab(tab),
            device_mode=previous.device_mode if previous else DeviceMode.DESKTOP,
            source_content=source_content,
            show_controls=show_controls,
            web_analysis_mode=web_analysis_mode,
            preview_url=preview_url,
            render_key=self._take_render_key(),
        )
        self._session = session
        if self._session_scope is None:
            self._session_scope = SubscriptionScope(self.bus)
            self._session_scope.subscribe(SANDBOX_MESSAGE, self._handle_sandbox_message)
        self._ensure_engine()
        self._load_document()
        logger.info(
            "Preview opened tab=%s web_analysis=%s key=%s",
            session.active_tab.value,
            web_analysis_mode,
            session.render_key,
        )
        self._changed()
        return session

    def close(self, *, immediate: bool = False) -> None:
        """Close the session; the sheet layout finishes after its transition."""
        self._drag.cancel()
        session = self._session
        if session is None or (session.closing and not immediate):
            return
        self._close_token += 1
        token = self._close_token
        if (
            not immediate
            and self.geometry.is_mobile_layout
            and self._schedule is not None
        ):
            session.closing = True
            self._changed()
            self._schedule(CLOSE_TRANSITION_SECONDS, lambda: self._finish_close(token))
            return
        self._finish_close(token)

    def _finish_close(self, token: int) -> None:
        if token != self._close_token or self._session is None:
            return
        if self._session_scope is not None:
            self._session_scope.close()
            self._session_scope = None
        self._shutdown_engine()
        self._session = None
        logger.info("Preview closed")
        self._changed()

    # --- Session operations ---
    def change_tab(self, tab: PreviewTab | str) -> None:
        session = self._require_session()
        if session is None:
            return
        session.active_tab = PreviewTab(tab)
        self._changed()

    def set_device_mode(self, mode: DeviceMode | str) -> None:
        session = self._require_session()
        if session is None:
            return
        mode = DeviceMode(mode)
        if session.device_mode is mode:
            return
        session.device_mode = mode
        self._load_document()
        self._changed()

    def refresh(self) -> Optional[int]:
        """Recreate the isolated document; only valid on the preview tab."""
        session = self._require_session()
        if session is None:
            return None
        if session.active_tab is not PreviewTab.PREVIEW:
            logger.debug("Refresh ignored on %s tab", session.active_tab.value)
            return session.render_key
        session.render_key = self._take_render_key()
        session.console_log = []
        self._load_document()
        logger.info("Preview refreshed key=%s", session.render_key)
        self._changed()
        return session.render_key

    def build_document(self) -> Optional[SandboxDocument]:
        session = self._session
        if session is None:
            return None
        beacon_url = None
        if self._engine is not None:
            beacon_url = self._engine.beacon_url(session.render_key)
        return build_sandbox_document(
            session.content,
            render_key=session.render_key,
            hide_scrollbars=self.hides_scrollbars,
            beacon_url=beacon_url,
            relaxed=self._relaxed_sandbox,
        )

    # --- One-way console channel ---
    def post_sandbox_message(self, render_key: int, payload: Any) -> None:
        """Entry point for notifications from a document instance."""
        self.bus.publish(SANDBOX_MESSAGE, (render_key, payload))

    def _handle_sandbox_message(self, message: tuple[int, Any]) -> None:
        session = self._session
        if session is None:
            return
        render_key, payload = message
        if render_key != session.render_key:
            logger.debug(
                "Ignoring message from stale document key=%s live=%s",
                render_key,
                session.render_key,
            )
            return
        notification = parse_console_payload(payload, render_key=render_key)
        if notification is None:
            logger.debug("Ignoring malformed sandbox message: %r", payload)
            return
        session.console_log.append(
            ConsoleEntry(
                kind=notification.kind,
                message=notification.message,
                timestamp=self._now(),
            )
        )
        self._changed()

    # --- Geometry ---
    def begin_resize(self) -> bool:
        return self._drag.begin()

    def resize(self, pointer_x: float) -> float:
        """Apply a pointer position to the width while a drag is active."""
        if self._drag.active:
            self.bus.publish(POINTER_MOVE, pointer_x)
        return self.geometry.width_percent

    def end_resize(self) -> None:
        if self._drag.active:
            self.bus.publish(POINTER_UP, None)

    def set_width(self, percent: float) -> float:
        width = self.geometry.set_width(percent)
        self._changed()
        return width

    def update_viewport(self, width: int) -> None:
        if not self.geometry.update_viewport(width):
            return
        if self.geometry.is_mobile_layout:
            self._drag.cancel()
        if self._session is not None:
            self._load_document()
        self._changed()

    # --- Internals ---
    def _require_session(self) -> Optional[PreviewSession]:
        session = self._session
        if session is None or session.closing:
            logger.debug("Preview operation without an open session")
            return None
        return session

    def _take_render_key(self) -> int:
        key = self._next_render_key
        self._next_render_key += 1
        return key

    def _ensure_engine(self) -> None:
        if self._engine is not None or self._engine_factory is None:
            return
        try:
            self._engine = self._engine_factory(self.post_sandbox_message)
        except Exception as exc:
            logger.exception("Failed to start preview engine")
            self.bus.publish(PREVIEW_ERROR, f"Preview engine unavailable: {exc}")

    def _shutdown_engine(self) -> None:
        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            engine.close()
        except Exception:
            logger.exception("Failed to stop preview engine")

    def _load_document(self) -> None:
        if self._engine is None:
            return
        document = self.build_document()
        if document is None:
            return
        try:
            self._engine.load(document)
        except Exception as exc:
            logger.exception("Failed to load preview document")
            self.bus.publish(PREVIEW_ERROR, f"Preview failed: {exc}")

    def _width_changed(self, width: float) -> None:
        del width
        self._changed()

    def _changed(self) -> None:
        self.bus.publish(PREVIEW_CHANGED, self)
