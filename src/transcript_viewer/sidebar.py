"""Side panel geometry and the drag-to-resize gesture."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, Optional

from transcript_viewer.event_bus import EventBus, SubscriptionScope

logger = logging.getLogger(__name__)

MIN_WIDTH_PERCENT = 20.0
MAX_WIDTH_PERCENT = 80.0
MOBILE_BREAKPOINT = 768
CLOSE_TRANSITION_SECONDS = 0.3

POINTER_MOVE = "pointer.move"
POINTER_UP = "pointer.up"


def clamp_width(percent: float) -> float:
    return max(MIN_WIDTH_PERCENT, min(MAX_WIDTH_PERCENT, float(percent)))


def width_from_pointer(pointer_x: float, viewport_width: float) -> Optional[float]:
    """Panel width as a percentage of the viewport measured from the right edge."""
    if viewport_width <= 0:
        return None
    raw = (viewport_width - pointer_x) / viewport_width * 100.0
    return clamp_width(raw)


@dataclass
class SidebarGeometry:
    width_percent: float = 40.0
    viewport_width: int = 0
    breakpoint: int = MOBILE_BREAKPOINT

    def __post_init__(self) -> None:
        self.width_percent = clamp_width(self.width_percent)

    @property
    def is_mobile_layout(self) -> bool:
        return 0 < self.viewport_width <= self.breakpoint

    def update_viewport(self, width: int) -> bool:
        """Record the viewport width; return True when the layout mode flipped."""
        was_mobile = self.is_mobile_layout
        self.viewport_width = max(0, int(width))
        return was_mobile != self.is_mobile_layout

    def set_width(self, percent: float) -> float:
        self.width_percent = clamp_width(percent)
        return self.width_percent

    def resize_to_pointer(self, pointer_x: float) -> float:
        width = width_from_pointer(pointer_x, self.viewport_width)
        if width is not None:
            self.width_percent = width
        return self.width_percent


def _pointer_x(payload: Any) -> Optional[float]:
    if isinstance(payload, (int, float)) and not isinstance(payload, bool):
        return float(payload)
    value = getattr(payload, "x", None)
    if isinstance(value, (int, float)):
        return float(value)
    return None


class ResizeDrag:
    """One drag gesture on a resize handle.

    Pointer listeners exist only between ``begin`` (pointer-down) and the
    pointer-up that ends the gesture, or an explicit ``cancel``.
    """

    def __init__(
        self,
        bus: EventBus,
        geometry: SidebarGeometry,
        on_change: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._bus = bus
        self._geometry = geometry
        self._on_change = on_change
        self._scope: Optional[SubscriptionScope] = None

    @property
    def active(self) -> bool:
        return self._scope is not None

    def begin(self) -> bool:
        if self._scope is not None:
            return False
        if self._geometry.is_mobile_layout:
            return False
        scope = SubscriptionScope(self._bus)
        scope.subscribe(POINTER_MOVE, self._handle_move)
        scope.subscribe(POINTER_UP, self._handle_up)
        self._scope = scope
        logger.debug("Resize drag started")
        return True

    def cancel(self) -> None:
        scope, self._scope = self._scope, None
        if scope is not None:
            scope.close()
            logger.debug("Resize drag ended")

    def _handle_move(self, payload: Any) -> None:
        if self._scope is None or self._geometry.is_mobile_layout:
            return
        pointer_x = _pointer_x(payload)
        if pointer_x is None:
            return
        width = self._geometry.resize_to_pointer(pointer_x)
        if self._on_change is not None:
            self._on_change(width)

    def _handle_up(self, payload: Any) -> None:
        del payload
        self.cancel()
