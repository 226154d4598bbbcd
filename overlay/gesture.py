"""Drag-to-dismiss gesture handling for the overlay panel."""
import asyncio
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from overlay.listeners import ListenerRegistry
from overlay.panel import OverlayPanel

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Any]


def default_scheduler(delay: float, callback: Callable[[], None]) -> Any:
    """Run callback after delay seconds on the running event loop, or a timer thread."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


@dataclass
class PointerEvent:
    """Vertical position of a mouse pointer or the first touch point."""
    client_y: float


class DragState(enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    SETTLING = "settling"


class GestureController:
    """
    Lets the user drag the panel down by its header to dismiss it.

    A release past the dismissal threshold closes the panel; anything
    shorter springs it back. Upward drags have no effect.
    """

    MAX_DISMISS_DISTANCE = 150
    DISMISS_HEIGHT_RATIO = 0.33
    MIN_BACKDROP_OPACITY = 0.25
    SETTLE_SECONDS = 0.3
    DESKTOP_BREAKPOINT = 768
    PANEL_TRANSITION = "transform .3s ease"
    BACKDROP_TRANSITION = "opacity .25s ease"
    NO_TRANSITION = "none"

    def __init__(
        self,
        panel: Optional[OverlayPanel],
        document: Optional[ListenerRegistry],
        scheduler: Optional[Scheduler] = None,
        desktop_breakpoint: float = DESKTOP_BREAKPOINT,
    ):
        """
        Initialize the controller.

        Args:
            panel: Panel to control, None when the page has none
            document: Page-wide registry receiving mouse move/up events
            scheduler: Callable(delay_seconds, callback) for the settle timer
            desktop_breakpoint: Viewport width above which the panel is
                horizontally centered
        """
        self.panel = panel
        self.document = document
        self.scheduler = scheduler or default_scheduler
        self.desktop_breakpoint = desktop_breakpoint

        self.state = DragState.IDLE
        self.start_y = 0.0
        self.current_y = 0.0

    def attach(self) -> bool:
        """Subscribe to header events. Returns False when there is nothing to attach to."""
        if self.panel is None or self.document is None:
            logger.debug("Overlay panel not present, drag handling disabled")
            return False

        header = self.panel.header
        header.add_listener("mousedown", self._on_mouse_down)
        header.add_listener("touchstart", self._on_touch_start)
        header.add_listener("touchmove", self._on_touch_move)
        header.add_listener("touchend", self._on_touch_end)
        header.add_listener("touchcancel", self._on_touch_end)
        return True

    # Transport-agnostic transitions

    def begin(self, y: float) -> None:
        if self.panel is None:
            return
        self.state = DragState.DRAGGING
        self.start_y = y
        self.current_y = y
        self.panel.transition = self.NO_TRANSITION
        self.panel.backdrop_transition = self.NO_TRANSITION

    def move(self, y: float) -> None:
        self.current_y = y
        if self.state is not DragState.DRAGGING or self.panel is None:
            return

        displacement = self.displacement
        self.panel.transform = self.translate(displacement)
        # A collapsed viewport has nothing to fade against
        height = self.panel.viewport.height
        fade = displacement / height if height > 0 else 0.0
        self.panel.backdrop_opacity = max(self.MIN_BACKDROP_OPACITY, 1 - fade)

    def release(self) -> bool:
        """
        Finish a drag, dismissing or springing back the panel.

        Returns:
            False when no drag was in progress (nothing happened)
        """
        if self.state is not DragState.DRAGGING or self.panel is None:
            return False

        self.state = DragState.SETTLING
        panel = self.panel
        panel.transition = self.PANEL_TRANSITION
        panel.backdrop_transition = self.BACKDROP_TRANSITION

        if self.displacement > self.dismiss_threshold:
            logger.debug(f"Panel dragged {self.displacement}px, dismissing")
            panel.dismiss()
        else:
            panel.transform = self.translate(0)
            panel.backdrop_opacity = 1.0

        self.scheduler(self.SETTLE_SECONDS, self._finish_settle)
        return True

    @property
    def displacement(self) -> float:
        return max(0.0, self.current_y - self.start_y)

    @property
    def dismiss_threshold(self) -> float:
        return min(
            self.MAX_DISMISS_DISTANCE,
            self.panel.height * self.DISMISS_HEIGHT_RATIO,
        )

    def translate(self, offset: float) -> str:
        if self.panel.viewport.width > self.desktop_breakpoint:
            return f"translateX(-50%) translateY({offset:g}px)"
        return f"translateY({offset:g}px)"

    def _finish_settle(self) -> None:
        # A new drag may have started while the animation ran
        if self.state is not DragState.SETTLING:
            return
        self.panel.transition = None
        self.panel.backdrop_transition = None
        self.state = DragState.IDLE

    # Listener plumbing

    def _on_mouse_down(self, event: PointerEvent) -> None:
        self.begin(event.client_y)
        self.document.add_listener("mousemove", self._on_mouse_move)
        self.document.add_listener("mouseup", self._on_mouse_up)

    def _on_mouse_move(self, event: PointerEvent) -> None:
        self.move(event.client_y)

    def _on_mouse_up(self, event: Optional[PointerEvent] = None) -> None:
        self.document.remove_listener("mousemove", self._on_mouse_move)
        self.document.remove_listener("mouseup", self._on_mouse_up)
        self.release()

    def _on_touch_start(self, event: PointerEvent) -> None:
        self.begin(event.client_y)

    def _on_touch_move(self, event: PointerEvent) -> None:
        self.move(event.client_y)

    def _on_touch_end(self, event: Optional[PointerEvent] = None) -> None:
        self.release()
