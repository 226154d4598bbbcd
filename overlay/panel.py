"""Presentation state of the waitlist bottom sheet and its backdrop."""
from dataclasses import dataclass
from typing import Callable, Optional

from overlay.listeners import ListenerRegistry

CLICK = "click"


@dataclass
class Viewport:
    """Visible area of the page in CSS pixels."""
    width: float
    height: float


class OverlayPanel:
    """
    Bottom sheet holding an embedded form, shown over a dimming backdrop.

    The sheet's header, backdrop and close control are listener registries so
    the gesture controller and capture trigger can subscribe to them the way
    they would to page elements.
    """

    def __init__(
        self,
        height: float,
        viewport: Viewport,
        has_form_frame: bool = True,
        has_close_control: bool = True,
    ):
        self.height = height
        self.viewport = viewport
        self.has_form_frame = has_form_frame

        self.header = ListenerRegistry()
        self.backdrop = ListenerRegistry()
        self.close_control = ListenerRegistry() if has_close_control else None

        self.active = False
        self.backdrop_active = False
        self.scroll_locked = False
        self.form_src: Optional[str] = None

        self.transform: Optional[str] = None
        self.backdrop_opacity = 1.0
        self.transition: Optional[str] = None
        self.backdrop_transition: Optional[str] = None

        self._dismiss_handler: Optional[Callable[[], None]] = None
        self._click_listener = None

    def open(self, form_src: str) -> None:
        self.form_src = form_src
        self.transform = None
        self.backdrop_opacity = 1.0
        self.active = True
        self.backdrop_active = True
        self.scroll_locked = True

    def close(self) -> bool:
        """Hide the sheet and backdrop, release page scroll. Returns False if already closed."""
        if not self.active:
            return False
        self.active = False
        self.backdrop_active = False
        self.scroll_locked = False
        return True

    def bind_dismiss(self, handler: Callable[[], None]) -> None:
        """Route backdrop clicks, the close control and drag dismissal to one handler."""
        if self._click_listener is not None:
            self.backdrop.remove_listener(CLICK, self._click_listener)
            if self.close_control is not None:
                self.close_control.remove_listener(CLICK, self._click_listener)

        self._dismiss_handler = handler
        self._click_listener = lambda _event: handler()
        self.backdrop.add_listener(CLICK, self._click_listener)
        if self.close_control is not None:
            self.close_control.add_listener(CLICK, self._click_listener)

    def dismiss(self) -> None:
        if self._dismiss_handler is not None:
            self._dismiss_handler()
        else:
            self.close()
