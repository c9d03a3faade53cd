"""
Keyboard navigation for the findings grid.

The controller turns key events into focus moves and actions on the
engine. It is attached to an explicit KeyEventSource rather than a global
listener, so a renderer (or a test) decides where events come from.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional

import structlog

if TYPE_CHECKING:
    from .engine import GridEngine

log = structlog.get_logger()

HELP_SHORTCUTS = [
    ("j / ↓", "Next row"),
    ("k / ↑", "Previous row"),
    ("Enter", "Open finding"),
    ("Space", "Toggle selection"),
    ("x", "Expand / collapse row"),
    ("r", "Refresh"),
    ("/", "Search"),
    ("Esc", "Clear selection"),
    ("?", "Show shortcuts"),
]


@dataclass
class KeyEvent:
    """A key press as seen by the grid (DOM-style key names)."""

    key: str
    in_text_input: bool = False
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    default_prevented: bool = False
    handled: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


KeyListener = Callable[[KeyEvent], bool]


class KeyEventSource:
    """Dispatches key events to attached listeners in attach order."""

    def __init__(self) -> None:
        self._listeners: List[KeyListener] = []

    def add_listener(self, listener: KeyListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: KeyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch(self, event: KeyEvent) -> KeyEvent:
        for listener in list(self._listeners):
            if event.handled:
                break
            if listener(event):
                event.handled = True
        return event


class KeyboardController:
    """Maps key events to focus, selection, expansion and navigation."""

    def __init__(
        self,
        engine: "GridEngine",
        focus_search: Optional[Callable[[], None]] = None,
        blur_search: Optional[Callable[[], None]] = None,
    ):
        self.engine = engine
        self.focus_search = focus_search
        self.blur_search = blur_search
        self._source: Optional[KeyEventSource] = None

    @property
    def attached(self) -> bool:
        return self._source is not None

    def attach(self, source: KeyEventSource) -> None:
        if self._source is source:
            return
        self.detach()
        source.add_listener(self.handle)
        self._source = source
        log.debug("keyboard.attached")

    def detach(self) -> None:
        if self._source is not None:
            self._source.remove_listener(self.handle)
            self._source = None
            log.debug("keyboard.detached")

    def handle(self, event: KeyEvent) -> bool:
        """Handle one event. Returns True when the event was consumed."""
        key = event.key

        if event.in_text_input:
            if key == "Escape":
                if self.blur_search:
                    self.blur_search()
                return True
            return False

        engine = self.engine
        if key in ("j", "ArrowDown"):
            engine.move_focus(1)
        elif key in ("k", "ArrowUp"):
            engine.move_focus(-1)
        elif key == "Enter":
            record = engine.focused_record
            if record is not None:
                engine.open_record(record.id)
        elif key in (" ", "Space"):
            event.prevent_default()
            record = engine.focused_record
            if record is not None:
                engine.toggle_select(record.id)
        elif key == "x":
            record = engine.focused_record
            if record is not None:
                engine.toggle_expand(record.id)
        elif key == "r":
            if event.ctrl or event.meta:
                # Leave browser/terminal refresh alone
                return False
            engine.request_refresh()
        elif key == "/":
            event.prevent_default()
            if self.focus_search:
                self.focus_search()
        elif key == "Escape":
            engine.reset_interaction()
        elif key == "?":
            engine.open_help()
        else:
            return False
        return True
