"""
AeroSpace Focus - Geometry engine.

Pure functions that turn a focused window frame into a bar frame.
All rects here use the Cocoa global space (origin at the bottom-left of the
primary display) unless a function says otherwise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence

EDGE_THRESHOLD = 10.0     # points from the visible edge that still count as "at edge"
FULLSCREEN_TOLERANCE = 10.0
DEFAULT_GAP = 4.0


class Position(str, Enum):
    """Side of the focused window the bar is drawn on."""

    BOTTOM = 'bottom'
    TOP = 'top'
    LEFT = 'left'
    RIGHT = 'right'

    @property
    def is_vertical(self) -> bool:
        """True when the bar sits above or below the window."""
        return self in (Position.BOTTOM, Position.TOP)


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def contains_point(self, px: float, py: float) -> bool:
        # Half-open like NSPointInRect so adjacent screens never both match
        return self.min_x <= px < self.max_x and self.min_y <= py < self.max_y

    def contains_rect(self, other: 'Rect') -> bool:
        return (other.min_x >= self.min_x and other.max_x <= self.max_x and
                other.min_y >= self.min_y and other.max_y <= self.max_y)


class Screen(NamedTuple):
    """A display: full frame plus the area not covered by menu bar and Dock."""

    frame: Rect
    visible_frame: Rect


class WindowInfo(NamedTuple):
    """Focused window as observed on one poll. Never persisted."""

    frame: Rect
    app_name: str
    bundle_id: Optional[str] = None


@dataclass(frozen=True)
class Gaps:
    """AeroSpace gap sizes, in points."""

    inner_horizontal: float = DEFAULT_GAP
    inner_vertical: float = DEFAULT_GAP
    outer_top: float = DEFAULT_GAP
    outer_left: float = DEFAULT_GAP
    outer_bottom: float = DEFAULT_GAP
    outer_right: float = DEFAULT_GAP


def top_left_to_bottom_left(rect: Rect, primary_height: float) -> Rect:
    """Convert a rect from CoreGraphics/AX space to Cocoa space.

    CoreGraphics and the Accessibility API measure y downwards from the top
    of the primary display; Cocoa measures it upwards from the bottom. The
    primary display's height is the pivot for every display, including
    ones arranged above or below it with non-zero origins.
    """
    return Rect(rect.x, primary_height - rect.y - rect.height,
                rect.width, rect.height)


def screen_containing(frame: Rect, screens: Sequence[Screen]) -> Optional[Screen]:
    """Screen whose frame contains the centre of `frame`.

    Falls back to the first (primary) screen, or None when there are no
    screens at all.
    """
    cx, cy = frame.center
    for screen in screens:
        if screen.frame.contains_point(cx, cy):
            return screen
    return screens[0] if screens else None


def is_at_screen_edge(frame: Rect, position: Position, screen_visible_frame: Rect,
                      threshold: float = EDGE_THRESHOLD) -> bool:
    """Check whether the window's `position` side touches the visible edge."""
    visible = screen_visible_frame
    if position is Position.BOTTOM:
        return frame.min_y <= visible.min_y + threshold
    if position is Position.TOP:
        return frame.max_y >= visible.max_y - threshold
    if position is Position.LEFT:
        return frame.min_x <= visible.min_x + threshold
    return frame.max_x >= visible.max_x - threshold


def effective_bar_height(position: Position, at_edge: bool, gaps: Gaps,
                         explicit_override: Optional[float] = None) -> float:
    """Bar thickness: the explicit setting, else the gap the bar sits in.

    Against a screen edge the bar lives in the outer gap for that side;
    otherwise it shares the inner gap with the neighbouring window.
    """
    if explicit_override is not None:
        return explicit_override
    if position is Position.BOTTOM:
        return gaps.outer_bottom if at_edge else gaps.inner_vertical
    if position is Position.TOP:
        return gaps.outer_top if at_edge else gaps.inner_vertical
    if position is Position.LEFT:
        return gaps.outer_left if at_edge else gaps.inner_horizontal
    return gaps.outer_right if at_edge else gaps.inner_horizontal


def compute_overlay_frame(window_frame: Rect, position: Position,
                          bar_height: float, offset: float) -> Rect:
    """Place the bar flush against `position` side, pushed out by `offset`."""
    w = window_frame
    if position is Position.BOTTOM:
        return Rect(w.x, w.y - bar_height - offset, w.width, bar_height)
    if position is Position.TOP:
        return Rect(w.x, w.max_y + offset, w.width, bar_height)
    if position is Position.LEFT:
        return Rect(w.x - bar_height - offset, w.y, bar_height, w.height)
    return Rect(w.max_x + offset, w.y, bar_height, w.height)


def clamp_to_screen(overlay_frame: Rect, screen_visible_frame: Rect) -> Rect:
    """Translate (never resize) a frame so it stays on the visible area."""
    visible = screen_visible_frame
    x, y = overlay_frame.x, overlay_frame.y

    # Max edge first: a frame longer than the visible area ends up at the min edge
    if x + overlay_frame.width > visible.max_x:
        x = visible.max_x - overlay_frame.width
    if x < visible.min_x:
        x = visible.min_x

    if y + overlay_frame.height > visible.max_y:
        y = visible.max_y - overlay_frame.height
    if y < visible.min_y:
        y = visible.min_y

    return Rect(x, y, overlay_frame.width, overlay_frame.height)


def is_fullscreen(frame: Rect, screens: Sequence[Screen],
                  tolerance: float = FULLSCREEN_TOLERANCE) -> bool:
    """True when `frame` covers some screen entirely.

    Height is compared with an extra allowance for the menu bar (and the
    notch area on built-in displays), since native fullscreen windows may
    or may not extend under it.
    """
    for screen in screens:
        full, visible = screen.frame, screen.visible_frame
        menu_bar_allowance = (full.height - visible.height +
                              visible.y - full.y)
        if (abs(frame.width - full.width) < tolerance and
                abs(frame.height - full.height) < menu_bar_allowance + tolerance):
            return True
    return False


def bar_frame_for_window(window_frame: Rect, position: Position, gaps: Gaps,
                         screens: Sequence[Screen],
                         explicit_height: Optional[float] = None,
                         offset: float = 0.0) -> Rect:
    """Full placement: edge detection, sizing, framing and clamping."""
    screen = screen_containing(window_frame, screens)
    at_edge = False
    if screen is not None:
        at_edge = is_at_screen_edge(window_frame, position, screen.visible_frame)

    height = effective_bar_height(position, at_edge, gaps, explicit_height)
    frame = compute_overlay_frame(window_frame, position, height, offset)

    if screen is None:
        return frame
    return clamp_to_screen(frame, screen.visible_frame)
