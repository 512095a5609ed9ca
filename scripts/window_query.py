"""
AeroSpace Focus - Window observer.

Finds the focused window's frame, app name and bundle id. Sources are tried
in order (AeroSpace CLI, then the Accessibility API) and each one returns a
WindowInfo or None; nothing here raises to the caller.
"""

import logging
import os
import subprocess
from typing import Optional, Sequence

from AppKit import NSScreen, NSWorkspace
from ApplicationServices import (
    AXIsProcessTrusted,
    AXUIElementCopyAttributeValue,
    AXUIElementCreateApplication,
    AXValueGetValue,
    kAXFocusedWindowAttribute,
    kAXPositionAttribute,
    kAXSizeAttribute,
    kAXValueCGPointType,
    kAXValueCGSizeType,
)
from Quartz import CGWindowListCopyWindowInfo, kCGWindowListOptionIncludingWindow

from geometry import (
    Rect,
    Screen,
    WindowInfo,
    is_fullscreen,
    top_left_to_bottom_left,
)

logger = logging.getLogger(__name__)

AEROSPACE_PATHS = (
    '/opt/homebrew/bin/aerospace',            # Apple Silicon Homebrew
    '/usr/local/bin/aerospace',               # Intel Homebrew
    '/run/current-system/sw/bin/aerospace',   # nix-darwin
)
AEROSPACE_TIMEOUT = 2.0

FOCUSED_FORMAT = '%{window-id}|%{app-name}'


def _to_rect(ns_rect) -> Rect:
    return Rect(float(ns_rect.origin.x), float(ns_rect.origin.y),
                float(ns_rect.size.width), float(ns_rect.size.height))


def list_screens() -> list:
    """All displays; the first entry is the primary one."""
    screens = []
    for screen in NSScreen.screens() or []:
        screens.append(Screen(_to_rect(screen.frame()),
                              _to_rect(screen.visibleFrame())))
    return screens


def primary_screen_height() -> Optional[float]:
    screens = NSScreen.screens()
    if not screens:
        return None
    return float(screens[0].frame().size.height)


def to_cocoa_frame(top_left_rect: Rect) -> Rect:
    """Convert CG/AX coordinates using the primary display height."""
    height = primary_screen_height()
    if height is None:
        return top_left_rect
    return top_left_to_bottom_left(top_left_rect, height)


def frontmost_bundle_id() -> Optional[str]:
    try:
        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None
        return app.bundleIdentifier()
    except Exception as e:
        logger.debug(f"Frontmost application lookup failed: {e}")
        return None


def parse_bounds(bounds) -> Optional[Rect]:
    """Parse a kCGWindowBounds dictionary (top-left origin)."""
    try:
        return Rect(float(bounds['X']), float(bounds['Y']),
                    float(bounds['Width']), float(bounds['Height']))
    except (KeyError, TypeError, ValueError):
        return None


def window_frame(window_id: int) -> Optional[Rect]:
    """Frame of a window by CGWindowID, in Cocoa coordinates."""
    try:
        windows = CGWindowListCopyWindowInfo(
            kCGWindowListOptionIncludingWindow, window_id
        )
    except Exception as e:
        logger.debug(f"Window list query failed for {window_id}: {e}")
        return None
    if not windows:
        return None

    rect = parse_bounds(windows[0].get('kCGWindowBounds'))
    if rect is None:
        logger.debug(f"Unparseable bounds for window {window_id}")
        return None
    return to_cocoa_frame(rect)


class AerospaceCLI:
    """Runs the `aerospace` binary with a hard timeout."""

    def __init__(self, paths: Sequence[str] = AEROSPACE_PATHS,
                 timeout: float = AEROSPACE_TIMEOUT):
        self.paths = tuple(paths)
        self.timeout = timeout
        self._binary = None
        self._warned_missing = False

    def find_binary(self) -> Optional[str]:
        if self._binary:
            return self._binary
        for path in self.paths:
            if os.path.exists(path):
                self._binary = path
                logger.debug(f"Using aerospace at {path}")
                return path
        if not self._warned_missing:
            logger.warning("Aerospace binary not found")
            self._warned_missing = True
        return None

    def run(self, args: Sequence[str]) -> Optional[str]:
        """Trimmed stdout, or None on any failure (missing, timeout, exit != 0)."""
        binary = self.find_binary()
        if not binary:
            return None
        try:
            # subprocess.run kills the child before raising TimeoutExpired
            result = subprocess.run(
                [binary, *args],
                capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Aerospace CLI timed out after {self.timeout}s")
            return None
        except OSError as e:
            logger.warning(f"Aerospace CLI failed: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"aerospace {' '.join(args)} exited {result.returncode}")
            return None
        output = result.stdout.strip()
        return output or None


class AerospaceProvider:
    """Focused window via `aerospace list-windows --focused`."""

    name = 'aerospace'

    def __init__(self, cli: AerospaceCLI):
        self.cli = cli

    def focused_window(self) -> Optional[WindowInfo]:
        output = self.cli.run(['list-windows', '--focused',
                               '--format', FOCUSED_FORMAT])
        if not output:
            return None

        parts = output.splitlines()[0].split('|', 1)
        if len(parts) < 2:
            return None
        try:
            window_id = int(parts[0])
        except ValueError:
            return None

        frame = window_frame(window_id)
        if frame is None:
            return None
        # The CLI has no bundle id, so ask the frontmost application
        return WindowInfo(frame, parts[1], frontmost_bundle_id())


class AccessibilityProvider:
    """Frontmost app's focused window via the AX API.

    Needs the Accessibility permission; without it this returns None.
    """

    name = 'accessibility'

    def __init__(self):
        self._warned_untrusted = False

    def focused_window(self) -> Optional[WindowInfo]:
        try:
            if not AXIsProcessTrusted():
                if not self._warned_untrusted:
                    logger.warning(
                        "Accessibility permissions not granted - grant in System "
                        "Settings > Privacy & Security > Accessibility")
                    self._warned_untrusted = True
                return None
            return self._query()
        except Exception as e:
            logger.debug(f"Accessibility query failed: {e}")
            return None

    def _query(self) -> Optional[WindowInfo]:
        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None

        ax_app = AXUIElementCreateApplication(app.processIdentifier())
        err, window = AXUIElementCopyAttributeValue(
            ax_app, kAXFocusedWindowAttribute, None
        )
        if err != 0 or window is None:
            return None

        err, position_ref = AXUIElementCopyAttributeValue(
            window, kAXPositionAttribute, None
        )
        if err != 0 or position_ref is None:
            return None
        err, size_ref = AXUIElementCopyAttributeValue(
            window, kAXSizeAttribute, None
        )
        if err != 0 or size_ref is None:
            return None

        ok, point = AXValueGetValue(position_ref, kAXValueCGPointType, None)
        if not ok:
            return None
        ok, size = AXValueGetValue(size_ref, kAXValueCGSizeType, None)
        if not ok:
            return None

        rect = Rect(float(point.x), float(point.y),
                    float(size.width), float(size.height))
        name = app.localizedName() or 'Unknown'
        return WindowInfo(to_cocoa_frame(rect), name, app.bundleIdentifier())


class WindowObserver:
    """Asks each provider in turn for the focused window."""

    def __init__(self, providers: Sequence, cli: AerospaceCLI):
        self.providers = list(providers)
        self.cli = cli

    def get_focused_window_info(self) -> Optional[WindowInfo]:
        for provider in self.providers:
            info = provider.focused_window()
            if info is not None:
                return info
            logger.debug(f"No window from {provider.name}")
        return None

    def get_workspace_window_count(self) -> int:
        output = self.cli.run(['list-windows', '--workspace', 'focused',
                               '--format', '%{window-id}'])
        if not output:
            return 0
        return len([line for line in output.splitlines() if line.strip()])

    def screens(self) -> list:
        try:
            return list_screens()
        except Exception as e:
            logger.debug(f"Screen query failed: {e}")
            return []

    def is_window_fullscreen(self, frame: Rect) -> bool:
        return is_fullscreen(frame, self.screens())


def build_observer(cli: Optional[AerospaceCLI] = None) -> WindowObserver:
    cli = cli or AerospaceCLI()
    return WindowObserver([AerospaceProvider(cli), AccessibilityProvider()], cli)
