#!/usr/bin/env python3
"""
AeroSpace Focus - Focus bar overlay (macOS).

A borderless, click-through, always-on-top window drawn in the gap next to
the focused window. Only the daemon's main context calls into it.
"""

import logging
import sys
from typing import Optional

try:
    from Cocoa import (
        NSAnimationContext,
        NSBackingStoreBuffered,
        NSColor,
        NSFloatingWindowLevel,
        NSMakeRect,
        NSWindow,
        NSWindowCollectionBehaviorCanJoinAllSpaces,
        NSWindowCollectionBehaviorFullScreenAuxiliary,
        NSWindowCollectionBehaviorStationary,
    )
except ImportError:
    print("Required: pip3 install pyobjc-framework-Cocoa")
    sys.exit(1)

from focus_config import Config, parse_hex_color
from geometry import Rect

logger = logging.getLogger(__name__)

NSWindowStyleMaskBorderless = 0
INITIAL_WIDTH = 100


class FocusBar:
    """The overlay window plus its OverlayState (frame, visible, colour)."""

    def __init__(self, config: Config):
        self.config = config
        self.window = None
        self.frame: Optional[Rect] = None
        self.visible = False
        self.color_override: Optional[tuple] = None

    def create(self, initial_height: float = 4.0):
        rect = NSMakeRect(0, 0, INITIAL_WIDTH, initial_height)
        self.window = NSWindow.alloc()
        self.window = self.window.initWithContentRect_styleMask_backing_defer_(
            rect, NSWindowStyleMaskBorderless, NSBackingStoreBuffered, False
        )

        self.window.setLevel_(NSFloatingWindowLevel)
        self.window.setIgnoresMouseEvents_(True)  # Click-through
        self.window.setCollectionBehavior_(
            NSWindowCollectionBehaviorCanJoinAllSpaces |
            NSWindowCollectionBehaviorStationary |
            NSWindowCollectionBehaviorFullScreenAuxiliary
        )
        # Keep out of the Window menu and Mission Control
        self.window.setExcludedFromWindowsMenu_(True)
        self.window.setHidesOnDeactivate_(False)
        self.window.setHasShadow_(False)
        self.apply_appearance(self.config)

    def apply_appearance(self, config: Config):
        """Colour and opacity from config, unless a `color` override is set."""
        self.config = config
        if self.window is None:
            return
        red, green, blue = self.color_override or config.rgb
        self.window.setBackgroundColor_(
            NSColor.colorWithRed_green_blue_alpha_(
                red, green, blue, config.bar_opacity
            )
        )
        self.window.setOpaque_(config.bar_opacity >= 1.0)

    def set_color(self, hex_color: str) -> bool:
        """Temporary colour until the next reload. False if unparseable."""
        rgb = parse_hex_color(hex_color)
        if rgb is None:
            logger.warning(f"Invalid color: {hex_color}")
            return False
        self.color_override = rgb
        self.apply_appearance(self.config)
        return True

    def reload(self, config: Config):
        """New config; drops any `color` override."""
        self.color_override = None
        self.apply_appearance(config)

    def place(self, frame: Rect):
        """Move the bar to `frame` and bring it on screen."""
        if self.window is None:
            self.create(frame.height)

        ns_frame = NSMakeRect(frame.x, frame.y, frame.width, frame.height)
        if self.config.animate and self.visible:
            NSAnimationContext.beginGrouping()
            try:
                NSAnimationContext.currentContext().setDuration_(
                    self.config.animation_duration
                )
                self.window.animator().setFrame_display_(ns_frame, True)
            finally:
                NSAnimationContext.endGrouping()
        else:
            self.window.setFrame_display_(ns_frame, True)

        self.frame = frame
        self.window.orderFront_(None)
        self.visible = True

    def hide(self):
        if self.window is not None:
            self.window.orderOut_(None)
        self.visible = False

    def show(self):
        """Re-show at the last frame; no-op before the first placement."""
        if self.window is None or self.frame is None:
            return False
        self.window.orderFront_(None)
        self.visible = True
        return True
