"""
AeroSpace Focus - AppKit main context.

Everything that mutates daemon state runs on the main run loop: NSTimer
callbacks, workspace notifications and commands posted from the socket
thread with performSelectorOnMainThread.
"""

import logging

import objc
from AppKit import NSApplication, NSWorkspace
from Foundation import NSDistributedNotificationCenter, NSObject, NSTimer

logger = logging.getLogger(__name__)

# NSApplicationActivationPolicyAccessory (no Dock icon, no menu bar)
NSApplicationActivationPolicyAccessory = 1

# Posted by the Dock when Mission Control opens
MISSION_CONTROL_ACTIVATED = 'com.apple.expose.awake'
# Either one means windows are settling into their final places again
SPACE_SETTLED = (
    'NSWorkspaceActiveSpaceDidChangeNotification',
    'NSWorkspaceDidActivateApplicationNotification',
)

TIMER_METHOD = 'scheduledTimerWithTimeInterval_target_selector_userInfo_repeats_'


class _Callback(NSObject):
    """NSObject target that forwards a selector to a Python callable."""

    def initWithCallable_(self, fn):
        self = objc.super(_Callback, self).init()
        if self is None:
            return None
        self.fn = fn
        return self

    def fire_(self, sender):
        try:
            self.fn()
        except Exception:
            logger.exception("Run loop callback failed")


class TimerHandle:
    def __init__(self, timer, target):
        self._timer = timer
        self._target = target  # kept alive until cancel()

    def cancel(self):
        if self._timer is not None:
            self._timer.invalidate()
            self._timer = None
            self._target = None


class RunLoopContext:
    """Main-context scheduler backed by NSApplication's run loop."""

    def __init__(self):
        self.app = NSApplication.sharedApplication()
        self.app.setActivationPolicy_(NSApplicationActivationPolicyAccessory)

    def _schedule(self, interval: float, fn, repeats: bool) -> TimerHandle:
        target = _Callback.alloc().initWithCallable_(fn)
        timer = getattr(NSTimer, TIMER_METHOD)(
            interval, target, 'fire:', None, repeats
        )
        return TimerHandle(timer, target)

    def call_later(self, delay: float, fn) -> TimerHandle:
        return self._schedule(delay, fn, False)

    def call_repeating(self, interval: float, fn) -> TimerHandle:
        return self._schedule(interval, fn, True)

    def post(self, fn):
        """Run `fn` on the main thread soon. Safe from any thread."""
        target = _Callback.alloc().initWithCallable_(fn)
        target.performSelectorOnMainThread_withObject_waitUntilDone_(
            'fire:', None, False
        )

    def watch_spaces(self, on_activated, on_deactivated):
        """Subscribe to Mission Control / space-switch notifications.

        Returns a function that removes the observers again.
        """
        activated = _Callback.alloc().initWithCallable_(on_activated)
        settled = _Callback.alloc().initWithCallable_(on_deactivated)

        distributed = NSDistributedNotificationCenter.defaultCenter()
        distributed.addObserver_selector_name_object_(
            activated, 'fire:', MISSION_CONTROL_ACTIVATED, None
        )
        workspace = NSWorkspace.sharedWorkspace().notificationCenter()
        for name in SPACE_SETTLED:
            workspace.addObserver_selector_name_object_(
                settled, 'fire:', name, None
            )

        def unwatch():
            distributed.removeObserver_(activated)
            workspace.removeObserver_(settled)

        return unwatch

    def run(self):
        logger.info("Starting run loop...")
        self.app.run()

    def stop(self):
        self.app.terminate_(None)
