"""Mock PyObjC classes for cross-platform testing."""

from unittest.mock import MagicMock


class MockNSRect:
    """Mock NSRect structure."""

    def __init__(self, x=0, y=0, width=200, height=300):
        self.origin = MagicMock()
        self.origin.x = x
        self.origin.y = y
        self.size = MagicMock()
        self.size.width = width
        self.size.height = height


def mock_make_rect(x, y, width, height):
    return MockNSRect(x, y, width, height)


class MockNSWindow:
    """Mock NSWindow for overlay testing."""

    def __init__(self):
        self._frame = MockNSRect(0, 0, 100, 4)
        self._visible = False
        self._level = 0
        self._opaque = True
        self._background = None
        self._ignores_mouse = False
        self._collection_behavior = 0
        self.animated_frames = []

    @classmethod
    def alloc(cls):
        return cls()

    def initWithContentRect_styleMask_backing_defer_(
        self, rect, style, backing, defer
    ):
        self._frame = rect
        return self

    def setFrame_display_(self, frame, display):
        self._frame = frame

    def frame(self):
        return self._frame

    def orderFront_(self, sender):
        self._visible = True

    def orderOut_(self, sender):
        self._visible = False

    def isVisible(self):
        return self._visible

    def setLevel_(self, level):
        self._level = level

    def setOpaque_(self, opaque):
        self._opaque = opaque

    def isOpaque(self):
        return self._opaque

    def setBackgroundColor_(self, color):
        self._background = color

    def backgroundColor(self):
        return self._background

    def setIgnoresMouseEvents_(self, ignores):
        self._ignores_mouse = ignores

    def setCollectionBehavior_(self, behavior):
        self._collection_behavior = behavior

    def setExcludedFromWindowsMenu_(self, excluded):
        pass

    def setHidesOnDeactivate_(self, hides):
        pass

    def setHasShadow_(self, shadow):
        pass

    def animator(self):
        window = self

        class _Animator:
            def setFrame_display_(self, frame, display):
                window.animated_frames.append(frame)
                window._frame = frame

        return _Animator()


class MockNSColor:
    """Mock NSColor that remembers its components."""

    @staticmethod
    def colorWithRed_green_blue_alpha_(r, g, b, a):
        return (r, g, b, a)


class MockNSAnimationContext:
    """Mock NSAnimationContext for animations."""

    _current = None
    durations = []

    def __init__(self):
        self.duration = 0

    @classmethod
    def beginGrouping(cls):
        cls._current = cls()

    @classmethod
    def endGrouping(cls):
        if cls._current is not None:
            cls.durations.append(cls._current.duration)
        cls._current = None

    @classmethod
    def currentContext(cls):
        if cls._current is None:
            cls._current = cls()
        return cls._current

    def setDuration_(self, duration):
        self.duration = duration


class MockNSScreen:
    """Mock NSScreen with a frame and a visible frame."""

    _screens = []

    def __init__(self, frame, visible_frame):
        self._frame = MockNSRect(*frame)
        self._visible = MockNSRect(*visible_frame)

    def frame(self):
        return self._frame

    def visibleFrame(self):
        return self._visible

    @classmethod
    def screens(cls):
        return list(cls._screens)

    @classmethod
    def set_screens(cls, *screens):
        """Helper: each screen is ((x, y, w, h), (vx, vy, vw, vh))."""
        cls._screens = [cls(frame, visible) for frame, visible in screens]

    @classmethod
    def clear_screens(cls):
        cls._screens = []


class MockNSWorkspace:
    """Mock NSWorkspace for frontmost app detection."""

    _shared = None
    _frontmost_pid = 12345
    _frontmost_name = "Terminal"
    _frontmost_bundle_id = "com.apple.Terminal"

    @classmethod
    def sharedWorkspace(cls):
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    def frontmostApplication(self):
        app = MagicMock()
        app.processIdentifier.return_value = self._frontmost_pid
        app.localizedName.return_value = self._frontmost_name
        app.bundleIdentifier.return_value = self._frontmost_bundle_id
        return app

    @classmethod
    def set_frontmost(cls, pid, name="Terminal", bundle_id=None):
        """Helper to set frontmost app for tests."""
        cls._frontmost_pid = pid
        cls._frontmost_name = name
        cls._frontmost_bundle_id = bundle_id

    @classmethod
    def reset(cls):
        cls._shared = None
        cls.set_frontmost(12345, "Terminal", "com.apple.Terminal")


class MockQuartz:
    """Mock Quartz window list, keyed by window number."""

    _windows = {}

    @staticmethod
    def CGWindowListCopyWindowInfo(options, window_id):
        window = MockQuartz._windows.get(window_id)
        return [window] if window is not None else []

    @classmethod
    def set_window(cls, window_id, x, y, width, height, owner="Terminal"):
        """Helper to register a window with top-left-origin bounds."""
        cls._windows[window_id] = {
            'kCGWindowNumber': window_id,
            'kCGWindowOwnerName': owner,
            'kCGWindowBounds': {
                'X': x, 'Y': y, 'Width': width, 'Height': height,
            },
        }

    @classmethod
    def set_raw_window(cls, window_id, info):
        cls._windows[window_id] = info

    @classmethod
    def clear_windows(cls):
        cls._windows = {}


# Constants that would be imported from PyObjC
kCGWindowListOptionIncludingWindow = 8
NSFloatingWindowLevel = 3
NSBackingStoreBuffered = 2
NSWindowCollectionBehaviorCanJoinAllSpaces = 1
NSWindowCollectionBehaviorStationary = 16
NSWindowCollectionBehaviorFullScreenAuxiliary = 256
