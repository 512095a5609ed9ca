"""Shared pytest fixtures for aerospace-focus tests."""

import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tests.fixtures.sample_data import (
    SAMPLE_AEROSPACE_TOML,
    SAMPLE_SETTINGS_TOML,
)

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "scripts"))


# =============================================================================
# PATH AND DIRECTORY FIXTURES
# =============================================================================


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """XDG config root with no files in it yet."""
    root = tmp_path / "config"
    (root / "aerospace-focus").mkdir(parents=True)
    (root / "aerospace").mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(root))
    monkeypatch.setenv("HOME", str(tmp_path))
    return root


@pytest.fixture
def settings_file(config_dir):
    path = config_dir / "aerospace-focus" / "config.toml"
    path.write_text(SAMPLE_SETTINGS_TOML)
    return path


@pytest.fixture
def aerospace_file(config_dir):
    path = config_dir / "aerospace" / "aerospace.toml"
    path.write_text(SAMPLE_AEROSPACE_TOML)
    return path


@pytest.fixture
def socket_path(monkeypatch):
    """Short socket path; AF_UNIX paths are limited to ~104 bytes on macOS."""
    directory = tempfile.mkdtemp(prefix="af-")
    path = Path(directory) / "s.sock"
    monkeypatch.setenv("AEROSPACE_FOCUS_SOCKET", str(path))
    yield path
    shutil.rmtree(directory, ignore_errors=True)


# =============================================================================
# MOCK PYOBJC FIXTURES
# =============================================================================


@pytest.fixture
def mock_pyobjc():
    """Mock all PyObjC modules for cross-platform testing."""
    from tests.fixtures.mock_pyobjc import (
        MockNSAnimationContext,
        MockNSColor,
        MockNSScreen,
        MockNSWindow,
        MockNSWorkspace,
        MockQuartz,
        mock_make_rect,
    )

    mocks = {
        "AppKit": MagicMock(),
        "Cocoa": MagicMock(),
        "Quartz": MagicMock(),
        "objc": MagicMock(),
        "Foundation": MagicMock(),
        "ApplicationServices": MagicMock(),
    }

    # Set up AppKit / Cocoa mocks
    for name in ("AppKit", "Cocoa"):
        mocks[name].NSWorkspace = MockNSWorkspace
        mocks[name].NSScreen = MockNSScreen
        mocks[name].NSWindow = MockNSWindow
        mocks[name].NSColor = MockNSColor
        mocks[name].NSAnimationContext = MockNSAnimationContext
        mocks[name].NSMakeRect = mock_make_rect

    # Set up Quartz mocks
    mocks["Quartz"].CGWindowListCopyWindowInfo = (
        MockQuartz.CGWindowListCopyWindowInfo
    )
    mocks["Quartz"].kCGWindowListOptionIncludingWindow = 8

    # Accessibility is untrusted unless a test says otherwise
    mocks["ApplicationServices"].AXIsProcessTrusted.return_value = False

    with patch.dict(sys.modules, mocks):
        yield mocks


@pytest.fixture
def mock_nsworkspace():
    """Mock NSWorkspace for frontmost app detection."""
    from tests.fixtures.mock_pyobjc import MockNSWorkspace

    MockNSWorkspace.reset()
    yield MockNSWorkspace


@pytest.fixture
def mock_screens():
    """One primary laptop display."""
    from tests.fixtures.mock_pyobjc import MockNSScreen
    from tests.fixtures.sample_data import LAPTOP_SCREEN

    MockNSScreen.set_screens(LAPTOP_SCREEN)
    yield MockNSScreen


# =============================================================================
# SUBPROCESS FIXTURES
# =============================================================================


@pytest.fixture
def mock_subprocess_success(mocker):
    """Mock successful subprocess calls."""
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.returncode = 0
    mock_run.return_value.stdout = ""
    mock_run.return_value.stderr = ""

    mock_popen = mocker.patch("subprocess.Popen")
    mock_popen.return_value.pid = 99999

    return {"run": mock_run, "popen": mock_popen}


@pytest.fixture
def mock_subprocess_failure(mocker):
    """Mock failed subprocess calls."""
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.returncode = 1
    mock_run.return_value.stdout = ""
    mock_run.return_value.stderr = "Command failed"

    return mock_run


# =============================================================================
# CLEANUP FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_mocks():
    """Reset class-level mock state between tests."""
    yield
    from tests.fixtures.mock_pyobjc import (
        MockNSAnimationContext,
        MockNSScreen,
        MockNSWorkspace,
        MockQuartz,
    )

    MockQuartz.clear_windows()
    MockNSScreen.clear_screens()
    MockNSWorkspace.reset()
    MockNSAnimationContext.durations = []
    MockNSAnimationContext._current = None
