# Test fixtures package
from tests.fixtures.fake_runloop import FakeContext, FakeTimer
from tests.fixtures.mock_pyobjc import (
    MockNSAnimationContext,
    MockNSColor,
    MockNSScreen,
    MockNSWindow,
    MockNSWorkspace,
    MockQuartz,
)
from tests.fixtures.sample_data import (
    SAMPLE_AEROSPACE_TOML,
    SAMPLE_SETTINGS_TOML,
)

__all__ = [
    "FakeContext",
    "FakeTimer",
    "MockNSAnimationContext",
    "MockNSColor",
    "MockNSScreen",
    "MockNSWindow",
    "MockNSWorkspace",
    "MockQuartz",
    "SAMPLE_AEROSPACE_TOML",
    "SAMPLE_SETTINGS_TOML",
]
