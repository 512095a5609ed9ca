"""
AeroSpace Focus - Settings, gap sizes and floating-app rules.

Reads two TOML files:
- ~/.config/aerospace-focus/config.toml  (our settings)
- the AeroSpace config                  (gaps and `layout floating` rules)

ConfigState keeps the three derived values together so a reload swaps
them as one unit.
"""

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from PIL import ImageColor

from geometry import Gaps, Position

logger = logging.getLogger(__name__)

APP_NAME = 'aerospace-focus'

DEFAULT_BAR_COLOR = '#00ff00'
DEFAULT_EXCLUDE_APPS = ('Spotlight',)

# Valid ranges; values outside are clamped, not rejected
BAR_HEIGHT_RANGE = (1.0, 100.0)
BAR_OPACITY_RANGE = (0.0, 1.0)
OFFSET_RANGE = (0.0, 50.0)
ANIMATION_DURATION_RANGE = (0.01, 2.0)

_HEX_COLOR = re.compile(r'^#?([0-9a-fA-F]{6})$')


def config_home() -> Path:
    """Per-user config root; XDG_CONFIG_HOME overrides ~/.config."""
    override = os.environ.get('XDG_CONFIG_HOME')
    if override:
        return Path(override)
    return Path.home() / '.config'


def settings_path() -> Path:
    return config_home() / APP_NAME / 'config.toml'


def aerospace_config_path() -> Path:
    """AeroSpace looks at ~/.aerospace.toml first, then the XDG location."""
    legacy = Path.home() / '.aerospace.toml'
    if legacy.exists():
        return legacy
    return config_home() / 'aerospace' / 'aerospace.toml'


def parse_hex_color(value: str) -> Optional[tuple]:
    """Parse '#rrggbb' (or 'rrggbb') into RGB floats in [0, 1].

    Returns None for anything that is not exactly six hex digits.
    """
    if not isinstance(value, str):
        return None
    match = _HEX_COLOR.match(value.strip())
    if not match:
        return None
    red, green, blue = ImageColor.getrgb(f'#{match.group(1)}')
    return (red / 255.0, green / 255.0, blue / 255.0)


def clamp(value: float, bounds: tuple) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class Config:
    """Bar settings. Replaced wholesale on reload, never edited in place."""

    bar_height: Optional[float] = None  # None = size from AeroSpace gaps
    bar_color: str = DEFAULT_BAR_COLOR
    bar_opacity: float = 1.0
    position: Position = Position.BOTTOM
    offset: float = 0.0
    include_apps: tuple = ()
    exclude_apps: tuple = DEFAULT_EXCLUDE_APPS
    auto_exclude_floating: bool = True
    animate: bool = False
    animation_duration: float = 0.1
    auto_size_from_aerospace: bool = True

    @property
    def rgb(self) -> tuple:
        return parse_hex_color(self.bar_color) or (0.0, 1.0, 0.0)

    @classmethod
    def from_mapping(cls, data: dict) -> 'Config':
        """Build a Config from parsed TOML, clamping every number.

        Keys with the wrong type are skipped with a warning so a single
        typo does not throw away the rest of the file.
        """
        values = {}

        def number(key, bounds):
            raw = data.get(key)
            if raw is None:
                return None
            if not _is_number(raw):
                logger.warning(f"Ignoring {key}={raw!r}: expected a number")
                return None
            clamped = clamp(float(raw), bounds)
            if clamped != raw:
                logger.warning(f"{key}={raw} out of range, using {clamped}")
            return clamped

        def flag(key):
            raw = data.get(key)
            if raw is None:
                return None
            if not isinstance(raw, bool):
                logger.warning(f"Ignoring {key}={raw!r}: expected true/false")
                return None
            return raw

        def names(key):
            raw = data.get(key)
            if raw is None:
                return None
            if not isinstance(raw, list):
                logger.warning(f"Ignoring {key}: expected a list of app names")
                return None
            return tuple(str(item) for item in raw if isinstance(item, str))

        bar_height = number('bar_height', BAR_HEIGHT_RANGE)
        if bar_height is not None:
            values['bar_height'] = bar_height

        if 'bar_color' in data:
            color = data['bar_color']
            if parse_hex_color(color) is not None:
                values['bar_color'] = color.strip()
            else:
                logger.warning(f"Invalid bar_color {color!r}, using {DEFAULT_BAR_COLOR}")

        for key, bounds in (('bar_opacity', BAR_OPACITY_RANGE),
                            ('offset', OFFSET_RANGE),
                            ('animation_duration', ANIMATION_DURATION_RANGE)):
            parsed = number(key, bounds)
            if parsed is not None:
                values[key] = parsed

        if 'position' in data:
            try:
                values['position'] = Position(data['position'])
            except ValueError:
                logger.warning(f"Unknown position {data['position']!r}, using bottom")

        for key in ('include_apps', 'exclude_apps'):
            parsed = names(key)
            if parsed is not None:
                values[key] = parsed

        for key in ('auto_exclude_floating', 'animate', 'auto_size_from_aerospace'):
            parsed = flag(key)
            if parsed is not None:
                values[key] = parsed

        return cls(**values)


@dataclass(frozen=True)
class FloatingRules:
    """Apps AeroSpace lays out as floating, from its on-window-detected rules."""

    app_ids: frozenset = frozenset()
    app_name_matchers: tuple = ()          # compiled, case-insensitive
    window_title_matchers: tuple = ()      # raw pattern strings

    def is_floating(self, bundle_id: Optional[str], app_name: str) -> bool:
        return self.match(bundle_id, app_name) is not None

    def match(self, bundle_id: Optional[str], app_name: str) -> Optional[str]:
        """Return what matched (bundle id or pattern text), or None."""
        if bundle_id and bundle_id in self.app_ids:
            return bundle_id
        for matcher in self.app_name_matchers:
            if matcher.search(app_name):
                return matcher.pattern
        return None


@dataclass(frozen=True)
class Snapshot:
    """Everything reload replaces, as one immutable value."""

    config: Config = field(default_factory=Config)
    gaps: Gaps = field(default_factory=Gaps)
    floating_rules: FloatingRules = field(default_factory=FloatingRules)


def read_toml(path: Path) -> Optional[dict]:
    """Parse a TOML file.

    Returns {} when the file is missing and None when it exists but cannot
    be read or parsed.
    """
    if not path.exists():
        return {}
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return None


def _gap_value(raw: Any) -> Optional[float]:
    """Plain number, or the trailing default of a per-monitor array."""
    if isinstance(raw, list):
        defaults = [item for item in raw if _is_number(item)]
        if not defaults:
            return None
        raw = defaults[-1]
    if not _is_number(raw):
        return None
    return max(0.0, float(raw))


def parse_gaps(data: dict) -> Gaps:
    gaps = data.get('gaps')
    if not isinstance(gaps, dict):
        return Gaps()

    values = {}
    inner = gaps.get('inner', {})
    outer = gaps.get('outer', {})
    fields = (
        (inner, 'horizontal', 'inner_horizontal'),
        (inner, 'vertical', 'inner_vertical'),
        (outer, 'top', 'outer_top'),
        (outer, 'left', 'outer_left'),
        (outer, 'bottom', 'outer_bottom'),
        (outer, 'right', 'outer_right'),
    )
    for table, key, name in fields:
        if not isinstance(table, dict) or key not in table:
            continue
        value = _gap_value(table[key])
        if value is None:
            logger.warning(f"Ignoring gaps value {key}={table[key]!r}")
            continue
        values[name] = value
    return Gaps(**values)


def _runs_floating(rule: dict) -> bool:
    run = rule.get('run')
    if isinstance(run, str):
        run = [run]
    if not isinstance(run, list):
        return False
    return any(isinstance(cmd, str) and 'layout floating' in cmd for cmd in run)


def parse_floating_rules(data: dict) -> FloatingRules:
    """Collect conditions of every rule that sets `layout floating`.

    A pattern that does not compile is dropped with a warning.
    """
    app_ids = set()
    matchers = []
    titles = []

    rules = data.get('on-window-detected', [])
    if not isinstance(rules, list):
        rules = []

    for rule in rules:
        if not isinstance(rule, dict) or not _runs_floating(rule):
            continue
        condition = rule.get('if')
        if not isinstance(condition, dict):
            continue

        app_id = condition.get('app-id')
        if isinstance(app_id, str):
            app_ids.add(app_id)
            logger.debug(f"Floating rule: app-id = {app_id}")

        pattern = condition.get('app-name-regex-substring')
        if isinstance(pattern, str):
            try:
                matchers.append(re.compile(pattern, re.IGNORECASE))
                logger.debug(f"Floating rule: app-name-regex = {pattern}")
            except re.error as e:
                logger.warning(f"Dropping invalid app-name pattern {pattern!r}: {e}")

        title = condition.get('window-title-regex-substring')
        if isinstance(title, str):
            titles.append(title)

    logger.info(f"Loaded {len(app_ids)} floating app IDs, "
                f"{len(matchers)} app name patterns")
    return FloatingRules(frozenset(app_ids), tuple(matchers), tuple(titles))


class ConfigState:
    """Holds the active Snapshot and rebuilds it on reload.

    `current` is only ever rebound to a fully built Snapshot, so a reader
    that grabs it once sees either all-old or all-new values.
    """

    def __init__(self, settings_file: Optional[Path] = None,
                 aerospace_file: Optional[Path] = None):
        self.settings_file = settings_file
        self.aerospace_file = aerospace_file
        self.current = Snapshot()
        self.load()

    def _settings_file(self) -> Path:
        return self.settings_file or settings_path()

    def _aerospace_file(self) -> Path:
        return self.aerospace_file or aerospace_config_path()

    def _build(self, previous: Snapshot) -> Snapshot:
        settings = read_toml(self._settings_file())
        if settings is None:
            config = previous.config
        else:
            config = Config.from_mapping(settings)
            if not settings:
                logger.info(f"No config file at {self._settings_file()}, using defaults")

        aerospace = read_toml(self._aerospace_file())
        if aerospace is None:
            gaps, rules = previous.gaps, previous.floating_rules
        else:
            gaps = parse_gaps(aerospace) if config.auto_size_from_aerospace else Gaps()
            rules = parse_floating_rules(aerospace)

        logger.info(f"Gaps: inner={gaps.inner_vertical}, outer.bottom={gaps.outer_bottom}")
        return Snapshot(config, gaps, rules)

    def load(self) -> Snapshot:
        self.current = self._build(self.current)
        return self.current

    def reload(self) -> Snapshot:
        logger.info("Reloading configuration")
        return self.load()
