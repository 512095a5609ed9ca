"""
AeroSpace Focus - Visibility policy.

Decides whether the bar should be shown for the current observation.
"""

from typing import NamedTuple, Optional, Sequence

from focus_config import Config, FloatingRules
from geometry import Screen, WindowInfo, is_fullscreen


class ShowDecision(NamedTuple):
    show: bool
    reason: str


def should_show(window: Optional[WindowInfo], config: Config,
                floating_rules: FloatingRules, workspace_window_count: int,
                screens: Sequence[Screen] = ()) -> ShowDecision:
    """Evaluate the rules in order; the first one that applies wins.

    Pure: nothing is cached between calls, so every trigger re-derives the
    decision from the current observation.
    """
    if window is None:
        return ShowDecision(False, 'no focused window')

    app = window.app_name
    if app in config.exclude_apps:
        return ShowDecision(False, f"app '{app}' is excluded")

    if config.auto_exclude_floating:
        matched = floating_rules.match(window.bundle_id, app)
        if matched is not None:
            return ShowDecision(False, f"app '{app}' is floating ({matched})")

    if is_fullscreen(window.frame, screens):
        return ShowDecision(False, 'window is fullscreen')

    if workspace_window_count <= 1:
        return ShowDecision(
            False, f'only {workspace_window_count} window(s) on workspace')

    if config.include_apps and app not in config.include_apps:
        return ShowDecision(False, f"app '{app}' is not in include_apps")

    return ShowDecision(True, f"showing for '{app}'")
