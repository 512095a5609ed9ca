"""
AeroSpace Focus - Daemon.

Owns the config state, the observer and the bar, and reconciles them from
three triggers: socket commands, a 200ms geometry poll and Mission Control
notifications. All of it runs on one main context (`runloop`), so two
updates never interleave.
"""

import atexit
import logging
import signal
from enum import Enum
from pathlib import Path
from typing import Optional

from focus_config import ConfigState
from focus_socket import Command, CommandChannel, ControlServer, DaemonAlreadyRunning
from geometry import WindowInfo, bar_frame_for_window
from visibility import ShowDecision, should_show

logger = logging.getLogger(__name__)

INITIAL_UPDATE_DELAY = 0.5   # let AeroSpace finish its startup layout
POLL_INTERVAL = 0.2
SPACE_SETTLE_DELAY = 0.3
QUIT_DELAY = 0.05            # lets the socket thread write "ok" first


class DaemonState(str, Enum):
    STARTING = 'starting'
    RUNNING = 'running'
    SHUTTING_DOWN = 'shutting_down'
    STOPPED = 'stopped'


class FocusDaemon:
    """Explicit context object for one daemon process.

    `context` is the main-context scheduler (see runloop.RunLoopContext);
    `observer` and `overlay` are the window observer and the bar.
    """

    def __init__(self, context, config_state: ConfigState, observer, overlay,
                 socket_path: Optional[Path] = None):
        self.context = context
        self.config_state = config_state
        self.observer = observer
        self.overlay = overlay
        self.channel = CommandChannel(self._wake)
        self.server = ControlServer(self.channel, socket_path)

        self.state = DaemonState.STARTING
        self.last_seen = None          # (frame, app_name) of the last observation
        self.generation = 0            # bumped by every Mission Control event
        self.suspended = False
        self.poll_timer = None
        self.pending_resume = None
        self._unwatch_spaces = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Enter RUNNING. Raises DaemonAlreadyRunning if the lock is held."""
        logger.info("Daemon starting...")
        snapshot = self.config_state.current
        self.overlay.create(snapshot.config.bar_height or snapshot.gaps.inner_vertical)

        self.server.start()
        self.context.call_later(INITIAL_UPDATE_DELAY, self.update)
        self.poll_timer = self.context.call_repeating(POLL_INTERVAL, self.poll_tick)
        self._unwatch_spaces = self.context.watch_spaces(
            self.mission_control_activated, self.mission_control_deactivated
        )
        self.state = DaemonState.RUNNING
        logger.info("Daemon ready")

    def shutdown(self):
        """Stop timers, observers and server, hide the bar, stop the run loop."""
        if self.state in (DaemonState.SHUTTING_DOWN, DaemonState.STOPPED):
            return
        logger.info("Daemon shutting down...")
        self.state = DaemonState.SHUTTING_DOWN

        if self.poll_timer is not None:
            self.poll_timer.cancel()
            self.poll_timer = None
        if self.pending_resume is not None:
            self.pending_resume.cancel()
            self.pending_resume = None
        if self._unwatch_spaces is not None:
            self._unwatch_spaces()
            self._unwatch_spaces = None
        self.server.stop()
        self.overlay.hide()

        self.state = DaemonState.STOPPED
        self.context.stop()

    def install_signal_handlers(self):
        """SIGTERM, SIGINT and SIGHUP take the same path as `quit`."""
        def handle_signal(signum, frame):
            logger.info(f"Received signal {signum}")
            self.shutdown()

        signal.signal(signal.SIGTERM, handle_signal)
        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGHUP, handle_signal)
        atexit.register(self.server.stop)

    # ------------------------------------------------------------------
    # Reconciliation: observe -> decide -> place
    # ------------------------------------------------------------------

    def update(self) -> ShowDecision:
        """Observe the focused window and apply the decision."""
        return self.reconcile(self.observer.get_focused_window_info())

    def reconcile(self, window: Optional[WindowInfo]) -> ShowDecision:
        # Read the snapshot once so a reload cannot mix old and new values
        snapshot = self.config_state.current
        config = snapshot.config

        count = self.observer.get_workspace_window_count() if window else 0
        screens = self.observer.screens()
        decision = should_show(window, config, snapshot.floating_rules, count, screens)

        self.last_seen = (window.frame, window.app_name) if window else None

        if not decision.show:
            logger.info(f"Hiding bar: {decision.reason}")
            self.overlay.hide()
            return decision

        frame = bar_frame_for_window(
            window.frame, config.position, snapshot.gaps, screens,
            explicit_height=config.bar_height, offset=config.offset
        )
        logger.debug(f"Showing bar for '{window.app_name}' at {frame}")
        self.overlay.place(frame)
        return decision

    def poll_tick(self):
        """Catch geometry changes the focus hook misses (close, resize, retile)."""
        if self.state is not DaemonState.RUNNING or self.suspended:
            return
        window = self.observer.get_focused_window_info()
        seen = (window.frame, window.app_name) if window else None
        if seen != self.last_seen:
            logger.debug("Focused window changed, updating")
            self.reconcile(window)

    # ------------------------------------------------------------------
    # Mission Control
    # ------------------------------------------------------------------

    def mission_control_activated(self):
        self.generation += 1
        self.suspended = True
        if self.pending_resume is not None:
            self.pending_resume.cancel()
            self.pending_resume = None
        self.overlay.hide()
        self.last_seen = None  # force a full refresh afterwards
        logger.debug(f"Mission Control active (generation {self.generation})")

    def mission_control_deactivated(self):
        self.generation += 1
        generation = self.generation
        if self.pending_resume is not None:
            self.pending_resume.cancel()
        self.pending_resume = self.context.call_later(
            SPACE_SETTLE_DELAY, lambda: self._resume(generation)
        )

    def _resume(self, generation: int):
        if generation != self.generation:
            logger.debug(f"Dropping stale resume (generation {generation})")
            return
        self.pending_resume = None
        self.suspended = False
        if self.state is DaemonState.RUNNING:
            self.update()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _wake(self):
        self.context.post(self.drain_commands)

    def drain_commands(self):
        self.channel.drain(self.handle_command)

    def handle_command(self, command: Command) -> str:
        """Apply one protocol command on the main context."""
        if self.state is not DaemonState.RUNNING:
            return 'error: daemon is shutting down'

        name = command.name
        if name == 'update':
            # An explicit focus-change hook overrides any Mission Control pause
            if self.suspended:
                self.generation += 1
                self.suspended = False
            self.update()
        elif name == 'hide':
            self.overlay.hide()
        elif name == 'show':
            if not self.overlay.show():
                return 'error: bar has not been placed yet'
        elif name == 'reload':
            snapshot = self.config_state.reload()
            self.overlay.reload(snapshot.config)
            self.last_seen = None
            self.update()
        elif name == 'color':
            if not self.overlay.set_color(command.argument):
                return f"error: invalid color '{command.argument}'"
        elif name == 'quit':
            logger.info("Quit command received")
            self.context.call_later(QUIT_DELAY, self.shutdown)
        else:
            return f"error: unknown command '{command.to_line()}'"
        return 'ok'


def run_daemon(socket_path: Optional[Path] = None) -> int:
    """Build the AppKit-backed daemon and block in the run loop."""
    from overlay import FocusBar
    from runloop import RunLoopContext
    from window_query import build_observer

    context = RunLoopContext()
    config_state = ConfigState()
    daemon = FocusDaemon(
        context, config_state, build_observer(),
        FocusBar(config_state.current.config), socket_path
    )
    try:
        daemon.start()
    except DaemonAlreadyRunning as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Failed to start control socket: {e}")
        return 1
    daemon.install_signal_handlers()
    context.run()
    return 0
