#!/usr/bin/env python3
"""
AeroSpace Focus - Command line interface.

Short-lived invocations that drive the daemon over its control socket.
Wire it into ~/.config/aerospace/aerospace.toml:

    after-startup-command = ['exec-and-forget aerospace-focus daemon']
    on-focus-changed = ['exec-and-forget aerospace-focus update']
"""

import argparse
import logging
import os
import subprocess
import sys
import time
from pathlib import Path

import focus_socket

__version__ = '0.1.5'

# Waits between liveness checks after auto-start (about 3s in total)
STARTUP_BACKOFF = (0.1, 0.2, 0.4, 0.8, 1.6)

_debug = os.environ.get('AEROSPACE_FOCUS_DEBUG', '0') == '1'
logger = logging.getLogger(__name__)


def setup_logging():
    logging.basicConfig(
        level=logging.DEBUG if _debug else logging.INFO,
        format='%(asctime)s [aerospace-focus] %(levelname)s: %(message)s',
        stream=sys.stderr
    )


def start_daemon():
    """Start the daemon in the background, detached from this terminal."""
    subprocess.Popen(
        [sys.executable, str(Path(__file__).resolve()), 'daemon'],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True
    )


def report(response) -> int:
    """Exit status for a daemon response; prints anything that is not ok."""
    if response is None:
        print("Daemon not running")
        return 1
    if response.startswith('error:'):
        print(response)
        return 1
    return 0


def cmd_daemon(args) -> int:
    if focus_socket.is_daemon_running():
        print("Daemon is already running")
        return 1
    from daemon import run_daemon
    return run_daemon()


def cmd_update(args) -> int:
    response = focus_socket.request('update')
    if response is not None:
        return report(response)

    # Daemon not running - try to auto-start it
    try:
        start_daemon()
    except OSError as e:
        print(f"Failed to auto-start daemon: {e}")
        return 1
    for attempt, delay in enumerate(STARTUP_BACKOFF):
        time.sleep(delay)
        if focus_socket.is_daemon_running():
            logger.debug(f"Daemon answered on attempt {attempt + 1}")
            break
    else:
        logger.debug("Daemon not listening after retries")

    response = focus_socket.request('update')
    if response is None:
        print("Daemon failed to start. Try manually: aerospace-focus daemon")
        return 1
    return report(response)


def simple_command(name, message=None):
    def run(args) -> int:
        status = report(focus_socket.request(name))
        if status == 0 and message:
            print(message)
        return status
    return run


def cmd_set_color(args) -> int:
    command = focus_socket.Command('color', args.color)
    return report(focus_socket.request(command.to_line()))


def cmd_status(args) -> int:
    if focus_socket.is_daemon_running():
        print("Daemon is running")
        print(f"Socket: {focus_socket.get_socket_path()}")
    else:
        print("Daemon is not running")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='aerospace-focus',
        description='A focus indicator bar for the AeroSpace window manager'
    )
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    parser.set_defaults(func=cmd_update)
    sub = parser.add_subparsers(dest='command')

    sub.add_parser('daemon', help='Start the focus bar daemon').set_defaults(
        func=cmd_daemon)
    sub.add_parser('update', help='Update bar position for focused window').set_defaults(
        func=cmd_update)
    sub.add_parser('hide', help='Hide the focus bar').set_defaults(
        func=simple_command('hide'))
    sub.add_parser('show', help='Show the focus bar').set_defaults(
        func=simple_command('show'))
    sub.add_parser('reload', help='Reload configuration from file').set_defaults(
        func=simple_command('reload', 'Configuration reloaded'))
    sub.add_parser('quit', help='Stop the daemon').set_defaults(
        func=simple_command('quit', 'Daemon stopped'))
    sub.add_parser('status', help='Check if daemon is running').set_defaults(
        func=cmd_status)

    set_parser = sub.add_parser('set', help='Set bar properties')
    set_sub = set_parser.add_subparsers(dest='property', required=True)
    color = set_sub.add_parser('color', help='Set bar color (hex, e.g. #ff0000)')
    color.add_argument('color', help='Color in hex format (e.g. #00ff00)')
    color.set_defaults(func=cmd_set_color)

    return parser


def main(argv=None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
