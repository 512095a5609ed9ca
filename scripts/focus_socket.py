"""
AeroSpace Focus - Control socket.

One request per connection: the client writes "<command>[ <argument>]\\n",
the daemon answers "ok" or "error: <reason>" and closes.

The accept loop runs on its own thread but never touches daemon state.
Each parsed Command goes through a CommandChannel; the main context drains
the channel and the worker waits (bounded) for the answer.
"""

import fcntl
import logging
import os
import queue
import socket
import threading
from pathlib import Path
from typing import Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = '/tmp/aerospace-focus.sock'

RECV_TIMEOUT = 5.0        # per-connection read bound
DISPATCH_TIMEOUT = 2.0    # wait for the main context to apply a command
CLIENT_TIMEOUT = 3.0
MAX_REQUEST = 1024

COMMANDS = ('update', 'hide', 'show', 'reload', 'color', 'quit')
COMMANDS_WITH_ARGUMENT = ('color',)


def get_socket_path() -> Path:
    """Control socket path; AEROSPACE_FOCUS_SOCKET overrides the default."""
    return Path(os.environ.get('AEROSPACE_FOCUS_SOCKET', DEFAULT_SOCKET_PATH))


class ProtocolError(ValueError):
    """A request line the daemon cannot act on."""


class DaemonAlreadyRunning(RuntimeError):
    """Another daemon holds the socket lock."""


class Command(NamedTuple):
    name: str
    argument: Optional[str] = None

    def to_line(self) -> str:
        if self.argument is None:
            return self.name
        return f'{self.name} {self.argument}'


def parse_command(raw: str) -> Command:
    """Parse one request line. Argument text is kept verbatim (case too)."""
    line = raw.strip()
    parts = line.split(None, 1)
    if not parts or parts[0] not in COMMANDS:
        raise ProtocolError(f"unknown command '{line}'")

    name = parts[0]
    argument = parts[1].strip() if len(parts) > 1 else None
    if name in COMMANDS_WITH_ARGUMENT and not argument:
        raise ProtocolError(f"missing argument for '{name}'")
    if name not in COMMANDS_WITH_ARGUMENT and argument:
        raise ProtocolError(f"unknown command '{line}'")
    return Command(name, argument)


class _Pending:
    __slots__ = ('command', 'done', 'response', 'lock', 'started', 'cancelled')

    def __init__(self, command: Command):
        self.command = command
        self.done = threading.Event()
        self.response = None
        self.lock = threading.Lock()
        self.started = False     # set by drain before the handler runs
        self.cancelled = False   # set by submit on timeout; drain skips it

    def claim(self) -> bool:
        """Main context side: True if the command may still be applied."""
        with self.lock:
            if self.cancelled:
                return False
            self.started = True
            return True

    def cancel(self) -> bool:
        """Worker side: True if the command will never be applied."""
        with self.lock:
            if self.started:
                return False
            self.cancelled = True
            return True


class CommandChannel:
    """Hands commands from the socket thread to the main context.

    `wake` must schedule `drain` on the main context without blocking.
    A command is either applied and answered, or cancelled and never
    applied; a timed-out client never sees an error for a command that
    later takes effect.
    """

    def __init__(self, wake: Callable[[], None]):
        self._queue = queue.Queue()
        self._wake = wake

    def submit(self, command: Command, timeout: float = DISPATCH_TIMEOUT) -> str:
        """Queue a command and wait for its response (worker side)."""
        pending = _Pending(command)
        self._queue.put(pending)
        self._wake()
        if not pending.done.wait(timeout):
            if pending.cancel():
                logger.warning(f"Command '{command.to_line()}' not applied within {timeout}s")
                return 'error: daemon busy, command timed out'
            # Already running on the main context; report its real outcome
            pending.done.wait()
        return pending.response

    def drain(self, handler: Callable[[Command], str]):
        """Apply every queued command in order (main context side)."""
        while True:
            try:
                pending = self._queue.get_nowait()
            except queue.Empty:
                return
            if not pending.claim():
                logger.debug(f"Skipping timed-out command '{pending.command.to_line()}'")
                continue
            try:
                pending.response = handler(pending.command)
            except Exception as e:
                logger.exception(f"Command '{pending.command.to_line()}' failed")
                pending.response = f'error: {e}'
            finally:
                pending.done.set()


class DaemonLock:
    """Advisory flock next to the socket so two daemons never share it."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fd = None

    def acquire(self) -> bool:
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return False
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode('utf-8'))
        self._fd = fd
        return True

    def release(self):
        if self._fd is None:
            return
        # The file stays; unlinking it would let a waiter lock a stale inode
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None


class ControlServer:
    """Unix socket server; serves one connection at a time."""

    def __init__(self, channel: CommandChannel, socket_path: Optional[Path] = None):
        self.channel = channel
        self.socket_path = Path(socket_path or get_socket_path())
        self.lock = DaemonLock(self.socket_path.with_name(self.socket_path.name + '.lock'))
        self.socket_server = None
        self.socket_thread = None

    def start(self):
        """Take the lock, replace any stale socket file, listen."""
        if not self.lock.acquire():
            raise DaemonAlreadyRunning(f"daemon already running on {self.socket_path}")

        try:
            # Safe to unlink: holding the lock means no live daemon owns it
            self.socket_path.unlink(missing_ok=True)
            self.socket_server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self.socket_server.bind(str(self.socket_path))
            self.socket_server.listen(5)
            self.socket_server.settimeout(0.1)  # lets the loop notice stop()
        except OSError:
            self._close()
            self.lock.release()
            raise

        self.socket_thread = threading.Thread(
            target=self.socket_listener_loop,
            name='focus-socket',
            daemon=True
        )
        self.socket_thread.start()
        logger.info(f"Server listening on {self.socket_path}")

    def socket_listener_loop(self):
        """Accept connections and process commands (runs in thread)."""
        server = self.socket_server
        while self.socket_server is server:
            try:
                conn, _ = server.accept()
            except socket.timeout:
                continue
            except OSError:
                break  # closed by stop()
            self.handle_client(conn)

    def handle_client(self, conn):
        """Read one request, dispatch it, write one response line."""
        try:
            conn.settimeout(RECV_TIMEOUT)
            raw = self._read_line(conn)
            if raw is None:
                return  # connected and closed without writing
            try:
                command = parse_command(raw)
            except ProtocolError as e:
                logger.warning(f"Rejected request: {e}")
                response = f'error: {e}'
            else:
                logger.debug(f"Received command: {command.to_line()}")
                response = self.channel.submit(command)
            conn.sendall(f'{response}\n'.encode('utf-8'))
        except socket.timeout:
            logger.warning("Client did not send a command in time")
        except OSError as e:
            logger.debug(f"Client connection error: {e}")
        finally:
            conn.close()

    @staticmethod
    def _read_line(conn) -> Optional[str]:
        """First request line, stripped; None when the peer sent nothing."""
        data = b''
        while b'\n' not in data and len(data) < MAX_REQUEST:
            chunk = conn.recv(MAX_REQUEST - len(data))
            if not chunk:
                break
            data += chunk
        if not data:
            return None
        return data.split(b'\n', 1)[0].decode('utf-8', errors='replace').strip()

    def _close(self):
        if self.socket_server:
            self.socket_server.close()
            self.socket_server = None

    def stop(self):
        """Close the listener, unlink the socket file, drop the lock."""
        was_running = self.socket_server is not None
        self._close()
        if was_running:
            self.socket_path.unlink(missing_ok=True)
            logger.info("Server stopped")
        self.lock.release()


def _connect(socket_path: Optional[Path], timeout: float) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(str(socket_path or get_socket_path()))
    except OSError:
        sock.close()
        raise
    return sock


def send(command: str, socket_path: Optional[Path] = None) -> bool:
    """Write one command; True when it was delivered (response not read)."""
    try:
        sock = _connect(socket_path, CLIENT_TIMEOUT)
    except OSError as e:
        logger.debug(f"Cannot reach daemon: {e}")
        return False
    try:
        sock.sendall(f'{command}\n'.encode('utf-8'))
        return True
    except OSError as e:
        logger.debug(f"Send failed: {e}")
        return False
    finally:
        sock.close()


def request(command: str, socket_path: Optional[Path] = None,
            timeout: float = CLIENT_TIMEOUT) -> Optional[str]:
    """Send one command and return the daemon's response line.

    None means the daemon could not be reached or did not answer.
    """
    try:
        sock = _connect(socket_path, timeout)
    except OSError as e:
        logger.debug(f"Cannot reach daemon: {e}")
        return None
    try:
        sock.sendall(f'{command}\n'.encode('utf-8'))
        data = b''
        while b'\n' not in data:
            chunk = sock.recv(1024)
            if not chunk:
                break
            data += chunk
        return data.decode('utf-8', errors='replace').strip() or None
    except OSError as e:
        logger.debug(f"Request '{command}' failed: {e}")
        return None
    finally:
        sock.close()


def is_daemon_running(socket_path: Optional[Path] = None) -> bool:
    """Connect for real; a leftover socket file alone does not count."""
    try:
        sock = _connect(socket_path, 0.5)
    except OSError:
        return False
    sock.close()
    return True
