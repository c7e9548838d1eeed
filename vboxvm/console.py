"""Serial console path selection, connection and stdio bridging."""

from __future__ import annotations

import socket
import sys
import threading
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Optional

from vboxvm.constants import CONSOLE_CONNECT_ATTEMPTS, CONSOLE_CONNECT_DELAY, PIPE_NAMESPACE
from vboxvm.exceptions import ConnectionTimeout
from vboxvm.models import VMConfig
from vboxvm.utils import log

CHUNK_SIZE = 4096
PIPE_POLL_INTERVAL = 0.01


class ConsoleConnection:
    """Byte stream to the VM serial port, over a Unix socket or a named pipe.

    A synchronous Windows pipe handle serialises all I/O on it, so a read
    blocked in the pipe would hold up every write. When ``peek`` is given,
    ``read`` only touches the pipe once ``peek()`` reports bytes waiting and
    otherwise polls every ``poll_interval`` seconds.
    """

    def __init__(
        self,
        sock: Optional[socket.socket] = None,
        pipe: Optional[BinaryIO] = None,
        peek: Optional[Callable[[], int]] = None,
        poll_interval: float = PIPE_POLL_INTERVAL,
    ) -> None:
        if (sock is None) == (pipe is None):
            raise ValueError("ConsoleConnection needs exactly one of sock or pipe")
        self._sock = sock
        self._pipe = pipe
        self._peek = peek
        self._poll_interval = poll_interval
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, size: int = CHUNK_SIZE) -> bytes:
        if self._sock is not None:
            return self._sock.recv(size)
        if self._peek is None:
            return self._pipe.read(size)  # type: ignore[union-attr]
        while not self._closed:
            available = self._peek()
            if available:
                return self._pipe.read(min(size, available))  # type: ignore[union-attr]
            time.sleep(self._poll_interval)
        return b""

    def write(self, data: bytes) -> None:
        if self._sock is not None:
            self._sock.sendall(data)
            return
        self._pipe.write(data)  # type: ignore[union-attr]
        self._pipe.flush()  # type: ignore[union-attr]

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()
        else:
            self._pipe.close()  # type: ignore[union-attr]


class UnixSocketPaths:
    """Console lives at <directory>/<name>/<name>.sock."""

    def console_path(self, cfg: VMConfig) -> str:
        return str(cfg.vm_dir / f"{cfg.name}.sock")

    def connect(self, path: str) -> ConsoleConnection:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(path)
        except OSError:
            sock.close()
            raise
        return ConsoleConnection(sock=sock)


class NamedPipePaths:
    """Console lives in the Windows pipe namespace as \\\\.\\pipe\\<name>."""

    def console_path(self, cfg: VMConfig) -> str:
        return PIPE_NAMESPACE + cfg.name

    def connect(self, path: str) -> ConsoleConnection:
        pipe = open(path, "r+b", buffering=0)
        return ConsoleConnection(pipe=pipe, peek=_pipe_peeker(pipe))


def _pipe_peeker(pipe: BinaryIO) -> Callable[[], int]:
    """Return a callable giving the bytes waiting in a Windows pipe."""
    import _winapi
    import msvcrt

    handle = msvcrt.get_osfhandle(pipe.fileno())

    def peek() -> int:
        available, _ = _winapi.PeekNamedPipe(handle, 0)
        return available

    return peek


def select_path_strategy(platform: Optional[str] = None):
    """Pick the console path strategy for the given (default: current) platform."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return NamedPipePaths()
    return UnixSocketPaths()


def connect_with_retry(
    path: str,
    connect: Callable[[str], ConsoleConnection],
    attempts: int = CONSOLE_CONNECT_ATTEMPTS,
    delay: float = CONSOLE_CONNECT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> ConsoleConnection:
    """Try to open the console a fixed number of times with a fixed delay in between."""
    last_error: Optional[OSError] = None
    for attempt in range(1, attempts + 1):
        try:
            conn = connect(path)
        except OSError as exc:
            last_error = exc
            log("DEBUG", f"Console connect attempt {attempt}/{attempts} to {path} failed: {exc}")
            if attempt < attempts:
                sleep(delay)
            continue
        log("DEBUG", f"Console connected on attempt {attempt}")
        return conn
    raise ConnectionTimeout(path, attempts, last_error)


@dataclass
class CopyResult:
    direction: str
    bytes_copied: int = 0
    error: Optional[BaseException] = None


class ConsoleBridge:
    """Two copy loops wiring a console connection to the local standard streams.

    ``input`` copies stdin to the console and ``output`` copies the console to
    stdout. Both run on daemon threads. ``stop`` closes the connection, which
    ends the output loop at once; the input loop ends on its next read or
    write. ``wait`` joins both loops, after which ``results`` holds what each
    one copied and the error that ended it, if any.
    """

    def __init__(
        self,
        connection: ConsoleConnection,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
    ) -> None:
        self.connection = connection
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._stop = threading.Event()
        self.done = threading.Event()
        self.results: Dict[str, CopyResult] = {}
        self._lock = threading.Lock()
        self._threads = []

    def start(self) -> "ConsoleBridge":
        read_stdin = getattr(self._stdin, "read1", self._stdin.read)
        loops = [
            ("input", read_stdin, self.connection.write),
            ("output", self.connection.read, self._write_stdout),
        ]
        for direction, read, write in loops:
            thread = threading.Thread(
                target=self._pump,
                args=(direction, read, write),
                name=f"console-{direction}",
                daemon=True,
            )
            self._threads.append(thread)
        for thread in self._threads:
            thread.start()
        return self

    def _write_stdout(self, data: bytes) -> None:
        self._stdout.write(data)
        self._stdout.flush()

    def _pump(self, direction: str, read, write) -> None:
        result = CopyResult(direction)
        try:
            while not self._stop.is_set():
                chunk = read(CHUNK_SIZE)
                if not chunk:
                    break
                write(chunk)
                result.bytes_copied += len(chunk)
        except (OSError, ValueError) as exc:
            if not self._stop.is_set():
                result.error = exc
                log("DEBUG", f"Console {direction} loop ended: {exc}")
        finally:
            with self._lock:
                self.results[direction] = result
                if len(self.results) == len(self._threads):
                    self.done.set()

    @property
    def running(self) -> bool:
        return bool(self._threads) and not self.done.is_set()

    def stop(self) -> None:
        self._stop.set()
        self.connection.close()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until both loops have ended; False if the timeout expired first."""
        return self.done.wait(timeout)
