"""
LC-3 Virtual Machine - Console (Terminal Collaborator)

The CPU core never touches stdin/stdout directly. It needs four things
from its environment, provided by a Console:

  key_ready()   non-blocking "is a byte waiting?" poll (KBSR reads)
  read_byte()   blocking single-byte read (GETC, IN, KBDR refresh)
  write_byte()  single-byte write (OUT, PUTS, PUTSP, IN echo)
  flush()       push buffered output to the user

plus raw_terminal(), a scoped acquire/release of non-canonical, no-echo
input mode that restores the saved settings on every exit path.

Two implementations:
  TerminalConsole  real file descriptors, select() for the poll
  BufferedConsole  in-memory RX queue + TX buffer for tests and embedding

End of input is reported by read_byte() as EOF_WORD ($FFFF), the 16-bit
image of C's getchar() EOF.
"""

import logging
import os
import select
import sys
import termios
import tty
from collections import deque
from contextlib import contextmanager

log = logging.getLogger(__name__)

EOF_WORD = 0xFFFF


class Console:
    """Interface the trap routines and keyboard device talk to."""

    def key_ready(self) -> bool:
        raise NotImplementedError

    def read_byte(self) -> int:
        raise NotImplementedError

    def write_byte(self, value: int):
        raise NotImplementedError

    def flush(self):
        pass

    def write(self, data: bytes):
        for byte in data:
            self.write_byte(byte)


class TerminalConsole(Console):
    """Console bound to the process's stdin/stdout file descriptors.

    Input is read with os.read() on the raw descriptor so select() and
    the read agree on what is pending (no Python-level buffering).
    """

    def __init__(self, in_fd: int = None, out_stream=None):
        self.in_fd = sys.stdin.fileno() if in_fd is None else in_fd
        self._out = out_stream if out_stream is not None else sys.stdout.buffer

    def key_ready(self) -> bool:
        readable, _, _ = select.select([self.in_fd], [], [], 0)
        return bool(readable)

    def read_byte(self) -> int:
        data = os.read(self.in_fd, 1)
        if not data:
            return EOF_WORD
        return data[0]

    def write_byte(self, value: int):
        self._out.write(bytes([value & 0xFF]))

    def write(self, data: bytes):
        self._out.write(bytes(data))

    def flush(self):
        self._out.flush()


class BufferedConsole(Console):
    """In-memory console.

    Bytes pushed with inject_rx() are what the program reads; everything
    the program writes accumulates in tx_buffer. An empty RX queue reads
    as end of input.
    """

    def __init__(self, rx: bytes = b""):
        self._rx_queue: deque = deque()
        self.tx_buffer: bytearray = bytearray()
        self.flushes = 0
        self.inject_rx(rx)

    def inject_rx(self, data: bytes):
        for byte in data:
            self._rx_queue.append(byte & 0xFF)

    def key_ready(self) -> bool:
        return bool(self._rx_queue)

    def read_byte(self) -> int:
        if not self._rx_queue:
            return EOF_WORD
        return self._rx_queue.popleft()

    def write_byte(self, value: int):
        self.tx_buffer.append(value & 0xFF)

    def flush(self):
        self.flushes += 1

    @property
    def output(self) -> bytes:
        """All bytes written since construction."""
        return bytes(self.tx_buffer)


@contextmanager
def raw_terminal(fd: int = None):
    """Disable line buffering and echo on fd for the duration of the block.

    The saved attributes are restored on any exit from the block.
    Non-tty descriptors (pipes, files) are left alone.
    """
    if fd is None:
        fd = sys.stdin.fileno()
    if not os.isatty(fd):
        log.debug("fd %d is not a tty; raw mode skipped", fd)
        yield
        return

    old_settings = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd, termios.TCSANOW)
        log.debug("Raw input mode enabled on fd %d", fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, old_settings)
        log.debug("Terminal settings restored on fd %d", fd)
