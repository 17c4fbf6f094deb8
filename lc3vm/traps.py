"""
LC-3 Virtual Machine - Trap Service Routines

TRAP x20-x25 would normally jump through the trap vector table into
OS code. There is no OS image here: each vector is serviced directly in
Python against the Console.

  x20 GETC   R0 <- one byte (blocking), no echo
  x21 OUT    write low byte of R0
  x22 PUTS   write words from [R0] (low byte each) until a zero word
  x23 IN     prompt, R0 <- one byte (blocking), echo it
  x24 PUTSP  write words from [R0] as two bytes each (low, then high if
             non-zero) until a zero word
  x25 HALT   flush output, log the completion notice, stop the machine

Trap routines write R0 without touching COND. Output routines flush after
writing so text appears before any following blocking read.

Unknown vectors are ignored (logged at WARNING).
"""

import logging

from .cpu.decoder import TrapVector
from .periph.console import EOF_WORD

log = logging.getLogger(__name__)

IN_PROMPT = b"Enter a character: "
HALT_NOTICE = "Execution completed"


class HaltRequested(Exception):
    """Raised by the HALT routine; the emulator turns it into a stop."""


class TrapRoutines:
    """Vector -> service routine table bound to one emulator's state."""

    def __init__(self, regs, mem, console):
        self.regs = regs
        self.mem = mem
        self.console = console
        self._dispatch = {
            TrapVector.GETC: self._getc,
            TrapVector.OUT: self._out,
            TrapVector.PUTS: self._puts,
            TrapVector.IN: self._in,
            TrapVector.PUTSP: self._putsp,
            TrapVector.HALT: self._halt,
        }

    def execute(self, vector: int):
        handler = self._dispatch.get(vector)
        if handler is None:
            log.warning("Ignoring unknown trap vector x%02X at PC=$%04X",
                        vector, (self.regs.PC - 1) & 0xFFFF)
            return
        handler()

    # ── Input ──

    def _getc(self):
        self.regs.R[0] = self.console.read_byte() & 0xFFFF

    def _in(self):
        self.console.write(IN_PROMPT)
        self.console.flush()
        char = self.console.read_byte()
        if char != EOF_WORD:
            self.console.write_byte(char)
        self.console.flush()
        self.regs.R[0] = char & 0xFFFF

    # ── Output ──

    def _out(self):
        self.console.write_byte(self.regs.R[0] & 0xFF)
        self.console.flush()

    def _puts(self):
        addr = self.regs.R[0]
        word = self.mem.peek(addr)
        while word:
            self.console.write_byte(word & 0xFF)
            addr = (addr + 1) & 0xFFFF
            word = self.mem.peek(addr)
        self.console.flush()

    def _putsp(self):
        addr = self.regs.R[0]
        word = self.mem.peek(addr)
        while word:
            self.console.write_byte(word & 0xFF)
            high = word >> 8
            if high:
                self.console.write_byte(high)
            addr = (addr + 1) & 0xFFFF
            word = self.mem.peek(addr)
        self.console.flush()

    # ── Control ──

    def _halt(self):
        self.console.flush()
        log.info("%s at PC=$%04X", HALT_NOTICE, (self.regs.PC - 1) & 0xFFFF)
        raise HaltRequested()
