"""
LC-3 Virtual Machine - Keyboard Peripheral (KBSR/KBDR)

Register map:
  $FE00  KBSR  Keyboard status register (bit 15 = ready)
  $FE02  KBDR  Keyboard data register (bits [7:0] = last character)

Polling programs spin on KBSR; each read of KBSR triggers a zero-timeout
poll of the console:
  - byte pending:  KBSR = $8000, KBDR = byte (consumed from the console)
  - nothing:       KBSR = $0000, KBDR unchanged
Reads of KBDR itself have no side effect. Writes to either register are
plain stores.
"""

from ..mem.memory import KBSR, KBDR

KBSR_READY = 0x8000


class KeyboardPeripheral:
    """Memory-mapped keyboard backed by a Console."""

    def __init__(self, console):
        self.console = console
        self._memory = None

    def register(self, memory):
        """Hook KBSR reads in the memory system."""
        self._memory = memory
        memory.register_io_handler(KBSR, self._read_kbsr)

    def _read_kbsr(self, addr: int):
        if self.console.key_ready():
            self._memory.write(KBSR, KBSR_READY)
            self._memory.write(KBDR, self.console.read_byte())
        else:
            self._memory.write(KBSR, 0x0000)
