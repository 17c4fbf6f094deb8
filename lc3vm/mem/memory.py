"""
LC-3 Virtual Machine - 64K Word Address Space with Device Read Hooks

Memory map:
  $0000-$00FF  Trap vector table (unused: traps are serviced in Python)
  $0100-$01FF  Interrupt vector table (unused)
  $0200-$2FFF  Operating system / supervisor stack (unused)
  $3000-$FDFF  User program space (PC starts at $3000)
  $FE00        KBSR  keyboard status register
  $FE02        KBDR  keyboard data register
  $FE04-$FFFF  Other device registers (plain storage here)

Every 16-bit address is valid; there are no protected regions and no
access errors. Reads of a hooked address run the device hook first, which
may refresh stored words, then return whatever is stored.
"""

from array import array
from typing import Callable, Dict, Iterable

MEMORY_SIZE = 0x10000

# Memory-mapped device registers
KBSR = 0xFE00
KBDR = 0xFE02


class Memory:
    """65,536-word memory with device register interception.

    Storage is a flat array of unsigned 16-bit words. Device models
    register a read hook per address via register_io_handler(); the hook
    is called as read_fn(addr) before the stored word is returned.
    """

    def __init__(self):
        self._mem = array('H', bytes(2 * MEMORY_SIZE))

        # Device read hooks: addr -> read_fn(addr)
        self._io_read_handlers: Dict[int, Callable[[int], None]] = {}

    # --- Core read/write ---

    def read(self, addr: int) -> int:
        """Read a word, running any device hook registered for addr."""
        addr &= 0xFFFF
        handler = self._io_read_handlers.get(addr)
        if handler is not None:
            handler(addr)
        return self._mem[addr]

    def write(self, addr: int, value: int):
        """Store a word. Unconditional; device registers included."""
        self._mem[addr & 0xFFFF] = value & 0xFFFF

    def peek(self, addr: int) -> int:
        """Read a word without triggering device hooks."""
        return self._mem[addr & 0xFFFF]

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], origin: int) -> int:
        """Store words sequentially from origin up to $FFFF.

        Returns the number of words stored; anything that would land
        past the top of memory is not stored.
        """
        addr = origin & 0xFFFF
        count = 0
        for word in words:
            if addr + count >= MEMORY_SIZE:
                break
            self._mem[addr + count] = word & 0xFFFF
            count += 1
        return count

    # --- I/O handler registration ---

    def register_io_handler(self, addr: int, read_fn: Callable[[int], None]):
        """Register a read hook for a device register address."""
        self._io_read_handlers[addr & 0xFFFF] = read_fn

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 64) -> str:
        """Word-oriented dump, eight words per line."""
        lines = []
        for offset in range(0, length, 8):
            addr = (start + offset) & 0xFFFF
            count = min(8, length - offset)
            words = [self._mem[(addr + i) & 0xFFFF] for i in range(count)]
            hex_words = ' '.join(f'{w:04X}' for w in words)
            ascii_chars = ''.join(
                chr(w) if 0x20 <= w < 0x7F else '.' for w in words
            )
            lines.append(f'{addr:04X}  {hex_words:<39s}  {ascii_chars}')
        return '\n'.join(lines)
