"""
LC-3 Virtual Machine - CPU Register Set + Condition Flags

Register model for LC-3:
  R0-R7  16-bit general purpose (R7 receives the return address on JSR/JSRR)
  PC     16-bit program counter (address of the next instruction)
  COND   condition register, always exactly one of:
           bit 0: POS (last written value > 0)
           bit 1: ZRO (last written value == 0)
           bit 2: NEG (last written value has bit 15 set)

BR's condMask field [11:9] is laid out n-z-p, so it can be ANDed against
COND directly.
"""

# COND bit masks
FL_POS = 0x1
FL_ZRO = 0x2
FL_NEG = 0x4

PC_START = 0x3000
NUM_GPR = 8


def flags_for(value: int) -> int:
    """Condition flag for a 16-bit value by its signed interpretation."""
    value &= 0xFFFF
    if value == 0:
        return FL_ZRO
    if value & 0x8000:
        return FL_NEG
    return FL_POS


class Registers:
    """LC-3 register file.

    GPRs live in a fixed list indexed by the 3-bit register fields of the
    instruction word. Use write() for any architectural register write so
    COND is kept in step; set R directly only to seed test state.
    """

    __slots__ = ('R', 'PC', 'COND', 'steps')

    def __init__(self):
        self.R = [0] * NUM_GPR   # R0-R7
        self.PC: int = PC_START  # Program counter
        self.COND: int = FL_ZRO  # consistent with all-zero registers
        self.steps: int = 0      # instructions executed

    # --- GPR access ---

    def read(self, index: int) -> int:
        return self.R[index & 0x7]

    def write(self, index: int, value: int):
        """Write a GPR and recompute COND from the stored value."""
        value &= 0xFFFF
        self.R[index & 0x7] = value
        self.COND = flags_for(value)

    # --- COND access ---

    @property
    def positive(self) -> bool:
        return bool(self.COND & FL_POS)

    @property
    def zero(self) -> bool:
        return bool(self.COND & FL_ZRO)

    @property
    def negative(self) -> bool:
        return bool(self.COND & FL_NEG)

    # --- Display ---

    def display(self) -> str:
        """Format register state for trace output."""
        cond = ''.join(
            c if self.COND & bit else '.'
            for c, bit in (('N', FL_NEG), ('Z', FL_ZRO), ('P', FL_POS))
        )
        gprs = ' '.join(f"R{i}={v:04X}" for i, v in enumerate(self.R))
        return f"PC={self.PC:04X} {gprs} COND=[{cond}]"

    def reset(self):
        """Reset CPU to power-on state."""
        self.R = [0] * NUM_GPR
        self.PC = PC_START
        self.COND = FL_ZRO
        self.steps = 0
