"""
LC-3 Virtual Machine - ALU Operations

The LC-3 datapath has exactly three operate instructions (ADD, AND, NOT)
and no carry/overflow flags, so the ALU is a set of pure 16-bit word
functions. Condition flags are derived from the destination register by
Registers.write(), not here.

All results are masked to 16 bits: unsigned overflow wraps, it is never
an error.
"""

WORD_MASK = 0xFFFF


def sign_extend(value: int, bit_count: int) -> int:
    """Sign-extend the low bit_count bits of value to a 16-bit word.

    The low bit_count bits are kept as they are, and bit (bit_count - 1)
    is replicated into every higher bit.

    >>> hex(sign_extend(0x1F, 5))
    '0xffff'
    >>> hex(sign_extend(0x0F, 5))
    '0xf'
    """
    field_mask = (1 << bit_count) - 1
    value &= field_mask
    if (value >> (bit_count - 1)) & 1:
        value |= (WORD_MASK << bit_count) & WORD_MASK
    return value & WORD_MASK


def to_signed(value: int) -> int:
    """Signed interpretation of a 16-bit word."""
    value &= WORD_MASK
    return value - 0x10000 if value & 0x8000 else value


def add16(a: int, b: int) -> int:
    return (a + b) & WORD_MASK


def and16(a: int, b: int) -> int:
    return (a & b) & WORD_MASK


def not16(a: int) -> int:
    return ~a & WORD_MASK
