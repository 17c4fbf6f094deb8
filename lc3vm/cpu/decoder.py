"""
LC-3 Virtual Machine - Opcode Decoder / Disassembler

Every instruction is one 16-bit word; bits [15:12] select the opcode.
All sixteen 4-bit values are named in Opcode, but only the ones with an
entry in the emulator's dispatch table are executable. RES (1101) is the
unassigned code and is reported as an undefined opcode.

Field layout (bit ranges of the instruction word):
  DR / SR (store)   [11:9]
  SR1 / BaseR       [8:6]
  SR2               [2:0]
  imm-mode flag     [5]     (ADD/AND)
  JSR mode flag     [11]    (1 = PC-relative JSR, 0 = JSRR)
  nzp mask          [11:9]  (BR)
  imm5              [4:0]
  offset6           [5:0]
  PCoffset9         [8:0]
  PCoffset11        [10:0]
  trapvect8         [7:0]
"""

from enum import IntEnum
from typing import Optional

from .alu import sign_extend, to_signed


class Opcode(IntEnum):
    BR = 0b0000
    ADD = 0b0001
    LD = 0b0010
    ST = 0b0011
    JSR = 0b0100
    AND = 0b0101
    LDR = 0b0110
    STR = 0b0111
    RTI = 0b1000
    NOT = 0b1001
    LDI = 0b1010
    STI = 0b1011
    JMP = 0b1100
    RES = 0b1101
    LEA = 0b1110
    TRAP = 0b1111


class TrapVector(IntEnum):
    GETC = 0x20   # read one character, no echo
    OUT = 0x21    # write one character
    PUTS = 0x22   # write a one-char-per-word string
    IN = 0x23     # prompt, read one character, echo it
    PUTSP = 0x24  # write a two-chars-per-word string
    HALT = 0x25   # stop the machine


# ──────────────────────────────────────────────
# Field extraction
# ──────────────────────────────────────────────

def decode_opcode(instr: int) -> Opcode:
    """Top 4 bits of the word. Total: every word decodes to some Opcode."""
    return Opcode((instr >> 12) & 0xF)


def field_dr(instr: int) -> int:
    return (instr >> 9) & 0x7


def field_sr1(instr: int) -> int:
    return (instr >> 6) & 0x7


def field_sr2(instr: int) -> int:
    return instr & 0x7


def imm_mode(instr: int) -> bool:
    return bool((instr >> 5) & 0x1)


def imm5(instr: int) -> int:
    return sign_extend(instr & 0x1F, 5)


def offset6(instr: int) -> int:
    return sign_extend(instr & 0x3F, 6)


def pc_offset9(instr: int) -> int:
    return sign_extend(instr & 0x1FF, 9)


def pc_offset11(instr: int) -> int:
    return sign_extend(instr & 0x7FF, 11)


def trap_vector(instr: int) -> int:
    return instr & 0xFF


# ──────────────────────────────────────────────
# Disassembly (trace output)
# ──────────────────────────────────────────────

def _pc_target(address: Optional[int], offset: int) -> str:
    """PC-relative operand: absolute target if the fetch address is known."""
    if address is None:
        return f"#{to_signed(offset)}"
    return f"x{(address + 1 + offset) & 0xFFFF:04X}"


def disassemble(instr: int, address: Optional[int] = None) -> str:
    """Render one instruction word as LC-3 assembly.

    address is the location the word was fetched from; when given,
    PC-relative operands are shown as absolute targets.
    """
    instr &= 0xFFFF
    op = decode_opcode(instr)
    dr = field_dr(instr)
    sr1 = field_sr1(instr)

    if op in (Opcode.ADD, Opcode.AND):
        if imm_mode(instr):
            operand = f"#{to_signed(imm5(instr))}"
        else:
            operand = f"R{field_sr2(instr)}"
        return f"{op.name} R{dr}, R{sr1}, {operand}"

    if op == Opcode.NOT:
        return f"NOT R{dr}, R{sr1}"

    if op == Opcode.BR:
        nzp = ''.join(c for c, bit in (('n', 4), ('z', 2), ('p', 1)) if dr & bit)
        if not nzp:
            return "NOP"
        return f"BR{nzp} {_pc_target(address, pc_offset9(instr))}"

    if op == Opcode.JMP:
        return "RET" if sr1 == 7 else f"JMP R{sr1}"

    if op == Opcode.JSR:
        if (instr >> 11) & 1:
            return f"JSR {_pc_target(address, pc_offset11(instr))}"
        return f"JSRR R{sr1}"

    if op in (Opcode.LD, Opcode.LDI, Opcode.LEA, Opcode.ST, Opcode.STI):
        return f"{op.name} R{dr}, {_pc_target(address, pc_offset9(instr))}"

    if op in (Opcode.LDR, Opcode.STR):
        return f"{op.name} R{dr}, R{sr1}, #{to_signed(offset6(instr))}"

    if op == Opcode.TRAP:
        vect = trap_vector(instr)
        try:
            return TrapVector(vect).name
        except ValueError:
            return f"TRAP x{vect:02X}"

    if op == Opcode.RTI:
        return "RTI"

    return f".FILL x{instr:04X}"
