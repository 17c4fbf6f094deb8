"""
LC-3 Virtual Machine - Core Integration Tests

Tests that prove the emulator executes real LC-3 machine code.
Each test uses hand-assembled words (encodings from the LC-3 ISA
reference, Patt & Patel Appendix A) - no assembler required.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

from lc3vm.emu import LC3Emulator, RunState, StopReason
from lc3vm.cpu.regs import FL_POS, FL_ZRO, FL_NEG
from lc3vm.errors import UndefinedOpcode
from lc3vm.mem.memory import KBSR, KBDR
from lc3vm.periph.console import BufferedConsole

import pytest


def _emu(words, origin=0x3000, rx=b""):
    """Emulator with words loaded at origin and PC pointing at them."""
    emu = LC3Emulator(console=BufferedConsole(rx))
    emu.mem.load_words(words, origin)
    emu.regs.PC = origin
    return emu


def _image(origin, words) -> bytes:
    """Big-endian object image: origin word followed by program words."""
    return b"".join(w.to_bytes(2, "big") for w in [origin] + list(words))


# ═══════════════════════════════════════════════
# Test Group 1: Individual Instructions
# ═══════════════════════════════════════════════

class TestOperate:
    """ADD / AND / NOT and their flag updates."""

    def test_add_immediate(self):
        """ADD R0, R0, #5 -> R0=5, POS"""
        emu = _emu([0x1025])
        emu.step()
        assert emu.regs.R[0] == 5
        assert emu.regs.COND == FL_POS
        assert emu.regs.PC == 0x3001

    def test_add_register(self):
        """ADD R2, R0, R1 -> R2 = R0 + R1"""
        emu = _emu([0x1401])
        emu.regs.R[0] = 0x1200
        emu.regs.R[1] = 0x0034
        emu.step()
        assert emu.regs.R[2] == 0x1234
        assert emu.regs.positive

    def test_add_negative_immediate_wraps(self):
        """ADD R1, R1, #-1 on R1=0 -> R1=$FFFF, NEG"""
        emu = _emu([0x127F])
        emu.step()
        assert emu.regs.R[1] == 0xFFFF
        assert emu.regs.COND == FL_NEG

    def test_add_unsigned_overflow_wraps_to_zero(self):
        """ADD R2, R0, R1 with $FFFF + 1 -> 0, ZRO"""
        emu = _emu([0x1401])
        emu.regs.R[0] = 0xFFFF
        emu.regs.R[1] = 0x0001
        emu.step()
        assert emu.regs.R[2] == 0
        assert emu.regs.COND == FL_ZRO

    def test_add_min_immediate(self):
        """ADD R0, R0, #-16"""
        emu = _emu([0x1030])
        emu.regs.R[0] = 20
        emu.step()
        assert emu.regs.R[0] == 4

    def test_and_immediate_clears(self):
        """AND R0, R0, #0 -> 0, ZRO"""
        emu = _emu([0x5020])
        emu.regs.R[0] = 0xBEEF
        emu.step()
        assert emu.regs.R[0] == 0
        assert emu.regs.zero

    def test_and_register(self):
        """AND R2, R0, R1"""
        emu = _emu([0x5401])
        emu.regs.R[0] = 0xF0F0
        emu.regs.R[1] = 0xFF00
        emu.step()
        assert emu.regs.R[2] == 0xF000
        assert emu.regs.negative

    def test_and_negative_immediate_is_sign_extended(self):
        """AND R0, R0, #-1 keeps all 16 bits"""
        emu = _emu([0x503F])
        emu.regs.R[0] = 0x8001
        emu.step()
        assert emu.regs.R[0] == 0x8001

    def test_not(self):
        """NOT R1, R0"""
        emu = _emu([0x923F])
        emu.regs.R[0] = 0x00FF
        emu.step()
        assert emu.regs.R[1] == 0xFF00
        assert emu.regs.negative

    def test_not_of_all_ones_is_zero(self):
        emu = _emu([0x923F])
        emu.regs.R[0] = 0xFFFF
        emu.step()
        assert emu.regs.R[1] == 0
        assert emu.regs.zero


class TestLoadStore:
    """PC-relative, indirect and base+offset addressing."""

    def test_ld_uses_incremented_pc(self):
        """LD R1, #1 at $3000 reads $3002, not $3001"""
        emu = _emu([0x2201, 0x1111, 0xBEEF])
        emu.step()
        assert emu.regs.R[1] == 0xBEEF
        assert emu.regs.negative

    def test_ld_negative_offset(self):
        """LD R1, #-2 at $3001 -> reads $3000"""
        emu = _emu([0x0777, 0x23FE], origin=0x3000)
        emu.regs.PC = 0x3001
        emu.step()
        assert emu.regs.R[1] == 0x0777
        assert emu.regs.positive

    def test_ldi(self):
        """LDI R2, #1 -> R2 = mem[mem[$3002]]"""
        emu = _emu([0xA401, 0x0000, 0x4000])
        emu.mem.write(0x4000, 0x0042)
        emu.step()
        assert emu.regs.R[2] == 0x0042

    def test_ldr(self):
        """LDR R3, R1, #2"""
        emu = _emu([0x6642])
        emu.regs.R[1] = 0x4000
        emu.mem.write(0x4002, 0x8000)
        emu.step()
        assert emu.regs.R[3] == 0x8000
        assert emu.regs.negative

    def test_ldr_negative_offset(self):
        """LDR R3, R1, #-1"""
        emu = _emu([0x667F])
        emu.regs.R[1] = 0x4000
        emu.mem.write(0x3FFF, 0x0000)
        emu.regs.R[3] = 0x5555
        emu.step()
        assert emu.regs.R[3] == 0
        assert emu.regs.zero

    def test_ldr_address_wraps(self):
        """Base $FFFF + 1 wraps to $0000"""
        emu = _emu([0x6641])
        emu.regs.R[1] = 0xFFFF
        emu.mem.write(0x0000, 0x0099)
        emu.step()
        assert emu.regs.R[3] == 0x0099

    def test_lea_loads_address_not_memory(self):
        """LEA R0, #2 at $3000 -> R0=$3003"""
        emu = _emu([0xE002, 0x0000, 0x0000, 0x1234])
        emu.step()
        assert emu.regs.R[0] == 0x3003
        assert emu.regs.positive

    def test_st(self):
        """ST R0, #3 -> mem[$3004] = R0"""
        emu = _emu([0x3003])
        emu.regs.R[0] = 0xCAFE
        emu.step()
        assert emu.mem.read(0x3004) == 0xCAFE

    def test_sti(self):
        """STI R0, #1 -> mem[mem[$3002]] = R0"""
        emu = _emu([0xB001, 0x0000, 0x5000])
        emu.regs.R[0] = 0x00AA
        emu.step()
        assert emu.mem.read(0x5000) == 0x00AA

    def test_str(self):
        """STR R0, R1, #1"""
        emu = _emu([0x7041])
        emu.regs.R[0] = 0x0F0F
        emu.regs.R[1] = 0x6000
        emu.step()
        assert emu.mem.read(0x6001) == 0x0F0F

    def test_stores_leave_flags_alone(self):
        emu = _emu([0x3003])
        emu.regs.R[0] = 0x8000
        emu.regs.COND = FL_POS
        emu.step()
        assert emu.regs.COND == FL_POS


class TestControl:
    """BR / JMP / RET / JSR / JSRR / RTI."""

    def test_brz_taken(self):
        """BRz #2 with ZRO -> PC = $3001 + 2"""
        emu = _emu([0x0402])
        emu.regs.COND = FL_ZRO
        emu.step()
        assert emu.regs.PC == 0x3003

    def test_brz_not_taken(self):
        emu = _emu([0x0402])
        emu.regs.COND = FL_POS
        emu.step()
        assert emu.regs.PC == 0x3001

    def test_brn_and_brp(self):
        emu = _emu([0x0801])
        emu.regs.COND = FL_NEG
        emu.step()
        assert emu.regs.PC == 0x3002

        emu = _emu([0x0201])
        emu.regs.COND = FL_NEG
        emu.step()
        assert emu.regs.PC == 0x3001

    def test_brnzp_backwards(self):
        """BRnzp #-1 branches to itself"""
        emu = _emu([0x0FFF])
        emu.step()
        assert emu.regs.PC == 0x3000

    def test_br_empty_mask_is_nop(self):
        emu = _emu([0x0000])
        emu.step()
        assert emu.regs.PC == 0x3001

    def test_jmp(self):
        """JMP R2"""
        emu = _emu([0xC080])
        emu.regs.R[2] = 0x4567
        emu.step()
        assert emu.regs.PC == 0x4567

    def test_ret(self):
        """RET == JMP R7"""
        emu = _emu([0xC1C0])
        emu.regs.R[7] = 0x3010
        emu.step()
        assert emu.regs.PC == 0x3010

    def test_jsr_pc_relative(self):
        """JSR #4 -> R7 = $3001, PC = $3005"""
        emu = _emu([0x4804])
        emu.step()
        assert emu.regs.R[7] == 0x3001
        assert emu.regs.PC == 0x3005

    def test_jsr_negative_offset(self):
        """JSR #-1 jumps back onto itself"""
        emu = _emu([0x4FFF])
        emu.step()
        assert emu.regs.PC == 0x3000
        assert emu.regs.R[7] == 0x3001

    def test_jsrr_uses_base_register(self):
        """JSRR R3"""
        emu = _emu([0x40C0])
        emu.regs.R[3] = 0x5000
        emu.regs.R[1] = 0x1111
        emu.step()
        assert emu.regs.PC == 0x5000
        assert emu.regs.R[7] == 0x3001

    def test_jsrr_r7_reads_base_before_link(self):
        """JSRR R7 jumps to the old R7"""
        emu = _emu([0x41C0])
        emu.regs.R[7] = 0x6000
        emu.step()
        assert emu.regs.PC == 0x6000
        assert emu.regs.R[7] == 0x3001

    def test_jsr_and_ret_leave_flags_alone(self):
        emu = _emu([0x4804])
        emu.regs.COND = FL_NEG
        emu.step()
        assert emu.regs.COND == FL_NEG

    def test_rti_is_inert(self):
        emu = _emu([0x8000, 0xF025])
        before = list(emu.regs.R), emu.regs.COND
        emu.step()
        assert emu.regs.PC == 0x3001
        assert (list(emu.regs.R), emu.regs.COND) == before
        assert emu.running


# ═══════════════════════════════════════════════
# Test Group 2: Machine-level behaviour
# ═══════════════════════════════════════════════

class TestFlagsInvariant:

    @pytest.mark.parametrize("program,setup", [
        ([0x1025], {}),                    # ADD imm
        ([0x127F], {}),                    # ADD -> NEG
        ([0x5020], {0: 9}),                # AND -> ZRO
        ([0x923F], {0: 0x7FFF}),           # NOT -> NEG
        ([0x2201, 0, 0x0001], {}),         # LD
        ([0xE0FF], {}),                    # LEA
    ])
    def test_exactly_one_flag_after_register_write(self, program, setup):
        emu = _emu(program)
        for reg, value in setup.items():
            emu.regs.R[reg] = value
        emu.step()
        assert emu.regs.COND in (FL_POS, FL_ZRO, FL_NEG)
        assert bin(emu.regs.COND).count("1") == 1

    def test_power_on_state(self):
        emu = LC3Emulator()
        assert emu.regs.PC == 0x3000
        assert emu.regs.R == [0] * 8
        assert emu.regs.COND == FL_ZRO
        assert emu.state is RunState.RUNNING


class TestKeyboardRegisters:

    def test_kbsr_without_input(self):
        """No pending input: KBSR reads 0, KBDR untouched"""
        emu = LC3Emulator(console=BufferedConsole())
        emu.mem.write(KBDR, 0x1234)
        assert emu.mem.read(KBSR) == 0x0000
        assert emu.mem.read(KBDR) == 0x1234

    def test_kbsr_with_input(self):
        emu = LC3Emulator(console=BufferedConsole(b"a"))
        assert emu.mem.read(KBSR) == 0x8000
        assert emu.mem.read(KBDR) == ord("a")
        # Byte consumed: next poll sees nothing
        assert emu.mem.read(KBSR) == 0x0000
        assert emu.mem.read(KBDR) == ord("a")

    def test_kbdr_read_has_no_side_effect(self):
        emu = LC3Emulator(console=BufferedConsole(b"q"))
        assert emu.mem.read(KBDR) == 0
        assert emu.console.key_ready()

    def test_polling_program(self):
        """Spin on KBSR via LDI until ready, then LDI the byte from KBDR."""
        emu = _emu([
            0xA203,  # LDI R1, #3     ; R1 <- [KBSR]
            0x07FE,  # BRzp #-2       ; not ready -> poll again
            0xA002,  # LDI R0, #2     ; R0 <- [KBDR]
            0xF025,  # HALT
            0xFE00,  # .FILL KBSR
            0xFE02,  # .FILL KBDR
        ], rx=b"x")
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[0] == ord("x")


class TestScenarios:

    def test_scenario_a_clear_and_halt(self):
        """AND R0,R0,#0 ; HALT"""
        emu = LC3Emulator(console=BufferedConsole())
        emu.load_image(_image(0x3000, [0x5020, 0xF025]))
        emu.regs.R[0] = 0x0007
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[0] == 0
        assert emu.regs.COND == FL_ZRO
        assert emu.state is RunState.STOPPED

    def test_scenario_b_puts_hi(self):
        """LEA R0,MSG ; PUTS ; HALT ; MSG .STRINGZ "HI" """
        emu = LC3Emulator(console=BufferedConsole())
        emu.load_image(_image(0x3000, [
            0xE002,  # LEA R0, #2
            0xF022,  # PUTS
            0xF025,  # HALT
            0x0048, 0x0049, 0x0000,
        ]))
        emu.run()
        assert emu.console.output == b"HI"

    def test_scenario_c_add_minus_one(self):
        emu = _emu([0x127F])
        emu.step()
        assert emu.regs.R[1] == 0xFFFF
        assert emu.regs.COND == FL_NEG

    def test_scenario_e_undefined_opcode(self):
        """RES (1101) stops the run with ILLEGAL"""
        emu = _emu([0x1025, 0xD000, 0x1025])
        assert emu.run() is StopReason.ILLEGAL
        assert emu.state is RunState.STOPPED
        assert emu.regs.R[0] == 5
        assert emu.regs.PC == 0x3002
        assert emu.fault.address == 0x3001
        assert emu.fault.instruction == 0xD000

    def test_step_raises_undefined_opcode(self):
        emu = _emu([0xD123])
        with pytest.raises(UndefinedOpcode):
            emu.step()
        assert not emu.running
        # Stopped machines do not execute further
        assert emu.step() is StopReason.ILLEGAL
        assert emu.regs.PC == 0x3001


class TestRunLoop:

    def test_countdown_loop(self):
        """R0 = 3; loop: R0 -= 1; BRp loop; HALT"""
        emu = _emu([
            0x5020,  # AND R0, R0, #0
            0x1023,  # ADD R0, R0, #3
            0x103F,  # ADD R0, R0, #-1
            0x03FE,  # BRp #-2
            0xF025,  # HALT
        ])
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[0] == 0
        assert emu.regs.steps == 9

    def test_subroutine_call_and_return(self):
        """JSR SUB ; HALT ; SUB: ADD R0,R0,#1 ; RET"""
        emu = _emu([
            0x4801,  # JSR #1
            0xF025,  # HALT
            0x1021,  # ADD R0, R0, #1
            0xC1C0,  # RET
        ])
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[0] == 1
        assert emu.regs.PC == 0x3002

    def test_pc_wraps_at_top_of_memory(self):
        emu = _emu([0x1021], origin=0xFFFF)
        emu.step()
        assert emu.regs.PC == 0x0000

    def test_trace_logs_disassembly(self, caplog):
        caplog.set_level(logging.DEBUG, logger="lc3vm")
        emu = LC3Emulator(console=BufferedConsole(), trace=True)
        emu.mem.load_words([0x5020, 0xF025], 0x3000)
        emu.run()
        assert "AND R0, R0, #0" in caplog.text
        assert "HALT" in caplog.text
