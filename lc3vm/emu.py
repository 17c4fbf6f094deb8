"""
LC-3 Virtual Machine - Main Emulator Class

Integrates:
  - CPU registers (cpu/regs.py)
  - Memory map (mem/memory.py)
  - Opcode decoder (cpu/decoder.py)
  - ALU operations (cpu/alu.py)
  - Keyboard device (periph/keyboard.py)
  - Trap service routines (traps.py)

Execution model:
  1. Fetch the word at PC
  2. Advance PC (wrapping) - all PC-relative offsets use this value
  3. Decode opcode = bits [15:12]
  4. Execute the handler from the dispatch table; register writes
     update COND
  5. Repeat while the run state is RUNNING

Termination reasons:
  - HALT:        TRAP x25
  - ILLEGAL:     opcode with no handler (RES, 1101)
  - INTERRUPTED: external interrupt (SIGINT) during run()
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .cpu.regs import Registers
from .cpu.decoder import (
    Opcode, decode_opcode, disassemble,
    field_dr, field_sr1, field_sr2, imm_mode, imm5, offset6,
    pc_offset9, pc_offset11, trap_vector,
)
from .cpu import alu
from .errors import InterruptedExecution, UndefinedOpcode
from .loader import LoadedImage, load_image
from .mem.memory import Memory
from .periph.console import BufferedConsole
from .periph.keyboard import KeyboardPeripheral
from .traps import HaltRequested, TrapRoutines

log = logging.getLogger(__name__)


class RunState(Enum):
    RUNNING = 'RUNNING'
    STOPPED = 'STOPPED'


class StopReason(Enum):
    HALT = 'HALT'
    ILLEGAL = 'ILLEGAL'
    INTERRUPTED = 'INTERRUPTED'


class LC3Emulator:
    """LC-3 Virtual Machine.

    Usage:
        emu = LC3Emulator(console=TerminalConsole())
        emu.load_image('hello.obj')
        result = emu.run()
        print(emu.regs.display())
    """

    def __init__(self, console=None, trace: bool = False):
        # Core components
        self.regs = Registers()
        self.mem = Memory()

        # Terminal collaborator + devices
        self.console = console if console is not None else BufferedConsole()
        self.keyboard = KeyboardPeripheral(self.console)
        self.keyboard.register(self.mem)
        self.traps = TrapRoutines(self.regs, self.mem, self.console)

        self.state = RunState.RUNNING
        self.stop_reason: Optional[StopReason] = None
        self.fault: Optional[UndefinedOpcode] = None

        self._trace = trace

        # Instruction dispatch table (built in _build_dispatch)
        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_image(self, path_or_data: Union[str, Path, bytes]) -> LoadedImage:
        """Load one big-endian program image at the origin it declares."""
        return load_image(self.mem, path_or_data)

    def load_images(self, paths: Iterable[Union[str, Path]]) -> List[LoadedImage]:
        """Load several images in order; later ones overwrite earlier ones."""
        return [self.load_image(p) for p in paths]

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    def stop(self, reason: StopReason):
        self.state = RunState.STOPPED
        self.stop_reason = reason

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if stopped, else None.

        Raises UndefinedOpcode for an opcode with no handler; the machine
        is stopped first and the PC has already been advanced.
        """
        if not self.running:
            return self.stop_reason

        pc = self.regs.PC
        instr = self.mem.read(pc)
        self.regs.PC = (pc + 1) & 0xFFFF
        opcode = decode_opcode(instr)

        handler = self._dispatch.get(opcode)
        if handler is None:
            self.stop(StopReason.ILLEGAL)
            self.fault = UndefinedOpcode(pc, instr)
            raise self.fault

        try:
            handler(instr)
        except HaltRequested:
            self.stop(StopReason.HALT)
        finally:
            self.regs.steps += 1
            if self._trace:
                log.debug("$%04X: %04X  %-20s %s", pc, instr,
                          disassemble(instr, pc), self.regs.display())

        return self.stop_reason

    def run(self) -> StopReason:
        """Run until HALT, an undefined opcode, or an external interrupt."""
        try:
            log.debug("Run starting at PC=$%04X", self.regs.PC)
            while self.running:
                self.step()
        except UndefinedOpcode as e:
            log.debug("Stopped: %s", e)
        except InterruptedExecution:
            self.stop(StopReason.INTERRUPTED)
            log.debug("Stopped by interrupt at PC=$%04X", self.regs.PC)
        log.debug("Run ended (%s) after %d instruction(s)",
                  self.stop_reason.value, self.regs.steps)
        return self.stop_reason

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(instr)

    def _build_dispatch(self) -> dict:
        """Build opcode -> handler dispatch table.

        RES is deliberately absent: fetching it is an undefined opcode.
        """
        return {
            # ── Operate ──
            Opcode.ADD: self._op_add,
            Opcode.AND: self._op_and,
            Opcode.NOT: self._op_not,

            # ── Data movement ──
            Opcode.LD:  self._op_ld,
            Opcode.LDI: self._op_ldi,
            Opcode.LDR: self._op_ldr,
            Opcode.LEA: self._op_lea,
            Opcode.ST:  self._op_st,
            Opcode.STI: self._op_sti,
            Opcode.STR: self._op_str,

            # ── Control ──
            Opcode.BR:   self._op_br,
            Opcode.JMP:  self._op_jmp,
            Opcode.JSR:  self._op_jsr,
            Opcode.TRAP: self._op_trap,
            Opcode.RTI:  self._op_rti,
        }

    def _pc_relative(self, offset: int) -> int:
        return alu.add16(self.regs.PC, offset)

    # ── Operate handlers ──

    def _second_operand(self, instr: int) -> int:
        if imm_mode(instr):
            return imm5(instr)
        return self.regs.read(field_sr2(instr))

    def _op_add(self, instr):
        a = self.regs.read(field_sr1(instr))
        self.regs.write(field_dr(instr), alu.add16(a, self._second_operand(instr)))

    def _op_and(self, instr):
        a = self.regs.read(field_sr1(instr))
        self.regs.write(field_dr(instr), alu.and16(a, self._second_operand(instr)))

    def _op_not(self, instr):
        self.regs.write(field_dr(instr), alu.not16(self.regs.read(field_sr1(instr))))

    # ── Load handlers ──

    def _op_ld(self, instr):
        addr = self._pc_relative(pc_offset9(instr))
        self.regs.write(field_dr(instr), self.mem.read(addr))

    def _op_ldi(self, instr):
        pointer = self.mem.read(self._pc_relative(pc_offset9(instr)))
        self.regs.write(field_dr(instr), self.mem.read(pointer))

    def _op_ldr(self, instr):
        base = self.regs.read(field_sr1(instr))
        self.regs.write(field_dr(instr), self.mem.read(alu.add16(base, offset6(instr))))

    def _op_lea(self, instr):
        # Loads the effective address itself, not memory at it
        self.regs.write(field_dr(instr), self._pc_relative(pc_offset9(instr)))

    # ── Store handlers ──

    def _op_st(self, instr):
        addr = self._pc_relative(pc_offset9(instr))
        self.mem.write(addr, self.regs.read(field_dr(instr)))

    def _op_sti(self, instr):
        pointer = self.mem.read(self._pc_relative(pc_offset9(instr)))
        self.mem.write(pointer, self.regs.read(field_dr(instr)))

    def _op_str(self, instr):
        base = self.regs.read(field_sr1(instr))
        self.mem.write(alu.add16(base, offset6(instr)), self.regs.read(field_dr(instr)))

    # ── Control handlers ──

    def _op_br(self, instr):
        if field_dr(instr) & self.regs.COND:
            self.regs.PC = self._pc_relative(pc_offset9(instr))

    def _op_jmp(self, instr):
        # RET is JMP R7
        self.regs.PC = self.regs.read(field_sr1(instr))

    def _op_jsr(self, instr):
        return_addr = self.regs.PC
        if (instr >> 11) & 1:
            target = self._pc_relative(pc_offset11(instr))
        else:
            target = self.regs.read(field_sr1(instr))
        self.regs.R[7] = return_addr
        self.regs.PC = target

    def _op_trap(self, instr):
        self.traps.execute(trap_vector(instr))

    def _op_rti(self, instr):
        # No supervisor mode or interrupt stack: inert
        pass
