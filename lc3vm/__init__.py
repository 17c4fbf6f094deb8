# LC-3 Virtual Machine - Pure-software LC-3 CPU simulator
#
# Package layout:
#   cpu/regs.py        register file + condition flags
#   cpu/alu.py         sign extension and 16-bit word arithmetic
#   cpu/decoder.py     opcode enum, field extraction, disassembly
#   mem/memory.py      65,536-word address space with device read hooks
#   periph/keyboard.py KBSR/KBDR memory-mapped keyboard
#   periph/console.py  terminal collaborator (raw mode, poll, read, write)
#   traps.py           GETC/OUT/PUTS/IN/PUTSP/HALT service routines
#   loader.py          big-endian program image loader
#   emu.py             fetch-decode-execute loop
#   cli.py             command-line entry point

__version__ = "1.0.0"
