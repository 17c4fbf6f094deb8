"""
LC-3 Virtual Machine - Error Kinds + Exit Codes

Every failure is terminal for the current run. Nothing is retried or
resumed. Each exception carries the process exit code the CLI reports
for it:

  COMPLETED       0   normal HALT
  WRONG_SYNTAX   -1   no image path given
  LOAD_FAIL      -2   an image could not be opened/read
  OP_NOT_DEFINED -3   fetch produced an opcode with no handler
  INTERRUPTED    -4   SIGINT arrived while the program was running
"""

from enum import IntEnum


class ExitCode(IntEnum):
    COMPLETED = 0
    WRONG_SYNTAX = -1
    LOAD_FAIL = -2
    OP_NOT_DEFINED = -3
    INTERRUPTED = -4


class LC3Error(Exception):
    """Base class for all emulator errors."""
    exit_code = ExitCode.COMPLETED


class UsageError(LC3Error):
    """Command line did not name any program image."""
    exit_code = ExitCode.WRONG_SYNTAX


class LoadFailure(LC3Error):
    """A program image could not be opened or read."""
    exit_code = ExitCode.LOAD_FAIL

    def __init__(self, path, reason: str = ""):
        self.path = path
        self.reason = reason
        msg = f"Failed to load image: {path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class UndefinedOpcode(LC3Error):
    """Decoded opcode has no execution handler.

    address is where the instruction was fetched from; the PC has
    already moved past it when this is raised.
    """
    exit_code = ExitCode.OP_NOT_DEFINED

    def __init__(self, address: int, instruction: int):
        self.address = address
        self.instruction = instruction
        super().__init__(
            f"Undefined opcode {instruction >> 12:04b} "
            f"(word ${instruction:04X} at ${address:04X})"
        )


class InterruptedExecution(BaseException):
    """External interrupt (SIGINT) stopped the run.

    Derives from BaseException like KeyboardInterrupt, so handlers that
    trap Exception (logging handlers among them) let it through.
    """
    exit_code = ExitCode.INTERRUPTED
