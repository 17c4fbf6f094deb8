#!/usr/bin/env python3
"""
lc3vm - LC-3 Virtual Machine command line
==========================================

Loads one or more LC-3 object images and runs them on the real terminal.

Usage:
    lc3vm IMAGE [IMAGE ...] [options]
    python -m lc3vm IMAGE [IMAGE ...] [options]

Examples:
    lc3vm 2048.obj
    lc3vm os.obj game.obj -v
    lc3vm hello.obj --trace --log-file logs/hello.log
    lc3vm hello.obj --dump 0x3000:32 --dump-regs

Exit codes:
     0  program executed HALT
    -1  no image given
    -2  an image could not be loaded
    -3  undefined opcode fetched
    -4  interrupted (Ctrl+C)
"""

import argparse
import logging
import signal
import sys
from contextlib import contextmanager, nullcontext

from rich.console import Console

from . import __version__
from .emu import LC3Emulator, StopReason
from .errors import ExitCode, InterruptedExecution, LC3Error, UsageError
from .log_setup import reset_logging, setup_logging
from .periph.console import TerminalConsole, raw_terminal
from .traps import HALT_NOTICE

log = logging.getLogger("lc3vm.cli")

# Status lines for the user; stdout is reserved for the program
_notice = Console(stderr=True, highlight=False)


def _parse_dump(text: str):
    """'START:LENGTH' (any int base) -> (start, length)."""
    try:
        start, _, length = text.partition(':')
        return int(start, 0) & 0xFFFF, int(length or '64', 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START:LENGTH, got {text!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3vm",
        description="LC-3 Virtual Machine: run big-endian LC-3 object images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("images", nargs="*", metavar="IMAGE",
                        help="Object image(s), loaded in order")
    parser.add_argument("--version", action="version", version=f"lc3vm {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log verbosity (-v, -vv)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", type=str,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--trace", action="store_true",
                        help="Log every executed instruction (DEBUG)")
    parser.add_argument("--dump", type=_parse_dump, metavar="START:LENGTH",
                        help="Print a memory hexdump to stderr after the run")
    parser.add_argument("--dump-regs", action="store_true",
                        help="Print final register state to stderr")
    return parser


def _console_level(args) -> int:
    if args.quiet:
        return logging.ERROR
    if args.trace or args.verbose >= 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    return logging.WARNING


@contextmanager
def interrupt_guard():
    """Turn SIGINT into InterruptedExecution for the duration of the block."""
    def _on_sigint(signum, frame):
        raise InterruptedExecution("Interrupted")

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def execute(args, console=None) -> int:
    """Load and run the images named in args.

    Raises LC3Error on failure, InterruptedExecution if SIGINT lands
    outside the fetch loop.
    """
    if not args.images:
        raise UsageError("lc3vm IMAGE [IMAGE ...]")

    terminal = console is None
    if terminal:
        console = TerminalConsole()

    emu = LC3Emulator(console=console, trace=args.trace)
    emu.load_images(args.images)

    raw_mode = raw_terminal(console.in_fd) if terminal else nullcontext()
    with interrupt_guard(), raw_mode:
        reason = emu.run()

    if args.dump:
        start, length = args.dump
        print(emu.mem.hexdump(start, length), file=sys.stderr)
    if args.dump_regs:
        print(emu.regs.display(), file=sys.stderr)

    if reason is StopReason.ILLEGAL:
        log.error("Invalid opcode. Execution aborted. %s", emu.fault)
        return ExitCode.OP_NOT_DEFINED
    if reason is StopReason.INTERRUPTED:
        log.warning("Execution interrupted at PC=$%04X", emu.regs.PC)
        return ExitCode.INTERRUPTED
    if not args.quiet:
        _notice.print(HALT_NOTICE)
    return ExitCode.COMPLETED


def main(argv=None, console=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    reset_logging()
    setup_logging(console_level=_console_level(args), log_file=args.log_file)

    try:
        return int(execute(args, console))
    except UsageError:
        parser.print_usage(sys.stderr)
        log.error("No image given")
        return int(ExitCode.WRONG_SYNTAX)
    except LC3Error as e:
        log.error("%s", e)
        return int(e.exit_code)
    except (InterruptedExecution, KeyboardInterrupt):
        log.warning("Execution interrupted")
        return int(ExitCode.INTERRUPTED)


if __name__ == "__main__":
    sys.exit(main())
