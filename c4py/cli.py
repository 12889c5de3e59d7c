"""Command line entry point: ``c4py [-s] [-d] [-v] file [args...]``."""

from __future__ import annotations

import argparse
import logging
import sys

from .api import source_listing
from .bytecode import opcode_name
from .compiler import compile_source
from .errors import CompileError, VMError
from .run import execute_program
from .run_types import VMConfig
from .vm_types import VMState

logger = logging.getLogger(__name__)

ERROR_EXIT_STATUS = 255


def _print_step(cycle: int, pc: int, opcode: int, operand: int | None, state: VMState):
    if operand is None:
        print(f"{cycle}> {opcode_name(opcode)}")
    else:
        print(f"{cycle}> {opcode_name(opcode):<4} {operand}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="c4py", description="Compile and run a C-subset program"
    )
    parser.add_argument("-s", "--source", action="store_true",
                        help="Print source lines with their bytecode and exit")
    parser.add_argument("-d", "--debug", action="store_true",
                        help="Trace every executed instruction")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log pipeline milestones")
    parser.add_argument("--max-cycles", type=int, default=None,
                        help="Abort after this many instructions (default: unbounded)")
    parser.add_argument("file", help="Source file to compile")
    parser.add_argument("args", nargs=argparse.REMAINDER,
                        help="Arguments passed to main()")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        with open(args.file, encoding="utf-8") as f:
            source = f.read()
    except OSError:
        print(f"could not open({args.file})", file=sys.stderr)
        return ERROR_EXIT_STATUS

    try:
        if args.source:
            print(source_listing(source))
            return 0
        program = compile_source(source)
        config = VMConfig(max_cycles=args.max_cycles)
        vm, _stats = execute_program(
            program,
            [args.file, *args.args],
            config,
            on_step=_print_step if args.debug else None,
        )
    except (CompileError, VMError) as err:
        sys.stdout.flush()
        print(err, file=sys.stderr)
        return ERROR_EXIT_STATUS

    print(f"exit({vm.exit_code}) cycle = {vm.cycle}")
    return vm.exit_code


if __name__ == "__main__":
    sys.exit(main())
