"""Tests for the composable API functions in c4py.api."""

import pytest

from c4py.api import (
    bytecode_stats,
    compile_source,
    dump_bytecode,
    dump_function,
    execute_traced,
    source_listing,
)
from c4py.bytecode import BytecodeProgram
from c4py.errors import ParseError, VMError
from c4py.trace_types import ExecutionTrace

SIMPLE_SOURCE = "int main() {\n  return 7;\n}\n"

FUNCTION_SOURCE = """\
int f() { return 1; }
int main() { return f(); }
"""


class TestCompileSource:
    def test_returns_program(self):
        program = compile_source(SIMPLE_SOURCE)
        assert isinstance(program, BytecodeProgram)
        assert program.entry == 0

    def test_syntax_error_propagates(self):
        with pytest.raises(ParseError):
            compile_source("int main() { return 7 }")


class TestDumpBytecode:
    def test_one_line_per_instruction(self):
        lines = dump_bytecode(SIMPLE_SOURCE).splitlines()
        assert len(lines) == 6
        assert lines[0].split() == ["0", "ENT", "0"]
        assert lines[-1].split() == ["7", "EXIT"]


class TestSourceListing:
    def test_interleaves_lines_and_instructions(self):
        lines = source_listing(SIMPLE_SOURCE).splitlines()
        assert lines[0] == "1: int main() {"
        index = lines.index("2:   return 7;")
        assert lines[index + 1 : index + 4] == ["    ENT  0", "    IMM  7", "    LEV"]

    def test_every_source_line_is_listed(self):
        listing = source_listing(SIMPLE_SOURCE)
        assert "3: }" in listing.splitlines()

    def test_exit_stub_is_listed(self):
        assert source_listing(SIMPLE_SOURCE).splitlines()[-1] == "    EXIT"


class TestDumpFunction:
    def test_only_named_function(self):
        lines = dump_function(FUNCTION_SOURCE, "f").splitlines()
        assert [line.split()[1] for line in lines] == ["ENT", "IMM", "LEV", "LEV"]

    def test_excludes_exit_stub(self):
        text = dump_function(FUNCTION_SOURCE, "main")
        assert "JSR" in text
        assert "EXIT" not in text

    def test_unknown_function_raises(self):
        with pytest.raises(ValueError, match="not found"):
            dump_function(FUNCTION_SOURCE, "nope")

    def test_global_is_not_a_function(self):
        with pytest.raises(ValueError):
            dump_function("int g; " + FUNCTION_SOURCE, "g")


class TestBytecodeStats:
    def test_counts_mnemonics(self):
        assert bytecode_stats(SIMPLE_SOURCE) == {
            "ENT": 1,
            "IMM": 1,
            "LEV": 2,
            "PSH": 1,
            "EXIT": 1,
        }


class TestExecuteTraced:
    def test_returns_trace(self):
        trace = execute_traced(SIMPLE_SOURCE)
        assert isinstance(trace, ExecutionTrace)
        assert trace.stats.exit_code == 7
        assert trace.stats.cycles == len(trace.steps)

    def test_argv_reaches_main(self):
        trace = execute_traced("int main(int argc, char **argv) { return argc; }", ["a", "b"])
        assert trace.stats.exit_code == 2

    def test_cycle_limit(self):
        with pytest.raises(VMError, match="cycle limit"):
            execute_traced("int main() { while (1); return 0; }", max_cycles=50)
