"""Tests for the c4py command line entry point."""

from c4py.cli import ERROR_EXIT_STATUS, build_parser, main


def _write(tmp_path, source: str, name: str = "prog.c") -> str:
    path = tmp_path / name
    path.write_text(source)
    return str(path)


class TestParser:
    def test_program_arguments_are_kept_verbatim(self):
        args = build_parser().parse_args(["prog.c", "-x", "y"])
        assert args.file == "prog.c"
        assert args.args == ["-x", "y"]

    def test_flags(self):
        args = build_parser().parse_args(["-s", "-d", "--max-cycles", "10", "prog.c"])
        assert args.source and args.debug
        assert args.max_cycles == 10


class TestMain:
    def test_exit_code_and_summary(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() { return 7; }")
        assert main([path]) == 7
        assert "exit(7) cycle = 5" in capsys.readouterr().out

    def test_program_output_precedes_summary(self, tmp_path, capsys):
        path = _write(tmp_path, 'int main() { printf("hi\\n"); return 0; }')
        assert main([path]) == 0
        out = capsys.readouterr().out
        assert out.startswith("hi\n")
        assert "exit(0)" in out

    def test_arguments_reach_main(self, tmp_path):
        path = _write(tmp_path, "int main(int argc, char **argv) { return argc; }")
        assert main([path, "a", "b"]) == 3

    def test_source_listing(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() {\n  return 7;\n}\n")
        assert main(["-s", path]) == 0
        out = capsys.readouterr().out
        assert "2:   return 7;" in out
        assert "exit(" not in out

    def test_debug_trace(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() { return 7; }")
        main(["-d", path])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "1> ENT  0"
        assert lines[1] == "2> IMM  7"
        assert "5> EXIT" in lines

    def test_compile_error(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() { return 7 }")
        assert main([path]) == ERROR_EXIT_STATUS
        assert capsys.readouterr().err.startswith("1: ")

    def test_runtime_error(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() { int z; z = 0; return 1 / z; }")
        assert main([path]) == ERROR_EXIT_STATUS
        err = capsys.readouterr().err
        assert "division by zero at DIV" in err
        assert "cycle = " in err

    def test_cycle_limit(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() { while (1); return 0; }")
        assert main(["--max-cycles", "100", path]) == ERROR_EXIT_STATUS
        assert "cycle limit" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        missing = str(tmp_path / "absent.c")
        assert main([missing]) == ERROR_EXIT_STATUS
        assert f"could not open({missing})" in capsys.readouterr().err

    def test_verbose_keeps_program_output_clean(self, tmp_path, capsys):
        path = _write(tmp_path, "int main() { return 7; }")
        assert main(["-v", path]) == 7
        out = capsys.readouterr().out
        assert "Pipeline Statistics" not in out
        assert out.strip() == "exit(7) cycle = 5"
