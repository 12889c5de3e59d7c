"""Tests for system calls: printf formatting and host effects driven from programs."""

import io
import os

from c4py.run import run
from c4py.run_types import VMConfig
from c4py.syscalls import format_printf, write_output

STRINGS = {100: b"world", 200: b"ab"}


def _fmt(fmt: bytes, *args: int) -> bytes:
    return format_printf(fmt, list(args), STRINGS.__getitem__)


def _run(source: str, argv=None) -> tuple[int, str]:
    out = io.StringIO()
    vm = run(source, argv, VMConfig(stdout=out))
    return vm.exit_code, out.getvalue()


class TestFormatPrintf:
    def test_plain_text(self):
        assert _fmt(b"hello\n") == b"hello\n"

    def test_integers(self):
        assert _fmt(b"%d %i", 42, -7) == b"42 -7"

    def test_width_and_flags(self):
        assert _fmt(b"[%5d|%-5d|%05d]", 1, 2, 42) == b"[    1|2    |00042]"

    def test_unsigned_conversions(self):
        assert _fmt(b"%x %X %o", 255, 255, 8) == b"ff FF 10"
        assert _fmt(b"%u", -1) == b"4294967295"
        assert _fmt(b"%x", -1) == b"ffffffff"

    def test_char(self):
        assert _fmt(b"%c%c", 72, 105) == b"Hi"

    def test_string_argument_is_an_address(self):
        assert _fmt(b"hello %s!", 100) == b"hello world!"
        assert _fmt(b"[%4s]", 200) == b"[  ab]"

    def test_null_string(self):
        assert _fmt(b"%s", 0) == b"(null)"

    def test_percent_literal(self):
        assert _fmt(b"100%%") == b"100%"

    def test_length_modifiers_ignored(self):
        assert _fmt(b"%ld %hd", 7, 8) == b"7 8"

    def test_missing_arguments_are_zero(self):
        assert _fmt(b"%d-%d", 5) == b"5-0"

    def test_pointer(self):
        assert _fmt(b"%p", 16) == b"0x10"


class TestWriteOutput:
    def test_text_stream(self):
        out = io.StringIO()
        write_output(out, b"caf\xc3\xa9")
        assert out.getvalue() == "café"


class TestProgramSyscalls:
    def test_printf_returns_byte_count(self):
        code, out = _run('int main() { return printf("x=%d\\n", 42); }')
        assert out == "x=42\n"
        assert code == 5

    def test_malloc_memset_memcmp(self):
        source = """
        int main() {
            char *a; char *b;
            a = malloc(8);
            b = malloc(8);
            memset(a, 'x', 8);
            memset(b, 'x', 8);
            b[3] = 'z';
            return memcmp(a, b, 8);
        }
        """
        code, _ = _run(source)
        assert code == ord("x") - ord("z")

    def test_memset_returns_pointer(self):
        source = """
        int main() {
            char *p;
            p = malloc(4);
            return memset(p, 0, 4) == p;
        }
        """
        assert _run(source)[0] == 1

    def test_free_then_malloc(self):
        source = """
        int main() {
            int *p;
            p = malloc(16);
            free(p);
            free(0);
            p = malloc(16);
            return p != 0;
        }
        """
        assert _run(source)[0] == 1

    def test_open_read_close(self, tmp_path):
        path = tmp_path / "input.txt"
        path.write_text("hello")
        source = """
        int main(int argc, char **argv) {
            int fd; char *buf; int n;
            buf = malloc(16);
            fd = open(argv[1], 0);
            if (fd < 0) return 99;
            n = read(fd, buf, 15);
            buf[n] = 0;
            printf("%s", buf);
            close(fd);
            return n;
        }
        """
        code, out = _run(source, ["prog", str(path)])
        assert code == 5
        assert out == "hello"

    def test_open_missing_file_returns_minus_one(self, tmp_path):
        source = """
        int main(int argc, char **argv) {
            return open(argv[1], 0);
        }
        """
        code, _ = _run(source, ["prog", str(tmp_path / "absent")])
        assert code == -1

    def test_close_bad_descriptor_returns_minus_one(self):
        assert _run("int main() { return close(-5); }")[0] == -1

    def test_write_file_via_open_flags(self, tmp_path):
        path = tmp_path / "created.txt"
        flags = os.O_WRONLY | os.O_CREAT
        source = f"""
        int main(int argc, char **argv) {{
            int fd;
            fd = open(argv[1], {flags});
            return close(fd);
        }}
        """
        code, _ = _run(source, ["prog", str(path)])
        assert code == 0
        assert path.exists()
