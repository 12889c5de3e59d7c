"""Rosetta test: bubble sort over a heap array."""

from c4py.bytecode import Opcode
from c4py.compiler import compile_source

from tests.unit.rosetta.conftest import assert_clean_compile, run_program

PROGRAM = """\
void sort(int *a, int n) {
    int i, j, t;
    i = 0;
    while (i < n - 1) {
        j = 0;
        while (j < n - 1 - i) {
            if (a[j] > a[j + 1]) {
                t = a[j];
                a[j] = a[j + 1];
                a[j + 1] = t;
            }
            j++;
        }
        i++;
    }
}

int main() {
    int *a, i, n;
    n = 6;
    a = malloc(n * sizeof(int));
    a[0] = 5; a[1] = -3; a[2] = 9; a[3] = 0; a[4] = 2; a[5] = 7;
    sort(a, n);
    i = 0;
    while (i < n) {
        printf("%d ", a[i]);
        i++;
    }
    printf("\\n");
    free(a);
    return a[0] < a[5];
}
"""


class TestBubbleSortLowering:
    def test_clean_compile(self):
        assert_clean_compile(
            compile_source(PROGRAM),
            min_instructions=100,
            required_opcodes={Opcode.MALC, Opcode.FREE, Opcode.SI, Opcode.LI, Opcode.GT},
            name="bubble_sort",
        )


class TestBubbleSortExecution:
    def test_result(self):
        code, out, stats = run_program(PROGRAM)
        assert out == "-3 0 2 5 7 9 \n"
        assert code == 1
        assert stats.heap_allocations == 0
