"""c4py: a self-contained C-subset compiler and stack virtual machine."""

from .run import run, execute_program, execute_program_traced  # noqa: F401
from .run_types import VMConfig  # noqa: F401
from .api import (  # noqa: F401
    compile_source,
    dump_bytecode,
    dump_function,
    source_listing,
    bytecode_stats,
    execute_traced,
)
from .errors import (  # noqa: F401
    CompileError,
    LexError,
    ParseError,
    SemanticError,
    VMError,
)
