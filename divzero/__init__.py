"""divzero — divide-by-zero checking for Cppcheck dump files.

A forward, flow-sensitive zeroness analysis over the token AST of every
function body, and a checker that reports integer divisions whose divisor
is not proven nonzero.

Submodules
----------
lattice
    The four-element zeroness lattice (``BOTTOM``, ``ZERO``, ``NON_ZERO``,
    ``TOP``) and its ``join`` / ``meet`` / ``narrow`` operations.

transfer
    Per-operator transfer functions and the expression evaluator that
    annotates every token of a block.

refinement
    Immutable variable stores and branch-condition narrowing.

ctrlflow_graph
    Basic-block control-flow graphs built from a function scope.

dataflow_engine
    Worklist fixpoint driver producing the per-token annotation table.

checkers
    Diagnostics, suppressions, the division rule and the checker runner.

config / errors / reporter / main
    Options, exception hierarchy, terminal rendering and the CLI.

Usage
-----
Command-line::

    cppcheck --dump src/calc.c
    python -m divzero src/calc.c.dump

Programmatic::

    import cppcheckdata
    from divzero import AnalysisConfig, CheckerRunner

    runner = CheckerRunner(config=AnalysisConfig(jobs=4))
    results = runner.run_all_configurations(cppcheckdata.parsedump("calc.c.dump"))
    print(results.to_gcc_format())
"""

from __future__ import annotations

__version__: str = "0.1.0"

from divzero.checkers import (
    CheckerRunner,
    CheckerRunResults,
    Diagnostic,
    DivByZeroChecker,
    DivisionEvent,
    DivisionRule,
    SuppressionManager,
)
from divzero.config import AnalysisConfig, load_config
from divzero.ctrlflow_graph import CFG, build_cfg
from divzero.dataflow_engine import AnalysisResult, ZeronessAnalysis, analyze_function
from divzero.errors import (
    AnalysisError,
    AnalysisLimitExceeded,
    ConfigError,
    DivZeroError,
    MalformedCFGError,
)
from divzero.lattice import Zeroness
from divzero.refinement import RefinementStore

__all__: list[str] = [
    "__version__",
    "Zeroness",
    "RefinementStore",
    "CFG",
    "build_cfg",
    "AnalysisConfig",
    "load_config",
    "AnalysisResult",
    "ZeronessAnalysis",
    "analyze_function",
    "Diagnostic",
    "DivisionEvent",
    "DivisionRule",
    "DivByZeroChecker",
    "SuppressionManager",
    "CheckerRunner",
    "CheckerRunResults",
    "DivZeroError",
    "AnalysisError",
    "MalformedCFGError",
    "AnalysisLimitExceeded",
    "ConfigError",
]
