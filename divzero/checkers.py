"""
divzero/checkers.py
═══════════════════

Checker framework that turns zeroness facts into cppcheck-addon-compatible
divide-by-zero diagnostics.

Architecture
────────────

  ┌─────────────────────────────────────────────────────────┐
  │                   CheckerRunner                         │
  │  ┌───────────────────────────────────────────────────┐  │
  │  │                DivByZeroChecker                   │  │
  │  │   one AnalysisUnit per function body             │  │
  │  │   ctrlflow_graph ─► dataflow_engine ─► results    │  │
  │  └──────────────────────────┬────────────────────────┘  │
  │                             │                           │
  │  ┌──────────────────────────▼────────────────────────┐  │
  │  │                 DivisionRule                      │  │
  │  │   token + zeroness_of(token) ─► DivisionEvent     │  │
  │  └──────────────────────────┬────────────────────────┘  │
  │                             │                           │
  │  ┌──────────────────────────▼────────────────────────┐  │
  │  │           SuppressionManager                      │  │
  │  │  // cppcheck-suppress  │  file-level  │  global   │  │
  │  └──────────────────────────┬────────────────────────┘  │
  │                             │                           │
  │  ┌──────────────────────────▼────────────────────────┐  │
  │  │        Diagnostic Formatter (JSON / gcc)          │  │
  │  └──────────────────────────────────────────────────┘  │
  └─────────────────────────────────────────────────────────┘

Each Checker follows a four-phase lifecycle:

  1. **configure()**        — build the control-flow graphs
  2. **collect_evidence()** — run the zeroness analysis per function
  3. **diagnose()**         — apply the division rule, assign confidence
  4. **report()**           — emit Diagnostics (filtered by suppressions)

Function bodies are independent analysis units.  With ``jobs > 1`` they
are analysed on a thread pool; each unit owns its stores and annotation
table, so no locking is needed.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum, auto
from fnmatch import fnmatch
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from divzero.ast_helper import (
    COMPOUND_DIVISION_OPS,
    expr_to_string,
    find_ast_root,
    is_division,
    is_integral,
    tok_column,
    tok_file,
    tok_line,
    tok_op2,
    tok_str,
)
from divzero.config import AnalysisConfig
from divzero.ctrlflow_graph import CFG, build_cfg, function_scope
from divzero.dataflow_engine import AnalysisResult, ZeronessAnalysis
from divzero.errors import AnalysisError
from divzero.lattice import Zeroness
from divzero.transfer import evaluate_standalone

_log = logging.getLogger(__name__)

ADDON_NAME = "divzero"
DIVIDE_BY_ZERO = "divide-by-zero"
DIVIDE_BY_ZERO_UNCHECKED = "divide-by-zero-unchecked"
INTERNAL_ERROR = "divide-by-zero-internal"
CWE_DIVIDE_BY_ZERO = 369


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """cppcheck-compatible severity levels."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How certain we are that the diagnostic is a true positive.

    HIGH   — the divisor is zero on every path reaching the division
    MEDIUM — the divisor could not be proven nonzero
    LOW    — heuristic, may well be a false positive
    """
    HIGH = auto()
    MEDIUM = auto()
    LOW = auto()


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    @classmethod
    def of(cls, tok: Any) -> SourceLocation:
        return cls(file=tok_file(tok), line=tok_line(tok), column=tok_column(tok))


@dataclass(frozen=True)
class Diagnostic:
    """
    A single diagnostic finding.

    Designed for direct serialization to cppcheck's JSON addon protocol.

    Attributes
    ----------
    error_id     : Unique identifier (e.g., "divide-by-zero")
    message      : Human-readable description
    severity     : DiagnosticSeverity
    location     : Primary source location
    confidence   : Confidence level
    cwe          : CWE identifier (0 = none)
    checker_name : Name of the checker that produced this
    addon        : Addon name for cppcheck protocol
    extra        : Additional context string
    evidence     : Machine-readable evidence dict for downstream tooling
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.MEDIUM
    cwe: int = 0
    checker_name: str = ""
    addon: str = ADDON_NAME
    extra: str = ""
    evidence: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_cppcheck_json(self) -> Dict[str, Any]:
        """Serialize to cppcheck's JSON addon output format."""
        result: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": self.extra,
        }
        if self.cwe:
            result["cwe"] = self.cwe
        return result

    def to_json_str(self) -> str:
        """Single-line JSON string for cppcheck addon stdout."""
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        sev = self.severity.value
        return f"{self.location}: {sev}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

class SuppressionManager:
    """
    Manages diagnostic suppressions from multiple sources.

    Sources:
      1. Inline comments:  ``// cppcheck-suppress divide-by-zero``
      2. File-level suppressions (passed programmatically)
      3. Global suppressions (command-line or config)

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_inline_suppressions(cfg)
    >>> sm.add_file_suppression("divide-by-zero", "legacy/*.c")
    >>> sm.add_global_suppression("divide-by-zero-unchecked")
    >>> if not sm.is_suppressed(diagnostic):
    ...     emit(diagnostic)
    """

    def __init__(self) -> None:
        # {(file, line)} → set of error_ids suppressed at that location
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → set of error_ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        # globally suppressed error_ids
        self._global: Set[str] = set()

    def load_inline_suppressions(self, cfg: Any) -> None:
        """
        Read the suppressions cppcheck parsed into ``cfg.suppressions``.

        cppcheck turns ``// cppcheck-suppress id`` comments into entries
        with a file and line; entries without a line are file-level and
        entries without a file are global.
        """
        for supp in getattr(cfg, "suppressions", None) or []:
            error_id = getattr(supp, "errorId", None)
            file = getattr(supp, "fileName", "") or ""
            line = getattr(supp, "lineNumber", 0) or 0
            if not error_id:
                continue
            if file and line:
                self._inline[(file, int(line))].add(error_id)
            elif file:
                self._file_level[file].add(error_id)
            else:
                self._global.add(error_id)

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        """Suppress ``error_id`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(error_id)

    def add_global_suppression(self, error_id: str) -> None:
        """Globally suppress ``error_id``."""
        self._global.add(error_id)

    def add_from_spec(self, spec: str) -> None:
        """Add a command-line style suppression: ``id``, ``id:file`` or ``id:file:line``."""
        parts = spec.split(":")
        error_id = parts[0]
        if len(parts) == 1:
            self.add_global_suppression(error_id)
        elif len(parts) >= 3 and parts[-1].isdigit():
            self._inline[(":".join(parts[1:-1]), int(parts[-1]))].add(error_id)
        else:
            self.add_file_suppression(error_id, ":".join(parts[1:]))

    def is_suppressed(self, diag: Diagnostic) -> bool:
        """Check whether a diagnostic should be suppressed."""
        eid = diag.error_id

        if eid in self._global or "*" in self._global:
            return True

        loc = diag.location

        # Inline (exact line match, or line-1 for preceding-line suppress)
        for line_offset in (0, 1):
            key = (loc.file, loc.line - line_offset)
            suppressed_ids = self._inline.get(key, set())
            if eid in suppressed_ids or "*" in suppressed_ids:
                return True

        for pattern, ids in self._file_level.items():
            if eid in ids or "*" in ids:
                if pattern == loc.file or loc.file.endswith(pattern):
                    return True
                if fnmatch(loc.file, pattern):
                    return True

        return False

    def filter_diagnostics(
        self, diagnostics: Iterable[Diagnostic]
    ) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — DIVISION RULE
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DivisionEvent:
    """A division or remainder whose divisor is not proven nonzero."""
    token: Any
    divisor: Any
    zeroness: Zeroness
    operator: str
    location: SourceLocation

    @property
    def definitely_zero(self) -> bool:
        return self.zeroness is Zeroness.ZERO


class DivisionRule:
    """
    Report unless proven safe.

    The rule knows nothing about how annotations were computed: it takes a
    division token, a ``zeroness_of(token)`` query and a ``notify(event)``
    callback, so any traversal can drive it.
    """

    def __init__(self, integral_types: Iterable[str] = ("int", "long", "long long")) -> None:
        self.integral_types: FrozenSet[str] = frozenset(integral_types)

    def applies_to(self, tok: Any) -> bool:
        """Integer ``/``, ``%``, ``/=`` or ``%=``."""
        if not is_division(tok):
            return False
        if tok_str(tok) in COMPOUND_DIVISION_OPS:
            return is_integral(tok_op2(tok), self.integral_types)
        return is_integral(tok, self.integral_types)

    def check(
        self,
        tok: Any,
        zeroness_of: Callable[[Any], Zeroness],
        notify: Callable[[DivisionEvent], None],
    ) -> Optional[DivisionEvent]:
        if not self.applies_to(tok):
            return None
        divisor = tok_op2(tok)
        z = zeroness_of(divisor)
        if not z.may_be_zero:
            return None
        event = DivisionEvent(
            token=tok,
            divisor=divisor,
            zeroness=z,
            operator=tok_str(tok),
            location=SourceLocation.of(tok),
        )
        notify(event)
        return event


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Checker(ABC):
    """
    Abstract base class for checkers.

    Lifecycle
    ─────────
      1. ``configure(ctx)``         — receive context, prepare inputs
      2. ``collect_evidence(ctx)``  — run or consume analyses
      3. ``diagnose(ctx)``          — correlate evidence into diagnostics
      4. ``report(ctx)``            — yield final diagnostics

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``error_ids``
      - Implement ``collect_evidence()`` and ``diagnose()``
      - Optionally override ``configure()`` for custom setup
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {}  # error_id → CWE number

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        """
        Called before evidence collection.

        Default implementation does nothing.
        """

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Return final diagnostics, filtered by suppressions."""
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def _emit(
        self,
        error_id: str,
        message: str,
        location: SourceLocation,
        severity: Optional[DiagnosticSeverity] = None,
        confidence: Confidence = Confidence.MEDIUM,
        extra: str = "",
        evidence: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Helper to create and store a diagnostic."""
        self._diagnostics.append(Diagnostic(
            error_id=error_id,
            message=message,
            severity=severity or self.default_severity,
            location=location,
            confidence=confidence,
            cwe=self.cwe_ids.get(error_id, 0),
            checker_name=self.name,
            extra=extra,
            evidence=evidence or {},
        ))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


@dataclass
class CheckerContext:
    """
    Shared context passed to the checker during execution.

    Attributes
    ----------
    cfg          : cppcheckdata.Configuration
    config       : AnalysisConfig for every analysis unit
    suppressions : SuppressionManager
    stats        : mutable dict for timing / counting statistics
    """
    cfg: Any  # cppcheckdata.Configuration
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    stats: Dict[str, Any] = field(default_factory=dict)


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — ANALYSIS UNITS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class AnalysisUnit:
    """One function body: its CFG and either a result or the failure."""
    function: Any
    scope: Any = None
    cfg: Optional[CFG] = None
    result: Optional[AnalysisResult] = None
    error: Optional[AnalysisError] = None

    @property
    def name(self) -> str:
        return getattr(self.function, "name", None) or "<anonymous>"

    @property
    def failed(self) -> bool:
        return self.error is not None

    def body_tokens(self) -> Iterator[Any]:
        """Tokens from the body's ``{`` to its ``}``."""
        start = getattr(self.scope, "bodyStart", None)
        end = getattr(self.scope, "bodyEnd", None)
        tok = start
        while tok is not None:
            yield tok
            if tok is end:
                break
            tok = tok.next


def collect_units(cfg: Any) -> List[AnalysisUnit]:
    """An :class:`AnalysisUnit` per function with a body in *cfg*."""
    units: List[AnalysisUnit] = []
    for func in getattr(cfg, "functions", None) or []:
        scope = function_scope(func, cfg)
        if scope is None or scope.bodyStart is None or scope.bodyEnd is None:
            continue
        unit = AnalysisUnit(function=func, scope=scope)
        try:
            unit.cfg = build_cfg(func, cfg)
        except AnalysisError as exc:
            unit.error = exc
        units.append(unit)
    return units


def _analyze_unit(unit: AnalysisUnit, config: AnalysisConfig) -> AnalysisUnit:
    if unit.cfg is None or unit.error is not None:
        return unit
    try:
        unit.result = ZeronessAnalysis(unit.cfg, config, unit.function).run()
    except AnalysisError as exc:
        _log.info("%s: analysis failed: %s", unit.name, exc)
        unit.error = exc
    return unit


def analyze_units(
    units: Sequence[AnalysisUnit],
    config: AnalysisConfig,
    jobs: int = 1,
) -> List[AnalysisUnit]:
    """Analyse every unit, on ``jobs`` worker threads."""
    if jobs <= 1 or len(units) < 2:
        return [_analyze_unit(u, config) for u in units]
    with ThreadPoolExecutor(max_workers=jobs) as pool:
        futures = [pool.submit(_analyze_unit, u, config) for u in units]
        for future in as_completed(futures):
            future.result()
    return list(units)


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — DIVIDE-BY-ZERO CHECKER  (CWE-369)
# ═════════════════════════════════════════════════════════════════════════

class DivByZeroChecker(Checker):
    """
    Flags integer divisions whose divisor is not proven nonzero.

    A divisor annotated ZERO is a definite bug; one annotated TOP may be
    zero.  NON_ZERO divisors are safe and BOTTOM ones sit in code no path
    reaches.  A function whose analysis fails gets a single
    ``divide-by-zero-unchecked`` note and none of its divisions are
    reported.

    CWE-369: Divide By Zero
    """

    name: ClassVar[str] = "divide-by-zero"
    description: ClassVar[str] = "Integer division/remainder by a divisor not proven nonzero"
    error_ids: ClassVar[FrozenSet[str]] = frozenset({
        DIVIDE_BY_ZERO, DIVIDE_BY_ZERO_UNCHECKED,
    })
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.ERROR
    cwe_ids: ClassVar[Dict[str, int]] = {
        DIVIDE_BY_ZERO: CWE_DIVIDE_BY_ZERO,
    }

    def __init__(self) -> None:
        super().__init__()
        self.units: List[AnalysisUnit] = []
        self.rule = DivisionRule()
        self._events: List[Tuple[DivisionEvent, str]] = []
        self._standalone: Dict[Any, Zeroness] = {}

    def configure(self, ctx: CheckerContext) -> None:
        self.rule = DivisionRule(ctx.config.integral_types)
        self.units = collect_units(ctx.cfg)
        ctx.stats["functions"] = len(self.units)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        t0 = time.monotonic()
        analyze_units(self.units, ctx.config, ctx.config.jobs)
        ctx.stats["functions_failed"] = sum(1 for u in self.units if u.failed)
        ctx.stats["analysis_elapsed_ms"] = (time.monotonic() - t0) * 1000.0

        # divisions no unit annotated: global initializers, lambda bodies
        covered: Set[int] = set()
        for unit in self.units:
            if unit.failed:
                covered.update(id(t) for t in unit.body_tokens())
            elif unit.result is not None:
                covered.update(id(t) for t in unit.result.annotations)
        roots: Dict[int, Any] = {}
        for tok in getattr(ctx.cfg, "tokenlist", None) or []:
            if id(tok) in covered or not is_division(tok):
                continue
            root = find_ast_root(tok)
            roots.setdefault(id(root), root)
        for root in roots.values():
            evaluator = evaluate_standalone(root, ctx.config)
            self._standalone.update(evaluator.annotations)
        ctx.stats["standalone_expressions"] = len(roots)

    def diagnose(self, ctx: CheckerContext) -> None:
        seen: Set[int] = set()

        def record(func_name: str) -> Callable[[DivisionEvent], None]:
            def notify(event: DivisionEvent) -> None:
                if id(event.token) not in seen:
                    seen.add(id(event.token))
                    self._events.append((event, func_name))
            return notify

        for unit in self.units:
            if unit.failed:
                self._emit_unchecked(unit)
                continue
            if unit.result is None:
                continue
            notify = record(unit.name)
            for tok in unit.result.division_sites:
                self.rule.check(tok, unit.result.zeroness_of, notify)

        notify = record("")
        for tok in self._standalone:
            if is_division(tok):
                self.rule.check(tok, self._zeroness_standalone, notify)

        for event, func_name in self._events:
            self._emit_division(event, func_name)

    def _zeroness_standalone(self, tok: Any) -> Zeroness:
        return self._standalone.get(tok, Zeroness.TOP)

    def _emit_division(self, event: DivisionEvent, func_name: str) -> None:
        expr = expr_to_string(event.divisor)
        if event.definitely_zero:
            message = f"Division by zero: divisor '{expr}' is zero"
            confidence = Confidence.HIGH
        else:
            message = f"Divisor '{expr}' may be zero"
            confidence = Confidence.MEDIUM
        self._emit(
            error_id=DIVIDE_BY_ZERO,
            message=message,
            location=event.location,
            confidence=confidence,
            evidence={
                "zeroness": str(event.zeroness),
                "operator": event.operator,
                "divisor": expr,
                "function": func_name,
            },
        )

    def _emit_unchecked(self, unit: AnalysisUnit) -> None:
        anchor = getattr(unit.function, "tokenDef", None) or getattr(unit.scope, "bodyStart", None)
        self._emit(
            error_id=DIVIDE_BY_ZERO_UNCHECKED,
            message=f"Function '{unit.name}' was not checked for division by zero: {unit.error}",
            location=SourceLocation.of(anchor),
            severity=DiagnosticSeverity.INFORMATION,
            confidence=Confidence.LOW,
            evidence={"function": unit.name, "reason": type(unit.error).__name__},
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 7 — RUNNER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerRunResults:
    """
    Aggregate results from running the checker.

    Attributes
    ----------
    diagnostics : All diagnostics, after suppression
    stats       : Timing and counting statistics
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.ERROR
        )

    @property
    def warning_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.WARNING
        )

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_severity(self, severity: DiagnosticSeverity) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == severity]

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def by_error_id(self, error_id: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.error_id == error_id]

    def merge(self, other: CheckerRunResults) -> None:
        self.diagnostics.extend(other.diagnostics)
        for key, val in other.stats.items():
            if isinstance(val, (int, float)) and key in self.stats:
                self.stats[key] += val
            else:
                self.stats[key] = val

    def to_json_lines(self) -> str:
        """Format all diagnostics as cppcheck JSON addon output."""
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        """Format all diagnostics in GCC-style."""
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        """Human-readable summary."""
        return (
            f"divide-by-zero check complete: {self.total_count} diagnostics "
            f"({self.error_count} errors) in {self.stats.get('functions', 0)} functions, "
            f"{self.stats.get('functions_failed', 0)} unchecked"
        )


class CheckerRunner:
    """
    Runs the divide-by-zero checker against cppcheck Configurations.

    Usage
    -----
    >>> runner = CheckerRunner(config=AnalysisConfig(jobs=4))
    >>> results = runner.run(cfg)
    >>> print(results.summary())
    """

    def __init__(
        self,
        suppressions: Optional[SuppressionManager] = None,
        config: Optional[AnalysisConfig] = None,
    ) -> None:
        self.suppressions = suppressions or SuppressionManager()
        self.config = config or AnalysisConfig()

    def run(self, cfg: Any) -> CheckerRunResults:
        """Run the checker against a single Configuration."""
        results = CheckerRunResults()
        self.suppressions.load_inline_suppressions(cfg)
        ctx = CheckerContext(cfg=cfg, config=self.config, suppressions=self.suppressions)

        checker = DivByZeroChecker()
        t0 = time.monotonic()
        try:
            checker.configure(ctx)
            checker.collect_evidence(ctx)
            checker.diagnose(ctx)
            diags = checker.report(ctx)
        except Exception as exc:
            # Graceful degradation: report the failure, don't crash
            _log.exception("checker '%s' failed", checker.name)
            diags = [Diagnostic(
                error_id=INTERNAL_ERROR,
                message=f"Checker '{checker.name}' failed: {exc}",
                severity=DiagnosticSeverity.INFORMATION,
                location=SourceLocation(),
                checker_name=checker.name,
            )]
        ctx.stats["elapsed_ms"] = (time.monotonic() - t0) * 1000.0

        results.diagnostics.extend(diags)
        results.stats.update(ctx.stats)
        _log.info(
            "%d functions analysed, %d unchecked, %d diagnostics",
            ctx.stats.get("functions", 0), ctx.stats.get("functions_failed", 0), len(diags),
        )
        return results

    def run_all_configurations(self, data: Any) -> CheckerRunResults:
        """Run the checker across all configurations in a CppcheckData dump."""
        combined = CheckerRunResults()
        for cfg in getattr(data, "configurations", None) or []:
            combined.merge(self.run(cfg))
        return combined


__all__ = [
    "ADDON_NAME",
    "DIVIDE_BY_ZERO",
    "DIVIDE_BY_ZERO_UNCHECKED",
    "Diagnostic",
    "DiagnosticSeverity",
    "Confidence",
    "SourceLocation",
    "SuppressionManager",
    "DivisionEvent",
    "DivisionRule",
    "Checker",
    "CheckerContext",
    "AnalysisUnit",
    "collect_units",
    "analyze_units",
    "DivByZeroChecker",
    "CheckerRunner",
    "CheckerRunResults",
]
