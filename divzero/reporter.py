"""
divzero/reporter.py
═══════════════════

Human-readable rendering of divide-by-zero diagnostics.

Each diagnostic renders as a Rust-style block followed by the classic
cppcheck one-liner, so the output stays greppable::

    error[divide-by-zero]: Division by zero: divisor 'n' is zero
      --> src/calc.c:12:14
      = CWE-369: https://cwe.mitre.org/data/definitions/369.html
    [src/calc.c:12]: (error) Division by zero: divisor 'n' is zero [divide-by-zero]

Colours come from ``termcolor`` and are switched off with ``color=False``.
"""

from __future__ import annotations

import sys
from typing import Dict, Iterable, List, Optional, Sequence, TextIO

from termcolor import colored

from divzero.checkers import Diagnostic, DiagnosticSeverity

SEVERITY_COLORS: Dict[DiagnosticSeverity, str] = {
    DiagnosticSeverity.ERROR: "red",
    DiagnosticSeverity.WARNING: "yellow",
    DiagnosticSeverity.STYLE: "cyan",
    DiagnosticSeverity.PERFORMANCE: "magenta",
    DiagnosticSeverity.PORTABILITY: "blue",
    DiagnosticSeverity.INFORMATION: "white",
}


def _paint(
    text: str,
    color: Optional[str],
    attrs: Optional[Sequence[str]],
    enabled: bool,
) -> str:
    if not enabled:
        return text
    # the caller already decided for its stream
    return colored(text, color, attrs=list(attrs) if attrs else None, force_color=True)


def cppcheck_line(diag: Diagnostic) -> str:
    """Classic one-liner: ``[file:line]: (severity) message [id]``."""
    loc = diag.location
    return f"[{loc.file}:{loc.line}]: ({diag.severity.value}) {diag.message} [{diag.error_id}]"


def render_diagnostic(diag: Diagnostic, color: bool = True) -> str:
    lines: List[str] = []

    # ── header: severity[errorId]: message ───────────────────────
    sev_str = _paint(
        f"{diag.severity.value}[{diag.error_id}]",
        SEVERITY_COLORS.get(diag.severity, "white"),
        ["bold"],
        color,
    )
    lines.append(f"{sev_str}: {_paint(diag.message, 'white', ['bold'], color)}")

    # ── primary location ─────────────────────────────────────────
    if diag.location.file:
        arrow = _paint("-->", "blue", ["bold"], color)
        lines.append(f"  {arrow} {diag.location}")

    # ── notes ────────────────────────────────────────────────────
    function = diag.evidence.get("function")
    if function:
        prefix = _paint("note", "cyan", ["bold"], color)
        lines.append(f"  = {prefix}: in function '{function}'")
    zeroness = diag.evidence.get("zeroness")
    if zeroness:
        prefix = _paint("note", "cyan", ["bold"], color)
        lines.append(f"  = {prefix}: divisor is {zeroness}")

    if diag.cwe:
        cwe_str = _paint(f"CWE-{diag.cwe}", "blue", ["underline"], color)
        lines.append(f"  = {cwe_str}: https://cwe.mitre.org/data/definitions/{diag.cwe}.html")

    # ── cppcheck compat line ─────────────────────────────────────
    lines.append(_paint(cppcheck_line(diag), None, ["dark"], color))
    return "\n".join(lines)


def summary_line(diagnostics: Sequence[Diagnostic]) -> str:
    counts: Dict[DiagnosticSeverity, int] = {}
    for diag in diagnostics:
        counts[diag.severity] = counts.get(diag.severity, 0) + 1
    parts = [
        f"{n} {sev.value}{'s' if n != 1 and sev is not DiagnosticSeverity.INFORMATION else ''}"
        for sev, n in counts.items()
    ]
    if not parts:
        return "no divide-by-zero issues found"
    return ", ".join(parts) + " emitted"


def render_text(
    diagnostics: Iterable[Diagnostic],
    stream: TextIO = sys.stderr,
    color: bool = True,
) -> None:
    """Write every diagnostic to *stream*, then a summary line."""
    diags = list(diagnostics)
    for diag in diags:
        stream.write(render_diagnostic(diag, color) + "\n\n")
    stream.write(summary_line(diags) + "\n")
    stream.flush()


__all__ = [
    "SEVERITY_COLORS",
    "cppcheck_line",
    "render_diagnostic",
    "render_text",
    "summary_line",
]
