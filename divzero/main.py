#!/usr/bin/env python3
"""divzero/main.py — CLI entry-point for the divide-by-zero checker.

Usage examples
--------------
    # Check one or more dump files, human-readable output
    cppcheck --dump src/calc.c
    python -m divzero src/calc.c.dump

    # As a cppcheck addon (JSON lines on stdout)
    cppcheck --addon=divzero.json src/

    # Tighter limits and a parameter-contract file
    divzero --config divzero.json --max-iterations 20000 --timeout 5 *.dump

    # Suppress an error id globally, or for a file pattern
    divzero --suppress divide-by-zero-unchecked --suppress divide-by-zero:legacy/*.c a.dump

Exit codes
----------
    0   No diagnostics.
    1   One or more diagnostics were emitted.
    2   Infrastructure failure (bad dump file, bad configuration, etc.).

In ``--cli`` mode the exit code is 0 unless an infrastructure failure
occurs; cppcheck reads the findings from stdout.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

from divzero import __version__
from divzero.checkers import CheckerRunner, CheckerRunResults, SuppressionManager
from divzero.config import AnalysisConfig, load_config
from divzero.errors import ConfigError
from divzero.reporter import render_text

_log = logging.getLogger("divzero")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``divzero`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("divzero")
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _import_cppcheckdata():
    """Import ``cppcheckdata`` with a friendly error on failure."""
    try:
        import cppcheckdata  # type: ignore[import-untyped]
        return cppcheckdata
    except ImportError:
        _log.error(
            "cppcheckdata is not installed.  "
            "Install cppcheck or add its addons directory to PYTHONPATH."
        )
        raise SystemExit(EXIT_INFRA)


def _build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Configuration file first, then command-line overrides."""
    config = load_config(args.config) if args.config else AnalysisConfig()

    overrides: Dict[str, Any] = {}
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout
    if args.valueflow:
        overrides["use_valueflow"] = True
    if args.jobs is not None:
        overrides["jobs"] = args.jobs
    if overrides:
        config = dataclasses.replace(config, **overrides)

    for warning in config.validate():
        _log.warning("configuration: %s", warning)
    return config


def _emit(results: CheckerRunResults, fmt: str, stream: TextIO) -> None:
    if fmt == "json":
        if results.diagnostics:
            stream.write(results.to_json_lines() + "\n")
    elif fmt == "gcc":
        if results.diagnostics:
            stream.write(results.to_gcc_format() + "\n")
    else:
        render_text(results.diagnostics, stream, color=stream.isatty())


# ===========================================================================
# Command
# ===========================================================================

def run(args: argparse.Namespace) -> int:
    """Check every dump file named on the command line."""
    try:
        config = _build_config(args)
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    suppressions = SuppressionManager()
    for spec in args.suppress or []:
        suppressions.add_from_spec(spec)

    cppcheckdata = _import_cppcheckdata()
    runner = CheckerRunner(suppressions=suppressions, config=config)
    combined = CheckerRunResults()

    dumps: List[str] = [f for f in args.dump_files if not args.cli or f.endswith(".dump")]
    for raw in dumps:
        dump_path = Path(raw).expanduser()
        if not dump_path.is_file():
            _log.error("dump file not found: %s", dump_path)
            return EXIT_INFRA
        _log.info("Parsing dump file: %s", dump_path)
        try:
            data = cppcheckdata.parsedump(str(dump_path))
        except Exception as exc:
            _log.error("Failed to parse dump file %s: %s", dump_path, exc)
            return EXIT_INFRA
        combined.merge(runner.run_all_configurations(data))

    _log.info(combined.summary())

    if args.cli:
        # cppcheck addon protocol: one JSON object per line on stdout
        if combined.diagnostics:
            sys.stdout.write(combined.to_json_lines() + "\n")
        sys.stdout.flush()
        return EXIT_OK

    stream = _open_output(args.output)
    try:
        _emit(combined, args.format, stream)
    finally:
        if stream is not sys.stdout:
            stream.close()
    return EXIT_ERROR if combined.diagnostics else EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="divzero",
        description="Flag integer divisions whose divisor is not proven nonzero.",
        epilog=(
            "exit codes: 0 no diagnostics, 1 diagnostics emitted, "
            "2 infrastructure failure"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "dump_files",
        nargs="+",
        metavar="DUMP",
        help="Cppcheck .dump file(s) produced by 'cppcheck --dump'.",
    )

    out = parser.add_argument_group("output")
    out.add_argument(
        "--format",
        choices=("json", "gcc", "text"),
        default="text",
        help="Output format (default: text).",
    )
    out.add_argument(
        "--cli",
        action="store_true",
        help="cppcheck addon mode: JSON lines on stdout.",
    )
    out.add_argument(
        "-o", "--output",
        default=None,
        help="Write results to this file instead of stdout.",
    )
    out.add_argument(
        "--suppress",
        action="append",
        metavar="ID[:FILE[:LINE]]",
        help="Suppress an error id, optionally for a file pattern or line. Repeatable.",
    )

    g = parser.add_argument_group("analysis tuning")
    g.add_argument(
        "--config",
        default=None,
        help="JSON configuration file.",
    )
    g.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Worklist iterations per function before giving up.",
    )
    g.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds per function before giving up.",
    )
    g.add_argument(
        "--valueflow",
        action="store_true",
        help="Use cppcheck's known ValueFlow values for otherwise unknown expressions.",
    )
    g.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        help="Analyse function bodies on this many threads.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the divzero CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    try:
        return run(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130  # Standard UNIX convention for SIGINT
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
