"""
divzero.errors
==============

Exception hierarchy for the zeroness analysis.

Only analysis-unit failures and configuration problems raise.  A value the
transfer functions cannot model is not an error: it simply becomes
``Zeroness.TOP``.

::

    DivZeroError
    ├── AnalysisError             fatal to one function body
    │   ├── MalformedCFGError     unusable control-flow input
    │   └── AnalysisLimitExceeded iteration / time budget exhausted
    └── ConfigError               bad configuration value or file
"""

from __future__ import annotations

from typing import Any, Optional


class DivZeroError(Exception):
    """Root of every exception raised by :mod:`divzero`."""


class AnalysisError(DivZeroError):
    """An analysis unit (one function body) could not be analysed.

    The checker treats every division in the unit as unchecked and emits
    no finding for it.
    """

    def __init__(self, message: str, *, function: Any = None) -> None:
        super().__init__(message)
        self.function = function

    @property
    def function_name(self) -> str:
        return getattr(self.function, "name", None) or "<unknown>"


class MalformedCFGError(AnalysisError):
    """The control-flow view handed to the engine is inconsistent."""


class AnalysisLimitExceeded(AnalysisError):
    """The worklist did not reach a fixpoint within the configured budget."""

    def __init__(
        self,
        message: str,
        *,
        function: Any = None,
        iterations: int = 0,
        elapsed_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(message, function=function)
        self.iterations = iterations
        self.elapsed_seconds = elapsed_seconds


class ConfigError(DivZeroError, ValueError):
    """Raised for invalid :class:`~divzero.config.AnalysisConfig` input."""


__all__ = [
    "DivZeroError",
    "AnalysisError",
    "MalformedCFGError",
    "AnalysisLimitExceeded",
    "ConfigError",
]
