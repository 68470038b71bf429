"""
divzero.config
==============

Analysis options.  One :class:`AnalysisConfig` is created by the caller and
passed explicitly to every analysis unit; nothing here is global.

A configuration file is a JSON object whose keys mirror the dataclass
fields::

    {
        "max_iterations": 50000,
        "timeout_seconds": 2.5,
        "integral_types": ["int", "long", "long long", "short"],
        "use_valueflow": true,
        "parameter_contracts": {
            "scale": {"divisor": "nonzero"}
        },
        "jobs": 4
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from divzero.errors import ConfigError
from divzero.lattice import Zeroness

_log = logging.getLogger(__name__)

DEFAULT_INTEGRAL_TYPES: Tuple[str, ...] = ("int", "long", "long long")

# Every integral type name cppcheck writes into ``valueType.type``
KNOWN_INTEGRAL_TYPES = frozenset({
    "bool", "char", "short", "wchar_t", "char16_t", "char32_t",
    "int", "long", "long long",
})


@dataclass
class AnalysisConfig:
    """Configuration for one zeroness analysis run."""
    # Worklist budget
    max_iterations: int = 100_000
    timeout_seconds: Optional[float] = None

    # Which ``valueType.type`` names count as integer division
    integral_types: Tuple[str, ...] = DEFAULT_INTEGRAL_TYPES

    # Seed TOP expressions from cppcheck's known ValueFlow values
    use_valueflow: bool = False

    # function name -> parameter name -> Zeroness at entry
    parameter_contracts: Dict[str, Dict[str, Zeroness]] = field(default_factory=dict)

    # Worker threads for independent function bodies
    jobs: int = 1

    def contract_for(self, function_name: str) -> Dict[str, Zeroness]:
        return dict(self.parameter_contracts.get(function_name, {}))

    def validate(self) -> List[str]:
        """Return warnings for questionable settings.

        Raises
        ------
        ConfigError
            For settings the analysis cannot run with.
        """
        if self.max_iterations < 1:
            raise ConfigError(f"max_iterations must be positive, got {self.max_iterations}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")
        if not self.integral_types:
            raise ConfigError("integral_types must not be empty")

        warnings: List[str] = []
        for name in self.integral_types:
            if name not in KNOWN_INTEGRAL_TYPES:
                warnings.append(f"unknown integral type {name!r} will never match")
        for func, params in self.parameter_contracts.items():
            for param, tag in params.items():
                if tag is Zeroness.BOTTOM:
                    warnings.append(
                        f"contract {func}({param}) is 'bottom': the body is treated as unreachable"
                    )
        if self.max_iterations < 100:
            warnings.append(f"max_iterations={self.max_iterations} will abort most functions")
        return warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_iterations": self.max_iterations,
            "timeout_seconds": self.timeout_seconds,
            "integral_types": list(self.integral_types),
            "use_valueflow": self.use_valueflow,
            "parameter_contracts": {
                func: {param: str(tag) for param, tag in params.items()}
                for func, params in self.parameter_contracts.items()
            },
            "jobs": self.jobs,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AnalysisConfig:
        """Build a config from a JSON-style mapping.

        Raises
        ------
        ConfigError
            On unknown keys or values of the wrong shape.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(f"configuration must be an object, got {type(data).__name__}")
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown configuration key(s): {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        try:
            if "max_iterations" in data:
                kwargs["max_iterations"] = int(data["max_iterations"])
            if "timeout_seconds" in data and data["timeout_seconds"] is not None:
                kwargs["timeout_seconds"] = float(data["timeout_seconds"])
            if "jobs" in data:
                kwargs["jobs"] = int(data["jobs"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid numeric setting: {exc}") from exc

        if "use_valueflow" in data:
            if not isinstance(data["use_valueflow"], bool):
                raise ConfigError("use_valueflow must be true or false")
            kwargs["use_valueflow"] = data["use_valueflow"]

        if "integral_types" in data:
            types = data["integral_types"]
            if isinstance(types, str) or not all(isinstance(t, str) for t in types):
                raise ConfigError("integral_types must be a list of type names")
            kwargs["integral_types"] = tuple(types)

        if "parameter_contracts" in data:
            kwargs["parameter_contracts"] = _parse_contracts(data["parameter_contracts"])

        config = cls(**kwargs)
        config.validate()
        return config


def _parse_contracts(raw: Any) -> Dict[str, Dict[str, Zeroness]]:
    if not isinstance(raw, Mapping):
        raise ConfigError("parameter_contracts must map function names to objects")
    contracts: Dict[str, Dict[str, Zeroness]] = {}
    for func, params in raw.items():
        if not isinstance(params, Mapping):
            raise ConfigError(f"parameter_contracts[{func!r}] must be an object")
        parsed: Dict[str, Zeroness] = {}
        for param, tag in params.items():
            try:
                parsed[str(param)] = tag if isinstance(tag, Zeroness) else Zeroness.parse(tag)
            except ValueError as exc:
                raise ConfigError(f"parameter_contracts[{func!r}][{param!r}]: {exc}") from exc
        contracts[str(func)] = parsed
    return contracts


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """Read an :class:`AnalysisConfig` from a JSON file."""
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {p}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{p}:{exc.lineno}: invalid JSON: {exc.msg}") from exc
    config = AnalysisConfig.from_dict(data)
    for warning in config.validate():
        _log.warning("%s: %s", p, warning)
    _log.info("loaded configuration from %s", p)
    return config


__all__ = [
    "AnalysisConfig",
    "DEFAULT_INTEGRAL_TYPES",
    "KNOWN_INTEGRAL_TYPES",
    "load_config",
]
