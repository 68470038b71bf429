"""
divzero.lattice
===============

The zeroness domain: a four-element lattice describing whether an integer
expression can evaluate to ``0``.

::

              TOP
             /   \\
          ZERO   NON_ZERO
             \\   /
             BOTTOM

``ZERO`` and ``NON_ZERO`` are incomparable.  The lattice has height 2, so
a forward fixpoint over it terminates without widening.

Public API
----------
    Lattice           - abstract base for lattice definitions
    Zeroness          - the four lattice values
    ZeronessLattice   - :class:`Lattice` implementation over ``Zeroness``
    join / meet / leq - module-level operations on ``Zeroness``
    narrow            - refinement of a known fact by an asserted one
"""

from __future__ import annotations

import abc
import enum
from typing import Dict, Generic, Iterable, Tuple, TypeVar

L = TypeVar("L")


# ===========================================================================
# LATTICE — ABSTRACT BASE
# ===========================================================================

class Lattice(abc.ABC, Generic[L]):
    """Abstract base class for a dataflow lattice.

    A lattice ``(L, ⊑, ⊥, ⊤, ⊔)`` must provide:

    - ``bottom()``  → the least element ⊥.
    - ``top()``     → the greatest element ⊤.
    - ``join(a, b)`` → the least upper bound ``a ⊔ b``.
    - ``leq(a, b)``  → ``True`` iff ``a ⊑ b``.

    ``meet(a, b)`` is optional.
    """

    @abc.abstractmethod
    def bottom(self) -> L:
        """Return the least element ⊥."""
        ...

    @abc.abstractmethod
    def top(self) -> L:
        """Return the greatest element ⊤."""
        ...

    @abc.abstractmethod
    def join(self, a: L, b: L) -> L:
        """Return the least upper bound ``a ⊔ b``."""
        ...

    @abc.abstractmethod
    def leq(self, a: L, b: L) -> bool:
        """Return ``True`` iff ``a ⊑ b``."""
        ...

    def meet(self, a: L, b: L) -> L:
        """Return the greatest lower bound ``a ⊓ b``."""
        raise NotImplementedError("meet() not implemented for this lattice")

    def eq(self, a: L, b: L) -> bool:
        """Equality: ``a = b`` iff ``a ⊑ b`` and ``b ⊑ a``."""
        return self.leq(a, b) and self.leq(b, a)

    def is_bottom(self, a: L) -> bool:
        return self.eq(a, self.bottom())

    def is_top(self, a: L) -> bool:
        return self.eq(a, self.top())

    def join_all(self, values: Iterable[L]) -> L:
        """Join a sequence of values (⊥ for an empty sequence)."""
        result = self.bottom()
        for v in values:
            result = self.join(result, v)
        return result


# ===========================================================================
# ZERONESS
# ===========================================================================

class Zeroness(enum.Enum):
    """Abstract zeroness of an integer value."""

    BOTTOM = "⊥"
    ZERO = "0"
    NON_ZERO = "≠0"
    TOP = "⊤"

    # -- constructors ---------------------------------------------------------

    @classmethod
    def bottom(cls) -> Zeroness:
        return cls.BOTTOM

    @classmethod
    def zero(cls) -> Zeroness:
        return cls.ZERO

    @classmethod
    def non_zero(cls) -> Zeroness:
        return cls.NON_ZERO

    @classmethod
    def top(cls) -> Zeroness:
        return cls.TOP

    @classmethod
    def from_int(cls, value: int) -> Zeroness:
        """Abstract a concrete integer."""
        return cls.ZERO if value == 0 else cls.NON_ZERO

    @classmethod
    def parse(cls, text: str) -> Zeroness:
        """Parse a tag from configuration text.

        Accepts member names and a few spellings (``"nonzero"``,
        ``"non-zero"``, ``"!=0"``, ``"unknown"``), case-insensitively.
        """
        key = str(text).strip().lower().replace("-", "_")
        if key in _PARSE_ALIASES:
            return _PARSE_ALIASES[key]
        raise ValueError(f"not a zeroness value: {text!r}")

    # -- predicates -----------------------------------------------------------

    @property
    def may_be_zero(self) -> bool:
        """``True`` for the tags a divisor check must not trust."""
        return self is Zeroness.ZERO or self is Zeroness.TOP

    def __str__(self) -> str:
        return self.name.lower()


_PARSE_ALIASES: Dict[str, Zeroness] = {
    "bottom": Zeroness.BOTTOM,
    "⊥": Zeroness.BOTTOM,
    "unreachable": Zeroness.BOTTOM,
    "zero": Zeroness.ZERO,
    "0": Zeroness.ZERO,
    "non_zero": Zeroness.NON_ZERO,
    "nonzero": Zeroness.NON_ZERO,
    "!=0": Zeroness.NON_ZERO,
    "≠0": Zeroness.NON_ZERO,
    "top": Zeroness.TOP,
    "⊤": Zeroness.TOP,
    "unknown": Zeroness.TOP,
}


# Pre-computed join / meet tables
_ZERONESS_JOIN: Dict[Tuple[Zeroness, Zeroness], Zeroness] = {}
_ZERONESS_MEET: Dict[Tuple[Zeroness, Zeroness], Zeroness] = {}


def _build_tables() -> None:
    for z in Zeroness:
        _ZERONESS_JOIN[(Zeroness.BOTTOM, z)] = z
        _ZERONESS_JOIN[(z, Zeroness.BOTTOM)] = z
        _ZERONESS_JOIN[(Zeroness.TOP, z)] = Zeroness.TOP
        _ZERONESS_JOIN[(z, Zeroness.TOP)] = Zeroness.TOP
        _ZERONESS_JOIN[(z, z)] = z

        _ZERONESS_MEET[(Zeroness.TOP, z)] = z
        _ZERONESS_MEET[(z, Zeroness.TOP)] = z
        _ZERONESS_MEET[(Zeroness.BOTTOM, z)] = Zeroness.BOTTOM
        _ZERONESS_MEET[(z, Zeroness.BOTTOM)] = Zeroness.BOTTOM
        _ZERONESS_MEET[(z, z)] = z
    # Incomparable pair
    for a, b in [(Zeroness.ZERO, Zeroness.NON_ZERO),
                 (Zeroness.NON_ZERO, Zeroness.ZERO)]:
        _ZERONESS_JOIN[(a, b)] = Zeroness.TOP
        _ZERONESS_MEET[(a, b)] = Zeroness.BOTTOM


_build_tables()


def join(a: Zeroness, b: Zeroness) -> Zeroness:
    """Least upper bound of two tags."""
    return _ZERONESS_JOIN[(a, b)]


def meet(a: Zeroness, b: Zeroness) -> Zeroness:
    """Greatest lower bound of two tags."""
    return _ZERONESS_MEET[(a, b)]


def leq(a: Zeroness, b: Zeroness) -> bool:
    """Partial order: ``a ⊑ b``."""
    if a is Zeroness.BOTTOM or b is Zeroness.TOP:
        return True
    return a is b


def narrow(old: Zeroness, asserted: Zeroness) -> Zeroness:
    """Refine *old* by a fact a branch condition asserts.

    Unreachable stays unreachable and an unknown value takes the asserted
    tag.  A definite fact that contradicts the assertion is kept, so the
    result is never above *old*.
    """
    if old is Zeroness.BOTTOM:
        return Zeroness.BOTTOM
    if old is Zeroness.TOP:
        return asserted
    if asserted is Zeroness.TOP:
        return old
    if meet(old, asserted) is Zeroness.BOTTOM:
        return old
    return asserted


class ZeronessLattice(Lattice[Zeroness]):
    """The zeroness lattice ``{⊥, 0, ≠0, ⊤}``."""

    height = 2

    def bottom(self) -> Zeroness:
        return Zeroness.BOTTOM

    def top(self) -> Zeroness:
        return Zeroness.TOP

    def join(self, a: Zeroness, b: Zeroness) -> Zeroness:
        return join(a, b)

    def leq(self, a: Zeroness, b: Zeroness) -> bool:
        return leq(a, b)

    def meet(self, a: Zeroness, b: Zeroness) -> Zeroness:
        return meet(a, b)

    def eq(self, a: Zeroness, b: Zeroness) -> bool:
        return a is b


__all__ = [
    "Lattice",
    "Zeroness",
    "ZeronessLattice",
    "join",
    "meet",
    "leq",
    "narrow",
]
