"""
divzero.refinement
==================

The refinement store: what the analysis knows about each tracked variable
at one control-flow point.

A store maps variable ids to :class:`~divzero.lattice.Zeroness`.  A
variable missing from a reachable store is ``TOP``; the special
*unreachable* store (``RefinementStore.bottom()``) answers ``BOTTOM`` for
every variable and is the identity of :meth:`RefinementStore.join`.

Stores are immutable.  Every update returns a new store, so the engine can
keep per-block snapshots without copying.

Branch conditions narrow a store through :func:`refine_on_condition`:

============================  ==================  ===================
condition                     true edge           false edge
============================  ==================  ===================
``x == 0`` / ``0 == x``       ``x → ZERO``        ``x → NON_ZERO``
``x != 0`` / ``0 != x``       ``x → NON_ZERO``    ``x → ZERO``
``x``                         ``x → NON_ZERO``    ``x → ZERO``
``!x``                        ``x → ZERO``        ``x → NON_ZERO``
``a && b``                    both narrowed       unchanged
``a || b``                    unchanged           both narrowed
============================  ==================  ===================

For ``a && b`` and ``a || b`` the facts from ``a`` skip every variable
that evaluating ``b`` may change.

Every other condition leaves the store unchanged.  A ``switch`` on a
tracked variable narrows it along each ``case`` edge whose label is an
integer literal (:func:`refine_on_case`).
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple

from divzero.ast_helper import (
    assigned_variables,
    integer_literal_value,
    is_assignment,
    is_cast,
    is_function_call,
    is_increment_decrement,
    is_sizeof,
    is_zero_literal,
    iter_ast_preorder,
    reference_bound_arguments,
    tok_op1,
    tok_op2,
    tok_str,
    tok_var_id,
    tok_variable,
    tracked_var_id,
)
from divzero.lattice import Lattice, Zeroness, join, leq, narrow


class RefinementStore:
    """Immutable ``varId → Zeroness`` map with a reachability flag."""

    __slots__ = ("_facts", "_reachable", "_hash")

    def __init__(
        self,
        facts: Optional[Mapping[int, Zeroness]] = None,
        reachable: bool = True,
    ) -> None:
        if reachable and facts:
            # TOP is the default; keeping it out gives one canonical form
            self._facts: Dict[int, Zeroness] = {
                vid: z for vid, z in facts.items() if z is not Zeroness.TOP
            }
        else:
            self._facts = {}
        self._reachable = reachable
        self._hash: Optional[int] = None

    # ----- constructors -----------------------------------------------------

    @classmethod
    def bottom(cls) -> RefinementStore:
        """The store of unreachable code."""
        return cls(reachable=False)

    @classmethod
    def top(cls) -> RefinementStore:
        """A reachable store that knows nothing."""
        return cls()

    # ----- queries ----------------------------------------------------------

    @property
    def is_bottom(self) -> bool:
        return not self._reachable

    def get(self, var_id: int) -> Zeroness:
        if not self._reachable:
            return Zeroness.BOTTOM
        return self._facts.get(var_id, Zeroness.TOP)

    def items(self) -> Iterator[Tuple[int, Zeroness]]:
        return iter(sorted(self._facts.items()))

    @property
    def tracked(self) -> FrozenSet[int]:
        """Variables with a fact other than ``TOP``."""
        return frozenset(self._facts)

    # ----- updates ----------------------------------------------------------

    def set(self, var_id: int, value: Zeroness) -> RefinementStore:
        """Return a store in which *var_id* holds *value*."""
        if not self._reachable:
            return self
        if self._facts.get(var_id, Zeroness.TOP) is value:
            return self
        facts = dict(self._facts)
        facts[var_id] = value
        return RefinementStore(facts)

    def forget(self, var_id: int) -> RefinementStore:
        """Reset *var_id* to ``TOP``."""
        return self.set(var_id, Zeroness.TOP)

    def havoc(self, var_ids: Iterable[int]) -> RefinementStore:
        """Reset every variable in *var_ids* to ``TOP``."""
        if not self._reachable:
            return self
        doomed = [vid for vid in var_ids if vid in self._facts]
        if not doomed:
            return self
        facts = dict(self._facts)
        for vid in doomed:
            del facts[vid]
        return RefinementStore(facts)

    def narrow(self, var_id: int, asserted: Zeroness) -> RefinementStore:
        """Refine *var_id* by a fact a branch condition asserts."""
        return self.set(var_id, narrow(self.get(var_id), asserted))

    # ----- lattice operations -----------------------------------------------

    def join(self, other: RefinementStore) -> RefinementStore:
        """Pointwise join; a variable absent on either side is ``TOP``."""
        if not self._reachable:
            return other
        if not other._reachable:
            return self
        if self._facts == other._facts:
            return self
        shared = self._facts.keys() & other._facts.keys()
        return RefinementStore(
            {vid: join(self._facts[vid], other._facts[vid]) for vid in shared}
        )

    def leq(self, other: RefinementStore) -> bool:
        if not self._reachable:
            return True
        if not other._reachable:
            return False
        return all(leq(self.get(vid), z) for vid, z in other._facts.items())

    # ----- dunder -----------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RefinementStore):
            return NotImplemented
        return self._reachable == other._reachable and self._facts == other._facts

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash((self._reachable, frozenset(self._facts.items())))
        return self._hash

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        if not self._reachable:
            return "RefinementStore(⊥)"
        body = ", ".join(f"{vid}: {z}" for vid, z in self.items())
        return f"RefinementStore({{{body}}})"


class StoreLattice(Lattice[RefinementStore]):
    """Lattice of refinement stores, ordered pointwise."""

    def bottom(self) -> RefinementStore:
        return RefinementStore.bottom()

    def top(self) -> RefinementStore:
        return RefinementStore.top()

    def join(self, a: RefinementStore, b: RefinementStore) -> RefinementStore:
        return a.join(b)

    def leq(self, a: RefinementStore, b: RefinementStore) -> bool:
        return a.leq(b)

    def eq(self, a: RefinementStore, b: RefinementStore) -> bool:
        return a == b


def _strip_casts(tok: Any) -> Any:
    while tok is not None and is_cast(tok):
        tok = tok_op1(tok)
    return tok


def _writes_indirectly(tok: Any) -> bool:
    """Assignment or ``++``/``--`` whose target is not a variable named directly."""
    if not (is_assignment(tok) or is_increment_decrement(tok)):
        return False
    target = _strip_casts(tok_op1(tok))
    if tracked_var_id(target):
        return False
    var = tok_variable(target)
    named = tok_var_id(target) and tok_op1(target) is None and tok_op2(target) is None
    return not (named and var is not None and not getattr(var, "isReference", False))


def clobbered_variables(tok: Any, escaped: FrozenSet[int] = frozenset()) -> FrozenSet[int]:
    """Tracked variables that evaluating the expression *tok* may change.

    Direct writes always count.  A call or an indirect write adds every
    variable in *escaped*, and a call adds the arguments it may bind to
    a reference parameter.
    """
    if tok is None:
        return frozenset()
    nodes = list(iter_ast_preorder(tok))
    clobbered = set(assigned_variables(nodes))
    for node in nodes:
        if is_function_call(node) and not is_sizeof(node):
            clobbered |= escaped
            clobbered |= reference_bound_arguments(node)
        elif _writes_indirectly(node):
            clobbered |= escaped
    return frozenset(clobbered)


def _restore(
    store: RefinementStore,
    before: RefinementStore,
    var_ids: Iterable[int],
) -> RefinementStore:
    for vid in var_ids:
        store = store.set(vid, before.get(vid))
    return store


def refine_on_condition(
    cond: Any,
    store: RefinementStore,
    branch_taken: bool,
    escaped: FrozenSet[int] = frozenset(),
) -> RefinementStore:
    """Narrow *store* for the edge on which *cond* evaluated to *branch_taken*.

    Parameters
    ----------
    cond : cppcheckdata.Token or None
        Root of the branch condition.
    store : RefinementStore
        The store at the end of the condition block.
    branch_taken : bool
        ``True`` for the edge taken when the condition holds.
    escaped : frozenset[int]
        Tracked variables that calls and indirect writes may modify.

    Notes
    -----
    *store* already reflects every side effect of *cond*.  For ``a && b``
    and ``a || b`` the fact ``a`` asserts held before ``b`` ran, so it is
    not applied to the variables ``b`` may change.
    """
    if cond is None or store.is_bottom:
        return store
    cond = _strip_casts(cond)
    s = tok_str(cond)
    op1, op2 = tok_op1(cond), tok_op2(cond)

    if s in ("==", "!=") and op1 is not None and op2 is not None:
        if is_zero_literal(_strip_casts(op2)):
            subject = _strip_casts(op1)
        elif is_zero_literal(_strip_casts(op1)):
            subject = _strip_casts(op2)
        else:
            return store
        vid = tracked_var_id(subject)
        if not vid:
            return store
        holds_zero = (s == "==") == branch_taken
        return store.narrow(vid, Zeroness.ZERO if holds_zero else Zeroness.NON_ZERO)

    if s == "!" and op1 is not None and op2 is None:
        return refine_on_condition(op1, store, not branch_taken, escaped)

    if (s == "&&" and branch_taken) or (s == "||" and not branch_taken):
        narrowed = refine_on_condition(op1, store, branch_taken, escaped)
        narrowed = _restore(narrowed, store, clobbered_variables(op2, escaped))
        return refine_on_condition(op2, narrowed, branch_taken, escaped)

    if op1 is None and op2 is None:
        vid = tracked_var_id(cond)
        if vid:
            return store.narrow(vid, Zeroness.NON_ZERO if branch_taken else Zeroness.ZERO)

    return store


def refine_on_case(
    subject: Any,
    case_value: Any,
    store: RefinementStore,
) -> RefinementStore:
    """Narrow *store* on the edge to ``case <case_value>:`` of ``switch (subject)``."""
    if subject is None or case_value is None or store.is_bottom:
        return store
    value = integer_literal_value(_strip_casts(case_value))
    if value is None:
        return store
    vid = tracked_var_id(_strip_casts(subject))
    if not vid:
        return store
    return store.narrow(vid, Zeroness.from_int(value))


__all__ = [
    "RefinementStore",
    "StoreLattice",
    "clobbered_variables",
    "refine_on_condition",
    "refine_on_case",
]
