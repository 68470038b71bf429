"""
divzero.transfer
================

Abstract semantics of C/C++ expressions over the zeroness lattice.

The per-operator tables are plain functions (:func:`add`, :func:`multiply`,
…) so they can be tested in isolation.  :class:`ExpressionEvaluator`
walks Cppcheck AST trees, applies the tables, threads a
:class:`~divzero.refinement.RefinementStore` through assignments and
records one :class:`~divzero.lattice.Zeroness` per evaluated token.

Operator table (``Z`` = ZERO, ``N`` = NON_ZERO, ``T`` = TOP, ``⊥`` = BOTTOM)::

    a   b  │ a+b a-b │ a*b │ a/b a%b
    ───────┼─────────┼─────┼────────
    Z   Z  │  Z   Z  │  Z  │  T   T
    Z   N  │  N   N  │  Z  │  T   T
    N   N  │  T   T  │  N  │  T   T
    Z   T  │  T   T  │  Z  │  T   T
    N   T  │  T   T  │  T  │  T   T
    ⊥   *  │  ⊥   ⊥  │  ⊥  │  ⊥   ⊥

Anything the tables do not cover (calls, fields, array elements,
untracked variables, unmodelled operators) evaluates to ``TOP``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from divzero.ast_helper import (
    boolean_literal_value,
    is_address_of,
    is_assignment,
    is_cast,
    is_dereference,
    is_division,
    is_declaration_without_initializer,
    is_function_call,
    is_increment_decrement,
    is_member_access,
    is_postfix,
    is_sizeof,
    integer_literal_value,
    iter_ast_preorder,
    expression_roots,
    known_int_value,
    reference_bound_arguments,
    tok_op1,
    tok_op2,
    tok_str,
    tok_var_id,
    tok_variable,
    tracked_var_id,
)
from divzero.config import AnalysisConfig
from divzero.lattice import Zeroness, join
from divzero.refinement import RefinementStore, refine_on_condition

_log = logging.getLogger(__name__)

Z = Zeroness.ZERO
N = Zeroness.NON_ZERO
T = Zeroness.TOP
B = Zeroness.BOTTOM


# ===========================================================================
# OPERATOR TABLES
# ===========================================================================

def add(a: Zeroness, b: Zeroness) -> Zeroness:
    """``a + b`` (and ``a - b``, which shares the table)."""
    if a is B or b is B:
        return B
    if a is Z:
        return b if b is not Z else Z
    if b is Z:
        return a
    return T


subtract = add


def multiply(a: Zeroness, b: Zeroness) -> Zeroness:
    if a is B or b is B:
        return B
    if a is Z or b is Z:
        return Z
    if a is N and b is N:
        return N
    return T


def divide(a: Zeroness, b: Zeroness) -> Zeroness:
    """``a / b`` and ``a % b``: the quotient is never tracked."""
    if a is B or b is B:
        return B
    return T


def negate(a: Zeroness) -> Zeroness:
    return a


def logical_not(a: Zeroness) -> Zeroness:
    if a is Z:
        return N
    if a is N:
        return Z
    return a


def logical_and(a: Zeroness, b: Zeroness) -> Zeroness:
    if a is B or b is B:
        return B
    if a is Z or b is Z:
        return Z
    if a is N and b is N:
        return N
    return T


def logical_or(a: Zeroness, b: Zeroness) -> Zeroness:
    if a is B or b is B:
        return B
    if a is N or b is N:
        return N
    if a is Z and b is Z:
        return Z
    return T


def cast(a: Zeroness) -> Zeroness:
    """Zero survives any integer conversion; a nonzero value may truncate."""
    if a is Z or a is B:
        return a
    return T


def unknown(*operands: Zeroness) -> Zeroness:
    if any(op is B for op in operands):
        return B
    return T


BINARY_TRANSFER: Dict[str, Callable[[Zeroness, Zeroness], Zeroness]] = {
    "+": add,
    "-": subtract,
    "*": multiply,
    "/": divide,
    "%": divide,
}


def literal_zeroness(tok: Any) -> Optional[Zeroness]:
    """Zeroness of an integer or boolean literal token, else ``None``."""
    value = integer_literal_value(tok)
    if value is not None:
        return Zeroness.from_int(value)
    flag = boolean_literal_value(tok)
    if flag is not None:
        return N if flag else Z
    return None


# ===========================================================================
# EXPRESSION EVALUATOR
# ===========================================================================

class ExpressionEvaluator:
    """Evaluate the expressions of one basic block against a store.

    Parameters
    ----------
    store : RefinementStore
        The store at the start of the block.  Updated in place of the
        evaluator (``self.store``) as assignments are evaluated.
    config : AnalysisConfig
        Analysis options (ValueFlow seeding).
    annotations : dict, optional
        Token → Zeroness table the evaluator writes to.
    escaped : frozenset[int]
        Tracked variables that calls and indirect writes may modify.
    division_sites : list, optional
        Receives every ``/``, ``%``, ``/=`` and ``%=`` token evaluated.
    """

    def __init__(
        self,
        store: RefinementStore,
        config: Optional[AnalysisConfig] = None,
        annotations: Optional[Dict[Any, Zeroness]] = None,
        escaped: FrozenSet[int] = frozenset(),
        division_sites: Optional[List[Any]] = None,
    ) -> None:
        self.store = store
        self.config = config or AnalysisConfig()
        self.annotations: Dict[Any, Zeroness] = annotations if annotations is not None else {}
        self.escaped = escaped
        self.division_sites: List[Any] = division_sites if division_sites is not None else []

    # ----- entry points -----------------------------------------------------

    def evaluate_block(self, tokens: List[Any]) -> RefinementStore:
        """Evaluate every statement of a block in order; return the out-store."""
        for root in expression_roots(tokens):
            if self.store.is_bottom:
                self._annotate_unreachable(root)
            elif is_declaration_without_initializer(root):
                vid = tracked_var_id(root)
                if vid:
                    self.store = self.store.forget(vid)
                self._annotate(root, T)
            else:
                self.evaluate(root)
        return self.store

    def evaluate(self, tok: Any) -> Zeroness:
        """Evaluate the subtree rooted at *tok* and annotate it."""
        if tok is None:
            return T
        if self.store.is_bottom:
            self._annotate_unreachable(tok)
            return B
        value = self._eval(tok)
        if value is T and self.config.use_valueflow:
            known = known_int_value(tok)
            if known is not None:
                value = Zeroness.from_int(known)
        self._annotate(tok, value)
        return value

    # ----- annotation -------------------------------------------------------

    def _annotate(self, tok: Any, value: Zeroness) -> None:
        self.annotations[tok] = value
        if is_division(tok):
            self.division_sites.append(tok)

    def _annotate_unreachable(self, root: Any) -> None:
        for node in iter_ast_preorder(root):
            self._annotate(node, B)

    # ----- dispatch ---------------------------------------------------------

    def _eval(self, tok: Any) -> Zeroness:
        s = tok_str(tok)
        op1, op2 = tok_op1(tok), tok_op2(tok)

        if op1 is None and op2 is None:
            return self._eval_leaf(tok)

        if is_cast(tok):
            return cast(self.evaluate(op1))

        if is_assignment(tok):
            return self._eval_assignment(tok)

        if is_increment_decrement(tok):
            return self._eval_increment(tok)

        if is_sizeof(tok):
            # the operand is never executed
            self._annotate(op1, T)
            if op2 is not None:
                self._annotate_unreachable(op2)
            return N

        if is_function_call(tok):
            return self._eval_call(tok)

        if s == "?":
            return self._eval_conditional(tok)

        if s in ("&&", "||"):
            return self._eval_short_circuit(tok)

        if op2 is None:
            return self._eval_unary(tok)

        if s == ",":
            self.evaluate(op1)
            return self.evaluate(op2)

        if s in BINARY_TRANSFER:
            a = self.evaluate(op1)
            b = self.evaluate(op2)
            return BINARY_TRANSFER[s](a, b)

        if is_member_access(tok):
            obj = self.evaluate(op1)
            self._annotate(op2, T)
            return unknown(obj)

        # comparisons, bitwise operators, subscripts, scope operators, ...
        return unknown(self.evaluate(op1), self.evaluate(op2))

    def _eval_leaf(self, tok: Any) -> Zeroness:
        lit = literal_zeroness(tok)
        if lit is not None:
            return lit
        vid = tracked_var_id(tok)
        if vid:
            return self.store.get(vid)
        return T

    def _eval_unary(self, tok: Any) -> Zeroness:
        s = tok_str(tok)
        operand = self.evaluate(tok_op1(tok))
        if s in ("-", "+"):
            return negate(operand)
        if s == "!":
            return logical_not(operand)
        if is_address_of(tok) or is_dereference(tok):
            return unknown(operand)
        return unknown(operand)

    # ----- assignment -------------------------------------------------------

    def _eval_assignment(self, tok: Any) -> Zeroness:
        s = tok_str(tok)
        lhs, rhs = tok_op1(tok), tok_op2(tok)
        if s == "=":
            value = self.evaluate(rhs)
        else:
            old = self.evaluate(lhs)
            operand = self.evaluate(rhs)
            op = BINARY_TRANSFER.get(s[:-1])
            value = op(old, operand) if op is not None else unknown(old, operand)
        self._write(lhs, value)
        return value

    def _eval_increment(self, tok: Any) -> Zeroness:
        target = tok_op1(tok)
        old = self.evaluate(target)
        new = add(old, N)
        self._write(target, new)
        return old if is_postfix(tok) else new

    def _write(self, lhs: Any, value: Zeroness) -> None:
        """Store *value* into the assignment target *lhs*."""
        vid = tracked_var_id(lhs)
        if vid:
            self.store = self.store.set(vid, value)
            self._annotate(lhs, value)
            return
        if lhs is not None and lhs not in self.annotations:
            self.evaluate(lhs)
        var = tok_variable(lhs)
        named = tok_var_id(lhs) and tok_op1(lhs) is None and tok_op2(lhs) is None
        if named and var is not None and not getattr(var, "isReference", False):
            # global written by name
            return
        self._havoc_escaped()

    # ----- control-sensitive operators --------------------------------------

    def _eval_conditional(self, tok: Any) -> Zeroness:
        cond = tok_op1(tok)
        colon = tok_op2(tok)
        self.evaluate(cond)
        if tok_str(colon) != ":":
            return unknown(self.evaluate(colon))
        after_cond = self.store
        self.store = refine_on_condition(cond, after_cond, True, self.escaped)
        a = self.evaluate(tok_op1(colon))
        then_store = self.store
        self.store = refine_on_condition(cond, after_cond, False, self.escaped)
        b = self.evaluate(tok_op2(colon))
        self.store = then_store.join(self.store)
        result = join(a, b)
        self._annotate(colon, result)
        return result

    def _eval_short_circuit(self, tok: Any) -> Zeroness:
        s = tok_str(tok)
        lhs, rhs = tok_op1(tok), tok_op2(tok)
        a = self.evaluate(lhs)
        after_lhs = self.store
        self.store = refine_on_condition(lhs, after_lhs, s == "&&", self.escaped)
        b = self.evaluate(rhs)
        self.store = after_lhs.join(self.store)
        return logical_and(a, b) if s == "&&" else logical_or(a, b)

    # ----- calls ------------------------------------------------------------

    def _eval_call(self, tok: Any) -> Zeroness:
        callee = tok_op1(tok)
        args = tok_op2(tok)
        self._annotate(callee, T)
        if tok_op1(callee) is not None or tok_op2(callee) is not None:
            # method call or call through an expression
            self.evaluate(callee)
        arg_values = self._eval_arguments(args)
        self._havoc_escaped()
        self._havoc_reference_arguments(tok)
        return unknown(*arg_values)

    def _eval_arguments(self, args: Any) -> List[Zeroness]:
        values: List[Zeroness] = []
        pending = [args] if args is not None else []
        while pending:
            node = pending.pop(0)
            if tok_str(node) == "," and tok_op1(node) is not None and tok_op2(node) is not None:
                self._annotate(node, T)
                pending[:0] = [tok_op1(node), tok_op2(node)]
                continue
            values.append(self.evaluate(node))
        return values

    def _havoc_escaped(self) -> None:
        if self.escaped:
            self.store = self.store.havoc(self.escaped)

    def _havoc_reference_arguments(self, call_tok: Any) -> None:
        """Arguments bound to reference parameters may come back modified."""
        self.store = self.store.havoc(reference_bound_arguments(call_tok))


def evaluate_standalone(
    root: Any,
    config: Optional[AnalysisConfig] = None,
) -> ExpressionEvaluator:
    """Evaluate a lone expression tree against an empty store.

    Used for expressions outside any analysed function body, such as
    global initializers.
    """
    evaluator = ExpressionEvaluator(RefinementStore.top(), config)
    evaluator.evaluate(root)
    _log.debug(
        "standalone expression at %s:%s: %d tokens annotated",
        getattr(root, "file", "?"), getattr(root, "linenr", "?"),
        len(evaluator.annotations),
    )
    return evaluator


__all__ = [
    "add",
    "subtract",
    "multiply",
    "divide",
    "negate",
    "logical_not",
    "logical_and",
    "logical_or",
    "cast",
    "unknown",
    "BINARY_TRANSFER",
    "literal_zeroness",
    "ExpressionEvaluator",
    "evaluate_standalone",
]
