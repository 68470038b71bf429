#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
divzero/ast_helper.py
═════════════════════

Read-only helpers over ``cppcheckdata.Token`` AST nodes.

Every accessor tolerates ``None`` and missing attributes, so the same
functions work on real dump tokens and on the lightweight mocks used by
the test-suite.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Safe accessors        tok_str, tok_op1, tok_var_id, …          │
    │  Classification        is_cast, is_assignment, is_address_of, … │
    │  Literals              integer_literal_value, known_int_value   │
    │  Variables             tracked_var_id, escaped_variables        │
    │  Statement structure   expression_roots, condition_root         │
    └─────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import os
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set

Token = Any

ASSIGNMENT_OPS = frozenset({
    "=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>=",
})
COMPARISON_OPS = frozenset({"==", "!=", "<", "<=", ">", ">="})
LOGICAL_OPS = frozenset({"&&", "||", "!"})
DIVISION_OPS = frozenset({"/", "%"})
COMPOUND_DIVISION_OPS = frozenset({"/=", "%="})

_CPP_EXTENSIONS = frozenset({".cpp", ".cc", ".cxx", ".c++", ".hpp", ".hh", ".hxx"})
_INT_SUFFIX_CHARS = "uUlLzZ"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — SAFE ACCESSORS
# ═══════════════════════════════════════════════════════════════════════════

def tok_str(tok: Token) -> str:
    """
    Safely get the string representation of a token.

    Args:
        tok: A cppcheckdata Token object (may be None)

    Returns:
        The token's string value, or empty string if tok is None
    """
    if tok is None:
        return ""
    return getattr(tok, "str", "") or ""


def tok_op1(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "astOperand1", None)


def tok_op2(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "astOperand2", None)


def tok_parent(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "astParent", None)


def tok_var_id(tok: Token) -> int:
    """
    Safely get the variable ID of a token.

    Returns:
        The variable ID, or 0 if not a variable reference
    """
    if tok is None:
        return 0
    vid = getattr(tok, "varId", 0)
    return vid if vid else 0


def tok_variable(tok: Token) -> Optional[Any]:
    if tok is None:
        return None
    return getattr(tok, "variable", None)


def tok_scope_type(tok: Token) -> str:
    scope = getattr(tok, "scope", None)
    return getattr(scope, "type", "") or ""


def tok_file(tok: Token) -> str:
    return getattr(tok, "file", "") or ""


def tok_line(tok: Token) -> int:
    return getattr(tok, "linenr", 0) or 0


def tok_column(tok: Token) -> int:
    return getattr(tok, "column", 0) or 0


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — TRAVERSAL
# ═══════════════════════════════════════════════════════════════════════════

def iter_ast_preorder(root: Token) -> Iterator[Token]:
    """
    Iterate over AST nodes in pre-order (root, left, right).
    """
    if root is None:
        return
    stack: List[Token] = [root]
    while stack:
        node = stack.pop()
        yield node
        # Push right first so left is processed first (LIFO)
        op2 = tok_op2(node)
        if op2 is not None:
            stack.append(op2)
        op1 = tok_op1(node)
        if op1 is not None:
            stack.append(op1)


def find_ast_root(tok: Token) -> Optional[Token]:
    """Walk ``astParent`` links up to the top of *tok*'s expression."""
    if tok is None:
        return None
    seen: Set[int] = set()
    while tok_parent(tok) is not None and id(tok) not in seen:
        seen.add(id(tok))
        tok = tok_parent(tok)
    return tok


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════

def is_binary_op(tok: Token) -> bool:
    if tok is None:
        return False
    return tok_op1(tok) is not None and tok_op2(tok) is not None


def is_unary_op(tok: Token) -> bool:
    """
    A unary operator has astOperand1 but not astOperand2.
    """
    if tok is None:
        return False
    return tok_op1(tok) is not None and tok_op2(tok) is None


def is_cast(tok: Token) -> bool:
    if tok is None:
        return False
    return bool(getattr(tok, "isCast", False))


def is_comparison(tok: Token) -> bool:
    if tok is None:
        return False
    return bool(getattr(tok, "isComparisonOp", False)) or tok_str(tok) in COMPARISON_OPS


def is_assignment(tok: Token) -> bool:
    """
    Check if a token is an assignment operator (including compound).
    """
    if tok is None:
        return False
    return tok_str(tok) in ASSIGNMENT_OPS and tok_op1(tok) is not None


def is_compound_assignment(tok: Token) -> bool:
    s = tok_str(tok)
    return s in ASSIGNMENT_OPS and s != "="


def is_increment_decrement(tok: Token) -> bool:
    return tok_str(tok) in ("++", "--")


def is_postfix(tok: Token) -> bool:
    """``x++`` rather than ``++x``: the operand precedes the operator."""
    prev = getattr(tok, "previous", None)
    if prev is None:
        return False
    if prev is tok_op1(tok):
        return True
    return tok_str(prev) in (")", "]")


def is_dereference(tok: Token) -> bool:
    """
    Check if a token is a pointer dereference (*ptr).

    Distinguishes unary * from binary multiplication.
    """
    return tok_str(tok) == "*" and is_unary_op(tok)


def is_address_of(tok: Token) -> bool:
    """
    Check if a token is an address-of operator (&var).

    Distinguishes unary & from binary bitwise AND.
    """
    return tok_str(tok) == "&" and is_unary_op(tok)


def is_subscript(tok: Token) -> bool:
    return tok_str(tok) == "["


def is_member_access(tok: Token) -> bool:
    return tok_str(tok) in (".", "->")


def is_function_call(tok: Token) -> bool:
    """
    In Cppcheck AST, a function call is represented as '(' with
    astOperand1 being the function name/expression.
    """
    if tok is None or tok_str(tok) != "(":
        return False
    if tok_op1(tok) is None:
        return False
    return not is_cast(tok)


def is_sizeof(tok: Token) -> bool:
    """``sizeof(...)``: a call node whose callee is the ``sizeof`` keyword."""
    return is_function_call(tok) and tok_str(tok_op1(tok)) in ("sizeof", "alignof", "_Alignof")


def is_division(tok: Token) -> bool:
    """Binary ``/``, ``%`` or compound ``/=``, ``%=``."""
    s = tok_str(tok)
    if s in DIVISION_OPS:
        return is_binary_op(tok)
    return s in COMPOUND_DIVISION_OPS and tok_op2(tok) is not None


def is_integral(tok: Token, integral_types: Iterable[str]) -> bool:
    """Is *tok* typed as one of *integral_types* (and not a pointer)?"""
    vt = getattr(tok, "valueType", None)
    if vt is None:
        return False
    if getattr(vt, "pointer", 0):
        return False
    return getattr(vt, "type", None) in set(integral_types)


def is_cpp_source(tok: Token) -> bool:
    return os.path.splitext(tok_file(tok))[1].lower() in _CPP_EXTENSIONS


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — LITERALS AND VALUEFLOW
# ═══════════════════════════════════════════════════════════════════════════

def integer_literal_value(tok: Token) -> Optional[int]:
    """
    Parse an integer literal token (``0``, ``0x10``, ``017``, ``42UL``,
    ``1'000``).

    Returns:
        The literal's value, or None for non-integer tokens and floats
    """
    if tok is None or not getattr(tok, "isNumber", False):
        return None
    if getattr(tok, "isFloat", False):
        return None
    text = tok_str(tok).replace("'", "").rstrip(_INT_SUFFIX_CHARS)
    lowered = text.lower()
    if not lowered:
        return None
    try:
        if lowered.startswith("0x"):
            return int(lowered[2:], 16)
        if lowered.startswith("0b"):
            return int(lowered[2:], 2)
        if "." in lowered or "e" in lowered:
            return None
        if len(lowered) > 1 and lowered.startswith("0"):
            return int(lowered[1:], 8)
        return int(lowered, 10)
    except ValueError:
        return None


def is_zero_literal(tok: Token) -> bool:
    return integer_literal_value(tok) == 0


def boolean_literal_value(tok: Token) -> Optional[bool]:
    s = tok_str(tok)
    if s == "true":
        return True
    if s == "false":
        return False
    return None


def known_int_value(tok: Token) -> Optional[int]:
    """
    The single *known* integer ValueFlow value of *tok*, if any.

    Possible (non-known) values are ignored: they describe some paths only.
    """
    known: List[int] = []
    for v in getattr(tok, "values", None) or []:
        if getattr(v, "valueKind", None) != "known":
            continue
        iv = getattr(v, "intvalue", None)
        if iv is None:
            continue
        try:
            known.append(int(iv))
        except (TypeError, ValueError):
            continue
    if len(set(known)) == 1:
        return known[0]
    return None


def expr_to_string(tok: Token, max_depth: int = 30) -> str:
    """Compact source-like rendering of an expression subtree."""
    if tok is None or max_depth <= 0:
        return ""
    s = tok_str(tok)
    op1, op2 = tok_op1(tok), tok_op2(tok)
    if op1 is None and op2 is None:
        return s
    if is_cast(tok):
        return expr_to_string(op1, max_depth - 1)
    if s == "(":
        return f"{expr_to_string(op1, max_depth - 1)}({expr_to_string(op2, max_depth - 1)})"
    if s == "[":
        return f"{expr_to_string(op1, max_depth - 1)}[{expr_to_string(op2, max_depth - 1)}]"
    if s in (".", "::"):
        return f"{expr_to_string(op1, max_depth - 1)}{s}{expr_to_string(op2, max_depth - 1)}"
    if op2 is None:
        inner = expr_to_string(op1, max_depth - 1)
        return f"{inner}{s}" if is_increment_decrement(tok) and is_postfix(tok) else f"{s}{inner}"
    return f"{expr_to_string(op1, max_depth - 1)} {s} {expr_to_string(op2, max_depth - 1)}"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 5 — VARIABLES
# ═══════════════════════════════════════════════════════════════════════════

def tracked_var_id(tok: Token) -> int:
    """
    Variable ID of *tok* if the analysis keeps a fact for it, else 0.

    Only scalar locals and parameters are tracked.  References, arrays,
    globals and members are always unknown.
    """
    vid = tok_var_id(tok)
    if not vid:
        return 0
    var = tok_variable(tok)
    if var is None:
        return 0
    if getattr(var, "isReference", False) or getattr(var, "isArray", False):
        return 0
    if getattr(var, "isLocal", False) or getattr(var, "isArgument", False):
        return vid
    return 0


def base_variable_token(tok: Token) -> Optional[Token]:
    """``x`` for ``x``, ``x.f``, ``x[i]`` and ``(T)x``."""
    seen = 0
    while tok is not None and seen < 64:
        seen += 1
        if tok_var_id(tok):
            return tok
        if is_member_access(tok) or is_subscript(tok) or is_cast(tok):
            tok = tok_op1(tok)
            continue
        return None
    return None


def escaped_variables(tokens: Iterable[Token]) -> FrozenSet[int]:
    """
    Tracked variables that may be written without naming them.

    A variable escapes when its address is taken, when a reference is
    bound to it, or when a lambda body refers to it.
    """
    escaped: Set[int] = set()
    for tok in tokens:
        if is_address_of(tok):
            base = base_variable_token(tok_op1(tok))
            if base is not None and tracked_var_id(base):
                escaped.add(tracked_var_id(base))
        elif tok_str(tok) == "=" and tok_op1(tok) is not None:
            target = tok_variable(tok_op1(tok))
            if target is not None and getattr(target, "isReference", False):
                base = base_variable_token(tok_op2(tok))
                if base is not None and tracked_var_id(base):
                    escaped.add(tracked_var_id(base))
        elif tok_scope_type(tok) == "Lambda" and tracked_var_id(tok):
            escaped.add(tracked_var_id(tok))
    return frozenset(escaped)


def assigned_variables(tokens: Iterable[Token]) -> FrozenSet[int]:
    """Tracked variables written by an assignment or ``++``/``--`` in *tokens*."""
    written: Set[int] = set()
    for tok in tokens:
        if is_assignment(tok) or is_increment_decrement(tok):
            vid = tracked_var_id(tok_op1(tok))
            if vid:
                written.add(vid)
        elif is_declaration_without_initializer(tok):
            written.add(tracked_var_id(tok))
    written.discard(0)
    return frozenset(written)


def call_arguments(call_tok: Token) -> List[Token]:
    """Argument expressions of a call, left to right."""
    args: List[Token] = []
    pending = [tok_op2(call_tok)] if tok_op2(call_tok) is not None else []
    while pending:
        node = pending.pop(0)
        if tok_str(node) == ",":
            pending[:0] = [n for n in (tok_op1(node), tok_op2(node)) if n is not None]
        else:
            args.append(node)
    return args


def reference_bound_arguments(call_tok: Token) -> FrozenSet[int]:
    """
    Tracked variables a call may modify through a reference parameter.

    An argument counts when the matching parameter is a reference, or, in
    C++ sources, when the callee has no known declaration.
    """
    function = getattr(tok_op1(call_tok), "function", None)
    params = getattr(function, "argument", None) or {}
    bound: Set[int] = set()
    for index, arg in enumerate(call_arguments(call_tok), start=1):
        vid = tracked_var_id(arg)
        if not vid:
            continue
        param = params.get(index) if hasattr(params, "get") else None
        if param is not None:
            if getattr(param, "isReference", False):
                bound.add(vid)
        elif function is None and is_cpp_source(call_tok):
            bound.add(vid)
    return frozenset(bound)


def is_declaration_without_initializer(tok: Token) -> bool:
    """``int x;`` — the name token of a declaration with no ``=``."""
    var = tok_variable(tok)
    if var is None or getattr(var, "nameToken", None) is not tok:
        return False
    if tok_parent(tok) is not None:
        return False
    return tok_str(getattr(tok, "next", None)) in (";", ",")


# ═══════════════════════════════════════════════════════════════════════════
#  PART 6 — STATEMENT STRUCTURE
# ═══════════════════════════════════════════════════════════════════════════

def expression_roots(tokens: Iterable[Token]) -> List[Token]:
    """
    The top-level expressions of a basic block, in statement order.

    A root is a token whose AST parent is absent or lies outside the block
    (condition tokens hang off the ``(`` after ``if``/``while``).  Lambda
    bodies and bare declarations without an initializer are handled here
    too: the former are skipped, the latter appear as their name token.
    """
    token_list = list(tokens)
    members = {id(t) for t in token_list}
    roots: Dict[int, Token] = {}
    for tok in token_list:
        if tok_scope_type(tok) == "Lambda":
            continue
        if tok_op1(tok) is None and tok_op2(tok) is None and tok_parent(tok) is None:
            if is_declaration_without_initializer(tok):
                roots.setdefault(id(tok), tok)
            continue
        root = tok
        hops = 0
        while (
            tok_parent(root) is not None
            and id(tok_parent(root)) in members
            and hops < 10_000
        ):
            root = tok_parent(root)
            hops += 1
        roots.setdefault(id(root), root)
    return list(roots.values())


def condition_root(tokens: Iterable[Token]) -> Optional[Token]:
    """The last expression root of a block: its branch condition."""
    roots = [r for r in expression_roots(tokens) if not is_declaration_without_initializer(r)]
    return roots[-1] if roots else None


__all__ = [
    "ASSIGNMENT_OPS",
    "COMPARISON_OPS",
    "DIVISION_OPS",
    "COMPOUND_DIVISION_OPS",
    "tok_str",
    "tok_op1",
    "tok_op2",
    "tok_parent",
    "tok_var_id",
    "tok_variable",
    "tok_file",
    "tok_line",
    "tok_column",
    "iter_ast_preorder",
    "find_ast_root",
    "is_binary_op",
    "is_unary_op",
    "is_cast",
    "is_comparison",
    "is_assignment",
    "is_compound_assignment",
    "is_increment_decrement",
    "is_postfix",
    "is_dereference",
    "is_address_of",
    "is_subscript",
    "is_member_access",
    "is_function_call",
    "is_sizeof",
    "is_division",
    "is_integral",
    "is_cpp_source",
    "integer_literal_value",
    "is_zero_literal",
    "boolean_literal_value",
    "known_int_value",
    "expr_to_string",
    "tracked_var_id",
    "base_variable_token",
    "call_arguments",
    "reference_bound_arguments",
    "escaped_variables",
    "assigned_variables",
    "is_declaration_without_initializer",
    "expression_roots",
    "condition_root",
]
