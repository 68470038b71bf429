"""
divzero.ctrlflow_graph
======================

Builds intraprocedural Control Flow Graphs (CFGs) from Cppcheck dump data.

Each function in a Configuration yields one CFG.  A CFG is a directed graph
whose nodes are *basic blocks* (straight-line sequences of tokens) and whose
edges carry control-flow semantics (fall-through, branch-true, branch-false,
back-edge, switch-case, etc.).

Public API
----------
    EdgeKind         - classification of a CFG edge
    CFGNode          - a single basic block
    CFGEdge          - a directed edge between two CFGNodes
    CFG              - the control flow graph for one function
    build_cfg        - build a CFG from a cppcheckdata.Function + Configuration
    build_all_cfgs   - build CFGs for every function in a Configuration
    cfg_summary      - multi-line text dump of a CFG

Typical usage::

    import cppcheckdata
    from divzero.ctrlflow_graph import build_all_cfgs

    data = cppcheckdata.parsedump("foo.c.dump")
    for cfg_config in data.configurations:
        for func, cfg in build_all_cfgs(cfg_config).items():
            print(f"Function {func.name}: {len(cfg.nodes)} blocks, "
                  f"{len(cfg.edges)} edges")

Implementation notes
--------------------
* The builder walks the *token stream* of a function body one statement at
  a time.  A statement is either a control-flow construct, a braced
  compound, or an ordinary statement running to its ``;``.  Brackets are
  skipped through ``link`` so lambdas and initializer lists stay inside
  their statement.
* Conditions (``if``, ``while``, ``for``, ``do``/``while``, ``switch``)
  get a block of their own holding only the condition tokens.  Its
  out-edges are ``BRANCH_TRUE``/``BRANCH_FALSE`` (or ``SWITCH_CASE`` /
  ``SWITCH_DEFAULT`` for a switch dispatch).
* The AST attached to each token is **not** restructured; we merely
  reference the existing Token objects from cppcheckdata.
* Node ids come from a per-CFG counter, so two graphs built in parallel
  never share state.
* ``goto`` support is best-effort: we resolve labels that appear inside
  the same function scope; an unresolved label jumps to the exit.
* ``try``/``catch`` is approximated: every block of a ``try`` body gets an
  ``EXCEPTION`` edge to each of its handlers.
"""

from __future__ import annotations

import enum
import itertools
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from divzero.ast_helper import expression_roots
from divzero.errors import MalformedCFGError

# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    FALL_THROUGH = "fall-through"
    BRANCH_TRUE = "branch-true"
    BRANCH_FALSE = "branch-false"
    BACK_EDGE = "back-edge"
    BREAK = "break"
    CONTINUE = "continue"
    RETURN = "return"
    GOTO = "goto"
    SWITCH_CASE = "switch-case"
    SWITCH_DEFAULT = "switch-default"
    EXCEPTION = "exception"


# ---------------------------------------------------------------------------
# CFGNode  –  a basic block
# ---------------------------------------------------------------------------

class CFGNode:
    """A basic block in the CFG.

    Attributes
    ----------
    id : int
        Numeric identifier, unique within its CFG.
    tokens : list
        Ordered list of ``cppcheckdata.Token`` objects that belong to this
        block.  May be empty for synthetic entry/exit/merge nodes.
    scope : object or None
        The ``cppcheckdata.Scope`` of the function that owns this block.
    kind : str
        Human-readable tag: ``"entry"``, ``"exit"``, ``"if-cond"``,
        ``"loop-cond"``, ``"switch-dispatch"``, ``"body"``,
        ``"unreachable"``, …
    successors : list[CFGEdge]
        Outgoing edges.
    predecessors : list[CFGEdge]
        Incoming edges.
    """

    __slots__ = (
        "id",
        "tokens",
        "scope",
        "kind",
        "successors",
        "predecessors",
    )

    def __init__(
        self,
        node_id: int,
        tokens: Optional[List] = None,
        scope=None,
        kind: str = "body",
    ) -> None:
        self.id: int = node_id
        self.tokens: List = tokens if tokens is not None else []
        self.scope = scope
        self.kind: str = kind
        self.successors: List[CFGEdge] = []
        self.predecessors: List[CFGEdge] = []

    # ----- helpers ----------------------------------------------------------

    def label(self) -> str:
        """Return a compact, human-readable label for this block."""
        if not self.tokens:
            return f"[{self.kind}]"
        s = " ".join(getattr(t, "str", "?") for t in self.tokens[:6])
        if len(self.tokens) > 6:
            s += " …"
        first = self.tokens[0]
        if getattr(first, "file", None) and getattr(first, "linenr", None):
            return f"{first.file}:{first.linenr} {s}"
        return s

    @property
    def first_token(self):
        """First token in the block, or ``None``."""
        return self.tokens[0] if self.tokens else None

    @property
    def last_token(self):
        """Last token in the block, or ``None``."""
        return self.tokens[-1] if self.tokens else None

    @property
    def linenr(self) -> Optional[int]:
        ft = self.first_token
        return getattr(ft, "linenr", None) if ft is not None else None

    def __repr__(self) -> str:
        return f"CFGNode(id={self.id}, kind={self.kind!r}, ntokens={len(self.tokens)})"


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------

class CFGEdge:
    """A directed edge in the CFG.

    Attributes
    ----------
    src : CFGNode
    dst : CFGNode
    kind : EdgeKind
    label : str or None
        Optional auxiliary label (the case text for SWITCH_CASE).
    value : Token or None
        For SWITCH_CASE, the root token of the case expression.
    """

    __slots__ = ("src", "dst", "kind", "label", "value")

    def __init__(
        self,
        src: CFGNode,
        dst: CFGNode,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        label: Optional[str] = None,
        value: Any = None,
    ) -> None:
        self.src = src
        self.dst = dst
        self.kind = kind
        self.label = label
        self.value = value

    def __repr__(self) -> str:
        return (
            f"CFGEdge(BB{self.src.id} -> BB{self.dst.id}, "
            f"kind={self.kind.value!r})"
        )


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------

class CFG:
    """Intraprocedural control flow graph for a single function.

    Attributes
    ----------
    function : cppcheckdata.Function or None
        The function this CFG represents.
    entry : CFGNode
        Synthetic entry block (no tokens).
    exit : CFGNode
        Synthetic exit block (no tokens).
    nodes : list[CFGNode]
        All basic blocks (including entry and exit).
    edges : list[CFGEdge]
        All edges.
    """

    def __init__(self, function=None, scope=None) -> None:
        self.function = function
        self.scope = scope
        self._ids = itertools.count()
        self.nodes: List[CFGNode] = []
        self.edges: List[CFGEdge] = []
        self._token_index: Optional[Dict[int, CFGNode]] = None
        self.entry = self.new_node(kind="entry")
        self.exit = self.new_node(kind="exit")

    # ----- graph mutation ---------------------------------------------------

    def new_node(self, kind: str = "body", tokens: Optional[List] = None, scope=None) -> CFGNode:
        """Create a block with a fresh id, register it, and return it."""
        return self.add_node(CFGNode(next(self._ids), tokens, scope or self.scope, kind))

    def add_node(self, node: CFGNode) -> CFGNode:
        """Register *node* in this CFG and return it."""
        self.nodes.append(node)
        self._token_index = None
        return node

    def add_edge(
        self,
        src: CFGNode,
        dst: CFGNode,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        label: Optional[str] = None,
        value: Any = None,
    ) -> CFGEdge:
        """Create an edge, register it, and wire up predecessor/successor lists."""
        e = CFGEdge(src, dst, kind=kind, label=label, value=value)
        self.edges.append(e)
        src.successors.append(e)
        dst.predecessors.append(e)
        return e

    # ----- queries ----------------------------------------------------------

    def node_for_token(self, token) -> Optional[CFGNode]:
        """Return the basic block that contains *token*, or ``None``.

        The index is built on the first query after a node is added.
        """
        if self._token_index is None:
            self._token_index = {
                id(tok): node for node in self.nodes for tok in node.tokens
            }
        return self._token_index.get(id(token))

    def successors_of(self, node: CFGNode) -> List[CFGNode]:
        return [e.dst for e in node.successors]

    def predecessors_of(self, node: CFGNode) -> List[CFGNode]:
        return [e.src for e in node.predecessors]

    def reachable_from(self, start: CFGNode) -> Set[CFGNode]:
        """Return the set of nodes reachable from *start*."""
        visited: Set[CFGNode] = set()
        worklist = [start]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            for e in n.successors:
                worklist.append(e.dst)
        return visited

    def reverse_postorder(self) -> List[CFGNode]:
        """Nodes in reverse post-order from the entry.

        Nodes the entry cannot reach follow, in creation order.
        """
        order: List[CFGNode] = []
        visited: Set[CFGNode] = {self.entry}
        stack: List[Tuple[CFGNode, Iterator[CFGEdge]]] = [
            (self.entry, iter(self.entry.successors))
        ]
        while stack:
            node, succ_iter = stack[-1]
            for e in succ_iter:
                if e.dst not in visited:
                    visited.add(e.dst)
                    stack.append((e.dst, iter(e.dst.successors)))
                    break
            else:
                stack.pop()
                order.append(node)
        order.reverse()
        order.extend(n for n in self.nodes if n not in visited)
        return order

    def dominators(self) -> Dict[CFGNode, Set[CFGNode]]:
        """Compute the dominator sets using the iterative algorithm.

        Returns a dict mapping each node to its set of dominators.
        """
        dom: Dict[CFGNode, Set[CFGNode]] = {}
        all_nodes = set(self.nodes)
        dom[self.entry] = {self.entry}
        for n in self.nodes:
            if n is not self.entry:
                dom[n] = set(all_nodes)
        order = self.reverse_postorder()
        changed = True
        while changed:
            changed = False
            for n in order:
                if n is self.entry:
                    continue
                preds = self.predecessors_of(n)
                if not preds:
                    new_dom = {n}
                else:
                    new_dom = set.intersection(*(dom[p] for p in preds))
                    new_dom = new_dom | {n}
                if new_dom != dom[n]:
                    dom[n] = new_dom
                    changed = True
        return dom

    def back_edges(self) -> List[CFGEdge]:
        """Return edges whose destination dominates their source (loop back-edges)."""
        dom = self.dominators()
        return [e for e in self.edges if e.dst in dom.get(e.src, set())]

    # ----- consistency ------------------------------------------------------

    def validate(self) -> None:
        """Check the structural invariants the dataflow engine relies on.

        Raises
        ------
        MalformedCFGError
            For a missing entry or exit, duplicate node ids, edges touching
            nodes outside the graph, or edge lists that disagree.
        """
        fn = self.function
        members = set(self.nodes)
        if self.entry not in members:
            raise MalformedCFGError("entry block is not part of the graph", function=fn)
        if self.exit not in members:
            raise MalformedCFGError("exit block is not part of the graph", function=fn)
        if len(members) != len(self.nodes):
            raise MalformedCFGError("a block is registered twice", function=fn)
        ids = [n.id for n in self.nodes]
        if len(set(ids)) != len(ids):
            raise MalformedCFGError("duplicate block ids", function=fn)

        registered = set(map(id, self.edges))
        for e in self.edges:
            if e.src not in members or e.dst not in members:
                raise MalformedCFGError(
                    f"edge BB{e.src.id} -> BB{e.dst.id} leaves the graph", function=fn
                )
            if e not in e.src.successors or e not in e.dst.predecessors:
                raise MalformedCFGError(
                    f"edge BB{e.src.id} -> BB{e.dst.id} is not wired into its blocks",
                    function=fn,
                )
        for n in self.nodes:
            for e in n.successors:
                if id(e) not in registered or e.src is not n:
                    raise MalformedCFGError(f"BB{n.id} has a stray successor edge", function=fn)
            for e in n.predecessors:
                if id(e) not in registered or e.dst is not n:
                    raise MalformedCFGError(f"BB{n.id} has a stray predecessor edge", function=fn)

    # ----- serialisation helpers --------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for n in self.nodes:
            lbl = n.label().replace('"', '\\"').replace("\n", "\\n")
            color = ""
            if n.kind == "entry":
                color = ', style=filled, fillcolor="#ccffcc"'
            elif n.kind == "exit":
                color = ', style=filled, fillcolor="#ffcccc"'
            elif n.kind == "unreachable":
                color = ', style=filled, fillcolor="#dddddd"'
            lines.append(f'  BB{n.id} [label="BB{n.id}\\n{lbl}"{color}];')
        for e in self.edges:
            style = ""
            elabel = e.kind.value
            if e.label:
                elabel += f": {e.label}"
            if e.kind == EdgeKind.BRANCH_TRUE:
                style = ', color=green, fontcolor=green'
            elif e.kind == EdgeKind.BRANCH_FALSE:
                style = ', color=red, fontcolor=red'
            elif e.kind == EdgeKind.BACK_EDGE:
                style = ', style=dashed, color=blue, fontcolor=blue'
            elif e.kind in (EdgeKind.BREAK, EdgeKind.CONTINUE, EdgeKind.EXCEPTION):
                style = ', style=dotted'
            elabel = elabel.replace('"', '\\"')
            lines.append(
                f'  BB{e.src.id} -> BB{e.dst.id} '
                f'[label="{elabel}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        fname = getattr(self.function, "name", None) or "<unknown>"
        return (
            f"CFG(function={fname!r}, nodes={len(self.nodes)}, "
            f"edges={len(self.edges)})"
        )


# ===========================================================================
# CFG BUILDER
# ===========================================================================

def _tok_str(tok) -> str:
    """Safely get the string of a token."""
    if tok is None:
        return ""
    return getattr(tok, "str", "") or ""


@dataclass
class _SwitchContext:
    dispatch: CFGNode
    has_default: bool = False


class _CFGBuilder:
    """Internal builder that constructs a CFG for a single function.

    The algorithm is a recursive descent over statements.  Every
    ``_process_*`` method takes the block that is live before the
    statement (``None`` when the statement is dead code) and returns the
    token after the statement together with the block that is live after
    it (``None`` when every path left through return/break/continue/goto).
    """

    def __init__(self, function, scope) -> None:
        self.function = function
        self.scope = scope        # the Function scope
        self.cfg = CFG(function, scope)
        # label -> CFGNode (for goto)
        self._labels: Dict[str, CFGNode] = {}
        # deferred goto -> label name
        self._pending_gotos: List[Tuple[CFGNode, str]] = []
        self._switches: List[_SwitchContext] = []
        # handler blocks of the enclosing try statements, innermost last
        self._handlers: List[List[CFGNode]] = []

    # ----- helpers ----------------------------------------------------------

    def _new_block(self, kind: str = "body") -> CFGNode:
        return self.cfg.new_node(kind=kind)

    def _edge(self, src, dst, kind=EdgeKind.FALL_THROUGH, label=None, value=None):
        return self.cfg.add_edge(src, dst, kind=kind, label=label, value=value)

    def _live(self, block: Optional[CFGNode]) -> CFGNode:
        """*block*, or a fresh block for code no path reaches."""
        if block is None:
            return self._new_block(kind="unreachable")
        return block

    def _merge(self, kind: str, exits: List[Optional[CFGNode]]) -> Optional[CFGNode]:
        live = [b for b in exits if b is not None]
        if not live:
            return None
        merge = self._new_block(kind=kind)
        for b in live:
            self._edge(b, merge)
        return merge

    def _malformed(self, message: str, tok) -> MalformedCFGError:
        where = f"{getattr(tok, 'file', '?')}:{getattr(tok, 'linenr', '?')}"
        return MalformedCFGError(f"{where}: {message}", function=self.function)

    # ----- token scanning helpers -------------------------------------------

    @staticmethod
    def _collect_statement(tok, limit_tok) -> Tuple[List, Optional[Any]]:
        """Collect the tokens of one statement up to and including its ';'.

        Returns ``(tokens, token_after_statement)``.
        """
        collected: List = []
        while tok is not None and tok is not limit_tok:
            collected.append(tok)
            if tok.str in ("(", "[", "{") and getattr(tok, "link", None) is not None:
                inner = tok.next
                while inner is not None and inner is not tok.link:
                    collected.append(inner)
                    inner = inner.next
                tok = tok.link
                collected.append(tok)
            elif tok.str == ";":
                return collected, tok.next
            tok = tok.next
        return collected, tok

    def _paren_contents(self, paren, keyword: str) -> List:
        if _tok_str(paren) != "(" or getattr(paren, "link", None) is None:
            raise self._malformed(f"expected '(' after '{keyword}'", paren)
        inner: List = []
        tok = paren.next
        while tok is not None and tok is not paren.link:
            inner.append(tok)
            tok = tok.next
        return inner

    def _condition_block(self, kind: str, paren, keyword: str, pred: Optional[CFGNode]) -> CFGNode:
        cond = self._new_block(kind=kind)
        cond.tokens.extend(self._paren_contents(paren, keyword))
        if pred is not None:
            self._edge(pred, cond)
        return cond

    # ----- main build -------------------------------------------------------

    def build(self) -> CFG:
        """Build and return the CFG."""
        body_start = self.scope.bodyStart   # the '{' token
        body_end = self.scope.bodyEnd       # the '}' token

        first_block = self._new_block(kind="body")
        self._edge(self.cfg.entry, first_block)

        after_block = self._process_compound(
            body_start.next,   # first token inside '{'
            body_end,          # limit: the '}'
            first_block,
            break_target=None,
            continue_target=None,
        )

        if after_block is not None:
            self._edge(after_block, self.cfg.exit, EdgeKind.FALL_THROUGH)

        for goto_block, lbl_name in self._pending_gotos:
            target = self._labels.get(lbl_name)
            if target is not None:
                self._edge(goto_block, target, EdgeKind.GOTO)
            else:
                self._edge(goto_block, self.cfg.exit, EdgeKind.GOTO)

        return self.cfg

    def _process_compound(
        self,
        tok,
        limit_tok,
        current_block: Optional[CFGNode],
        break_target: Optional[CFGNode],
        continue_target: Optional[CFGNode],
    ) -> Optional[CFGNode]:
        """Process a sequence of statements between *tok* and *limit_tok*.

        Returns the block that is "live" after this compound, or ``None``
        if all paths explicitly left (return/goto/break/continue).
        """
        while tok is not None and tok is not limit_tok:
            tok, current_block = self._process_statement(
                tok, limit_tok, current_block, break_target, continue_target
            )
        return current_block

    def _process_statement(self, tok, limit_tok, current_block, break_target, continue_target):
        """Process exactly one statement starting at *tok*.

        Returns (next_tok, live_block_or_None).
        """
        s = _tok_str(tok)
        nxt = tok.next

        # ---- nested brace block '{' ... '}' --------------------------------
        if s == "{":
            inner_end = getattr(tok, "link", None)
            if inner_end is None:
                raise self._malformed("unmatched '{'", tok)
            block = self._process_compound(
                tok.next, inner_end, current_block, break_target, continue_target,
            )
            return inner_end.next, block

        # ---- empty statement -----------------------------------------------
        if s == ";":
            return nxt, current_block

        # ---- case / default ------------------------------------------------
        if s in ("case", "default") and self._switches:
            return self._process_case_label(tok, limit_tok, current_block)

        # ---- labels (goto targets) -----------------------------------------
        if (
            getattr(tok, "isName", False)
            and _tok_str(nxt) == ":"
            and s not in ("case", "default")
        ):
            label_block = self._new_block(kind="label")
            if current_block is not None:
                self._edge(current_block, label_block)
            self._labels[s] = label_block
            return nxt.next, label_block

        if s == "if":
            return self._process_if(tok, limit_tok, current_block, break_target, continue_target)
        if s == "while":
            return self._process_while(tok, limit_tok, current_block, break_target, continue_target)
        if s == "for":
            return self._process_for(tok, limit_tok, current_block, break_target, continue_target)
        if s == "do":
            return self._process_do_while(tok, limit_tok, current_block, break_target, continue_target)
        if s == "switch":
            return self._process_switch(tok, limit_tok, current_block, break_target, continue_target)
        if s == "try":
            return self._process_try(tok, limit_tok, current_block, break_target, continue_target)

        # ---- jumps ---------------------------------------------------------
        if s in ("return", "throw", "break", "continue", "goto"):
            toks, after = self._collect_statement(tok, limit_tok)
            block = self._live(current_block)
            block.tokens.extend(toks)
            if s == "return":
                block.kind = "return"
                self._edge(block, self.cfg.exit, EdgeKind.RETURN)
            elif s == "throw":
                handlers = self._handlers[-1] if self._handlers else [self.cfg.exit]
                for handler in handlers:
                    self._edge(block, handler, EdgeKind.EXCEPTION)
            elif s == "break":
                self._edge(block, break_target or self.cfg.exit, EdgeKind.BREAK)
            elif s == "continue":
                self._edge(block, continue_target or self.cfg.exit, EdgeKind.CONTINUE)
            else:
                self._pending_gotos.append((block, _tok_str(nxt)))
            return after, None

        # ---- ordinary statement --------------------------------------------
        toks, after = self._collect_statement(tok, limit_tok)
        block = self._live(current_block)
        block.tokens.extend(toks)
        return after, block

    # -----------------------------------------------------------------------
    # if / else
    # -----------------------------------------------------------------------

    def _process_if(self, tok, limit_tok, current_block, break_target, continue_target):
        """Handle ``if (...) stmt [else stmt]``."""
        paren = tok.next
        if _tok_str(paren) == "constexpr":
            paren = paren.next
        cond_block = self._condition_block("if-cond", paren, "if", current_block)
        tok = paren.link.next

        true_block = self._new_block(kind="if-true")
        self._edge(cond_block, true_block, EdgeKind.BRANCH_TRUE)
        tok, true_exit = self._process_statement(
            tok, limit_tok, true_block, break_target, continue_target
        )

        if _tok_str(tok) == "else":
            false_block = self._new_block(kind="if-false")
            self._edge(cond_block, false_block, EdgeKind.BRANCH_FALSE)
            # 'else if' recurses through _process_statement
            tok, false_exit = self._process_statement(
                tok.next, limit_tok, false_block, break_target, continue_target
            )
            return tok, self._merge("if-merge", [true_exit, false_exit])

        merge = self._new_block(kind="if-merge")
        self._edge(cond_block, merge, EdgeKind.BRANCH_FALSE)
        if true_exit is not None:
            self._edge(true_exit, merge)
        return tok, merge

    # -----------------------------------------------------------------------
    # while
    # -----------------------------------------------------------------------

    def _process_while(self, tok, limit_tok, current_block, break_target, continue_target):
        """Handle ``while (...) stmt``."""
        paren = tok.next
        cond_block = self._condition_block("loop-cond", paren, "while", current_block)

        after_loop = self._new_block(kind="loop-after")
        body_block = self._new_block(kind="loop-body")
        self._edge(cond_block, body_block, EdgeKind.BRANCH_TRUE)
        self._edge(cond_block, after_loop, EdgeKind.BRANCH_FALSE)

        tok, body_exit = self._process_statement(
            paren.link.next, limit_tok, body_block,
            break_target=after_loop,
            continue_target=cond_block,
        )
        if body_exit is not None:
            self._edge(body_exit, cond_block, EdgeKind.BACK_EDGE)

        return tok, after_loop

    # -----------------------------------------------------------------------
    # for
    # -----------------------------------------------------------------------

    def _process_for(self, tok, limit_tok, current_block, break_target, continue_target):
        """Handle ``for (init; cond; incr) stmt`` and range-based ``for``."""
        paren = tok.next
        inner = self._paren_contents(paren, "for")
        after_loop = self._new_block(kind="loop-after")

        # split at the top-level ';' separators
        parts: List[List] = [[]]
        depth = 0
        for t in inner:
            if t.str in ("(", "[", "{"):
                depth += 1
            elif t.str in (")", "]", "}"):
                depth -= 1
            if t.str == ";" and depth == 0:
                parts.append([])
            else:
                parts[-1].append(t)

        if len(parts) != 3:
            # for (decl : range)
            cond_block = self._new_block(kind="for-range")
            cond_block.tokens.extend(inner)
            if current_block is not None:
                self._edge(current_block, cond_block)
            body_block = self._new_block(kind="loop-body")
            self._edge(cond_block, body_block, EdgeKind.BRANCH_TRUE)
            self._edge(cond_block, after_loop, EdgeKind.BRANCH_FALSE)
            tok, body_exit = self._process_statement(
                paren.link.next, limit_tok, body_block,
                break_target=after_loop,
                continue_target=cond_block,
            )
            if body_exit is not None:
                self._edge(body_exit, cond_block, EdgeKind.BACK_EDGE)
            return tok, after_loop

        init_toks, cond_toks, incr_toks = parts

        init_block = self._new_block(kind="for-init")
        init_block.tokens.extend(init_toks)
        if current_block is not None:
            self._edge(current_block, init_block)

        cond_block = self._new_block(kind="loop-cond")
        cond_block.tokens.extend(cond_toks)
        self._edge(init_block, cond_block)

        incr_block = self._new_block(kind="for-incr")
        incr_block.tokens.extend(incr_toks)

        body_block = self._new_block(kind="loop-body")
        self._edge(cond_block, body_block, EdgeKind.BRANCH_TRUE)
        if cond_toks:
            self._edge(cond_block, after_loop, EdgeKind.BRANCH_FALSE)

        tok, body_exit = self._process_statement(
            paren.link.next, limit_tok, body_block,
            break_target=after_loop,
            continue_target=incr_block,
        )
        if body_exit is not None:
            self._edge(body_exit, incr_block)
        self._edge(incr_block, cond_block, EdgeKind.BACK_EDGE)

        return tok, after_loop

    # -----------------------------------------------------------------------
    # do ... while
    # -----------------------------------------------------------------------

    def _process_do_while(self, tok, limit_tok, current_block, break_target, continue_target):
        """Handle ``do stmt while (...);``."""
        body_block = self._new_block(kind="loop-body")
        if current_block is not None:
            self._edge(current_block, body_block)

        cond_block = self._new_block(kind="loop-cond")
        after_loop = self._new_block(kind="loop-after")

        tok, body_exit = self._process_statement(
            tok.next, limit_tok, body_block,
            break_target=after_loop,
            continue_target=cond_block,
        )
        if body_exit is not None:
            self._edge(body_exit, cond_block)

        if _tok_str(tok) != "while":
            raise self._malformed("expected 'while' after 'do' body", tok)
        paren = tok.next
        cond_block.tokens.extend(self._paren_contents(paren, "while"))
        tok = paren.link.next
        if _tok_str(tok) == ";":
            tok = tok.next

        # the true edge is the loop's back edge
        self._edge(cond_block, body_block, EdgeKind.BRANCH_TRUE)
        self._edge(cond_block, after_loop, EdgeKind.BRANCH_FALSE)

        return tok, after_loop

    # -----------------------------------------------------------------------
    # switch
    # -----------------------------------------------------------------------

    def _process_switch(self, tok, limit_tok, current_block, break_target, continue_target):
        """Handle ``switch (...) { case ...: ... }``.

        ``case`` and ``default`` labels are picked up by
        :meth:`_process_statement` wherever they sit in the body.
        """
        paren = tok.next
        dispatch_block = self._condition_block("switch-dispatch", paren, "switch", current_block)
        after_switch = self._new_block(kind="switch-after")

        ctx = _SwitchContext(dispatch_block)
        self._switches.append(ctx)
        try:
            # statements before the first label are dead
            tok, body_exit = self._process_statement(
                paren.link.next, limit_tok, None,
                break_target=after_switch,
                continue_target=continue_target,
            )
        finally:
            self._switches.pop()

        if body_exit is not None:
            self._edge(body_exit, after_switch)
        if not ctx.has_default:
            self._edge(dispatch_block, after_switch, EdgeKind.SWITCH_DEFAULT)

        return tok, after_switch

    def _process_case_label(self, tok, limit_tok, current_block):
        ctx = self._switches[-1]
        if tok.str == "default":
            colon = tok.next
            case_block = self._new_block(kind="default")
            self._edge(ctx.dispatch, case_block, EdgeKind.SWITCH_DEFAULT)
            ctx.has_default = True
        else:
            label_toks: List = []
            colon = tok.next
            pending_ternary = 0
            while colon is not None and colon is not limit_tok:
                if colon.str == "?":
                    pending_ternary += 1
                elif colon.str == ":":
                    if not pending_ternary:
                        break
                    pending_ternary -= 1
                label_toks.append(colon)
                colon = colon.next
            roots = expression_roots(label_toks)
            if not roots and len(label_toks) == 1:
                # a lone literal carries no AST links
                roots = label_toks
            case_block = self._new_block(kind="case")
            self._edge(
                ctx.dispatch, case_block, EdgeKind.SWITCH_CASE,
                label=" ".join(t.str for t in label_toks),
                value=roots[-1] if roots else None,
            )
        if _tok_str(colon) != ":":
            raise self._malformed(f"expected ':' after '{tok.str}'", tok)
        if current_block is not None:
            self._edge(current_block, case_block, EdgeKind.FALL_THROUGH)
        return colon.next, case_block

    # -----------------------------------------------------------------------
    # try / catch
    # -----------------------------------------------------------------------

    def _process_try(self, tok, limit_tok, current_block, break_target, continue_target):
        """Handle ``try { ... } catch (...) { ... } ...``."""
        body = tok.next
        if _tok_str(body) != "{" or getattr(body, "link", None) is None:
            raise self._malformed("expected '{' after 'try'", tok)

        try_block = self._new_block(kind="try")
        if current_block is not None:
            self._edge(current_block, try_block)

        clauses = []
        nxt = body.link.next
        while _tok_str(nxt) == "catch":
            paren = nxt.next
            self._paren_contents(paren, "catch")
            handler_body = paren.link.next
            if _tok_str(handler_body) != "{" or getattr(handler_body, "link", None) is None:
                raise self._malformed("expected '{' after 'catch (...)'", nxt)
            clauses.append((handler_body, self._new_block(kind="catch")))
            nxt = handler_body.link.next
        handlers = [h for _, h in clauses]

        mark = len(self.cfg.nodes)
        self._handlers.append(handlers)
        try:
            _, body_exit = self._process_statement(
                body, limit_tok, try_block, break_target, continue_target
            )
        finally:
            self._handlers.pop()

        throwing = [try_block] + self.cfg.nodes[mark:]
        for block in throwing:
            if block.kind == "unreachable" and not block.predecessors:
                continue
            for handler in handlers:
                self._edge(block, handler, EdgeKind.EXCEPTION)

        exits = [body_exit]
        for handler_body, handler in clauses:
            _, handler_exit = self._process_statement(
                handler_body, limit_tok, handler, break_target, continue_target
            )
            exits.append(handler_exit)

        return nxt, self._merge("try-after", exits)


# ===========================================================================
# PUBLIC API
# ===========================================================================

def function_scope(function, cfg_config):
    """The ``Function`` scope of *function* in *cfg_config*, or ``None``."""
    for s in cfg_config.scopes:
        if s.type == "Function" and s.function is function:
            return s
    # Fallback: try matching through the className
    for s in cfg_config.scopes:
        if s.type == "Function" and s.className == getattr(function, "name", None):
            if getattr(s, "functionId", None) == getattr(function, "Id", None):
                return s
    return None


def build_cfg(function, cfg_config) -> Optional[CFG]:
    """Build a :class:`CFG` for a single function.

    Parameters
    ----------
    function : cppcheckdata.Function
        The function object from the dump file.
    cfg_config : cppcheckdata.Configuration
        The configuration that contains *function*.

    Returns
    -------
    CFG or None
        The control flow graph, or ``None`` if the function has no body
        (forward declaration, etc.).

    Raises
    ------
    MalformedCFGError
        If the token stream of the body cannot be partitioned.
    """
    scope = function_scope(function, cfg_config)
    if scope is None:
        return None
    if scope.bodyStart is None or scope.bodyEnd is None:
        return None

    builder = _CFGBuilder(function, scope)
    return builder.build()


def build_all_cfgs(cfg_config) -> OrderedDict:
    """Build CFGs for every function that has a body in *cfg_config*.

    Parameters
    ----------
    cfg_config : cppcheckdata.Configuration
        A configuration from a Cppcheck dump file.

    Returns
    -------
    OrderedDict[cppcheckdata.Function, CFG]
        Mapping from function objects to their CFGs, in the order they
        appear in the dump file.
    """
    result: OrderedDict = OrderedDict()
    for func in cfg_config.functions:
        cfg = build_cfg(func, cfg_config)
        if cfg is not None:
            result[func] = cfg
    return result


# ---------------------------------------------------------------------------
# Convenience: print a summary
# ---------------------------------------------------------------------------

def cfg_summary(cfg: CFG) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    for node in cfg.nodes:
        succ_ids = ", ".join(
            f"BB{e.dst.id}({e.kind.value})" for e in node.successors)
        pred_ids = ", ".join(f"BB{e.src.id}" for e in node.predecessors)
        lines.append(
            f"  BB{node.id} [{node.kind}] "
            f"tokens={len(node.tokens)}  "
            f"succ=[{succ_ids}]  "
            f"pred=[{pred_ids}]"
        )
    return "\n".join(lines)


__all__ = [
    "EdgeKind",
    "CFGNode",
    "CFGEdge",
    "CFG",
    "function_scope",
    "build_cfg",
    "build_all_cfgs",
    "cfg_summary",
]
