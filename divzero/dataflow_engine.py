"""
divzero.dataflow_engine
=======================

Forward, flow-sensitive zeroness analysis of one function body.

The engine runs a classic worklist fixpoint over a :class:`~divzero.ctrlflow_graph.CFG`:

1. The entry store holds the parameter defaults (``TOP``, or the tag a
   configured parameter contract gives).
2. Blocks are visited in reverse post-order.  A block's in-store is the
   join of its predecessors' out-stores, each first passed through the
   edge's refinement (branch narrowing, ``case`` narrowing, exception
   havoc).  In-stores only ascend: the new value is ``old ⊔ merged``.
3. A block's out-store comes from evaluating its expressions in statement
   order with :class:`~divzero.transfer.ExpressionEvaluator`.
4. Successors are re-enqueued whenever an out-store changes.

Once the worklist is empty, a single annotation pass evaluates every block
against its final in-store and records one :class:`~divzero.lattice.Zeroness`
per expression token in a fresh, read-only table.

Public API
----------
    AnalysisResult     - fixpoint facts and the annotation table
    ZeronessAnalysis   - the analysis of one CFG
    analyze_function   - build the CFG of a function and analyse it

Typical usage::

    from divzero.ctrlflow_graph import build_cfg
    from divzero.dataflow_engine import ZeronessAnalysis

    cfg = build_cfg(func, configuration)
    result = ZeronessAnalysis(cfg).run()
    for tok in result.division_sites:
        print(tok.linenr, result.zeroness_of(tok.astOperand2))
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Deque, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from divzero.ast_helper import (
    assigned_variables,
    condition_root,
    escaped_variables,
    tok_str,
)
from divzero.config import AnalysisConfig
from divzero.ctrlflow_graph import CFG, CFGEdge, CFGNode, EdgeKind, build_cfg
from divzero.errors import AnalysisLimitExceeded
from divzero.lattice import Zeroness
from divzero.refinement import (
    RefinementStore,
    StoreLattice,
    refine_on_case,
    refine_on_condition,
)
from divzero.transfer import ExpressionEvaluator

_log = logging.getLogger(__name__)


# ===========================================================================
# RESULT
# ===========================================================================

@dataclass
class AnalysisResult:
    """Container for the outcome of one :class:`ZeronessAnalysis` run.

    Attributes
    ----------
    annotations : Mapping[Token, Zeroness]
        Read-only table with one entry per evaluated expression token.
    facts_in : dict
        Map from CFG node → refinement store before the block.
    facts_out : dict
        Map from CFG node → refinement store after the block.
    division_sites : tuple
        Every ``/``, ``%``, ``/=`` and ``%=`` token of the body, in
        evaluation order.
    iterations : int
        Number of worklist iterations performed.
    store_updates : int
        Number of times a block's in-store changed.
    converged : bool
        Always ``True``: a run that hits a limit raises instead.
    elapsed_seconds : float
        Wall-clock time including the annotation pass.
    """
    annotations: Mapping[Any, Zeroness] = field(default_factory=lambda: MappingProxyType({}))
    facts_in: Dict[CFGNode, RefinementStore] = field(default_factory=dict)
    facts_out: Dict[CFGNode, RefinementStore] = field(default_factory=dict)
    division_sites: Tuple[Any, ...] = ()
    iterations: int = 0
    store_updates: int = 0
    converged: bool = True
    elapsed_seconds: float = 0.0
    function: Any = None

    def zeroness_of(self, tok) -> Zeroness:
        """The annotation of *tok*; ``TOP`` for tokens never evaluated."""
        return self.annotations.get(tok, Zeroness.TOP)

    def is_annotated(self, tok) -> bool:
        return tok in self.annotations

    def store_in(self, node: CFGNode) -> RefinementStore:
        return self.facts_in.get(node, RefinementStore.bottom())

    def store_out(self, node: CFGNode) -> RefinementStore:
        return self.facts_out.get(node, RefinementStore.bottom())


# ===========================================================================
# ANALYSIS
# ===========================================================================

class ZeronessAnalysis:
    """Fixpoint zeroness analysis of a single function body.

    Parameters
    ----------
    cfg : CFG
        The control-flow graph of the body.
    config : AnalysisConfig, optional
        Limits, ValueFlow seeding and parameter contracts.
    function : cppcheckdata.Function, optional
        Used for parameter contracts and messages; defaults to
        ``cfg.function``.
    """

    def __init__(
        self,
        cfg: CFG,
        config: Optional[AnalysisConfig] = None,
        function: Any = None,
    ) -> None:
        self.cfg = cfg
        self.config = config or AnalysisConfig()
        self.function = function if function is not None else cfg.function
        self.lattice = StoreLattice()

    @property
    def function_name(self) -> str:
        return getattr(self.function, "name", None) or "<anonymous>"

    # ----- driver -----------------------------------------------------------

    def run(self) -> AnalysisResult:
        """Run the analysis to fixpoint and annotate the body.

        Raises
        ------
        MalformedCFGError
            If the CFG fails :meth:`CFG.validate`.
        AnalysisLimitExceeded
            If ``max_iterations`` or ``timeout_seconds`` is exhausted.
        """
        t0 = time.monotonic()
        cfg = self.cfg
        cfg.validate()

        escaped = escaped_variables(t for node in cfg.nodes for t in node.tokens)
        entry_store = self.entry_store()
        order = cfg.reverse_postorder()

        bottom = self.lattice.bottom()
        facts_in: Dict[CFGNode, RefinementStore] = {n: bottom for n in cfg.nodes}
        facts_out: Dict[CFGNode, RefinementStore] = {n: bottom for n in cfg.nodes}

        worklist: Deque[CFGNode] = deque(order)
        queued: Set[CFGNode] = set(order)
        visited: Set[CFGNode] = set()
        iterations = 0
        store_updates = 0
        max_iterations = self.config.max_iterations
        timeout = self.config.timeout_seconds

        _log.debug(
            "%s: %d blocks, %d edges, %d escaped variables",
            self.function_name, len(cfg.nodes), len(cfg.edges), len(escaped),
        )

        while worklist:
            if iterations >= max_iterations:
                raise AnalysisLimitExceeded(
                    f"{self.function_name}: no fixpoint after {iterations} iterations",
                    function=self.function,
                    iterations=iterations,
                    elapsed_seconds=time.monotonic() - t0,
                )
            if timeout is not None and time.monotonic() - t0 > timeout:
                raise AnalysisLimitExceeded(
                    f"{self.function_name}: analysis exceeded {timeout}s",
                    function=self.function,
                    iterations=iterations,
                    elapsed_seconds=time.monotonic() - t0,
                )

            node = worklist.popleft()
            queued.discard(node)
            iterations += 1

            if node is cfg.entry:
                merged = entry_store
            else:
                merged = bottom
                for edge in node.predecessors:
                    merged = self.lattice.join(
                        merged, self.edge_transfer(edge, facts_out[edge.src], escaped)
                    )
                merged = self.lattice.join(facts_in[node], merged)

            if node in visited and self.lattice.eq(merged, facts_in[node]):
                continue
            if merged != facts_in[node]:
                store_updates += 1
            visited.add(node)
            facts_in[node] = merged

            new_out = self.transfer(node, merged, escaped)
            if new_out == facts_out[node]:
                continue
            facts_out[node] = new_out

            for edge in node.successors:
                if edge.dst not in queued:
                    worklist.append(edge.dst)
                    queued.add(edge.dst)

        _log.debug(
            "%s: fixpoint after %d iterations, %d store updates",
            self.function_name, iterations, store_updates,
        )

        annotations, sites = self._annotate(order, facts_in, escaped)
        return AnalysisResult(
            annotations=MappingProxyType(annotations),
            facts_in=facts_in,
            facts_out=facts_out,
            division_sites=tuple(dict.fromkeys(sites)),
            iterations=iterations,
            store_updates=store_updates,
            converged=True,
            elapsed_seconds=time.monotonic() - t0,
            function=self.function,
        )

    # ----- transfer ---------------------------------------------------------

    def entry_store(self) -> RefinementStore:
        """Parameters start ``TOP`` unless a contract names them."""
        store = RefinementStore.top()
        contract = self.config.contract_for(self.function_name)
        if not contract:
            return store
        arguments = getattr(self.function, "argument", None) or {}
        for var in arguments.values():
            if getattr(var, "isReference", False) or getattr(var, "isArray", False):
                continue
            name_tok = getattr(var, "nameToken", None)
            tag = contract.get(tok_str(name_tok))
            vid = getattr(name_tok, "varId", 0)
            if tag is not None and vid:
                store = store.set(vid, tag) if tag is not Zeroness.BOTTOM else RefinementStore.bottom()
        return store

    def transfer(
        self,
        node: CFGNode,
        store: RefinementStore,
        escaped: FrozenSet[int] = frozenset(),
    ) -> RefinementStore:
        """Evaluate the expressions of *node* against *store*."""
        if store.is_bottom or not node.tokens:
            return store
        evaluator = ExpressionEvaluator(store, self.config, escaped=escaped)
        return evaluator.evaluate_block(node.tokens)

    def edge_transfer(
        self,
        edge: CFGEdge,
        store: RefinementStore,
        escaped: FrozenSet[int] = frozenset(),
    ) -> RefinementStore:
        """Refine the out-store of ``edge.src`` for the path along *edge*."""
        if store.is_bottom:
            return store
        if edge.kind is EdgeKind.BRANCH_TRUE or edge.kind is EdgeKind.BRANCH_FALSE:
            cond = condition_root(edge.src.tokens)
            return refine_on_condition(
                cond, store, edge.kind is EdgeKind.BRANCH_TRUE, escaped
            )
        if edge.kind is EdgeKind.SWITCH_CASE:
            return refine_on_case(condition_root(edge.src.tokens), edge.value, store)
        if edge.kind is EdgeKind.EXCEPTION:
            # the throw may happen before any write of the block
            return store.havoc(assigned_variables(edge.src.tokens))
        return store

    # ----- annotation pass --------------------------------------------------

    def _annotate(
        self,
        order: List[CFGNode],
        facts_in: Dict[CFGNode, RefinementStore],
        escaped: FrozenSet[int],
    ) -> Tuple[Dict[Any, Zeroness], List[Any]]:
        annotations: Dict[Any, Zeroness] = {}
        sites: List[Any] = []
        for node in order:
            if not node.tokens:
                continue
            evaluator = ExpressionEvaluator(
                facts_in[node], self.config,
                annotations=annotations, escaped=escaped, division_sites=sites,
            )
            evaluator.evaluate_block(node.tokens)
        return annotations, sites


def analyze_function(
    function,
    configuration,
    config: Optional[AnalysisConfig] = None,
) -> Optional[AnalysisResult]:
    """Build the CFG of *function* and analyse it.

    Returns ``None`` for functions without a body.
    """
    cfg = build_cfg(function, configuration)
    if cfg is None:
        return None
    return ZeronessAnalysis(cfg, config, function).run()


__all__ = [
    "AnalysisResult",
    "ZeronessAnalysis",
    "analyze_function",
]
