# tests/test_dataflow_engine.py
"""
Tests for the zeroness fixpoint over parsed function bodies.
"""

import itertools

import pytest
from hypothesis import given, settings, strategies as st

from divzero import dataflow_engine
from divzero.config import AnalysisConfig
from divzero.ctrlflow_graph import build_cfg
from divzero.dataflow_engine import ZeronessAnalysis, analyze_function
from divzero.errors import AnalysisLimitExceeded
from divzero.lattice import Zeroness
from tests.conftest import find_function, find_tokens, parse_source

Z, N, T, B = Zeroness.ZERO, Zeroness.NON_ZERO, Zeroness.TOP, Zeroness.BOTTOM


def _analyze(source, name="f", config=None, file="test.c"):
    conf = parse_source(source, file=file)
    return conf, analyze_function(find_function(conf, name), conf, config)


def _divisors(source, **kw):
    """Zeroness of every divisor in source order."""
    conf, result = _analyze(source, **kw)
    divs = [t for t in conf.tokenlist if t.str in ("/", "%", "/=", "%=")]
    return [result.zeroness_of(d.astOperand2) for d in divs]


class TestGuards:

    def test_unguarded_parameter_is_unknown(self):
        assert _divisors("int f(int n) { return 10 / n; }") == [T]

    def test_not_equal_guard(self):
        assert _divisors("int f(int n) { if (n != 0) return 10 / n; return 0; }") == [N]

    def test_equal_guard_on_both_edges(self):
        src = "int f(int n) { if (n == 0) return 10 / n; return 20 / n; }"
        assert _divisors(src) == [Z, N]

    def test_negated_guard(self):
        assert _divisors("int f(int a, int b) { if (!b) return 0; return a / b; }") == [N]

    def test_conjunction_narrows_true_edge(self):
        src = "int f(int a, int b) { if (a != 0 && b != 0) return a / b; return 0; }"
        assert _divisors(src) == [N]

    def test_disjunction_narrows_false_edge(self):
        src = "int f(int a, int b) { if (b == 0 || a == 0) return 0; return a / b; }"
        assert _divisors(src) == [N]

    def test_early_return_guard(self):
        src = "int f(int n) { if (n == 0) { return -1; } int q = 100 / n; return q; }"
        assert _divisors(src) == [N]

    def test_guard_lost_after_reassignment(self):
        src = "int f(int n, int m) { if (n != 0) { n = m; return 10 / n; } return 0; }"
        assert _divisors(src) == [T]

    def test_conjunction_with_assignment_in_right_operand(self):
        src = "int f(int x) { if (x != 0 && (x = 0) == 0) { return 10 / x; } return 0; }"
        assert _divisors(src)[0] in (Z, T)

    def test_conjunction_with_decrement_in_right_operand(self):
        src = "int f(int x) { if (x != 0 && x--) { return 10 / x; } return 0; }"
        assert _divisors(src) == [T]

    def test_conjunction_with_call_on_unrelated_argument(self):
        src = "int h(int v); int f(int x, int y) { if (x != 0 && h(y) != 0) return 10 / x; return 0; }"
        assert _divisors(src) == [N]

    def test_conditional_operator_with_decrement_in_condition(self):
        src = "int f(int x) { int q = (x != 0 && x--) ? 10 / x : 0; return q; }"
        assert _divisors(src) == [T]


class TestJoins:

    def test_branches_disagree(self):
        src = "int f(int c) { int d; if (c) d = 1; else d = 0; return 10 / d; }"
        assert _divisors(src) == [T]

    def test_branches_agree(self):
        src = "int f(int c) { int d; if (c) d = 1; else d = 7; return 10 / d; }"
        assert _divisors(src) == [N]

    def test_definite_zero(self):
        assert _divisors("int f() { int d = 0; return 10 / d; }") == [Z]

    def test_literal_zero_divisor(self):
        assert _divisors("int f(int a) { return a % 0; }") == [Z]


class TestLoops:

    def test_loop_invariant_nonzero(self):
        src = (
            "int f(int n) { int d = 1; while (n) { d = d * 2; n = n - 1; } return 10 / d; }"
        )
        assert _divisors(src) == [N]

    def test_loop_body_may_zero(self):
        src = "int f(int n) { int d = 1; while (n) { d = 0; } return 10 / d; }"
        assert _divisors(src) == [T]

    def test_loop_condition_guards_body(self):
        src = (
            "int f(int n) { int q = 0; while (n != 0) { q = q + 10 / n; n = n - 1; } return q; }"
        )
        assert _divisors(src) == [N]

    def test_do_while_runs_body_first(self):
        src = "int f(int n) { int d = 0; do { d = 5; } while (n); return 10 / d; }"
        assert _divisors(src) == [N]

    def test_infinite_loop_terminates(self):
        conf, result = _analyze("void f(int n) { for (;;) { n = n + 1; } }")
        assert result.converged
        assert result.iterations > 0

_STATEMENTS = [
    "x = 0;",
    "y = x + 1;",
    "d = d * y;",
    "n--;",
    "if (x != 0) y = 10 / x;",
    "if (y) { d = 0; } else { d = x; }",
    "while (n) { x = y; n = n - 1; }",
    "while (n != 0 && x) { d = d + 1; if (d == 0) break; n--; }",
    "do { y = y - 1; } while (y);",
    "for (n = 3; n; n--) { if (x) continue; x = d; }",
    "switch (n) { case 0: x = 1; break; case 2: d = 0; default: y = 0; }",
]

bodies = st.tuples(
    st.lists(st.sampled_from(_STATEMENTS), min_size=1, max_size=6),
    st.booleans(),
)


class TestTermination:

    @settings(deadline=None)
    @given(bodies)
    def test_store_updates_bounded_by_lattice_height(self, body):
        statements, in_loop = body
        text = " ".join(statements)
        if in_loop:
            text = "while (n) { " + text + " }"
        conf = parse_source("int f(int x, int y, int n) { int d = 1; " + text + " return d; }")
        cfg = build_cfg(find_function(conf, "f"), conf)
        result = ZeronessAnalysis(cfg).run()
        tracked_vars = 4
        assert result.converged
        assert result.store_updates <= len(cfg.nodes) * (2 * tracked_vars + 1)


class TestSwitch:

    def test_case_value_narrows_subject(self):
        src = (
            "int f(int k) { switch (k) { case 0: return 10 / k; case 3: return 20 / k; } return 0; }"
        )
        assert _divisors(src) == [Z, N]

    def test_default_does_not_narrow(self):
        src = "int f(int k) { switch (k) { case 0: return 0; default: return 10 / k; } }"
        assert _divisors(src) == [T]


class TestAliasing:

    def test_address_taken_variable_is_havoced_by_call(self):
        src = "void g(int *p); int f() { int d = 1; g(&d); return 10 / d; }"
        assert _divisors(src) == [T]

    def test_exception_edge_forgets_writes(self):
        src = (
            "int f() { int d = 1; try { d = 0; d = 2; } catch (int e) { return 10 / d; } return 0; }"
        )
        assert _divisors(src, file="test.cpp") == [T]

    def test_call_in_conjunction_clobbers_address_taken_guard(self):
        src = (
            "int h(int *p); int f(int x) { int *p = &x; "
            "if (x != 0 && h(p) != 0) return 10 / x; return 0; }"
        )
        assert _divisors(src) == [T]

    def test_indirect_write_in_conjunction_clobbers_address_taken_guard(self):
        src = (
            "int f(int x) { int *p = &x; "
            "if (x != 0 && (*p = 0) == 0) return 10 / x; return 0; }"
        )
        assert _divisors(src) == [T]


class TestReachability:

    def test_dead_code_is_bottom(self):
        conf, result = _analyze("int f(int n) { return 1; n = 10 / 0; }")
        div = find_tokens(conf, "/")[0]
        assert result.zeroness_of(div.astOperand2) is B

    def test_bottom_contract_makes_body_unreachable(self):
        config = AnalysisConfig(parameter_contracts={"f": {"n": B}})
        assert _divisors("int f(int n) { return 10 / n; }", config=config) == [B]


class TestContracts:

    def test_nonzero_contract(self):
        config = AnalysisConfig(parameter_contracts={"f": {"n": N}})
        assert _divisors("int f(int n) { return 10 / n; }", config=config) == [N]

    def test_contract_for_other_function_ignored(self):
        config = AnalysisConfig(parameter_contracts={"g": {"n": N}})
        assert _divisors("int f(int n) { return 10 / n; }", config=config) == [T]

    def test_reference_parameter_ignores_contract(self):
        config = AnalysisConfig(parameter_contracts={"f": {"n": N}})
        src = "int f(int &n) { return 10 / n; }"
        assert _divisors(src, config=config, file="test.cpp") == [T]


class TestLimits:

    def test_iteration_budget(self):
        conf = parse_source("int f(int n) { while (n) { n = n - 1; } return n; }")
        func = find_function(conf, "f")
        with pytest.raises(AnalysisLimitExceeded) as info:
            analyze_function(func, conf, AnalysisConfig(max_iterations=1))
        assert info.value.iterations == 1
        assert info.value.function is func

    def test_timeout(self, monkeypatch):
        ticks = itertools.count()
        monkeypatch.setattr(dataflow_engine.time, "monotonic", lambda: next(ticks) * 10.0)
        conf = parse_source("int f(int n) { return n; }")
        with pytest.raises(AnalysisLimitExceeded, match="exceeded"):
            analyze_function(find_function(conf, "f"), conf, AnalysisConfig(timeout_seconds=1.0))


class TestResult:

    def test_prototype_has_no_result(self):
        conf = parse_source("int g(int n);")
        assert analyze_function(find_function(conf, "g"), conf) is None

    def test_division_sites_in_order(self):
        conf, result = _analyze("int f(int a, int b) { a /= b; return a % b; }")
        assert [t.str for t in result.division_sites] == ["/=", "%"]

    def test_annotations_are_read_only(self):
        conf, result = _analyze("int f(int n) { return 10 / n; }")
        with pytest.raises(TypeError):
            result.annotations[conf.tokenlist[0]] = Z

    def test_rerun_is_idempotent(self):
        conf = parse_source(
            "int f(int n) { int d = 1; while (n) { if (n == 3) d = 0; n = n - 1; } return 10 / d; }"
        )
        cfg = build_cfg(find_function(conf, "f"), conf)
        first = ZeronessAnalysis(cfg).run()
        second = ZeronessAnalysis(cfg).run()
        assert dict(first.annotations) == dict(second.annotations)
        assert first.facts_in == second.facts_in

    def test_unevaluated_token_defaults_to_top(self):
        conf, result = _analyze("int f(int n) { return n; }")
        assert result.zeroness_of(object()) is T
        assert not result.is_annotated(object())

    def test_store_in_exit(self):
        conf = parse_source("int f() { int d = 0; return d; }")
        cfg = build_cfg(find_function(conf, "f"), conf)
        result = ZeronessAnalysis(cfg).run()
        d = find_tokens(conf, "d")[0]
        assert result.store_in(cfg.exit).get(d.varId) is Z
